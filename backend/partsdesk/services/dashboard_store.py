# Overview: Stateful dashboard view over the live collections; exposes derived metrics and user-facing operations.

from __future__ import annotations

import logging
from functools import partial
from typing import Any, Callable

from flask import current_app

from ..errors import DashboardError, StorageUnavailable
from ..records import (
    FieldsOnlyEdit,
    ImageUpload,
    Notification,
    ProductEdit,
    ProductRecord,
    TransactionRecord,
)
from . import aggregation_service, backup_service, products_service, transaction_service
from .image_service import LocalImageStore
from .live_service import EXTENSION_KEY, PRODUCTS, TRANSACTIONS, LiveCollectionSource

logger = logging.getLogger(__name__)

DESTRUCTIVE = "destructive"
SIGN_IN_REQUIRED = "Sign in to access the shop data."


class DashboardStore:
    """
    Holds the latest products/transactions snapshots and everything derived
    from them.

    - open() subscribes once per collection; close() releases both.
    - Derived values are recomputed lazily and cached per collection version,
      so reading a property twice between changes costs nothing.
    - Operations never raise: the outcome comes back as a Notification, and
      on failure the held state is left as it was.

    Operations write through the service layer, which publishes to the
    application's live source; the store must be built on that same source
    to see its own writes.
    """

    def __init__(
        self,
        source: LiveCollectionSource,
        *,
        user=None,
        image_store: LocalImageStore | None = None,
        top_n: int = aggregation_service.DEFAULT_TOP_N,
        currency_symbol: str = "₺",
    ):
        self.source = source
        self.user = user
        self.image_store = image_store
        self.top_n = top_n
        self.currency_symbol = currency_symbol

        self._products: list[ProductRecord] = []
        self._transactions: list[TransactionRecord] = []
        self._loaded = {PRODUCTS: False, TRANSACTIONS: False}
        self._versions = {PRODUCTS: 0, TRANSACTIONS: 0}
        self._memo: dict[str, tuple[tuple, Any]] = {}
        self._unsubscribe: dict[str, Callable[[], None]] = {}

    @classmethod
    def for_app(cls, user, app=None) -> "DashboardStore":
        """Store wired to the application's live source, image folder and display settings."""
        app = app or current_app
        return cls(
            app.extensions[EXTENSION_KEY],
            user=user,
            image_store=LocalImageStore.from_app(app),
            top_n=app.config["TOP_N"],
            currency_symbol=app.config["CURRENCY_SYMBOL"],
        )

    # -- lifecycle ---------------------------------------------------------

    def open(self) -> "DashboardStore":
        if self.user is None:
            raise StorageUnavailable(SIGN_IN_REQUIRED)
        for collection in (PRODUCTS, TRANSACTIONS):
            if collection not in self._unsubscribe:
                self._unsubscribe[collection] = self.source.subscribe(
                    collection, partial(self._on_change, collection)
                )
        return self

    def close(self) -> None:
        for unsubscribe in self._unsubscribe.values():
            unsubscribe()
        self._unsubscribe.clear()

    @property
    def is_open(self) -> bool:
        return bool(self._unsubscribe)

    def __enter__(self) -> "DashboardStore":
        return self.open()

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    def _on_change(self, collection: str, records: list) -> None:
        if collection == PRODUCTS:
            self._products = records
        else:
            self._transactions = records
        self._loaded[collection] = True
        self._versions[collection] += 1

    # -- state -------------------------------------------------------------

    @property
    def loading(self) -> dict:
        return {name: not loaded for name, loaded in self._loaded.items()}

    @property
    def products(self) -> list[ProductRecord]:
        return list(self._products)

    @property
    def transactions(self) -> list[TransactionRecord]:
        return list(self._transactions)

    def _derived(self, name: str, depends: tuple[str, ...], compute: Callable[[], Any]):
        key = tuple(self._versions[c] for c in depends)
        cached = self._memo.get(name)
        if cached is not None and cached[0] == key:
            return cached[1]
        value = compute()
        self._memo[name] = (key, value)
        return value

    @property
    def total_stock(self) -> int:
        return self._derived("total_stock", (PRODUCTS,), lambda: aggregation_service.total_stock(self._products))

    @property
    def summary(self):
        return self._derived(
            "summary",
            (PRODUCTS, TRANSACTIONS),
            lambda: aggregation_service.summary_metrics(self._products, self._transactions),
        )

    @property
    def summary_cards(self):
        return self._derived(
            "summary_cards",
            (PRODUCTS, TRANSACTIONS),
            lambda: aggregation_service.summary_cards(self.summary, self.currency_symbol),
        )

    @property
    def grouped_transactions(self):
        return self._derived(
            "grouped_transactions",
            (TRANSACTIONS,),
            lambda: aggregation_service.group_by_day(self._transactions),
        )

    @property
    def top_selling_products(self):
        return self._derived(
            "top_selling_products",
            (TRANSACTIONS,),
            lambda: aggregation_service.top_selling_products(self._transactions, self.top_n),
        )

    @property
    def top_returning_products(self):
        return self._derived(
            "top_returning_products",
            (TRANSACTIONS,),
            lambda: aggregation_service.top_returning_products(self._transactions, self.top_n),
        )

    def overview(self) -> dict:
        """JSON-ready snapshot of every derived value."""
        payload = self._derived(
            "overview",
            (PRODUCTS, TRANSACTIONS),
            lambda: aggregation_service.dashboard_payload(
                self._products,
                self._transactions,
                top_n=self.top_n,
                currency_symbol=self.currency_symbol,
            ),
        )
        return {"loading": self.loading, **payload}

    # -- operations --------------------------------------------------------

    def _run(self, failure_title: str, op: Callable[[], Notification]) -> Notification:
        if self.user is None:
            return Notification(StorageUnavailable.title, SIGN_IN_REQUIRED, DESTRUCTIVE)
        try:
            return op()
        except DashboardError as exc:
            logger.info("%s: %s", failure_title, exc.message)
            return Notification(exc.title or failure_title, exc.message, DESTRUCTIVE)
        except Exception:
            logger.exception(failure_title)
            return Notification(failure_title, "Something went wrong. Please try again.", DESTRUCTIVE)

    def _actor_id(self):
        return getattr(self.user, "id", None)

    def add_product(self, fields: dict, image: ImageUpload | None = None) -> Notification:
        def op():
            record = products_service.create_product(fields, image, image_store=self.image_store)
            return Notification("Product Added", f"{record.name} was added successfully.")
        return self._run("Could not add product", op)

    def update_product(self, product_id: str, edit: ProductEdit | dict) -> Notification:
        if isinstance(edit, dict):
            edit = FieldsOnlyEdit(edit)

        def op():
            record = products_service.update_product(product_id, edit, image_store=self.image_store)
            return Notification("Product Updated", f"{record.name} was updated successfully.")
        return self._run("Could not update product", op)

    def delete_product(self, product_id: str) -> Notification:
        def op():
            products_service.delete_product(product_id, image_store=self.image_store)
            return Notification("Product Deleted", "The product was removed from inventory.")
        return self._run("Could not delete product", op)

    def make_sale(self, product_id: str) -> Notification:
        def op():
            record = transaction_service.record_sale(product_id, actor_user_id=self._actor_id())
            return Notification("Sale Completed", f"1 unit of {record.product_name} was sold.")
        return self._run("Could not complete sale", op)

    def make_return(self, product_id: str) -> Notification:
        def op():
            record = transaction_service.record_return(product_id, actor_user_id=self._actor_id())
            return Notification("Return Completed", f"1 unit of {record.product_name} was taken back.")
        return self._run("Could not complete return", op)

    def load_backup(self, data) -> Notification:
        def op():
            if isinstance(data, (str, bytes)):
                payload = backup_service.loads_snapshot(data)
            else:
                payload = data
            placeholder = self.image_store.placeholder_url if self.image_store else None
            backup_service.import_snapshot(payload, placeholder_image_url=placeholder)
            return Notification("Backup Loaded", "Your data was restored successfully.")
        return self._run("Could not load backup", op)

    def export_backup(self) -> dict:
        if self.user is None:
            raise StorageUnavailable(SIGN_IN_REQUIRED)
        return backup_service.export_snapshot()
