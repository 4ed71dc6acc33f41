# Overview: In-process live collection source; pushes full collection snapshots to subscribers after each commit.

from __future__ import annotations

import logging
from typing import Callable

from flask import current_app

from ..extensions import db
from ..models import Product, Transaction
from ..records import ProductRecord, TransactionRecord

logger = logging.getLogger(__name__)

PRODUCTS = "products"
TRANSACTIONS = "transactions"
EXTENSION_KEY = "partsdesk.live"

Listener = Callable[[list], None]


def _load_products() -> list[ProductRecord]:
    rows = db.session.query(Product).order_by(Product.created_at.desc(), Product.id.asc()).all()
    return [ProductRecord.from_model(p) for p in rows]


def _load_transactions() -> list[TransactionRecord]:
    rows = (
        db.session.query(Transaction)
        .order_by(Transaction.date_time.desc(), Transaction.id.asc())
        .all()
    )
    return [TransactionRecord.from_model(t) for t in rows]


_LOADERS = {
    PRODUCTS: _load_products,
    TRANSACTIONS: _load_transactions,
}


class LiveCollectionSource:
    """
    Observer registry over the products and transactions collections.

    subscribe() delivers the current snapshot immediately and again after
    every publish() for that collection. Write operations call publish()
    only after their commit succeeded, so listeners never see uncommitted
    state.
    """

    def __init__(self):
        self._listeners: dict[str, list[Listener]] = {name: [] for name in _LOADERS}

    def _check(self, collection: str) -> None:
        if collection not in self._listeners:
            raise ValueError(f"Unknown collection: {collection}")

    def snapshot(self, collection: str) -> list:
        self._check(collection)
        return _LOADERS[collection]()

    def listener_count(self, collection: str) -> int:
        self._check(collection)
        return len(self._listeners[collection])

    def subscribe(self, collection: str, on_change: Listener) -> Callable[[], None]:
        self._check(collection)
        listeners = self._listeners[collection]
        listeners.append(on_change)

        def unsubscribe() -> None:
            if on_change in listeners:
                listeners.remove(on_change)

        self._deliver(collection, on_change, self.snapshot(collection))
        return unsubscribe

    def publish(self, *collections: str) -> None:
        for collection in collections:
            self._check(collection)
            listeners = list(self._listeners[collection])
            if not listeners:
                continue
            records = self.snapshot(collection)
            for listener in listeners:
                self._deliver(collection, listener, records)

    def _deliver(self, collection: str, listener: Listener, records: list) -> None:
        try:
            listener(list(records))
        except Exception:
            # The write is already committed; one broken listener must not affect the others.
            logger.exception("Listener failed for collection %s", collection)


def get_live_source() -> LiveCollectionSource:
    return current_app.extensions[EXTENSION_KEY]


def publish(*collections: str) -> None:
    get_live_source().publish(*collections)
