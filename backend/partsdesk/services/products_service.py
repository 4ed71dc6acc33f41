# backend/partsdesk/services/products_service.py
"""
Products Service

- create_product assigns the id, timestamps, and image URL
- update_product merges a validated patch; the image is kept unless the
  edit carries a new one
- delete_product removes the product AND its transaction history in one
  commit (purge policy)
- stored images are discarded once nothing references them: the old one
  after a replacing edit, the product's own after delete

Every write publishes the affected collections after commit.
"""
from __future__ import annotations

import logging

from ..errors import NotFound
from ..extensions import db
from ..models import Product, Transaction
from ..records import FieldsOnlyEdit, ImageUpload, ProductEdit, ProductRecord, WithImageEdit
from ..validation import validate_product_payload
from .concurrency import run_with_retry, storage_errors
from .image_service import LocalImageStore
from .live_service import PRODUCTS, TRANSACTIONS, publish
from partsdesk.time_utils import utcnow

logger = logging.getLogger(__name__)

PRODUCT_MUTABLE_FIELDS = {"name", "stock", "purchase_price", "selling_price", "compatibility", "last_purchase_date"}


def apply_product_patch(p: Product, patch: dict) -> None:
    for k, v in patch.items():
        if k not in PRODUCT_MUTABLE_FIELDS:
            continue
        setattr(p, k, v)


def _payload_for_log(patch: dict) -> dict:
    return {k: str(v) for k, v in patch.items()}


def list_products(search: str | None = None) -> list[ProductRecord]:
    """All products newest first; `search` keeps names containing it, ignoring case."""
    rows = db.session.query(Product).order_by(Product.created_at.desc(), Product.id.asc()).all()
    records = [ProductRecord.from_model(p) for p in rows]
    # SQLite lower() only folds ASCII; names are Turkish.
    term = (search or "").strip().casefold()
    if term:
        records = [p for p in records if term in p.name.casefold()]
    return records


def get_product(product_id: str) -> ProductRecord:
    p = db.session.get(Product, product_id)
    if p is None:
        raise NotFound("Product not found")
    return ProductRecord.from_model(p)


def create_product(
    fields: dict,
    image: ImageUpload | None = None,
    *,
    image_store: LocalImageStore | None = None,
) -> ProductRecord:
    """
    Create product from raw fields.

    Raises:
        ValidationError: if fields violate the Product invariants or the image is rejected
    """
    patch = validate_product_payload(fields, partial=False)
    image_store = image_store or LocalImageStore.from_app()
    image_url = image_store.resolve(image)

    def _op():
        now = utcnow()
        p = Product(image_url=image_url, created_at=now, updated_at=now)
        apply_product_patch(p, patch)
        db.session.add(p)
        db.session.commit()
        return ProductRecord.from_model(p)

    try:
        with storage_errors(operation="create", collection=PRODUCTS, payload=_payload_for_log(patch)):
            record = run_with_retry(_op)
    except Exception:
        image_store.discard(image_url)
        raise

    logger.info("product created id=%s name=%s", record.id, record.name)
    publish(PRODUCTS)
    return record


def update_product(
    product_id: str,
    edit: ProductEdit,
    *,
    image_store: LocalImageStore | None = None,
) -> ProductRecord:
    """
    Merge an edit into an existing product.

    FieldsOnlyEdit keeps the current image_url; WithImageEdit stores the new
    image and replaces it. Existing transactions keep their product_name
    snapshot.

    Raises:
        NotFound: if the product does not exist
        ValidationError: if fields violate the Product invariants
    """
    if not isinstance(edit, (FieldsOnlyEdit, WithImageEdit)):
        raise TypeError("edit must be FieldsOnlyEdit or WithImageEdit")

    patch = validate_product_payload(edit.fields, partial=True)
    if db.session.get(Product, product_id) is None:
        raise NotFound("Product not found")

    new_image_url = None
    old_image_url = None
    if isinstance(edit, WithImageEdit):
        image_store = image_store or LocalImageStore.from_app()
        new_image_url = image_store.save(edit.image)

    def _op():
        nonlocal old_image_url
        p = db.session.get(Product, product_id)
        if p is None:
            raise NotFound("Product not found")
        apply_product_patch(p, patch)
        if new_image_url is not None:
            old_image_url = p.image_url
            p.image_url = new_image_url
        p.updated_at = utcnow()
        db.session.commit()
        return ProductRecord.from_model(p)

    path = f"{PRODUCTS}/{product_id}"
    try:
        with storage_errors(operation="update", collection=PRODUCTS, path=path, payload=_payload_for_log(patch)):
            record = run_with_retry(_op)
    except Exception:
        if new_image_url is not None:
            image_store.discard(new_image_url)
        raise

    if old_image_url is not None:
        image_store.discard(old_image_url)
    logger.info("product updated id=%s fields=%s", product_id, ",".join(sorted(patch)) or "-")
    publish(PRODUCTS)
    return record


def delete_product(product_id: str, *, image_store: LocalImageStore | None = None) -> int:
    """
    Delete a product and every transaction referencing it, atomically.

    Returns the number of transactions removed with it.

    Raises:
        NotFound: if the product does not exist
    """
    image_url = None

    def _op():
        nonlocal image_url
        p = db.session.get(Product, product_id)
        if p is None:
            raise NotFound("Product not found")
        image_url = p.image_url
        removed = (
            db.session.query(Transaction)
            .filter(Transaction.product_id == product_id)
            .delete(synchronize_session=False)
        )
        db.session.delete(p)
        db.session.commit()
        return removed

    with storage_errors(operation="delete", collection=PRODUCTS, path=f"{PRODUCTS}/{product_id}"):
        removed = run_with_retry(_op)

    (image_store or LocalImageStore.from_app()).discard(image_url)
    logger.info("product deleted id=%s transactions_removed=%s", product_id, removed)
    publish(PRODUCTS, TRANSACTIONS)
    return removed
