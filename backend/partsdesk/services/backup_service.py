# Overview: Backup codec: full export/restore of products and transactions, plus the CSV stock sheet.

from __future__ import annotations

import csv
import io
import json
import logging
from typing import Any, Mapping

from ..errors import InvalidFormat, ValidationError
from ..extensions import db
from ..models import Product, Transaction, PURCHASE, RETURN, SALE
from ..models.catalog import new_id
from ..records import ProductRecord, TransactionRecord, money_to_json
from ..validation import coerce_int, coerce_money, coerce_timestamp, validate_product_payload
from .concurrency import storage_errors
from .live_service import PRODUCTS, TRANSACTIONS, get_live_source, publish
from partsdesk.time_utils import to_utc_z, utcnow

"""
Snapshot format (version 1)

{
  "version": 1,
  "exportedAt": "2026-01-01T10:00:00.000000Z",
  "products": [{id, name, stock, purchasePrice, sellingPrice, compatibility,
                imageUrl, lastPurchaseDate, createdAt}],
  "transactions": [{id, type, productId, productName, dateTime, quantity, amount}]
}

- Timestamps are ISO-8601 UTC with microseconds, so import(export()) is exact.
- Money is a JSON number.
- Import is a full replace in a single commit, never a merge.
"""

logger = logging.getLogger(__name__)

SNAPSHOT_VERSION = 1
TIMESPEC = "microseconds"
MAX_ID_LENGTH = 32

# Labels written by early versions of the shop data.
LEGACY_TYPE_LABELS = {
    "Satış": SALE,
    "İade": RETURN,
    "Alış": PURCHASE,
}

CSV_HEADER = ["Product Name", "Stock", "Selling Price", "Compatibility", "Last Purchase Date"]


def product_to_snapshot(p: ProductRecord) -> dict:
    return {
        "id": p.id,
        "name": p.name,
        "stock": p.stock,
        "purchasePrice": money_to_json(p.purchase_price),
        "sellingPrice": money_to_json(p.selling_price),
        "compatibility": p.compatibility,
        "imageUrl": p.image_url,
        "lastPurchaseDate": to_utc_z(p.last_purchase_date, TIMESPEC),
        "createdAt": to_utc_z(p.created_at, TIMESPEC),
    }


def transaction_to_snapshot(t: TransactionRecord) -> dict:
    return {
        "id": t.id,
        "type": t.type,
        "productId": t.product_id,
        "productName": t.product_name,
        "dateTime": to_utc_z(t.date_time, TIMESPEC),
        "quantity": t.quantity,
        "amount": money_to_json(t.amount),
    }


def export_snapshot() -> dict:
    source = get_live_source()
    return {
        "version": SNAPSHOT_VERSION,
        "exportedAt": to_utc_z(utcnow(), TIMESPEC),
        "products": [product_to_snapshot(p) for p in source.snapshot(PRODUCTS)],
        "transactions": [transaction_to_snapshot(t) for t in source.snapshot(TRANSACTIONS)],
    }


def dumps_snapshot(snapshot: dict) -> str:
    return json.dumps(snapshot, ensure_ascii=False, indent=2)


def loads_snapshot(text: str | bytes) -> Any:
    try:
        return json.loads(text)
    except (json.JSONDecodeError, UnicodeDecodeError) as exc:
        raise InvalidFormat("Backup file is not valid JSON") from exc


def _record_id(raw: Mapping, where: str) -> str:
    value = raw.get("id")
    if value is None or value == "":
        return new_id()
    if not isinstance(value, str):
        raise ValidationError(f"{where}.id must be a string")
    if len(value) > MAX_ID_LENGTH:
        raise ValidationError(f"{where}.id exceeds max length {MAX_ID_LENGTH}")
    return value


def _parse_product(raw: Any, index: int) -> Product:
    where = f"products[{index}]"
    if not isinstance(raw, Mapping):
        raise ValidationError(f"{where} must be an object")

    selling = raw.get("sellingPrice", raw.get("price"))
    fields = {
        "name": raw.get("name"),
        "stock": raw.get("stock"),
        "purchase_price": raw.get("purchasePrice", 0 if "price" in raw else None),
        "selling_price": selling,
        "compatibility": raw.get("compatibility"),
        "last_purchase_date": raw.get("lastPurchaseDate"),
    }
    missing = sorted(k for k, v in fields.items() if v is None)
    if missing:
        raise ValidationError(f"{where} is missing: {', '.join(missing)}")

    try:
        patch = validate_product_payload(fields, partial=False)
        created_raw = raw.get("createdAt")
        created_at = (
            coerce_timestamp("createdAt", created_raw)
            if created_raw not in (None, "")
            else patch["last_purchase_date"]
        )
    except ValidationError as exc:
        raise ValidationError(f"{where}: {exc.message}") from exc

    image_url = raw.get("imageUrl")
    if image_url is not None and not isinstance(image_url, str):
        raise ValidationError(f"{where}.imageUrl must be a string")

    return Product(
        id=_record_id(raw, where),
        image_url=image_url or "",
        created_at=created_at,
        updated_at=utcnow(),
        **patch,
    )


def _parse_transaction(raw: Any, index: int) -> Transaction:
    where = f"transactions[{index}]"
    if not isinstance(raw, Mapping):
        raise ValidationError(f"{where} must be an object")

    kind = raw.get("type")
    kind = LEGACY_TYPE_LABELS.get(kind, kind)
    if kind not in (SALE, RETURN, PURCHASE):
        raise ValidationError(f"{where}.type must be one of Sale, Return, Purchase")

    product_id = raw.get("productId")
    if not isinstance(product_id, str) or not product_id:
        raise ValidationError(f"{where}.productId is required")
    if len(product_id) > MAX_ID_LENGTH:
        raise ValidationError(f"{where}.productId exceeds max length {MAX_ID_LENGTH}")

    product_name = raw.get("productName")
    if not isinstance(product_name, str) or not product_name.strip():
        raise ValidationError(f"{where}.productName is required")

    try:
        date_time = coerce_timestamp("dateTime", raw.get("dateTime", raw.get("date")))
        quantity = coerce_int("quantity", raw.get("quantity"))
        amount = coerce_money("amount", raw.get("amount"))
    except ValidationError as exc:
        raise ValidationError(f"{where}: {exc.message}") from exc

    if quantity <= 0:
        raise ValidationError(f"{where}.quantity must be > 0")
    if kind == SALE and amount < 0:
        raise ValidationError(f"{where}.amount must be >= 0 for a Sale")
    if kind == RETURN and amount > 0:
        raise ValidationError(f"{where}.amount must be <= 0 for a Return")

    return Transaction(
        id=_record_id(raw, where),
        type=kind,
        product_id=product_id,
        product_name=product_name.strip(),
        date_time=date_time,
        quantity=quantity,
        amount=amount,
    )


def _reject_duplicates(rows: list, label: str) -> None:
    seen = set()
    for row in rows:
        if row.id in seen:
            raise ValidationError(f"Duplicate {label} id: {row.id}")
        seen.add(row.id)


def import_snapshot(data: Any, *, placeholder_image_url: str | None = None) -> dict:
    """
    Replace all products and transactions with the snapshot's contents.

    Raises:
        InvalidFormat: data is not {"products": [...], "transactions": [...]}
        ValidationError: a record violates the data model (nothing is written)
    """
    if not isinstance(data, Mapping):
        raise InvalidFormat("Backup must be a JSON object with 'products' and 'transactions' arrays")
    products_raw = data.get("products")
    transactions_raw = data.get("transactions")
    if not isinstance(products_raw, list) or not isinstance(transactions_raw, list):
        raise InvalidFormat("Backup must contain 'products' and 'transactions' arrays")

    products = [_parse_product(raw, i) for i, raw in enumerate(products_raw)]
    transactions = [_parse_transaction(raw, i) for i, raw in enumerate(transactions_raw)]
    _reject_duplicates(products, "product")
    _reject_duplicates(transactions, "transaction")

    if placeholder_image_url:
        for p in products:
            if not p.image_url:
                p.image_url = placeholder_image_url

    payload = {"products": len(products), "transactions": len(transactions)}
    with storage_errors(operation="import", collection="backup", payload=payload):
        # Rows about to be replaced may still sit in the identity map.
        db.session.expunge_all()
        db.session.query(Transaction).delete(synchronize_session=False)
        db.session.query(Product).delete(synchronize_session=False)
        db.session.add_all(products)
        db.session.add_all(transactions)
        db.session.commit()

    logger.info("backup restored products=%s transactions=%s", len(products), len(transactions))
    publish(PRODUCTS, TRANSACTIONS)
    return payload


def export_products_csv(products) -> str:
    """One row per product; Last Purchase Date formatted YYYY-MM-DD."""
    out = io.StringIO()
    writer = csv.writer(out)
    writer.writerow(CSV_HEADER)
    for p in products:
        writer.writerow([
            p.name,
            p.stock,
            f"{p.selling_price:.2f}",
            p.compatibility,
            p.last_purchase_date.strftime("%Y-%m-%d") if p.last_purchase_date else "",
        ])
    return out.getvalue()
