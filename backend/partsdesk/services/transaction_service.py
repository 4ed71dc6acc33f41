"""
Sale / Return Service

WHY: A sale or return is a stock change plus a ledger entry. Both are
written in one database transaction so neither can exist without the other.
"""

from __future__ import annotations

import logging

from sqlalchemy import update

from ..errors import NotFound, OutOfStock
from ..extensions import db
from ..models import Product, Transaction, RETURN, SALE
from ..records import ProductRecord, TransactionRecord
from .concurrency import run_with_retry, storage_errors
from .live_service import PRODUCTS, TRANSACTIONS, publish
from partsdesk.time_utils import utcnow

logger = logging.getLogger(__name__)

UNIT = 1


def _adjust_stock(product_id: str, delta: int) -> bool:
    """
    Apply a stock delta as a single conditional UPDATE.

    A decrement only matches while stock > 0, so two concurrent sales of
    the last unit cannot both succeed. Returns False when no row matched.
    """
    stmt = update(Product).where(Product.id == product_id)
    if delta < 0:
        stmt = stmt.where(Product.stock >= -delta)
    stmt = stmt.values(stock=Product.stock + delta, updated_at=utcnow())
    result = db.session.execute(stmt.execution_options(synchronize_session=False))
    return result.rowcount == 1


def _record(
    product_id: str, kind: str, delta: int, actor_user_id: int | None
) -> tuple[TransactionRecord, ProductRecord]:
    def _op():
        product = db.session.get(Product, product_id)
        if product is None:
            raise NotFound("Product not found")

        # Snapshot before the UPDATE; the conditional statement is what guards stock.
        name = product.name
        unit_price = product.selling_price

        if not _adjust_stock(product_id, delta):
            db.session.rollback()
            if delta < 0:
                raise OutOfStock(f"{name} is out of stock.", details={"product_id": product_id})
            raise NotFound("Product not found")

        amount = unit_price * UNIT if kind == SALE else -(unit_price * UNIT)
        tx = Transaction(
            type=kind,
            product_id=product_id,
            product_name=name,
            date_time=utcnow(),
            quantity=UNIT,
            amount=amount,
            recorded_by_user_id=actor_user_id,
        )
        db.session.add(tx)
        # Post-update stock, read inside the same transaction as the write.
        db.session.refresh(product)
        product_record = ProductRecord.from_model(product)
        db.session.commit()
        return TransactionRecord.from_model(tx), product_record

    payload = {"type": kind, "product_id": product_id, "quantity": UNIT}
    with storage_errors(operation="batch", collection=TRANSACTIONS, path=f"{PRODUCTS}/{product_id}", payload=payload):
        result = run_with_retry(_op)

    publish(PRODUCTS, TRANSACTIONS)
    return result


def sell_unit(product_id: str, *, actor_user_id: int | None = None) -> tuple[TransactionRecord, ProductRecord]:
    """
    Sell one unit. Returns the ledger entry and the product as it stood
    right after the sale.

    Raises:
        NotFound: product does not exist
        OutOfStock: product stock is 0 (nothing is written)
    """
    record, product = _record(product_id, SALE, -UNIT, actor_user_id)
    logger.info("sale recorded product_id=%s transaction_id=%s amount=%s", product_id, record.id, record.amount)
    return record, product


def record_sale(product_id: str, *, actor_user_id: int | None = None) -> TransactionRecord:
    return sell_unit(product_id, actor_user_id=actor_user_id)[0]


def take_back_unit(product_id: str, *, actor_user_id: int | None = None) -> tuple[TransactionRecord, ProductRecord]:
    """
    Take one unit back. No stock ceiling: over-returns are accepted.

    Raises:
        NotFound: product does not exist
    """
    record, product = _record(product_id, RETURN, UNIT, actor_user_id)
    logger.info("return recorded product_id=%s transaction_id=%s amount=%s", product_id, record.id, record.amount)
    return record, product


def record_return(product_id: str, *, actor_user_id: int | None = None) -> TransactionRecord:
    return take_back_unit(product_id, actor_user_id=actor_user_id)[0]


def list_transactions(product_id: str | None = None) -> list[TransactionRecord]:
    query = db.session.query(Transaction)
    if product_id is not None:
        query = query.filter(Transaction.product_id == product_id)
    rows = query.order_by(Transaction.date_time.desc(), Transaction.id.asc()).all()
    return [TransactionRecord.from_model(t) for t in rows]
