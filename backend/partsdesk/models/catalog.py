from __future__ import annotations

import uuid
from decimal import Decimal

from ..extensions import db
from partsdesk.time_utils import utcnow

SALE = "Sale"
RETURN = "Return"
# Legacy type present in early data; restored from backups but never written by operations.
PURCHASE = "Purchase"
TRANSACTION_TYPES = (SALE, RETURN, PURCHASE)


def new_id() -> str:
    return uuid.uuid4().hex


class Product(db.Model):
    """
    Product master data.

    STOCK: Product.stock is the sole source of truth for available quantity.
    It changes only through a sale (-1), a return (+1), or an explicit edit,
    and never goes negative (enforced by CHECK constraint and by the
    conditional decrement in transaction_service.record_sale).
    """
    __tablename__ = "products"
    __table_args__ = (
        db.CheckConstraint("stock >= 0", name="ck_products_stock_non_negative"),
        db.CheckConstraint("purchase_price >= 0", name="ck_products_purchase_price_non_negative"),
        db.CheckConstraint("selling_price >= 0", name="ck_products_selling_price_non_negative"),
        db.Index("ix_products_created_at", "created_at"),
    )

    id = db.Column(db.String(32), primary_key=True, default=new_id)

    name = db.Column(db.String(255), nullable=False)
    stock = db.Column(db.Integer, nullable=False, default=0)

    purchase_price = db.Column(db.Numeric(12, 2), nullable=False, default=Decimal("0"))
    selling_price = db.Column(db.Numeric(12, 2), nullable=False, default=Decimal("0"))

    compatibility = db.Column(db.String(255), nullable=False)
    image_url = db.Column(db.String(1024), nullable=False)

    last_purchase_date = db.Column(db.DateTime, nullable=False)
    created_at = db.Column(db.DateTime, nullable=False, default=utcnow)
    updated_at = db.Column(db.DateTime, nullable=False, default=utcnow, onupdate=utcnow)

    def __repr__(self) -> str:
        return f"<Product id={self.id} name={self.name!r} stock={self.stock}>"


class Transaction(db.Model):
    """
    Append-only sale/return ledger.

    product_id is a weak reference (no foreign key): the product may be
    deleted later. product_name is a snapshot taken at write time and does
    not follow renames.
    """
    __tablename__ = "transactions"
    __table_args__ = (
        db.CheckConstraint("quantity > 0", name="ck_transactions_quantity_positive"),
        db.Index("ix_transactions_product_date", "product_id", "date_time"),
    )

    id = db.Column(db.String(32), primary_key=True, default=new_id)

    type = db.Column(db.String(16), nullable=False, index=True)

    product_id = db.Column(db.String(32), nullable=False, index=True)
    product_name = db.Column(db.String(255), nullable=False)

    date_time = db.Column(db.DateTime, nullable=False, default=utcnow, index=True)

    quantity = db.Column(db.Integer, nullable=False, default=1)
    amount = db.Column(db.Numeric(12, 2), nullable=False)

    recorded_by_user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)

    def __repr__(self) -> str:
        return f"<Transaction id={self.id} type={self.type} product_id={self.product_id}>"
