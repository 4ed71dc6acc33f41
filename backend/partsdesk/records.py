# Overview: Canonical in-memory record types handed to the aggregation engine and subscribers.

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from typing import Optional, Union

from .time_utils import to_utc_z


def money_to_json(value: Optional[Decimal]) -> Optional[float]:
    if value is None:
        return None
    return float(value)


@dataclass(frozen=True)
class ProductRecord:
    id: str
    name: str
    stock: int
    purchase_price: Decimal
    selling_price: Decimal
    compatibility: str
    image_url: str
    last_purchase_date: datetime
    created_at: datetime

    @classmethod
    def from_model(cls, product) -> "ProductRecord":
        return cls(
            id=product.id,
            name=product.name,
            stock=product.stock,
            purchase_price=Decimal(product.purchase_price),
            selling_price=Decimal(product.selling_price),
            compatibility=product.compatibility,
            image_url=product.image_url,
            last_purchase_date=product.last_purchase_date,
            created_at=product.created_at,
        )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "stock": self.stock,
            "purchase_price": money_to_json(self.purchase_price),
            "selling_price": money_to_json(self.selling_price),
            "compatibility": self.compatibility,
            "image_url": self.image_url,
            "last_purchase_date": to_utc_z(self.last_purchase_date),
            "created_at": to_utc_z(self.created_at),
        }


@dataclass(frozen=True)
class TransactionRecord:
    id: str
    type: str
    product_id: str
    product_name: str
    # None only when the source value could not be normalized.
    date_time: Optional[datetime]
    quantity: int
    amount: Decimal

    @classmethod
    def from_model(cls, transaction) -> "TransactionRecord":
        return cls(
            id=transaction.id,
            type=transaction.type,
            product_id=transaction.product_id,
            product_name=transaction.product_name,
            date_time=transaction.date_time,
            quantity=transaction.quantity,
            amount=Decimal(transaction.amount),
        )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "type": self.type,
            "product_id": self.product_id,
            "product_name": self.product_name,
            "date_time": to_utc_z(self.date_time),
            "quantity": self.quantity,
            "amount": money_to_json(self.amount),
        }


@dataclass(frozen=True)
class SummaryMetrics:
    gross_sales: Decimal = Decimal("0")
    gross_returns: Decimal = Decimal("0")
    net_revenue: Decimal = Decimal("0")
    net_profit: Decimal = Decimal("0")

    def to_dict(self) -> dict:
        return {
            "gross_sales": float(self.gross_sales),
            "gross_returns": float(self.gross_returns),
            "net_revenue": float(self.net_revenue),
            "net_profit": float(self.net_profit),
        }


@dataclass(frozen=True)
class SummaryCardData:
    title: str
    value: str
    icon: str

    def to_dict(self) -> dict:
        return {"title": self.title, "value": self.value, "icon": self.icon}


@dataclass(frozen=True)
class ProductCount:
    product_name: str
    count: int

    def to_dict(self) -> dict:
        return {"product_name": self.product_name, "count": self.count}


@dataclass(frozen=True)
class ImageUpload:
    filename: str
    content: bytes = field(repr=False)
    content_type: Optional[str] = None


@dataclass(frozen=True)
class FieldsOnlyEdit:
    """Edit that keeps the product's current image."""
    fields: dict


@dataclass(frozen=True)
class WithImageEdit:
    """Edit that replaces the product's image."""
    fields: dict
    image: ImageUpload


ProductEdit = Union[FieldsOnlyEdit, WithImageEdit]


@dataclass(frozen=True)
class Notification:
    title: str
    description: str
    variant: str = "default"  # "default" | "destructive"

    @property
    def ok(self) -> bool:
        return self.variant != "destructive"

    def to_dict(self) -> dict:
        return {"title": self.title, "description": self.description, "variant": self.variant}
