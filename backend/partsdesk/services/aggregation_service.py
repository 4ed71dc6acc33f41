# Overview: Pure aggregation over product and transaction records: stock, revenue/profit, day buckets, rankings.

from __future__ import annotations

import logging
from datetime import datetime
from decimal import Decimal, InvalidOperation
from typing import Iterable, Sequence

from ..models.catalog import RETURN, SALE
from ..records import ProductCount, ProductRecord, SummaryCardData, SummaryMetrics, TransactionRecord
from ..time_utils import day_key

"""
Aggregation invariants (authoritative)

- Functions here are pure and never raise on malformed records; a bad
  record is logged and skipped (or counted as zero) so the rest still
  aggregates.
- Revenue figures use the amount stored on each transaction, so they stay
  historically accurate after a product is repriced or deleted.
- Profit figures are re-priced against the CURRENT product cost basis and
  contribute zero when the product no longer exists.
- Calendar days are taken in UTC, the canonical timezone of every stored
  timestamp.
"""

logger = logging.getLogger(__name__)

ZERO = Decimal("0")
CENT = Decimal("0.01")
DEFAULT_TOP_N = 5

GroupedTransactions = dict[str, list[TransactionRecord]]


def _as_decimal(value, *, what: str) -> Decimal | None:
    if isinstance(value, bool) or value is None:
        logger.warning("Skipping %s: missing or non-numeric value %r", what, value)
        return None
    try:
        amount = Decimal(value) if not isinstance(value, float) else Decimal(repr(value))
    except (InvalidOperation, TypeError, ValueError):
        logger.warning("Skipping %s: non-numeric value %r", what, value)
        return None
    if not amount.is_finite():
        logger.warning("Skipping %s: non-finite value %r", what, value)
        return None
    return amount


def _quantity(t: TransactionRecord) -> int | None:
    q = t.quantity
    if isinstance(q, bool) or not isinstance(q, int) or q <= 0:
        logger.warning("Skipping transaction %s: invalid quantity %r", getattr(t, "id", None), q)
        return None
    return q


def total_stock(products: Iterable[ProductRecord]) -> int:
    total = 0
    for p in products:
        stock = p.stock
        if isinstance(stock, bool) or not isinstance(stock, int) or stock < 0:
            logger.warning("Product %s has invalid stock %r; counted as 0", getattr(p, "id", None), stock)
            continue
        total += stock
    return total


def summary_metrics(
    products: Sequence[ProductRecord],
    transactions: Iterable[TransactionRecord],
) -> SummaryMetrics:
    by_id = {p.id: p for p in products}

    gross_sales = ZERO
    gross_returns = ZERO
    net_profit = ZERO

    for t in transactions:
        if t.type not in (SALE, RETURN):
            continue

        amount = _as_decimal(t.amount, what=f"amount of transaction {t.id}")
        if amount is not None:
            if t.type == SALE:
                gross_sales += amount
            else:
                gross_returns += abs(amount)

        product = by_id.get(t.product_id)
        if product is None:
            continue
        quantity = _quantity(t)
        selling = _as_decimal(product.selling_price, what=f"selling price of {product.id}")
        purchase = _as_decimal(product.purchase_price, what=f"purchase price of {product.id}")
        if quantity is None or selling is None or purchase is None:
            continue

        per_unit = selling - purchase
        if t.type == SALE:
            net_profit += per_unit * quantity
        else:
            net_profit -= per_unit * quantity

    return SummaryMetrics(
        gross_sales=gross_sales,
        gross_returns=gross_returns,
        net_revenue=gross_sales - gross_returns,
        net_profit=net_profit,
    )


def format_currency(value, symbol: str = "₺") -> str:
    """
    Render an amount with Turkish grouping: 1234.5 -> "₺1.234,5".
    At most two fraction digits, trailing zeros dropped.
    """
    amount = Decimal(value).quantize(CENT)
    sign = "-" if amount < 0 else ""
    whole, _, frac = f"{abs(amount):.2f}".partition(".")
    grouped = f"{int(whole):,}".replace(",", ".")
    frac = frac.rstrip("0")
    text = f"{grouped},{frac}" if frac else grouped
    return f"{sign}{symbol}{text}"


def summary_cards(metrics: SummaryMetrics, currency_symbol: str = "₺") -> list[SummaryCardData]:
    return [
        SummaryCardData("Net Revenue", format_currency(metrics.net_revenue, currency_symbol), "dollar-sign"),
        SummaryCardData("Net Profit", format_currency(metrics.net_profit, currency_symbol), "trending-up"),
        SummaryCardData("Gross Sales", "+" + format_currency(metrics.gross_sales, currency_symbol), "shopping-bag"),
        SummaryCardData("Gross Returns", format_currency(metrics.gross_returns, currency_symbol), "arrow-left-right"),
    ]


def group_by_day(transactions: Iterable[TransactionRecord]) -> GroupedTransactions:
    """
    Partition transactions by UTC calendar day.

    Buckets come out newest day first; members newest first. Records
    without a usable timestamp are left out and logged.
    """
    buckets: dict[str, list[TransactionRecord]] = {}
    for t in transactions:
        if not isinstance(t.date_time, datetime):
            logger.warning("Transaction %s has no usable date_time; left out of day grouping", t.id)
            continue
        buckets.setdefault(day_key(t.date_time), []).append(t)

    return {
        day: sorted(buckets[day], key=lambda t: t.date_time, reverse=True)
        for day in sorted(buckets, reverse=True)
    }


def top_products(
    transactions: Iterable[TransactionRecord],
    kind: str,
    limit: int = DEFAULT_TOP_N,
) -> list[ProductCount]:
    """
    Rank product names by summed quantity for one transaction type.

    Ties are broken by product name so the order does not depend on the
    order records arrive in.
    """
    counts: dict[str, int] = {}
    for t in transactions:
        if t.type != kind:
            continue
        quantity = _quantity(t)
        if quantity is None:
            continue
        counts[t.product_name] = counts.get(t.product_name, 0) + quantity

    ranked = sorted(counts.items(), key=lambda kv: (-kv[1], kv[0]))
    return [ProductCount(name, count) for name, count in ranked[:max(limit, 0)]]


def top_selling_products(transactions, limit: int = DEFAULT_TOP_N) -> list[ProductCount]:
    return top_products(transactions, SALE, limit)


def top_returning_products(transactions, limit: int = DEFAULT_TOP_N) -> list[ProductCount]:
    return top_products(transactions, RETURN, limit)



def dashboard_payload(
    products: Sequence[ProductRecord],
    transactions: Sequence[TransactionRecord],
    *,
    top_n: int = DEFAULT_TOP_N,
    currency_symbol: str = "₺",
) -> dict:
    """JSON-ready dashboard body: stock, metrics, cards and both rankings."""
    metrics = summary_metrics(products, transactions)
    return {
        "total_stock": total_stock(products),
        "summary": metrics.to_dict(),
        "cards": [card.to_dict() for card in summary_cards(metrics, currency_symbol)],
        "top_selling_products": [pc.to_dict() for pc in top_selling_products(transactions, top_n)],
        "top_returning_products": [pc.to_dict() for pc in top_returning_products(transactions, top_n)],
        "transaction_count": len(transactions),
    }
