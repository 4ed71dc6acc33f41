"""
Aggregation engine tests.

Pure functions over records; no database involved.
"""

from datetime import datetime
from decimal import Decimal

import pytest

from partsdesk.records import ProductRecord, TransactionRecord
from partsdesk.services.aggregation_service import (
    dashboard_payload,
    format_currency,
    group_by_day,
    summary_cards,
    summary_metrics,
    top_products,
    top_returning_products,
    top_selling_products,
    total_stock,
)

_seq = iter(range(1, 10_000))


def product(pid="p1", name="Oil Filter", stock=5, purchase="100", selling="150"):
    return ProductRecord(
        id=pid,
        name=name,
        stock=stock,
        purchase_price=Decimal(purchase),
        selling_price=Decimal(selling),
        compatibility="Any",
        image_url="",
        last_purchase_date=datetime(2026, 1, 1),
        created_at=datetime(2026, 1, 1),
    )


def tx(kind="Sale", pid="p1", name="Oil Filter", amount="150", when=None, quantity=1):
    return TransactionRecord(
        id=f"t{next(_seq)}",
        type=kind,
        product_id=pid,
        product_name=name,
        date_time=when or datetime(2026, 1, 1, 12, 0),
        quantity=quantity,
        amount=Decimal(amount),
    )


def test_total_stock_sums_products():
    assert total_stock([product(stock=3), product(pid="p2", stock=7)]) == 10
    assert total_stock([]) == 0


def test_total_stock_counts_invalid_stock_as_zero():
    assert total_stock([product(stock=3), product(pid="p2", stock=-4)]) == 3


def test_empty_input_gives_zero_metrics():
    m = summary_metrics([], [])
    assert m.gross_sales == m.gross_returns == m.net_revenue == m.net_profit == 0


def test_net_revenue_is_sales_minus_returns():
    txs = [tx(amount="150"), tx(amount="150"), tx(kind="Return", amount="-150")]
    m = summary_metrics([product()], txs)
    assert m.gross_sales == Decimal("300")
    assert m.gross_returns == Decimal("150")
    assert m.net_revenue == Decimal("150")


def test_profit_uses_current_product_prices():
    m = summary_metrics([product(purchase="100", selling="150")], [tx(amount="150")])
    assert m.net_profit == Decimal("50")


def test_profit_ignores_transactions_of_deleted_products():
    m = summary_metrics([], [tx(amount="150")])
    assert m.net_profit == 0
    assert m.gross_sales == Decimal("150")


def test_returns_reduce_profit():
    m = summary_metrics([product()], [tx(amount="150"), tx(kind="Return", amount="-150")])
    assert m.net_profit == 0


def test_repricing_changes_profit_but_not_revenue():
    txs = [tx(amount="150")]
    m = summary_metrics([product(selling="200")], txs)
    assert m.gross_sales == Decimal("150")
    assert m.net_profit == Decimal("100")


def test_purchase_transactions_are_ignored():
    m = summary_metrics([product()], [tx(kind="Purchase", amount="-500")])
    assert m.gross_sales == m.gross_returns == m.net_profit == 0


def test_non_numeric_amount_is_skipped(caplog):
    bad = TransactionRecord(
        id="bad", type="Sale", product_id="p1", product_name="Oil Filter",
        date_time=datetime(2026, 1, 1), quantity=1, amount="abc",
    )
    m = summary_metrics([product()], [bad, tx(amount="150")])
    assert m.gross_sales == Decimal("150")
    assert "non-numeric" in caplog.text


def test_top_n_orders_by_count():
    txs = (
        [tx(name="A") for _ in range(3)]
        + [tx(name="B") for _ in range(5)]
        + [tx(name="C")]
    )
    ranked = top_selling_products(txs)
    assert [(pc.product_name, pc.count) for pc in ranked] == [("B", 5), ("A", 3), ("C", 1)]


def test_top_n_ties_break_by_name():
    txs = [tx(name="Zeta"), tx(name="Alpha"), tx(name="Mid")]
    assert [pc.product_name for pc in top_selling_products(txs)] == ["Alpha", "Mid", "Zeta"]


def test_top_n_is_capped():
    txs = [tx(name=f"P{i}") for i in range(8)]
    assert len(top_selling_products(txs)) == 5
    assert len(top_products(txs, "Sale", limit=2)) == 2


def test_top_returning_counts_only_returns():
    txs = [tx(name="A"), tx(kind="Return", name="B", amount="-1"), tx(kind="Return", name="B", amount="-1")]
    ranked = top_returning_products(txs)
    assert [(pc.product_name, pc.count) for pc in ranked] == [("B", 2)]


def test_rankings_use_name_snapshot():
    txs = [tx(pid="p1", name="Old Name"), tx(pid="p1", name="New Name")]
    assert {pc.product_name for pc in top_selling_products(txs)} == {"Old Name", "New Name"}


def test_group_by_day_is_complete_and_ordered():
    txs = [
        tx(when=datetime(2026, 1, 1, 8, 0)),
        tx(when=datetime(2026, 1, 2, 23, 59)),
        tx(when=datetime(2026, 1, 1, 20, 0)),
        tx(when=datetime(2026, 1, 2, 0, 0)),
    ]
    grouped = group_by_day(txs)

    assert list(grouped) == ["2026-01-02", "2026-01-01"]
    members = [t for bucket in grouped.values() for t in bucket]
    assert sorted(t.id for t in members) == sorted(t.id for t in txs)
    for day, bucket in grouped.items():
        assert all(t.date_time.date().isoformat() == day for t in bucket)
        assert [t.date_time for t in bucket] == sorted((t.date_time for t in bucket), reverse=True)


def test_group_by_day_skips_missing_timestamps():
    missing = TransactionRecord(
        id="nodate", type="Sale", product_id="p1", product_name="X",
        date_time=None, quantity=1, amount=Decimal("1"),
    )
    grouped = group_by_day([missing, tx()])
    assert sum(len(b) for b in grouped.values()) == 1


@pytest.mark.parametrize("value,expected", [
    (Decimal("1234.5"), "₺1.234,5"),
    (Decimal("1234567.89"), "₺1.234.567,89"),
    (Decimal("0"), "₺0"),
    (Decimal("-50.10"), "-₺50,1"),
])
def test_format_currency(value, expected):
    assert format_currency(value) == expected


def test_summary_cards():
    m = summary_metrics([product()], [tx(amount="150")])
    cards = summary_cards(m)
    assert [c.title for c in cards] == ["Net Revenue", "Net Profit", "Gross Sales", "Gross Returns"]
    assert cards[0].value == "₺150"
    assert cards[1].value == "₺50"
    assert cards[2].value == "+₺150"
    assert cards[3].icon == "arrow-left-right"


def test_dashboard_payload_combines_every_figure():
    products = [product(pid="p1", name="Oil Filter", stock=4), product(pid="p2", name="Spark Plug", stock=6)]
    transactions = [
        tx(pid="p1", name="Oil Filter"),
        tx(pid="p1", name="Oil Filter"),
        tx(kind="Return", pid="p2", name="Spark Plug", amount="-150"),
        tx(kind="Purchase", pid="p2", name="Spark Plug", amount="-400", quantity=5),
    ]

    payload = dashboard_payload(products, transactions, top_n=1, currency_symbol="$")

    assert payload["total_stock"] == 10
    assert payload["summary"] == {
        "gross_sales": 300.0,
        "gross_returns": 150.0,
        "net_revenue": 150.0,
        "net_profit": 50.0,
    }
    assert payload["cards"][0] == {"title": "Net Revenue", "value": "$150", "icon": "dollar-sign"}
    assert payload["top_selling_products"] == [{"product_name": "Oil Filter", "count": 2}]
    assert payload["top_returning_products"] == [{"product_name": "Spark Plug", "count": 1}]
    assert payload["transaction_count"] == 4


def test_dashboard_payload_empty():
    payload = dashboard_payload([], [])
    assert payload["total_stock"] == 0
    assert payload["summary"]["net_revenue"] == 0.0
    assert payload["top_selling_products"] == []
