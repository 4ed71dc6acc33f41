"""
Backup codec tests.

import_snapshot is a full replace in one commit: any invalid record means
nothing is written.
"""

import csv
import io
from datetime import datetime
from decimal import Decimal

import pytest
from sqlalchemy.exc import OperationalError

from partsdesk.errors import InvalidFormat, StorageUnavailable, ValidationError
from partsdesk.services import backup_service, products_service, transaction_service


def _seed(make_product):
    pads = make_product(name="Brake Pad Set", stock=4)
    filter_ = make_product(name="Oil Filter", stock=0, purchase_price="20.00", selling_price="35.50")
    transaction_service.record_sale(pads.id)
    transaction_service.record_return(filter_.id)
    return pads, filter_


def test_export_shape(db_session, make_product):
    _seed(make_product)

    snapshot = backup_service.export_snapshot()

    assert snapshot["version"] == 1
    assert snapshot["exportedAt"].endswith("Z")
    assert len(snapshot["products"]) == 2
    assert len(snapshot["transactions"]) == 2
    product = next(p for p in snapshot["products"] if p["name"] == "Oil Filter")
    assert set(product) == {
        "id", "name", "stock", "purchasePrice", "sellingPrice", "compatibility",
        "imageUrl", "lastPurchaseDate", "createdAt",
    }
    assert product["sellingPrice"] == 35.5
    assert set(snapshot["transactions"][0]) == {
        "id", "type", "productId", "productName", "dateTime", "quantity", "amount",
    }


def test_round_trip_reproduces_records(db_session, make_product):
    _seed(make_product)
    products_before = products_service.list_products()
    transactions_before = transaction_service.list_transactions()

    text = backup_service.dumps_snapshot(backup_service.export_snapshot())
    counts = backup_service.import_snapshot(backup_service.loads_snapshot(text))

    assert counts == {"products": 2, "transactions": 2}
    assert products_service.list_products() == products_before
    assert transaction_service.list_transactions() == transactions_before


def test_import_replaces_everything(db_session, make_product):
    _seed(make_product)
    snapshot = {
        "products": [{
            "id": "abc123",
            "name": "Spark Plug",
            "stock": 12,
            "purchasePrice": 10,
            "sellingPrice": 18.9,
            "compatibility": "Fiat Egea",
            "imageUrl": "",
            "lastPurchaseDate": "2026-02-01T00:00:00Z",
        }],
        "transactions": [],
    }

    backup_service.import_snapshot(snapshot, placeholder_image_url="https://placehold.co/400x300")

    [p] = products_service.list_products()
    assert p.id == "abc123"
    assert p.selling_price == Decimal("18.90")
    assert p.image_url == "https://placehold.co/400x300"
    assert p.created_at == datetime(2026, 2, 1)
    assert transaction_service.list_transactions() == []


@pytest.mark.parametrize("data", [
    [],
    "nope",
    {"products": []},
    {"transactions": []},
    {"products": {}, "transactions": []},
    {"products": [], "transactions": None},
])
def test_import_rejects_wrong_shape(db_session, data):
    with pytest.raises(InvalidFormat):
        backup_service.import_snapshot(data)


def test_invalid_record_writes_nothing(db_session, make_product):
    _seed(make_product)
    before = products_service.list_products()
    snapshot = backup_service.export_snapshot()
    snapshot["products"][1]["stock"] = -3

    with pytest.raises(ValidationError) as excinfo:
        backup_service.import_snapshot(snapshot)

    assert "products[1]" in excinfo.value.message
    assert "stock" in excinfo.value.message
    assert products_service.list_products() == before


def test_invalid_transaction_is_named(db_session):
    snapshot = {
        "products": [],
        "transactions": [{
            "id": "t1", "type": "Gift", "productId": "p1", "productName": "X",
            "dateTime": "2026-01-01T00:00:00Z", "quantity": 1, "amount": 1,
        }],
    }
    with pytest.raises(ValidationError) as excinfo:
        backup_service.import_snapshot(snapshot)
    assert "transactions[0].type" in excinfo.value.message


def test_duplicate_ids_rejected(db_session, make_product):
    _seed(make_product)
    snapshot = backup_service.export_snapshot()
    snapshot["products"].append(dict(snapshot["products"][0]))

    with pytest.raises(ValidationError) as excinfo:
        backup_service.import_snapshot(snapshot)
    assert "Duplicate product id" in excinfo.value.message


def test_legacy_shapes_are_accepted(db_session):
    snapshot = {
        "products": [{
            "id": "legacy1",
            "name": "Wiper Blade",
            "stock": 3,
            "price": 120,
            "compatibility": "Universal",
            "lastPurchaseDate": {"seconds": 1767225600, "nanoseconds": 0},
        }],
        "transactions": [
            {"id": "t1", "type": "Satış", "productId": "legacy1", "productName": "Wiper Blade",
             "date": "2026-01-02T10:00:00Z", "quantity": 1, "amount": 120},
            {"id": "t2", "type": "İade", "productId": "legacy1", "productName": "Wiper Blade",
             "dateTime": "2026-01-03T10:00:00Z", "quantity": 1, "amount": -120},
            {"id": "t3", "type": "Alış", "productId": "legacy1", "productName": "Wiper Blade",
             "dateTime": "2026-01-01T10:00:00Z", "quantity": 5, "amount": -400},
        ],
    }

    backup_service.import_snapshot(snapshot)

    [p] = products_service.list_products()
    assert p.selling_price == Decimal("120.00")
    assert p.purchase_price == Decimal("0.00")
    assert p.last_purchase_date == datetime(2026, 1, 1)
    types = {t.id: t.type for t in transaction_service.list_transactions()}
    assert types == {"t1": "Sale", "t2": "Return", "t3": "Purchase"}


def test_missing_ids_are_generated(db_session):
    snapshot = {
        "products": [{
            "name": "Air Filter", "stock": 1, "purchasePrice": 1, "sellingPrice": 2,
            "compatibility": "Any", "lastPurchaseDate": "2026-01-01T00:00:00Z",
        }],
        "transactions": [],
    }
    backup_service.import_snapshot(snapshot)
    [p] = products_service.list_products()
    assert len(p.id) == 32


def test_sale_with_negative_amount_rejected(db_session):
    snapshot = {
        "products": [],
        "transactions": [{
            "id": "t1", "type": "Sale", "productId": "p1", "productName": "X",
            "dateTime": "2026-01-01T00:00:00Z", "quantity": 1, "amount": -5,
        }],
    }
    with pytest.raises(ValidationError):
        backup_service.import_snapshot(snapshot)

@pytest.mark.parametrize("field,value", [
    ("amount", "1e30"),
    ("amount", 1e30),
    ("quantity", 10**20),
])
def test_out_of_range_transaction_numbers_rejected(db_session, make_product, field, value):
    _seed(make_product)
    before = transaction_service.list_transactions()
    snapshot = backup_service.export_snapshot()
    snapshot["transactions"][0][field] = value

    with pytest.raises(ValidationError) as excinfo:
        backup_service.import_snapshot(snapshot)

    assert "transactions[0]" in excinfo.value.message
    assert f"{field} cannot exceed" in excinfo.value.message
    assert transaction_service.list_transactions() == before


def test_oversized_product_price_rejected(db_session):
    snapshot = {
        "products": [{
            "name": "Air Filter", "stock": 1, "purchasePrice": 1, "sellingPrice": "1e30",
            "compatibility": "Any", "lastPurchaseDate": "2026-01-01T00:00:00Z",
        }],
        "transactions": [],
    }
    with pytest.raises(ValidationError) as excinfo:
        backup_service.import_snapshot(snapshot)
    assert "products[0]" in excinfo.value.message


def test_failed_commit_keeps_previous_data(db_session, make_product, monkeypatch):
    _seed(make_product)
    products_before = products_service.list_products()
    transactions_before = transaction_service.list_transactions()
    snapshot = {
        "products": [{
            "id": "replacement", "name": "Air Filter", "stock": 1, "purchasePrice": 1,
            "sellingPrice": 2, "compatibility": "Any", "lastPurchaseDate": "2026-01-01T00:00:00Z",
        }],
        "transactions": [],
    }

    def boom():
        raise OperationalError("COMMIT", {}, Exception("disk I/O error"))

    monkeypatch.setattr(db_session(), "commit", boom)

    with pytest.raises(StorageUnavailable):
        backup_service.import_snapshot(snapshot)

    monkeypatch.undo()
    db_session.expire_all()
    assert products_service.list_products() == products_before
    assert transaction_service.list_transactions() == transactions_before



def test_loads_rejects_bad_json():
    with pytest.raises(InvalidFormat):
        backup_service.loads_snapshot("{not json")


def test_products_csv(db_session, make_product):
    make_product(name="Brake Pad Set", stock=4, selling_price="150", last_purchase_date="2026-01-15T09:30:00Z")

    rows = list(csv.reader(io.StringIO(backup_service.export_products_csv(products_service.list_products()))))

    assert rows[0] == ["Product Name", "Stock", "Selling Price", "Compatibility", "Last Purchase Date"]
    assert rows[1] == ["Brake Pad Set", "4", "150.00", "Renault Clio IV", "2026-01-15"]
