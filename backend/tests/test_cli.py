import json

from partsdesk.models import User
from partsdesk.services import products_service


def test_users_create_and_list(app, db_session):
    runner = app.test_cli_runner()

    result = runner.invoke(args=["users", "create", "--email", "Clerk@Shop.local", "--password", "Password123!", "--name", "Clerk"])
    assert result.exit_code == 0, result.output
    assert db_session.query(User).filter_by(email="clerk@shop.local").count() == 1

    listed = runner.invoke(args=["users", "list"])
    assert "clerk@shop.local" in listed.output


def test_users_create_rejects_weak_password(app, db_session):
    result = app.test_cli_runner().invoke(args=["users", "create", "--email", "x@shop.local", "--password", "weak"])
    assert result.exit_code != 0
    assert "Password validation failed" in result.output


def test_backup_export_then_import(app, db_session, make_product, tmp_path):
    make_product(stock=6)
    path = tmp_path / "backup.json"
    runner = app.test_cli_runner()

    exported = runner.invoke(args=["backup", "export", str(path)])
    assert exported.exit_code == 0, exported.output
    assert len(json.loads(path.read_text(encoding="utf-8"))["products"]) == 1

    products_service.delete_product(products_service.list_products()[0].id)

    imported = runner.invoke(args=["backup", "import", str(path), "--yes"])
    assert imported.exit_code == 0, imported.output
    assert products_service.list_products()[0].stock == 6


def test_dashboard_show(app, db_session, operator, make_product):
    make_product(stock=6)
    result = app.test_cli_runner().invoke(args=["dashboard", "show"])
    assert result.exit_code == 0, result.output
    assert "Total stock: 6" in result.output
    assert "Net Revenue" in result.output


def test_dashboard_show_without_operator(app, db_session):
    result = app.test_cli_runner().invoke(args=["dashboard", "show"])
    assert result.exit_code != 0
    assert "No active operator" in result.output
