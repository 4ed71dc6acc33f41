# Overview: Flask API routes for products operations; parses input and returns JSON responses.

"""
Product management routes.

SECURITY: All routes require authentication.

Create and update accept either a JSON body or multipart/form-data with an
optional `image` file part; form values are validated exactly like JSON ones.
"""
from flask import Blueprint, Response, current_app, g, request

from ..errors import DashboardError, ValidationError
from ..records import FieldsOnlyEdit, ImageUpload, WithImageEdit
from ..services import products_service, transaction_service
from ..services.aggregation_service import total_stock
from ..services.backup_service import export_products_csv
from ..decorators import require_auth

products_bp = Blueprint("products", __name__, url_prefix="/api/products")


def _product_json(record) -> dict:
    data = record.to_dict()
    data["low_stock"] = record.stock < current_app.config["LOW_STOCK_THRESHOLD"]
    return data


def _read_product_request() -> tuple[dict, ImageUpload | None]:
    """Fields and optional image from a JSON or multipart request."""
    if request.mimetype == "multipart/form-data":
        fields = {k: v for k, v in request.form.items()}
        image = None
        file = request.files.get("image")
        if file is not None and file.filename:
            image = ImageUpload(
                filename=file.filename,
                content=file.read(),
                content_type=file.mimetype,
            )
        return fields, image

    payload = request.get_json(silent=True)
    if payload is None:
        payload = {}
    if not isinstance(payload, dict):
        raise ValidationError("Invalid JSON payload")
    return payload, None


@products_bp.get("")
@require_auth
def list_products_route():
    """
    List products, newest first, with the total stock of the listed ones.

    Query: ?search= keeps products whose name contains the term (any case).
    """
    records = products_service.list_products(request.args.get("search"))
    return {
        "products": [_product_json(p) for p in records],
        "total_stock": total_stock(records),
    }


@products_bp.post("")
@require_auth
def create_product_route():
    try:
        fields, image = _read_product_request()
        created = products_service.create_product(fields, image)
    except DashboardError as e:
        return {"error": e.message}, e.status_code
    except Exception:
        current_app.logger.exception("Failed to create product")
        return {"error": "Internal server error"}, 500

    return _product_json(created), 201


@products_bp.get("/export.csv")
@require_auth
def export_products_csv_route():
    """Stock sheet as CSV, one row per product."""
    body = export_products_csv(products_service.list_products())
    return Response(
        body,
        mimetype="text/csv",
        headers={"Content-Disposition": "attachment; filename=products.csv"},
    )


@products_bp.get("/<product_id>")
@require_auth
def get_product_route(product_id: str):
    try:
        return _product_json(products_service.get_product(product_id))
    except DashboardError as e:
        return {"error": e.message}, e.status_code


@products_bp.put("/<product_id>")
@require_auth
def update_product_route(product_id: str):
    """
    Update a product.

    Fields not present in the request are left unchanged. The current image
    is kept unless the request carries a new `image` file.
    """
    try:
        fields, image = _read_product_request()
        edit = WithImageEdit(fields, image) if image is not None else FieldsOnlyEdit(fields)
        updated = products_service.update_product(product_id, edit)
    except DashboardError as e:
        return {"error": e.message}, e.status_code
    except Exception:
        current_app.logger.exception("Failed to update product")
        return {"error": "Internal server error"}, 500

    return _product_json(updated)


@products_bp.delete("/<product_id>")
@require_auth
def delete_product_route(product_id: str):
    """Delete a product together with its transaction history."""
    try:
        removed = products_service.delete_product(product_id)
    except DashboardError as e:
        return {"error": e.message}, e.status_code
    except Exception:
        current_app.logger.exception("Failed to delete product")
        return {"error": "Internal server error"}, 500

    return {"deleted": product_id, "transactions_removed": removed}


@products_bp.post("/<product_id>/sale")
@require_auth
def sale_route(product_id: str):
    """Sell one unit. 409 when the product is out of stock."""
    try:
        tx, product = transaction_service.sell_unit(product_id, actor_user_id=g.current_user.id)
    except DashboardError as e:
        return {"error": e.message}, e.status_code
    except Exception:
        current_app.logger.exception("Failed to record sale")
        return {"error": "Internal server error"}, 500

    return {"transaction": tx.to_dict(), "product": _product_json(product)}, 201


@products_bp.post("/<product_id>/return")
@require_auth
def return_route(product_id: str):
    """Take one unit back."""
    try:
        tx, product = transaction_service.take_back_unit(product_id, actor_user_id=g.current_user.id)
    except DashboardError as e:
        return {"error": e.message}, e.status_code
    except Exception:
        current_app.logger.exception("Failed to record return")
        return {"error": "Internal server error"}, 500

    return {"transaction": tx.to_dict(), "product": _product_json(product)}, 201
