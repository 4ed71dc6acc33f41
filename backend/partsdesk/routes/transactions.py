# Overview: Flask API routes for the sale/return ledger.

from flask import Blueprint, request

from ..services.aggregation_service import group_by_day
from ..services.transaction_service import list_transactions
from ..decorators import require_auth

transactions_bp = Blueprint("transactions", __name__, url_prefix="/api/transactions")


@transactions_bp.get("")
@require_auth
def list_transactions_route():
    """
    List transactions, newest first.

    Query params:
    - product_id: str (optional) - only this product's history
    - grouped: "day" (optional) - bucket by UTC calendar day, newest day first
    """
    product_id = request.args.get("product_id") or None
    grouped = request.args.get("grouped")

    if grouped not in (None, "", "day"):
        return {"error": "grouped must be 'day'"}, 400

    records = list_transactions(product_id=product_id)

    if grouped == "day":
        buckets = group_by_day(records)
        return {
            "days": [
                {"date": day, "transactions": [t.to_dict() for t in members]}
                for day, members in buckets.items()
            ],
            "count": len(records),
        }

    return {"transactions": [t.to_dict() for t in records], "count": len(records)}
