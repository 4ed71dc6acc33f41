# Overview: Flask API route for the dashboard overview.

from flask import Blueprint, current_app, g

from ..errors import DashboardError
from ..services.dashboard_store import DashboardStore
from ..decorators import require_auth

dashboard_bp = Blueprint("dashboard", __name__, url_prefix="/api/dashboard")


@dashboard_bp.get("")
@require_auth
def dashboard_route():
    """Total stock, revenue/profit metrics, summary cards and top-N rankings."""
    try:
        with DashboardStore.for_app(g.current_user) as store:
            return store.overview()
    except DashboardError as e:
        return {"error": e.message}, e.status_code
    except Exception:
        current_app.logger.exception("Failed to build dashboard")
        return {"error": "Internal server error"}, 500
