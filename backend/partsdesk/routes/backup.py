# Overview: Flask API routes for full backup export and restore.

"""
Backup routes.

GET returns the snapshot as a downloadable JSON file.
POST replaces ALL products and transactions with the uploaded snapshot
(JSON body, or multipart/form-data with a `file` part). Nothing is written
when any record is invalid.
"""

from flask import Blueprint, Response, current_app, request

from ..errors import DashboardError, InvalidFormat
from ..services import backup_service
from ..decorators import require_auth
from partsdesk.time_utils import utcnow

backup_bp = Blueprint("backup", __name__, url_prefix="/api/backup")


@backup_bp.get("")
@require_auth
def export_backup_route():
    snapshot = backup_service.export_snapshot()
    filename = f"partsdesk-backup-{utcnow().strftime('%Y-%m-%d')}.json"
    return Response(
        backup_service.dumps_snapshot(snapshot),
        mimetype="application/json",
        headers={"Content-Disposition": f"attachment; filename={filename}"},
    )


@backup_bp.post("")
@require_auth
def import_backup_route():
    try:
        if request.mimetype == "multipart/form-data":
            file = request.files.get("file")
            if file is None:
                raise InvalidFormat("Backup file is required")
            data = backup_service.loads_snapshot(file.read())
        else:
            data = backup_service.loads_snapshot(request.get_data())

        counts = backup_service.import_snapshot(
            data, placeholder_image_url=current_app.config["PLACEHOLDER_IMAGE_URL"]
        )
    except DashboardError as e:
        return {"error": e.message}, e.status_code
    except Exception:
        current_app.logger.exception("Failed to import backup")
        return {"error": "Internal server error"}, 500

    return {"imported": counts, "message": "Backup loaded"}, 200
