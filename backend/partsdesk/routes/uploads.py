# Overview: Serves stored product images.

from flask import Blueprint, current_app, send_from_directory

uploads_bp = Blueprint("uploads", __name__)


@uploads_bp.get("/uploads/<path:name>")
def uploaded_image(name: str):
    # send_from_directory rejects paths escaping the folder.
    return send_from_directory(current_app.config["UPLOAD_FOLDER"], name)
