"""Contractor work queue and closure with photo proof."""
import os

from flask import Blueprint, current_app, jsonify
from flask_login import current_user
from flask_wtf.file import FileAllowed, FileField, FileRequired

from models import OPEN_COMPLAINT_STATUSES, Grievance
from utils.access_control import ensure_can_operate, get_grievance_or_404, visible_grievances
from utils.decorators import roles_required
from utils.errors import ValidationError
from utils.forms import ApiForm, validate_form
from utils.image_utils import ALLOWED_IMAGE_EXTENSIONS, persist_image, resolve_upload_path, verify_resolution_files
from utils.workflow import close_with_resolution

contractor_bp = Blueprint("contractor", __name__)


class ResolutionForm(ApiForm):
    resolutionImage = FileField(
        "Resolution photo",
        validators=[FileRequired("Resolution image is required"), FileAllowed(sorted(ALLOWED_IMAGE_EXTENSIONS), "Images only")],
    )


@contractor_bp.route("/grievances", methods=["GET"])
@roles_required("authority", "contractor")
def work_queue():
    rows = (
        visible_grievances(current_user)
        .filter(Grievance.complaint_status.in_(OPEN_COMPLAINT_STATUSES))
        .order_by(Grievance.updated_at.desc(), Grievance.created_at.desc())
        .all()
    )
    return jsonify([grievance.api_payload(include_citizen=True) for grievance in rows])


@contractor_bp.route("/grievances/<int:grievance_id>/close", methods=["POST"])
@roles_required("authority", "contractor")
def close_grievance(grievance_id):
    grievance = ensure_can_operate(get_grievance_or_404(grievance_id), current_user)
    form = validate_form(ResolutionForm(), message="Resolution image is required")

    upload_dir = current_app.config["UPLOAD_FOLDER"]
    max_bytes = int(current_app.config.get("MAX_IMAGE_UPLOAD_BYTES", 5 * 1024 * 1024))
    try:
        stored = persist_image(form.resolutionImage.data, upload_dir, max_bytes=max_bytes)
    except ValueError as exc:
        raise ValidationError("Invalid resolution image", fields={"resolutionImage": [str(exc)]}) from exc

    before_path = resolve_upload_path(grievance.before_image_url, upload_dir)
    verification = verify_resolution_files(before_path, stored["path"])
    try:
        close_with_resolution(grievance, current_user, stored["url"])
    except Exception:
        try:
            os.remove(stored["path"])
        except OSError:
            current_app.logger.warning("upload_cleanup_failed", extra={"path": stored["path"]})
        raise

    current_app.logger.info(
        "complaint_closed",
        extra={"ticket": grievance.ticket_number, "actor_id": current_user.id, "verification": verification},
    )
    return jsonify({"complaint": grievance.api_payload(include_citizen=True), "verification": verification})
