"""Authority console: filtered listings, updates, distribution and the dashboard."""
from flask import Blueprint, current_app, jsonify, request
from flask_login import current_user
from wtforms import StringField, TextAreaField
from wtforms.validators import AnyOf, DataRequired, Length, Optional

from models import PRIORITY_LEVELS, WORKFLOW_STATUSES, Grievance
from utils.access_control import ensure_can_operate, ensure_can_view, get_grievance_or_404
from utils.decorators import roles_required
from utils.forms import ApiForm, provided, validate_form
from utils.workflow import (
    SETTABLE_COMPLAINT_STATUSES,
    dashboard_stats,
    distribute_randomly,
    set_complaint_status,
    update_by_authority,
)

authority_bp = Blueprint("authority", __name__)

MAX_PAGE_SIZE = 100


class GrievanceUpdateForm(ApiForm):
    status = StringField("Status", validators=[Optional(), AnyOf(WORKFLOW_STATUSES)])
    department = StringField("Department", validators=[Optional(), Length(max=255)])
    priority = StringField("Priority", validators=[Optional(), AnyOf(PRIORITY_LEVELS)])
    resolution_notes = TextAreaField("Resolution notes", validators=[Optional(), Length(max=5000)])


class ComplaintStatusForm(ApiForm):
    status = StringField("Status", validators=[DataRequired(), AnyOf(SETTABLE_COMPLAINT_STATUSES)])


def _int_arg(name: str, default: int) -> int:
    try:
        value = int(request.args.get(name, default))
    except (TypeError, ValueError):
        return default
    return value if value > 0 else default


@authority_bp.route("/grievances", methods=["GET"])
@roles_required("authority")
def list_grievances():
    query = Grievance.query
    status_filter = request.args.get("status")
    if status_filter:
        query = query.filter(Grievance.status == status_filter)
    department_filter = (request.args.get("department") or "").strip()
    if department_filter:
        query = query.filter(Grievance.assigned_department == department_filter)

    page = _int_arg("page", 1)
    limit = min(_int_arg("limit", int(current_app.config.get("AUTHORITY_PAGE_SIZE", 20))), MAX_PAGE_SIZE)
    pagination = query.order_by(Grievance.created_at.desc(), Grievance.id.desc()).paginate(
        page=page, per_page=limit, error_out=False
    )
    return jsonify(
        {
            "items": [grievance.api_payload(include_citizen=True) for grievance in pagination.items],
            "page": page,
            "limit": limit,
            "total": pagination.total,
        }
    )


@authority_bp.route("/grievances/<int:grievance_id>", methods=["GET"])
@roles_required("authority", "contractor")
def grievance_detail(grievance_id):
    grievance = ensure_can_view(get_grievance_or_404(grievance_id), current_user)
    payload = grievance.api_payload(include_citizen=True)
    payload["comments"] = [comment.payload() for comment in grievance.comments]
    return jsonify(payload)


@authority_bp.route("/grievances/<int:grievance_id>", methods=["PATCH"])
@roles_required("authority")
def update_grievance(grievance_id):
    grievance = get_grievance_or_404(grievance_id)
    form = validate_form(GrievanceUpdateForm())
    update_by_authority(
        grievance,
        status=provided(form.status) or None,
        department=provided(form.department),
        priority=provided(form.priority) or None,
        resolution_notes=provided(form.resolution_notes),
    )
    return jsonify(grievance.api_payload(include_citizen=True))


@authority_bp.route("/grievances/<int:grievance_id>/status", methods=["PATCH"])
@roles_required("authority", "contractor")
def update_complaint_status(grievance_id):
    grievance = ensure_can_operate(get_grievance_or_404(grievance_id), current_user)
    form = validate_form(ComplaintStatusForm(), message="Invalid status")
    set_complaint_status(grievance, current_user, form.status.data)
    return jsonify(grievance.api_payload(include_citizen=True))


@authority_bp.route("/grievances/distribute-random", methods=["POST"])
@roles_required("authority")
def distribute_random():
    counts = distribute_randomly(rng=current_app.extensions.get("distribution_rng"))
    total = sum(counts.values())
    current_app.logger.info("complaints_distributed", extra={"user_id": current_user.id, "total": total})
    return jsonify(
        {
            "message": "Complaints distributed to contractors",
            "total_reassigned": total,
            "distribution": [
                {"contractor_id": contractor_id, "complaints_assigned": count}
                for contractor_id, count in counts.items()
            ],
        }
    )


@authority_bp.route("/dashboard", methods=["GET"])
@roles_required("authority")
def dashboard():
    return jsonify(dashboard_stats())
