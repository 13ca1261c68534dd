"""Complaint intake and the citizen-facing grievance endpoints."""
import os

from flask import Blueprint, current_app, jsonify, request
from flask_login import current_user, login_required
from flask_wtf.file import FileAllowed, MultipleFileField
from wtforms import FloatField, IntegerField, StringField, TextAreaField
from wtforms.validators import DataRequired, Email, Length, NumberRange, Optional, Regexp

from models import Grievance, WORKFLOW_STATUSES
from utils.access_control import (
    ensure_can_view,
    ensure_owner,
    get_by_ticket_or_404,
    get_grievance_or_404,
    visible_grievances,
)
from utils.category_routing import route_category
from utils.decorators import roles_required
from utils.errors import SpamRejectedError, ValidationError
from utils.forms import ApiForm, optional_text, validate_form
from utils.image_utils import ALLOWED_IMAGE_EXTENSIONS, persist_image
from utils.workflow import add_comment, create_grievance, reopen, submit_feedback, tracking_stage

grievances_bp = Blueprint("grievances", __name__)


class ComplaintForm(ApiForm):
    # Field names follow the intake form posted by the web client.
    fullName = StringField("Full Name", validators=[DataRequired(), Length(min=2, max=150)])
    email = StringField("Email", validators=[DataRequired(), Email(), Length(max=255)])
    mobile = StringField("Mobile", validators=[DataRequired(), Regexp(r"^\d{10}$", message="Mobile must be 10 digits.")])
    description = TextAreaField("Description", validators=[DataRequired(), Length(min=10, max=5000)])
    location = StringField("Location", validators=[DataRequired(), Length(min=3, max=500)])
    categoryId = IntegerField("Category", validators=[Optional(), NumberRange(min=1)])
    latitude = FloatField("Latitude", validators=[Optional(), NumberRange(min=-90, max=90)])
    longitude = FloatField("Longitude", validators=[Optional(), NumberRange(min=-180, max=180)])
    photos = MultipleFileField(
        "Photos",
        validators=[FileAllowed(sorted(ALLOWED_IMAGE_EXTENSIONS), "Images only")],
    )


class CommentForm(ApiForm):
    comment = TextAreaField("Comment", validators=[DataRequired(), Length(max=2000)])


class FeedbackForm(ApiForm):
    rating = IntegerField("Rating", validators=[Optional(), NumberRange(min=1, max=5)])
    feedback = TextAreaField("Feedback", validators=[Optional(), Length(max=2000)])


class ReopenForm(ApiForm):
    reason = TextAreaField("Reason", validators=[Optional(), Length(max=2000)])


def _store_photos(files) -> list[str]:
    upload_dir = current_app.config["UPLOAD_FOLDER"]
    max_bytes = int(current_app.config.get("MAX_IMAGE_UPLOAD_BYTES", 5 * 1024 * 1024))
    stored = []
    try:
        for file in files:
            stored.append(persist_image(file, upload_dir, max_bytes=max_bytes))
    except ValueError as exc:
        _discard(stored)
        raise ValidationError("Invalid photo", fields={"photos": [str(exc)]}) from exc
    return stored


def _discard(stored: list[dict]) -> None:
    for item in stored:
        try:
            os.remove(item["path"])
        except OSError:
            current_app.logger.warning("upload_cleanup_failed", extra={"path": item["path"]})


def _detail(grievance: Grievance) -> dict:
    payload = grievance.api_payload(include_citizen=not current_user.is_citizen)
    payload["comments"] = [comment.payload() for comment in grievance.comments]
    payload["tracking_stage"] = tracking_stage(grievance)
    return payload


@grievances_bp.route("/complaints", methods=["POST"])
@roles_required("citizen")
def create_complaint():
    form = validate_form(ComplaintForm(), message="Invalid form data")
    photos = [file for file in (form.photos.data or []) if file and file.filename]
    max_photos = int(current_app.config.get("MAX_COMPLAINT_PHOTOS", 6))
    if len(photos) > max_photos:
        raise ValidationError("Too many photos", fields={"photos": [f"At most {max_photos} photos are allowed."]})

    description = form.description.data.strip()
    location = form.location.data.strip()
    classification = current_app.extensions["classifier"].classify(description, location)
    if classification.is_spam:
        current_app.logger.info("complaint_rejected_as_spam", extra={"user_id": current_user.id})
        raise SpamRejectedError()

    category, department = route_category(classification.category, form.categoryId.data)
    stored = _store_photos(photos)
    try:
        grievance = create_grievance(
            current_user,
            category=category,
            department=department,
            description=description,
            location=location,
            priority=classification.priority,
            reporter_name=form.fullName.data.strip(),
            reporter_email=form.email.data.strip().lower(),
            reporter_mobile=form.mobile.data,
            latitude=form.latitude.data,
            longitude=form.longitude.data,
            image_urls=[item["url"] for item in stored],
        )
    except Exception:
        _discard(stored)
        raise

    current_app.logger.info(
        "complaint_accepted",
        extra={"ticket": grievance.ticket_number, "label": classification.category, "category": category.name},
    )
    return (
        jsonify(
            {
                "message": "Complaint Accepted",
                "complaint": {
                    "id": grievance.id,
                    "ticket_number": grievance.ticket_number,
                    "category_name": category.name,
                    "assigned_department": department,
                    "priority": grievance.priority,
                    "status": grievance.status,
                    "complaint_status": grievance.complaint_status,
                    "contractor_id": grievance.contractor_id,
                    "contractor_name": grievance.contractor.name if grievance.contractor else None,
                    "images": grievance.image_urls,
                },
            }
        ),
        201,
    )


@grievances_bp.route("/grievances", methods=["GET"])
@login_required
def list_grievances():
    query = visible_grievances(current_user)
    status_filter = request.args.get("status")
    if status_filter in WORKFLOW_STATUSES:
        query = query.filter(Grievance.status == status_filter)
    rows = query.order_by(Grievance.created_at.desc(), Grievance.id.desc()).all()
    include_citizen = not current_user.is_citizen
    return jsonify([grievance.api_payload(include_citizen=include_citizen) for grievance in rows])


@grievances_bp.route("/grievances/my", methods=["GET"])
@roles_required("citizen")
def my_grievances():
    rows = (
        Grievance.query.filter_by(citizen_id=current_user.id)
        .order_by(Grievance.created_at.desc(), Grievance.id.desc())
        .all()
    )
    return jsonify([grievance.api_payload() for grievance in rows])


@grievances_bp.route("/grievances/<int:grievance_id>", methods=["GET"])
@login_required
def grievance_detail(grievance_id):
    grievance = ensure_can_view(get_grievance_or_404(grievance_id), current_user)
    return jsonify(_detail(grievance))


@grievances_bp.route("/grievances/track/<string:ticket>", methods=["GET"])
@login_required
def track_grievance(ticket):
    grievance = ensure_can_view(get_by_ticket_or_404(ticket), current_user)
    return jsonify(_detail(grievance))


@grievances_bp.route("/grievances/<int:grievance_id>/comments", methods=["POST"])
@login_required
def comment_on_grievance(grievance_id):
    grievance = ensure_can_view(get_grievance_or_404(grievance_id), current_user)
    form = validate_form(CommentForm())
    comment = add_comment(grievance, current_user, form.comment.data)
    return jsonify(comment.payload()), 201


@grievances_bp.route("/grievances/<int:grievance_id>/feedback", methods=["POST"])
@roles_required("citizen")
def grievance_feedback(grievance_id):
    grievance = ensure_owner(get_grievance_or_404(grievance_id), current_user)
    form = validate_form(FeedbackForm())
    submit_feedback(grievance, form.rating.data, optional_text(form.feedback.data))
    current_app.logger.info("feedback_recorded", extra={"ticket": grievance.ticket_number, "rating": form.rating.data})
    return jsonify(grievance.api_payload())


@grievances_bp.route("/grievances/<int:grievance_id>/reopen", methods=["POST"])
@roles_required("citizen")
def reopen_grievance(grievance_id):
    grievance = ensure_owner(get_grievance_or_404(grievance_id), current_user)
    form = validate_form(ReopenForm())
    reopen(grievance, current_user, optional_text(form.reason.data))
    return jsonify(grievance.api_payload())
