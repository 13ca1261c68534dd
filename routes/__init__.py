"""Blueprint registration, reference data and uploaded file serving."""
from flask import Blueprint, current_app, jsonify, send_from_directory
from sqlalchemy import text

from extensions import db
from models import Category
from utils.decorators import roles_required
from utils.workflow import contractor_roster
from .auth import auth_bp
from .authority import authority_bp
from .contractor import contractor_bp
from .grievances import grievances_bp

main_bp = Blueprint("main", __name__)


@main_bp.route("/api/health", methods=["GET"])
def health():
    db.session.execute(text("SELECT 1"))
    return jsonify({"ok": True})


@main_bp.route("/api/categories", methods=["GET"])
def categories():
    rows = Category.query.order_by(Category.name).all()
    return jsonify([category.payload() for category in rows])


@main_bp.route("/api/contractors", methods=["GET"])
@roles_required("authority")
def contractors():
    return jsonify(contractor_roster())


@main_bp.route("/uploads/<path:filename>", methods=["GET"])
def uploaded_file(filename):
    return send_from_directory(current_app.config["UPLOAD_FOLDER"], filename)


__all__ = ["main_bp", "auth_bp", "authority_bp", "contractor_bp", "grievances_bp"]
