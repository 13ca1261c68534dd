"""Registration, token login and logout."""
from flask import Blueprint, current_app, jsonify, request
from flask_login import current_user, login_required
from sqlalchemy.exc import IntegrityError
from wtforms import PasswordField, SelectField, StringField
from wtforms.validators import DataRequired, Email, Length, Optional, Regexp
from wtforms.validators import ValidationError as FieldValidationError

from extensions import db
from models import USER_ROLES, User
from utils.errors import AuthenticationError, ValidationError
from utils.forms import ApiForm, optional_text, validate_form
from utils.security import password_meets_policy
from utils.session_store import bearer_token, get_session_store

auth_bp = Blueprint("auth", __name__)


class RegistrationForm(ApiForm):
    name = StringField("Full Name", validators=[DataRequired(), Length(min=2, max=150)])
    email = StringField("Email", validators=[DataRequired(), Email(), Length(max=255)])
    phone = StringField("Phone", validators=[Optional(), Regexp(r"^\+?\d{7,15}$", message="Invalid phone number.")])
    password = PasswordField("Password", validators=[DataRequired()])

    def validate_password(self, field):
        ok, reason = password_meets_policy(field.data or "", current_app.config.get("PASSWORD_MIN_LENGTH", 6))
        if not ok:
            raise FieldValidationError(reason)


class LoginForm(ApiForm):
    email = StringField("Email", validators=[DataRequired(), Email(), Length(max=255)])
    password = PasswordField("Password", validators=[DataRequired()])
    role = SelectField("Role", choices=[(role, role) for role in USER_ROLES], default="citizen")


@auth_bp.route("/register", methods=["POST"])
def register():
    form = validate_form(RegistrationForm())
    email = form.email.data.strip().lower()
    if User.query.filter_by(email=email).first():
        raise ValidationError("User already exists", fields={"email": ["An account with this email already exists."]})

    user = User(name=form.name.data.strip(), email=email, phone=optional_text(form.phone.data), role="citizen")
    user.set_password(form.password.data)
    db.session.add(user)
    try:
        db.session.commit()
    except IntegrityError:
        db.session.rollback()
        raise ValidationError("User already exists", fields={"email": ["An account with this email already exists."]})

    current_app.logger.info("citizen_registered", extra={"user_id": user.id})
    return jsonify({"message": "Registered successfully", "user": user.session_payload()}), 201


@auth_bp.route("/login", methods=["POST"])
def login():
    form = validate_form(LoginForm())
    email = form.email.data.strip().lower()
    role = form.role.data or "citizen"
    user = User.query.filter_by(email=email, role=role).first()
    if not user or not user.check_password(form.password.data):
        current_app.logger.warning("login_failed", extra={"email": email, "role": role, "ip": request.remote_addr})
        raise AuthenticationError("Invalid credentials")

    token = get_session_store().issue(user.id)
    current_app.logger.info("login_succeeded", extra={"user_id": user.id, "role": user.role})
    return jsonify({"token": token, "user": user.session_payload()})


@auth_bp.route("/logout", methods=["POST"])
@login_required
def logout():
    token = bearer_token(request)
    if token:
        get_session_store().delete(token)
    current_app.logger.info("logout", extra={"user_id": current_user.id})
    return jsonify({"message": "Logged out"})


@auth_bp.route("/me", methods=["GET"])
@login_required
def me():
    return jsonify({"user": current_user.session_payload()})
