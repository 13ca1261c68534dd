"""Base form for the token-authenticated JSON API."""
from flask_wtf import FlaskForm

from utils.errors import ValidationError


class ApiForm(FlaskForm):
    """FlaskForm reading JSON or multipart bodies, without CSRF.

    Requests carry a bearer token instead of a session cookie, so there is
    no cross-site form post to protect against.
    """

    class Meta:
        csrf = False


def validate_form(form: FlaskForm, message: str = "Invalid payload") -> FlaskForm:
    if not form.validate_on_submit():
        raise ValidationError(message, fields={name: list(errors) for name, errors in form.errors.items()})
    return form


def provided(field):
    """Field data when the client sent the key, otherwise None."""
    return field.data if field.raw_data else None


def optional_text(value) -> str | None:
    if value is None:
        return None
    cleaned = str(value).strip()
    return cleaned or None
