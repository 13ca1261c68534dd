"""Role and ownership rules deciding who may see or change a grievance."""
from __future__ import annotations

from flask import current_app
from sqlalchemy import or_

from extensions import db
from models import Grievance, User
from utils.errors import AuthorizationError, NotFoundError


def _denied(user: User, grievance: Grievance, action: str, message: str) -> AuthorizationError:
    current_app.logger.warning(
        "Grievance access denied",
        extra={"user_id": user.id, "role": user.role, "grievance_id": grievance.id, "action": action},
    )
    return AuthorizationError(message)


def get_grievance_or_404(grievance_id: int) -> Grievance:
    grievance = db.session.get(Grievance, grievance_id)
    if grievance is None:
        raise NotFoundError("Complaint not found")
    return grievance


def get_by_ticket_or_404(ticket: str) -> Grievance:
    grievance = Grievance.query.filter_by(ticket_number=(ticket or "").strip()).first()
    if grievance is None:
        raise NotFoundError("Complaint not found")
    return grievance


def contractor_may_handle(grievance: Grievance, user: User) -> bool:
    return grievance.contractor_id is None or grievance.contractor_id == user.id


def complaint_access_allowed(grievance: Grievance, user: User) -> bool:
    if not user or not user.is_authenticated:
        return False
    if user.is_authority:
        return True
    if user.is_citizen:
        return grievance.citizen_id == user.id
    if user.is_contractor:
        return contractor_may_handle(grievance, user)
    return False


def ensure_can_view(grievance: Grievance, user: User) -> Grievance:
    if not complaint_access_allowed(grievance, user):
        raise _denied(user, grievance, "view", "You can view only your own or assigned complaints")
    return grievance


def ensure_can_operate(grievance: Grievance, user: User) -> Grievance:
    """Status changes and closure: authorities, or the contractor holding the complaint."""
    if user.is_authority:
        return grievance
    if user.is_contractor and contractor_may_handle(grievance, user):
        return grievance
    raise _denied(user, grievance, "operate", "You can update only your assigned complaints")


def ensure_owner(grievance: Grievance, user: User) -> Grievance:
    if user.is_citizen and grievance.citizen_id == user.id:
        return grievance
    raise _denied(user, grievance, "owner", "Only the citizen who filed this complaint can do that")


def visible_grievances(user: User):
    query = Grievance.query
    if user.is_authority:
        return query
    if user.is_contractor:
        return query.filter(or_(Grievance.contractor_id == user.id, Grievance.contractor_id.is_(None)))
    return query.filter(Grievance.citizen_id == user.id)
