"""Complaint lifecycle: intake, the two status tracks, assignment and feedback.

A grievance carries two status fields that move together:

- ``status`` is the workflow track shown to citizens and authorities,
- ``complaint_status`` is the operational track contractors work against.

Every operation here validates the requested change in full before touching
the row, so a refused transition never leaves a half-updated grievance.
"""
from __future__ import annotations

import logging
import random
import secrets
import time
from datetime import datetime
from typing import Dict, Iterable, Optional

from sqlalchemy import and_, case, func, or_

from extensions import db
from models import (
    COMPLAINT_STATUSES,
    OPEN_COMPLAINT_STATUSES,
    PRIORITY_LEVELS,
    WORKFLOW_STATUSES,
    Category,
    Comment,
    Grievance,
    User,
)
from utils.errors import ConfigurationError, InvalidTransitionError, ValidationError

logger = logging.getLogger(__name__)

WORKFLOW_TRANSITIONS: Dict[str, frozenset[str]] = {
    "submitted": frozenset({"assigned", "in_progress", "resolved", "rejected"}),
    "assigned": frozenset({"in_progress", "resolved"}),
    "in_progress": frozenset({"resolved"}),
    "resolved": frozenset({"reopened"}),
    "reopened": frozenset({"assigned", "in_progress", "resolved"}),
    "rejected": frozenset(),
}

COMPLAINT_TRANSITIONS: Dict[str, frozenset[str]] = {
    "pending": frozenset({"accepted", "in_progress"}),
    "accepted": frozenset({"accepted", "in_progress", "closed"}),
    "in_progress": frozenset({"in_progress", "closed"}),
    "closed": frozenset(),
}

SETTABLE_COMPLAINT_STATUSES: tuple[str, ...] = ("accepted", "in_progress", "closed")

COMPLAINT_TO_WORKFLOW: Dict[str, str] = {
    "accepted": "assigned",
    "in_progress": "in_progress",
    "closed": "resolved",
}

WORKFLOW_TO_COMPLAINT: Dict[str, str] = {
    "assigned": "accepted",
    "in_progress": "in_progress",
    "resolved": "closed",
    "rejected": "closed",
    "reopened": "pending",
}

TERMINAL_FOR_DISTRIBUTION: tuple[str, ...] = ("resolved", "rejected")
TICKET_PREFIX = "CMP"
TICKET_ATTEMPTS = 5
_BASE36 = "0123456789ABCDEFGHIJKLMNOPQRSTUVWXYZ"


def can_transition(current: str | None, target: str) -> bool:
    return target in WORKFLOW_TRANSITIONS.get(current or "submitted", frozenset())


def ensure_transition(current: str | None, target: str) -> None:
    if not can_transition(current, target):
        raise InvalidTransitionError(f"Cannot move complaint from {current or 'submitted'} to {target}")


def _base36(number: int) -> str:
    if number == 0:
        return "0"
    digits = []
    while number:
        number, remainder = divmod(number, 36)
        digits.append(_BASE36[remainder])
    return "".join(reversed(digits))


def generate_ticket_number(now_ms: int | None = None) -> str:
    epoch_ms = now_ms if now_ms is not None else int(time.time() * 1000)
    return f"{TICKET_PREFIX}-{_base36(epoch_ms)}-{secrets.token_hex(3).upper()}"


def unique_ticket_number() -> str:
    for _ in range(TICKET_ATTEMPTS):
        candidate = generate_ticket_number()
        if not db.session.query(Grievance.id).filter_by(ticket_number=candidate).first():
            return candidate
    raise ConfigurationError("Could not allocate a unique ticket number")


def pick_least_loaded_contractor_id() -> Optional[int]:
    open_load = func.count(Grievance.id)
    row = (
        db.session.query(User.id)
        .outerjoin(
            Grievance,
            and_(
                Grievance.contractor_id == User.id,
                Grievance.complaint_status.in_(OPEN_COMPLAINT_STATUSES),
            ),
        )
        .filter(User.role == "contractor")
        .group_by(User.id)
        .order_by(open_load.asc(), User.id.asc())
        .first()
    )
    return row[0] if row else None


def create_grievance(
    citizen: User,
    *,
    category: Category,
    department: str,
    description: str,
    location: str,
    priority: str = "medium",
    reporter_name: str | None = None,
    reporter_email: str | None = None,
    reporter_mobile: str | None = None,
    latitude: float | None = None,
    longitude: float | None = None,
    image_urls: Iterable[str] = (),
    title: str | None = None,
) -> Grievance:
    if priority not in PRIORITY_LEVELS:
        raise ValidationError("Invalid priority", fields={"priority": [f"Must be one of {', '.join(PRIORITY_LEVELS)}"]})

    contractor_id = pick_least_loaded_contractor_id()
    grievance = Grievance(
        ticket_number=unique_ticket_number(),
        citizen_id=citizen.id,
        category_id=category.id,
        contractor_id=contractor_id,
        title=title or f"Complaint by {reporter_name or citizen.name}",
        description=description,
        reporter_name=reporter_name,
        reporter_email=reporter_email,
        reporter_mobile=reporter_mobile,
        assigned_department=department,
        location=location,
        latitude=latitude,
        longitude=longitude,
        priority=priority,
        status="submitted",
        complaint_status="accepted" if contractor_id else "pending",
    )
    grievance.image_urls = list(image_urls)
    db.session.add(grievance)
    db.session.commit()
    logger.info(
        "Grievance created",
        extra={"ticket": grievance.ticket_number, "contractor_id": contractor_id, "priority": priority},
    )
    return grievance


def _mark_resolved(grievance: Grievance, now: datetime) -> None:
    grievance.resolved_at = grievance.resolved_at or now


def set_complaint_status(grievance: Grievance, actor: User, value: str) -> Grievance:
    if value not in SETTABLE_COMPLAINT_STATUSES:
        raise ValidationError("Invalid status", fields={"status": [f"Must be one of {', '.join(SETTABLE_COMPLAINT_STATUSES)}"]})
    if grievance.status in TERMINAL_FOR_DISTRIBUTION:
        raise InvalidTransitionError(f"Complaint is already {grievance.status}")

    current = grievance.complaint_status or "pending"
    if value not in COMPLAINT_TRANSITIONS.get(current, frozenset()):
        raise InvalidTransitionError(f"Cannot move complaint from {current} to {value}")
    target_status = COMPLAINT_TO_WORKFLOW[value]
    if target_status != grievance.status:
        ensure_transition(grievance.status, target_status)

    now = datetime.utcnow()
    grievance.complaint_status = value
    grievance.status = target_status
    if actor.is_contractor:
        grievance.contractor_id = actor.id
    if target_status == "resolved":
        _mark_resolved(grievance, now)
    grievance.updated_at = now
    db.session.commit()
    logger.info(
        "Complaint status updated",
        extra={"ticket": grievance.ticket_number, "complaint_status": value, "actor_id": actor.id},
    )
    return grievance


def close_with_resolution(grievance: Grievance, actor: User, resolution_image_url: str) -> Grievance:
    if grievance.complaint_status not in OPEN_COMPLAINT_STATUSES:
        raise InvalidTransitionError("Complaint must be accepted or in progress before it can be closed")
    if grievance.status != "resolved":
        ensure_transition(grievance.status, "resolved")

    now = datetime.utcnow()
    grievance.complaint_status = "closed"
    grievance.status = "resolved"
    grievance.resolution_image_url = resolution_image_url
    if actor.is_contractor:
        grievance.contractor_id = actor.id
    _mark_resolved(grievance, now)
    grievance.updated_at = now
    db.session.commit()
    logger.info("Complaint closed with proof", extra={"ticket": grievance.ticket_number, "actor_id": actor.id})
    return grievance


def update_by_authority(
    grievance: Grievance,
    *,
    status: str | None = None,
    department: str | None = None,
    priority: str | None = None,
    resolution_notes: str | None = None,
) -> Grievance:
    if status is not None:
        if status not in WORKFLOW_STATUSES:
            raise ValidationError("Invalid status", fields={"status": [f"Must be one of {', '.join(WORKFLOW_STATUSES)}"]})
        if status == "reopened":
            raise InvalidTransitionError("Only the citizen who filed a complaint can reopen it")
        if status != grievance.status:
            ensure_transition(grievance.status, status)
    if priority is not None and priority not in PRIORITY_LEVELS:
        raise ValidationError("Invalid priority", fields={"priority": [f"Must be one of {', '.join(PRIORITY_LEVELS)}"]})

    now = datetime.utcnow()
    if status is not None and status != grievance.status:
        grievance.status = status
        grievance.complaint_status = WORKFLOW_TO_COMPLAINT.get(status, grievance.complaint_status)
        if status == "resolved":
            _mark_resolved(grievance, now)
    if department is not None:
        grievance.assigned_department = department.strip() or None
    if priority is not None:
        grievance.priority = priority
    if resolution_notes is not None:
        grievance.resolution_notes = resolution_notes
    grievance.updated_at = now
    db.session.commit()
    logger.info("Grievance updated by authority", extra={"ticket": grievance.ticket_number, "status": grievance.status})
    return grievance


def reopen(grievance: Grievance, author: User | None = None, reason: str | None = None) -> Grievance:
    """Send a resolved complaint back to the queue.

    A non-blank ``reason`` is stored as a comment by ``author`` in the same
    commit as the status change.
    """
    if grievance.status != "resolved":
        raise InvalidTransitionError("Only resolved complaints can be reopened")
    body = (reason or "").strip()
    if body and author is None:
        raise ValidationError("A reason needs an author")
    now = datetime.utcnow()
    grievance.status = "reopened"
    grievance.complaint_status = WORKFLOW_TO_COMPLAINT["reopened"]
    grievance.updated_at = now
    if body:
        db.session.add(Comment(grievance_id=grievance.id, user_id=author.id, comment=body, created_at=now))
    db.session.commit()
    logger.info("Grievance reopened", extra={"ticket": grievance.ticket_number, "with_reason": bool(body)})
    return grievance


def submit_feedback(grievance: Grievance, rating: int | None, feedback: str | None) -> Grievance:
    """Record the citizen's rating and/or feedback; fields left as None keep their stored value."""
    if grievance.status != "resolved":
        raise InvalidTransitionError("Feedback is accepted only for resolved complaints")
    if rating is None and feedback is None:
        raise ValidationError(
            "Nothing to record",
            fields={"rating": ["Send a rating or feedback."], "feedback": ["Send a rating or feedback."]},
        )
    if rating is not None:
        if isinstance(rating, bool) or not isinstance(rating, int) or not 1 <= rating <= 5:
            raise ValidationError("Invalid rating", fields={"rating": ["Rating must be a whole number from 1 to 5"]})
        grievance.citizen_rating = rating
    if feedback is not None:
        grievance.citizen_feedback = feedback
    grievance.updated_at = datetime.utcnow()
    db.session.commit()
    return grievance


def add_comment(grievance: Grievance, author: User, text: str) -> Comment:
    body = (text or "").strip()
    if not body:
        raise ValidationError("Comment cannot be empty", fields={"comment": ["This field is required."]})
    comment = Comment(grievance_id=grievance.id, user_id=author.id, comment=body)
    db.session.add(comment)
    grievance.updated_at = datetime.utcnow()
    db.session.commit()
    return comment


def distribute_randomly(rng: random.Random | None = None) -> Dict[int, int]:
    """Hand every unfinished complaint to a random contractor.

    Returns how many complaints each contractor received, zero included.
    """
    rng = rng or random.Random()
    contractors = User.query.filter_by(role="contractor").order_by(User.id.asc()).all()
    if not contractors:
        raise ConfigurationError("No contractors available")

    candidates = (
        Grievance.query.filter(
            or_(Grievance.complaint_status.is_(None), Grievance.complaint_status != "closed"),
            or_(Grievance.status.is_(None), Grievance.status.notin_(TERMINAL_FOR_DISTRIBUTION)),
        )
        .order_by(Grievance.created_at.desc(), Grievance.id.desc())
        .all()
    )

    counts = {contractor.id: 0 for contractor in contractors}
    now = datetime.utcnow()
    for grievance in candidates:
        contractor = rng.choice(contractors)
        grievance.contractor_id = contractor.id
        if grievance.complaint_status not in OPEN_COMPLAINT_STATUSES:
            grievance.complaint_status = "accepted"
        if grievance.status != "in_progress":
            grievance.status = "assigned"
        grievance.updated_at = now
        counts[contractor.id] += 1
    db.session.commit()
    logger.info("Complaints distributed", extra={"total": len(candidates), "contractors": len(contractors)})
    return counts


def tracking_stage(grievance: Grievance) -> str:
    complaint_status = (grievance.complaint_status or "").lower()
    status = (grievance.status or "").lower()
    if complaint_status == "closed" or status == "resolved":
        return "closed"
    if complaint_status == "in_progress" or status == "in_progress":
        return "in_progress"
    if complaint_status == "accepted" or status == "assigned":
        return "accepted"
    return "submitted"


def dashboard_stats() -> Dict:
    by_status = dict(db.session.query(Grievance.status, func.count(Grievance.id)).group_by(Grievance.status).all())
    by_category = [
        {"name": name, "count": count}
        for name, count in (
            db.session.query(Category.name, func.count(Grievance.id))
            .outerjoin(Grievance, Grievance.category_id == Category.id)
            .group_by(Category.id, Category.name)
            .order_by(Category.name)
            .all()
        )
    ]
    total = sum(by_status.values())
    return {
        "total": total,
        "resolved": by_status.get("resolved", 0),
        "byStatus": {status: by_status.get(status, 0) for status in WORKFLOW_STATUSES},
        "byComplaintStatus": {
            status: count
            for status, count in db.session.query(Grievance.complaint_status, func.count(Grievance.id))
            .group_by(Grievance.complaint_status)
            .all()
            if status in COMPLAINT_STATUSES
        },
        "byCategory": by_category,
    }


def contractor_roster() -> list[Dict]:
    active = func.sum(case((Grievance.complaint_status.in_(OPEN_COMPLAINT_STATUSES), 1), else_=0))
    closed = func.sum(case((Grievance.status == "resolved", 1), else_=0))
    rows = (
        db.session.query(User.id, User.name, User.email, active, closed)
        .outerjoin(Grievance, Grievance.contractor_id == User.id)
        .filter(User.role == "contractor")
        .group_by(User.id, User.name, User.email)
        .order_by(User.id.asc())
        .all()
    )
    return [
        {
            "id": user_id,
            "name": name,
            "email": email,
            "active_complaints": int(active_count or 0),
            "closed_complaints": int(closed_count or 0),
        }
        for user_id, name, email, active_count, closed_count in rows
    ]
