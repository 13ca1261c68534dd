import random
import re
from datetime import datetime, timedelta

import pytest
from sqlalchemy.exc import SQLAlchemyError

from extensions import db
from models import Category, Grievance, User
from utils.errors import ConfigurationError, InvalidTransitionError, ValidationError
from utils import workflow


def _citizen():
    return User.query.filter_by(email="citizen@nagarseva.com").one()


def _file(**overrides):
    category = Category.query.filter_by(name="Roads & Potholes").one()
    values = {
        "category": category,
        "department": "Public Works Department",
        "description": "Large pothole causing accidents on Main Street",
        "location": "Main Street",
        "priority": "high",
        "reporter_name": "Harsh",
    }
    values.update(overrides)
    return workflow.create_grievance(_citizen(), **values)


def _snapshot(grievance):
    return {column.name: getattr(grievance, column.name) for column in Grievance.__table__.columns}


def test_ticket_number_format():
    ticket = workflow.generate_ticket_number(now_ms=1_700_000_000_000)

    assert re.fullmatch(r"CMP-[0-9A-Z]+-[0-9A-F]{6}", ticket)
    assert ticket.startswith("CMP-LOYW3V28-")


def test_new_grievance_goes_to_least_loaded_contractor(ctx, contractors):
    first, second, third = (_file() for _ in range(3))

    assert [g.contractor_id for g in (first, second, third)] == [c.id for c in contractors]
    assert all(g.status == "submitted" and g.complaint_status == "accepted" for g in (first, second, third))
    assert _file().contractor_id == contractors[0].id


def test_closed_complaints_do_not_count_towards_load(ctx, contractors):
    busy = _file()
    assert busy.contractor_id == contractors[0].id
    workflow.set_complaint_status(busy, contractors[0], "closed")

    assert workflow.pick_least_loaded_contractor_id() == contractors[0].id


def test_grievance_without_contractors_stays_pending(ctx):
    User.query.filter_by(role="contractor").delete()
    db.session.commit()

    grievance = _file()

    assert grievance.contractor_id is None
    assert grievance.complaint_status == "pending"
    assert workflow.pick_least_loaded_contractor_id() is None


def test_ticket_numbers_are_unique(ctx):
    tickets = {_file().ticket_number for _ in range(5)}

    assert len(tickets) == 5


def test_set_status_in_progress_from_accepted(ctx, authority):
    grievance = _file()
    grievance.updated_at = datetime.utcnow() - timedelta(hours=1)
    db.session.commit()
    before = grievance.updated_at

    workflow.set_complaint_status(grievance, authority, "in_progress")

    assert grievance.status == "in_progress"
    assert grievance.complaint_status == "in_progress"
    assert grievance.updated_at > before
    assert grievance.resolved_at is None


def test_contractor_setting_status_takes_the_complaint(ctx, make_grievance, contractors):
    grievance = make_grievance()

    workflow.set_complaint_status(grievance, contractors[2], "accepted")

    assert grievance.contractor_id == contractors[2].id
    assert grievance.status == "assigned"
    assert grievance.complaint_status == "accepted"


def test_authority_setting_status_keeps_contractor(ctx, make_grievance, contractors, authority):
    grievance = make_grievance(contractor_id=contractors[1].id, complaint_status="accepted", status="assigned")

    workflow.set_complaint_status(grievance, authority, "closed")

    assert grievance.contractor_id == contractors[1].id
    assert grievance.status == "resolved"
    assert grievance.complaint_status == "closed"
    assert grievance.resolved_at is not None


@pytest.mark.parametrize(
    "status, complaint_status, target",
    [
        ("resolved", "closed", "in_progress"),
        ("rejected", "closed", "accepted"),
        ("submitted", "pending", "closed"),
        ("in_progress", "in_progress", "accepted"),
    ],
)
def test_set_status_refuses_invalid_moves(ctx, make_grievance, authority, status, complaint_status, target):
    grievance = make_grievance(status=status, complaint_status=complaint_status)
    snapshot = _snapshot(grievance)

    with pytest.raises(InvalidTransitionError):
        workflow.set_complaint_status(grievance, authority, target)

    assert _snapshot(grievance) == snapshot


def test_set_status_rejects_unknown_value(ctx, make_grievance, authority):
    with pytest.raises(ValidationError):
        workflow.set_complaint_status(make_grievance(), authority, "resolved")


def test_closing_pending_complaint_is_refused_without_changes(ctx, make_grievance, contractors):
    grievance = make_grievance(complaint_status="pending")
    snapshot = _snapshot(grievance)

    with pytest.raises(InvalidTransitionError):
        workflow.close_with_resolution(grievance, contractors[0], "/uploads/proof.png")

    db.session.refresh(grievance)
    assert _snapshot(grievance) == snapshot


def test_close_with_resolution(ctx, make_grievance, contractors):
    grievance = make_grievance(complaint_status="in_progress", status="in_progress")

    workflow.close_with_resolution(grievance, contractors[0], "/uploads/proof.png")

    assert grievance.status == "resolved"
    assert grievance.complaint_status == "closed"
    assert grievance.resolution_image_url == "/uploads/proof.png"
    assert grievance.contractor_id == contractors[0].id
    assert grievance.resolved_at is not None


def test_reopen_resets_operational_track_and_keeps_resolved_at(ctx, make_grievance, authority):
    grievance = make_grievance(complaint_status="accepted", status="assigned")
    workflow.set_complaint_status(grievance, authority, "closed")
    resolved_at = grievance.resolved_at

    workflow.reopen(grievance)

    assert grievance.status == "reopened"
    assert grievance.complaint_status == "pending"
    assert grievance.resolved_at == resolved_at

    workflow.set_complaint_status(grievance, authority, "accepted")
    workflow.set_complaint_status(grievance, authority, "closed")
    assert grievance.resolved_at == resolved_at


def test_reopen_requires_resolved(ctx, make_grievance):
    with pytest.raises(InvalidTransitionError):
        workflow.reopen(make_grievance(status="in_progress", complaint_status="in_progress"))


def test_reopen_saves_reason_with_the_status_change(ctx, make_grievance, monkeypatch):
    grievance = make_grievance(status="resolved", complaint_status="closed", resolved_at=datetime.utcnow())
    commits = []
    commit = db.session.commit

    def _counting_commit():
        commits.append(1)
        commit()

    monkeypatch.setattr(db.session, "commit", _counting_commit)
    workflow.reopen(grievance, _citizen(), "  The pothole is back  ")

    assert len(commits) == 1
    assert [c.comment for c in grievance.comments] == ["The pothole is back"]


def test_failed_reopen_keeps_complaint_resolved(ctx, make_grievance, monkeypatch):
    grievance = make_grievance(status="resolved", complaint_status="closed", resolved_at=datetime.utcnow())

    def _failing_commit():
        raise SQLAlchemyError("disk I/O error")

    monkeypatch.setattr(db.session, "commit", _failing_commit)
    with pytest.raises(SQLAlchemyError):
        workflow.reopen(grievance, _citizen(), "The pothole is back")
    monkeypatch.undo()
    db.session.rollback()

    stored = db.session.get(Grievance, grievance.id)
    assert (stored.status, stored.complaint_status) == ("resolved", "closed")
    assert stored.comments == []


def test_authority_update_reconciles_tracks(ctx, make_grievance):
    grievance = make_grievance()

    workflow.update_by_authority(grievance, status="rejected", department="Revenue Department", priority="low")

    assert grievance.status == "rejected"
    assert grievance.complaint_status == "closed"
    assert grievance.assigned_department == "Revenue Department"
    assert grievance.priority == "low"
    assert grievance.resolved_at is None


def test_authority_update_sets_resolved_at(ctx, make_grievance):
    grievance = make_grievance(status="assigned", complaint_status="accepted")

    workflow.update_by_authority(grievance, status="resolved", resolution_notes="Patched and levelled")

    assert grievance.resolved_at is not None
    assert grievance.complaint_status == "closed"
    assert grievance.resolution_notes == "Patched and levelled"


@pytest.mark.parametrize(
    "status, target, error",
    [
        ("resolved", "reopened", InvalidTransitionError),
        ("rejected", "in_progress", InvalidTransitionError),
        ("in_progress", "assigned", InvalidTransitionError),
        ("submitted", "archived", ValidationError),
    ],
)
def test_authority_update_refuses(ctx, make_grievance, status, target, error):
    grievance = make_grievance(status=status)
    snapshot = _snapshot(grievance)

    with pytest.raises(error):
        workflow.update_by_authority(grievance, status=target, priority="high")

    assert _snapshot(grievance) == snapshot


def test_feedback_only_on_resolved(ctx, make_grievance):
    open_grievance = make_grievance()
    with pytest.raises(InvalidTransitionError):
        workflow.submit_feedback(open_grievance, 4, "ok")

    resolved = make_grievance(status="resolved", complaint_status="closed", resolved_at=datetime.utcnow())
    workflow.submit_feedback(resolved, 5, "Fixed quickly")
    assert resolved.citizen_rating == 5
    assert resolved.citizen_feedback == "Fixed quickly"

    with pytest.raises(ValidationError):
        workflow.submit_feedback(resolved, 6, None)


def test_feedback_keeps_fields_that_were_not_sent(ctx, make_grievance):
    grievance = make_grievance(
        status="resolved",
        complaint_status="closed",
        resolved_at=datetime.utcnow(),
        citizen_rating=4,
        citizen_feedback="Quick fix",
    )

    workflow.submit_feedback(grievance, None, "Crew left debris behind")
    assert (grievance.citizen_rating, grievance.citizen_feedback) == (4, "Crew left debris behind")

    workflow.submit_feedback(grievance, 2, None)
    assert (grievance.citizen_rating, grievance.citizen_feedback) == (2, "Crew left debris behind")

    with pytest.raises(ValidationError):
        workflow.submit_feedback(grievance, None, None)
    assert (grievance.citizen_rating, grievance.citizen_feedback) == (2, "Crew left debris behind")


def test_comments_are_returned_in_order(ctx, make_grievance, authority):
    grievance = make_grievance()
    workflow.add_comment(grievance, _citizen(), "Still not fixed")
    workflow.add_comment(grievance, authority, "Crew scheduled for Monday")

    assert [c.comment for c in grievance.comments] == ["Still not fixed", "Crew scheduled for Monday"]
    with pytest.raises(ValidationError):
        workflow.add_comment(grievance, authority, "   ")


def test_distribute_randomly(ctx, make_grievance, contractors):
    pending = make_grievance()
    working = make_grievance(status="in_progress", complaint_status="in_progress")
    reopened = make_grievance(status="reopened", complaint_status="pending")
    done = make_grievance(status="resolved", complaint_status="closed", resolved_at=datetime.utcnow())
    rejected = make_grievance(status="rejected", complaint_status="closed")

    counts = workflow.distribute_randomly(rng=random.Random(7))

    assert set(counts) == {c.id for c in contractors}
    assert sum(counts.values()) == 3
    assert pending.status == "assigned" and pending.complaint_status == "accepted"
    assert working.status == "in_progress" and working.complaint_status == "in_progress"
    assert reopened.status == "assigned" and reopened.complaint_status == "accepted"
    assert all(g.contractor_id is not None for g in (pending, working, reopened))
    assert done.contractor_id is None and rejected.contractor_id is None


def test_distribute_requires_contractors(ctx, make_grievance):
    make_grievance()
    User.query.filter_by(role="contractor").delete()
    db.session.commit()

    with pytest.raises(ConfigurationError):
        workflow.distribute_randomly()


@pytest.mark.parametrize(
    "status, complaint_status, stage",
    [
        ("submitted", "pending", "submitted"),
        ("submitted", "accepted", "accepted"),
        ("in_progress", "in_progress", "in_progress"),
        ("resolved", "closed", "closed"),
        ("reopened", "pending", "submitted"),
    ],
)
def test_tracking_stage(status, complaint_status, stage):
    assert workflow.tracking_stage(Grievance(status=status, complaint_status=complaint_status)) == stage


def test_dashboard_and_roster(ctx, make_grievance, contractors):
    make_grievance(contractor_id=contractors[0].id, complaint_status="accepted", status="assigned")
    make_grievance(
        contractor_id=contractors[0].id, complaint_status="closed", status="resolved", resolved_at=datetime.utcnow()
    )

    stats = workflow.dashboard_stats()
    roster = {row["id"]: row for row in workflow.contractor_roster()}

    assert stats["total"] == 2
    assert stats["resolved"] == 1
    assert stats["byStatus"]["assigned"] == 1
    assert sum(item["count"] for item in stats["byCategory"]) == 2
    assert roster[contractors[0].id]["active_complaints"] == 1
    assert roster[contractors[0].id]["closed_complaints"] == 1
    assert roster[contractors[1].id]["active_complaints"] == 0
