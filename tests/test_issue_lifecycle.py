"""
Issue lifecycle service tests.

Covers creation defaults, status transitions and their history/phase
timestamps, the field update allow-list, soft deletion and the audit rows
each mutation leaves behind.
"""

import pytest

from app.core.config import settings
from app.core.errors import NotFoundError, ValidationError
from app.models.audit import AuditRecord
from app.models.issue import IssueStatus, IssuePriority, IssueType
from app.services import issue_lifecycle as lifecycle


def _audit_actions(db, issue_id):
    rows = (
        db.query(AuditRecord)
        .filter(AuditRecord.entity_kind == "Issue", AuditRecord.entity_id == issue_id)
        .order_by(AuditRecord.id)
        .all()
    )
    return [r.action for r in rows]


# ═══════════════════════════════════════════════════════════════
# CREATE
# ═══════════════════════════════════════════════════════════════

class TestCreate:
    def test_new_issue_is_open_with_empty_history(self, make_issue, citizen):
        issue = make_issue(citizen)
        assert issue.status == IssueStatus.OPEN
        assert issue.priority == IssuePriority.MEDIUM
        assert issue.type == IssueType.POTHOLE
        assert issue.opened_at is not None
        assert issue.started_at is None
        assert issue.resolved_at is None
        assert issue.closed_at is None
        assert issue.status_history == []
        assert issue.reporter_id == citizen.id

    def test_location_and_tags_are_stored(self, make_issue, citizen):
        issue = make_issue(citizen, coordinates=[153.1, -27.5], tags=[" road ", "", "lights"])
        assert issue.location["geo"] == {"type": "Point", "coordinates": [153.1, -27.5]}
        assert issue.tags == ["road", "lights"]

    def test_photos_become_attachments(self, make_issue, citizen):
        issue = make_issue(citizen, photos=[{"key": "1/a.jpg", "url": "https://cdn/a.jpg", "contentType": "image/jpeg"}])
        assert len(issue.photos) == 1
        assert issue.photos[0].key == "1/a.jpg"
        assert issue.photos[0].content_type == "image/jpeg"
        assert issue.photos[0].uploaded_by_id == citizen.id

    @pytest.mark.parametrize("kwargs", [
        {"title": ""},
        {"title": "x" * 141},
        {"type": "VOLCANO"},
        {"type": None},
        {"coordinates": [200.0, 0.0]},
        {"priority": "WHENEVER"},
        {"description": "d" * 5001},
        {"tags": ["t" * 61]},
        {"photos": [{"key": "a.jpg", "caption": "c" * 301}]},
    ])
    def test_invalid_input_is_rejected(self, make_issue, citizen, kwargs):
        with pytest.raises(ValidationError):
            make_issue(citizen, **kwargs)

    @pytest.mark.parametrize("field, limit", [("address", 300), ("suburb", 120), ("postcode", 20), ("council", 120)])
    def test_oversize_location_text_is_rejected(self, db, citizen, field, limit):
        location = {"geo": {"coordinates": [153.02, -27.47]}, field: "a" * (limit + 1)}
        with pytest.raises(ValidationError):
            lifecycle.create_issue(db, citizen.id, title="Too long", type="OTHER", location=location)

        location[field] = "a" * limit
        issue = lifecycle.create_issue(db, citizen.id, title="Fits", type="OTHER", location=location)
        assert issue.location[field] == "a" * limit

    def test_missing_location_is_rejected(self, db, citizen):
        with pytest.raises(ValidationError):
            lifecycle.create_issue(db, citizen.id, title="No place", type="OTHER", location=None)

    def test_create_writes_audit_record(self, db, make_issue, citizen):
        issue = make_issue(citizen)
        rows = db.query(AuditRecord).filter(AuditRecord.entity_id == issue.id).all()
        assert len(rows) == 1
        assert rows[0].action == "ISSUE_CREATED"
        assert rows[0].actor_id == citizen.id
        assert rows[0].details["title"] == "Pothole"


# ═══════════════════════════════════════════════════════════════
# STATUS TRANSITIONS
# ═══════════════════════════════════════════════════════════════

class TestChangeStatus:
    def test_resolve_twice_keeps_first_timestamp(self, db, make_issue, citizen, staff):
        issue = make_issue(citizen)

        issue = lifecycle.change_status(db, issue.id, staff.id, "RESOLVED")
        first_resolved = issue.resolved_at
        assert issue.status == IssueStatus.RESOLVED
        assert first_resolved is not None
        assert len(issue.status_history) == 1

        issue = lifecycle.change_status(db, issue.id, staff.id, "RESOLVED")
        assert issue.resolved_at == first_resolved
        assert len(issue.status_history) == 2

    def test_phase_timestamps_are_set_once(self, db, make_issue, citizen, staff):
        issue = make_issue(citizen)
        issue = lifecycle.change_status(db, issue.id, staff.id, IssueStatus.IN_PROGRESS)
        started = issue.started_at
        assert started is not None

        lifecycle.change_status(db, issue.id, staff.id, IssueStatus.OPEN)
        issue = lifecycle.change_status(db, issue.id, staff.id, IssueStatus.IN_PROGRESS)
        assert issue.started_at == started

        issue = lifecycle.change_status(db, issue.id, staff.id, IssueStatus.CLOSED)
        assert issue.closed_at is not None
        assert issue.resolved_at is None

    def test_reopening_is_allowed_by_default(self, db, make_issue, citizen, staff):
        issue = make_issue(citizen)
        lifecycle.change_status(db, issue.id, staff.id, "CLOSED")
        issue = lifecycle.change_status(db, issue.id, staff.id, "OPEN")
        assert issue.status == IssueStatus.OPEN
        assert [e.status for e in issue.status_history] == [IssueStatus.CLOSED, IssueStatus.OPEN]

    def test_history_records_actor_and_status(self, db, make_issue, citizen, staff):
        issue = make_issue(citizen)
        issue = lifecycle.change_status(db, issue.id, staff.id, "IN_PROGRESS")
        event = issue.status_history[-1]
        assert event.status == IssueStatus.IN_PROGRESS
        assert event.actor_id == staff.id
        assert event.note is None
        assert event.timestamp is not None

    def test_note_adds_second_entry(self, db, make_issue, citizen, staff):
        issue = make_issue(citizen)
        issue = lifecycle.change_status(db, issue.id, staff.id, "IN_PROGRESS", note="Crew dispatched")
        assert len(issue.status_history) == 2
        generated, noted = issue.status_history
        assert generated.note is None
        assert noted.note == "Crew dispatched"
        assert noted.status == IssueStatus.IN_PROGRESS

    def test_note_folded_into_single_entry(self, db, make_issue, citizen, staff, monkeypatch):
        monkeypatch.setattr(settings, "status_note_separate_entry", False)
        issue = make_issue(citizen)
        issue = lifecycle.change_status(db, issue.id, staff.id, "IN_PROGRESS", note="Crew dispatched")
        assert len(issue.status_history) == 1
        assert issue.status_history[0].note == "Crew dispatched"

    def test_blank_note_is_ignored(self, db, make_issue, citizen, staff):
        issue = make_issue(citizen)
        issue = lifecycle.change_status(db, issue.id, staff.id, "IN_PROGRESS", note="   ")
        assert len(issue.status_history) == 1

    def test_oversize_note_is_rejected(self, db, make_issue, citizen, staff):
        issue = make_issue(citizen)
        with pytest.raises(ValidationError):
            lifecycle.change_status(db, issue.id, staff.id, "IN_PROGRESS", note="n" * 2001)
        db.expire_all()
        issue = lifecycle.get_issue(db, issue.id)
        assert issue.status == IssueStatus.OPEN
        assert issue.status_history == []

        issue = lifecycle.change_status(db, issue.id, staff.id, "IN_PROGRESS", note="n" * 2000)
        assert issue.status_history[-1].note == "n" * 2000

    def test_invalid_status_is_rejected(self, db, make_issue, citizen, staff):
        issue = make_issue(citizen)
        with pytest.raises(ValidationError):
            lifecycle.change_status(db, issue.id, staff.id, "DONE")
        with pytest.raises(ValidationError):
            lifecycle.change_status(db, issue.id, staff.id, None)

    def test_unknown_issue_is_not_found(self, db, staff):
        with pytest.raises(NotFoundError):
            lifecycle.change_status(db, 999, staff.id, "OPEN")

    def test_deleted_issue_is_not_found(self, db, make_issue, citizen, staff):
        issue = make_issue(citizen)
        lifecycle.soft_delete(db, issue.id, citizen.id)
        with pytest.raises(NotFoundError):
            lifecycle.change_status(db, issue.id, staff.id, "RESOLVED")

    def test_strict_mode_enforces_transition_table(self, db, make_issue, citizen, staff, monkeypatch):
        monkeypatch.setattr(settings, "strict_status_transitions", True)
        issue = make_issue(citizen)
        with pytest.raises(ValidationError):
            lifecycle.change_status(db, issue.id, staff.id, "RESOLVED")

        lifecycle.change_status(db, issue.id, staff.id, "IN_PROGRESS")
        lifecycle.change_status(db, issue.id, staff.id, "RESOLVED")
        issue = lifecycle.change_status(db, issue.id, staff.id, "CLOSED")
        with pytest.raises(ValidationError):
            lifecycle.change_status(db, issue.id, staff.id, "OPEN")

        # same status is always accepted
        issue = lifecycle.change_status(db, issue.id, staff.id, "CLOSED")
        assert issue.status == IssueStatus.CLOSED

    def test_status_change_writes_audit_record(self, db, make_issue, citizen, staff):
        issue = make_issue(citizen)
        lifecycle.change_status(db, issue.id, staff.id, "IN_PROGRESS", note="on it")
        row = (
            db.query(AuditRecord)
            .filter(AuditRecord.action == "ISSUE_STATUS_CHANGED", AuditRecord.entity_id == issue.id)
            .one()
        )
        assert row.actor_id == staff.id
        assert row.details == {"status": "IN_PROGRESS", "note": "on it"}


# ═══════════════════════════════════════════════════════════════
# UPDATE / DELETE
# ═══════════════════════════════════════════════════════════════

class TestUpdateFields:
    def test_only_allowed_fields_are_applied(self, db, make_issue, citizen):
        issue = make_issue(citizen)
        issue = lifecycle.update_fields(db, issue.id, citizen.id, {
            "title": "Deep pothole",
            "priority": "HIGH",
            "status": "CLOSED",
            "reporter": 42,
            "isDeleted": True,
        })
        assert issue.title == "Deep pothole"
        assert issue.priority == IssuePriority.HIGH
        assert issue.status == IssueStatus.OPEN
        assert issue.reporter_id == citizen.id
        assert issue.is_deleted is False
        assert issue.status_history == []

        row = db.query(AuditRecord).filter(AuditRecord.action == "ISSUE_UPDATED").one()
        assert row.details == {"updatedFields": ["title", "priority"]}

    def test_location_and_assignee(self, db, make_issue, citizen, staff):
        issue = make_issue(citizen)
        issue = lifecycle.update_fields(db, issue.id, staff.id, {
            "location": {"geo": {"coordinates": [151.2, -33.86]}, "suburb": "Sydney"},
            "assignedTo": staff.id,
        })
        assert (issue.lng, issue.lat) == (151.2, -33.86)
        assert issue.suburb == "Sydney"
        assert issue.assigned_to_id == staff.id

    def test_unknown_assignee_is_rejected(self, db, make_issue, citizen):
        issue = make_issue(citizen)
        with pytest.raises(ValidationError):
            lifecycle.update_fields(db, issue.id, citizen.id, {"assignedTo": 4040})

    def test_invalid_value_leaves_issue_untouched(self, db, make_issue, citizen):
        issue = make_issue(citizen)
        with pytest.raises(ValidationError):
            lifecycle.update_fields(db, issue.id, citizen.id, {"title": "New", "type": "NOPE"})
        db.expire_all()
        assert lifecycle.get_issue(db, issue.id).title == "Pothole"


class TestSoftDelete:
    def test_deleted_issue_is_hidden(self, db, make_issue, citizen):
        issue = make_issue(citizen)
        lifecycle.soft_delete(db, issue.id, citizen.id)
        with pytest.raises(NotFoundError):
            lifecycle.get_issue(db, issue.id)
        page = lifecycle.list_issues(db, lifecycle.IssueFilter())
        assert page.items == []
        assert page.count == 0
        assert _audit_actions(db, issue.id) == ["ISSUE_CREATED", "ISSUE_DELETED"]

    def test_delete_twice_is_not_found(self, db, make_issue, citizen):
        issue = make_issue(citizen)
        lifecycle.soft_delete(db, issue.id, citizen.id)
        with pytest.raises(NotFoundError):
            lifecycle.soft_delete(db, issue.id, citizen.id)


def test_audit_trail_follows_every_mutation(db, make_issue, citizen, staff):
    issue = make_issue(citizen)
    lifecycle.update_fields(db, issue.id, citizen.id, {"description": "Big one"})
    lifecycle.change_status(db, issue.id, staff.id, "IN_PROGRESS")
    lifecycle.add_photos(db, issue.id, citizen.id, [{"key": "k.png", "storage": "local"}])
    lifecycle.soft_delete(db, issue.id, citizen.id)
    assert _audit_actions(db, issue.id) == [
        "ISSUE_CREATED",
        "ISSUE_UPDATED",
        "ISSUE_STATUS_CHANGED",
        "ISSUE_PHOTO_ADDED",
        "ISSUE_DELETED",
    ]


# ═══════════════════════════════════════════════════════════════
# STATUS HISTORY GUARD
# ═══════════════════════════════════════════════════════════════

class TestStatusHistoryGuard:
    def test_direct_status_assignment_is_refused(self, db, make_issue, citizen):
        issue = make_issue(citizen)
        issue.status = IssueStatus.CLOSED
        with pytest.raises(RuntimeError):
            db.commit()
        db.rollback()

        issue = lifecycle.get_issue(db, issue.id)
        assert issue.status == IssueStatus.OPEN
        assert issue.status_history == []
        assert issue.closed_at is None

    def test_transition_to_passes_the_guard(self, db, make_issue, citizen, staff):
        issue = make_issue(citizen)
        issue.transition_to(IssueStatus.CLOSED, staff.id)
        db.commit()
        db.refresh(issue)
        assert issue.status == IssueStatus.CLOSED
        assert len(issue.status_history) == 1
        assert issue.closed_at is not None

    def test_other_field_changes_are_not_affected(self, db, make_issue, citizen):
        issue = make_issue(citizen)
        issue.priority = IssuePriority.URGENT
        db.commit()
        db.refresh(issue)
        assert issue.priority == IssuePriority.URGENT
