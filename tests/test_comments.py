"""Comment tests: visibility of internal comments, validation, audit rows."""

import pytest

from app.core.errors import NotFoundError, ValidationError
from app.models.audit import AuditRecord
from app.services import comments as comment_service
from app.services import issue_lifecycle as lifecycle
from tests.conftest import auth_headers


@pytest.fixture()
def issue(make_issue, citizen):
    return make_issue(citizen)


class TestCommentService:
    def test_internal_comments_hidden_from_non_elevated(self, db, issue, citizen, staff):
        comment_service.add_comment(db, issue.id, citizen.id, "Public note")
        comment_service.add_comment(db, issue.id, staff.id, "Staff only", is_internal=True)

        public = comment_service.list_comments(db, issue.id, include_internal=False)
        everything = comment_service.list_comments(db, issue.id, include_internal=True)
        assert [c.body for c in public] == ["Public note"]
        assert [c.body for c in everything] == ["Public note", "Staff only"]

    def test_body_is_trimmed_and_required(self, db, issue, citizen):
        comment = comment_service.add_comment(db, issue.id, citizen.id, "  hello  ")
        assert comment.body == "hello"
        with pytest.raises(ValidationError):
            comment_service.add_comment(db, issue.id, citizen.id, "   ")

    def test_body_over_limit_is_rejected(self, db, issue, citizen):
        with pytest.raises(ValidationError):
            comment_service.add_comment(db, issue.id, citizen.id, "x" * 5001)
        assert comment_service.add_comment(db, issue.id, citizen.id, "x" * 5000).id

    def test_attachments_are_saved(self, db, issue, citizen):
        comment = comment_service.add_comment(
            db, issue.id, citizen.id, "See photo",
            attachments=[{"key": "c/1.jpg", "url": "https://cdn/c1.jpg", "storage": "s3"}],
        )
        assert [a.key for a in comment.attachments] == ["c/1.jpg"]
        assert comment.attachments[0].issue_id is None

    def test_unknown_issue_is_not_found(self, db, citizen):
        with pytest.raises(NotFoundError):
            comment_service.add_comment(db, 404, citizen.id, "hello")
        with pytest.raises(NotFoundError):
            comment_service.list_comments(db, 404, include_internal=True)

    def test_deleted_issue_keeps_comments_readable(self, db, issue, citizen):
        comment_service.add_comment(db, issue.id, citizen.id, "before delete")
        lifecycle.soft_delete(db, issue.id, citizen.id)

        assert [c.body for c in comment_service.list_comments(db, issue.id, include_internal=False)] == ["before delete"]
        with pytest.raises(NotFoundError):
            comment_service.add_comment(db, issue.id, citizen.id, "after delete")

    def test_comment_is_audited_against_issue(self, db, issue, staff):
        comment = comment_service.add_comment(db, issue.id, staff.id, "internal", is_internal=True)
        row = db.query(AuditRecord).filter(AuditRecord.action == "COMMENT_ADDED").one()
        assert row.entity_kind == "Issue"
        assert row.entity_id == issue.id
        assert row.details == {"comment": comment.id, "isInternal": True}


class TestCommentsApi:
    def test_citizen_cannot_post_internal(self, client, issue, citizen):
        res = client.post(
            f"/issues/{issue.id}/comments",
            json={"body": "secret", "isInternal": True},
            headers=auth_headers(citizen),
        )
        assert res.status_code == 403

    def test_post_and_list(self, client, issue, citizen, staff):
        res = client.post(f"/issues/{issue.id}/comments", json={"body": "Hi"}, headers=auth_headers(citizen))
        assert res.status_code == 201
        data = res.json()
        assert data["issueId"] == issue.id
        assert data["authorId"] == citizen.id
        assert data["isInternal"] is False

        client.post(
            f"/issues/{issue.id}/comments",
            json={"body": "Crew booked", "isInternal": True},
            headers=auth_headers(staff),
        )
        as_citizen = client.get(f"/issues/{issue.id}/comments", headers=auth_headers(citizen)).json()
        as_staff = client.get(f"/issues/{issue.id}/comments", headers=auth_headers(staff)).json()
        assert [c["body"] for c in as_citizen] == ["Hi"]
        assert [c["body"] for c in as_staff] == ["Hi", "Crew booked"]

    def test_too_long_is_400(self, client, issue, citizen):
        res = client.post(f"/issues/{issue.id}/comments", json={"body": "x" * 5001}, headers=auth_headers(citizen))
        assert res.status_code == 400
        assert res.json()["message"].startswith("Comment is too long")
