"""Unit tests for AuditService."""

from gradebook.models.audit import AuditAction
from gradebook.services.audit import AuditService


class TestAuditService:
    """Tests for writing and reading audit entries."""

    def test_log_and_list_by_resource(self, db) -> None:
        """Test that entries can be filtered by resource."""
        service = AuditService(db)
        service.log(AuditAction.GRADE_CREATED, "grade", resource_id="1", user_id=5)
        service.log(AuditAction.GRADE_UPDATED, "grade", resource_id="1", user_id=5, extra_data={"final_score": "90"})
        service.log(AuditAction.GRADE_CREATED, "grade", resource_id="2", user_id=5)

        entries = service.list_logs(resource_type="grade", resource_id="1")

        assert [e.action for e in entries] == [AuditAction.GRADE_UPDATED, AuditAction.GRADE_CREATED]
        assert entries[0].extra_data == {"final_score": "90"}

    def test_limit(self, db) -> None:
        """Test that the newest entries are returned up to the limit."""
        service = AuditService(db)
        for n in range(5):
            service.log(AuditAction.CALENDAR_UPDATED, "semester", resource_id=str(n))

        entries = service.list_logs(limit=2)

        assert [e.resource_id for e in entries] == ["4", "3"]

    def test_filter_by_action(self, db) -> None:
        """Test that entries can be narrowed to one action."""
        service = AuditService(db)
        service.log(AuditAction.GRADE_CREATED, "grade", resource_id="1")
        service.log(AuditAction.SUBMISSION_GRADED, "submission", resource_id="7")

        entries = service.list_logs(action=AuditAction.SUBMISSION_GRADED)

        assert [e.resource_id for e in entries] == ["7"]
