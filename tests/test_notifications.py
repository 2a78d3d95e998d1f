"""
Notification fan-out tests.
"""

from unittest.mock import MagicMock

import pytest
from bson import ObjectId
from pymongo.errors import PyMongoError

from barangay.core.database import CASE_NOTIFICATIONS
from barangay.core.user_context import UserContext
from barangay.models.case import NotificationType
from barangay.services.notifications import NotificationService, coerce_limit


def case_doc(username="juan"):
    return {
        "_id": ObjectId(),
        "caseId": "C-0001",
        "reportedBy": {"username": username, "name": "Juan Dela Cruz"},
    }


class TestNotify:

    def test_targets_reporter(self, db):
        service = NotificationService(db)
        doc = service.notify(case_doc("Juan"), NotificationType.STATUS_CHANGE, "Case status updated to Ongoing.")

        assert doc["user"] == {"username": "juan", "name": "Juan Dela Cruz"}
        assert doc["type"] == "STATUS_CHANGE"
        assert doc["caseRef"] == "C-0001"
        assert doc["meta"] is None
        assert db[CASE_NOTIFICATIONS].count_documents({}) == 1

    def test_no_reporter_is_a_no_op(self, db):
        service = NotificationService(db)
        assert service.notify(case_doc(""), NotificationType.CANCELLED, "x") is None
        assert service.notify(None, NotificationType.CANCELLED, "x") is None
        assert db[CASE_NOTIFICATIONS].count_documents({}) == 0

    def test_insert_failure_is_logged_not_raised(self):
        db = MagicMock()
        db.__getitem__.return_value.insert_one.side_effect = PyMongoError("connection reset")
        service = NotificationService(db)
        assert service.notify(case_doc(), NotificationType.STATUS_CHANGE, "x") is None


class TestListAndMarkRead:

    def test_newest_first_with_unread_count(self, db, resident):
        service = NotificationService(db)
        for i in range(3):
            service.notify(case_doc(), NotificationType.STATUS_CHANGE, f"message {i}")
        service.notify(case_doc("maria"), NotificationType.STATUS_CHANGE, "someone else")

        items, unread = service.list_notifications(resident)
        assert [n["message"] for n in items] == ["message 2", "message 1", "message 0"]
        assert unread == 3

    def test_limit_is_clamped(self, db, resident):
        service = NotificationService(db)
        for i in range(5):
            service.notify(case_doc(), NotificationType.STATUS_CHANGE, f"message {i}")

        items, _ = service.list_notifications(resident, limit=0)
        assert len(items) == 1
        items, _ = service.list_notifications(resident, limit=500)
        assert len(items) == 5

    def test_mark_all_read(self, db, resident):
        service = NotificationService(db)
        service.notify(case_doc(), NotificationType.STATUS_CHANGE, "one")
        service.notify(case_doc(), NotificationType.HEARING_SCHEDULED, "two")
        service.notify(case_doc("maria"), NotificationType.STATUS_CHANGE, "not mine")

        assert service.mark_all_read(resident) == 2
        items, unread = service.list_notifications(resident, unread_only=True)
        assert items == []
        assert unread == 0

        maria = UserContext(username="maria")
        _, maria_unread = service.list_notifications(maria)
        assert maria_unread == 1

        stored = db[CASE_NOTIFICATIONS].find_one({"user.username": "juan"})
        assert stored["read"] is True
        assert stored["readAt"] is not None


class TestCoerceLimit:

    @pytest.mark.parametrize("raw, expected", [
        (None, 20),
        ("", 20),
        ("abc", 20),
        ("0", 20),
        ("15", 15),
        (" 7", 7),
        ("15abc", 15),
        ("-3", 1),
        ("500", 100),
    ])
    def test_reads_leading_integer(self, raw, expected):
        assert coerce_limit(raw) == expected
