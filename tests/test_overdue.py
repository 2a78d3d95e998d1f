"""
45-day "still ongoing" watcher tests: read-triggered check and periodic sweep.
"""

from datetime import timedelta

import pytest

from barangay.core.database import CASE_NOTIFICATIONS, CASES
from barangay.core.utc import utc_now
from barangay.services.case_lifecycle import CaseLifecycleService


@pytest.fixture
def lifecycle(db):
    return CaseLifecycleService(db)


def overdue_notices(db, case_doc=None):
    query = {"type": "OVERDUE_45_DAYS"}
    if case_doc is not None:
        query["caseId"] = case_doc["_id"]
    return db[CASE_NOTIFICATIONS].count_documents(query)


class TestReadTriggeredCheck:

    def test_note_and_single_notification(self, db, lifecycle, make_case):
        now = utc_now()
        case = make_case(status="Ongoing", ongoingSince=now - timedelta(days=46), over45Notified=False)

        row = lifecycle.get_case(case["_id"], now=now)
        assert row["over45Note"].startswith("This case has been ongoing for 46 days (since ")
        assert overdue_notices(db, case) == 1
        assert db[CASES].find_one({"_id": case["_id"]})["over45Notified"] is True

        row = lifecycle.get_case(case["_id"], now=now)
        assert "over45Note" in row
        assert overdue_notices(db, case) == 1

    def test_exactly_threshold_counts(self, db, lifecycle, make_case):
        now = utc_now()
        case = make_case(status="Ongoing", ongoingSince=now - timedelta(days=45))
        assert "over45Note" in lifecycle.get_case(case["_id"], now=now)

    def test_below_threshold(self, db, lifecycle, make_case):
        now = utc_now()
        case = make_case(status="Ongoing", ongoingSince=now - timedelta(days=44))
        row = lifecycle.get_case(case["_id"], now=now)
        assert "over45Note" not in row
        assert overdue_notices(db) == 0

    def test_falls_back_to_updated_at(self, db, lifecycle, make_case):
        now = utc_now()
        case = make_case(status="Ongoing", updatedAt=now - timedelta(days=60))
        row = lifecycle.get_case(case["_id"], now=now)
        assert "60 days" in row["over45Note"]

    def test_only_ongoing_cases(self, db, lifecycle, make_case):
        now = utc_now()
        case = make_case(status="Hearing", ongoingSince=now - timedelta(days=90))
        assert "over45Note" not in lifecycle.get_case(case["_id"], now=now)
        assert overdue_notices(db) == 0

    def test_overdue_note_has_no_side_effects(self, db, lifecycle, make_case):
        now = utc_now()
        case = make_case(status="Ongoing", ongoingSince=now - timedelta(days=50))
        assert lifecycle.overdue_note(case, now=now).startswith("This case has been ongoing for 50 days")
        assert overdue_notices(db) == 0


class TestSweep:

    def test_notifies_each_overdue_case_once(self, db, lifecycle, make_case):
        now = utc_now()
        late_a = make_case(status="Ongoing", ongoingSince=now - timedelta(days=50))
        late_b = make_case(status="Ongoing", ongoingSince=now - timedelta(days=70))
        make_case(status="Ongoing", ongoingSince=now - timedelta(days=3))
        make_case(status="Resolved", ongoingSince=now - timedelta(days=100))

        assert lifecycle.sweep_overdue_cases(now=now) == 2
        assert overdue_notices(db, late_a) == 1
        assert overdue_notices(db, late_b) == 1

        assert lifecycle.sweep_overdue_cases(now=now) == 0
        lifecycle.get_case(late_a["_id"], now=now)
        assert overdue_notices(db) == 2

    def test_read_after_flag_does_not_notify(self, db, lifecycle, make_case):
        now = utc_now()
        case = make_case(status="Ongoing", ongoingSince=now - timedelta(days=50))
        lifecycle.get_case(case["_id"], now=now)
        assert lifecycle.sweep_overdue_cases(now=now) == 0
        assert overdue_notices(db) == 1

    def test_reentering_ongoing_rearms_when_never_stamped(self, db, lifecycle, make_case, official):
        case = make_case(status="Hearing", over45Notified=True)
        row = lifecycle.transition(case["_id"], "Ongoing", official)
        assert row["over45Notified"] is False

        later = utc_now() + timedelta(days=46)
        assert lifecycle.sweep_overdue_cases(now=later) == 1
