"""
Case Lifecycle Service

Status transitions, hearing and patawag scheduling, and the 45-day
"still ongoing" watcher. Each operation is a single-document update on
`cases` followed by a read-back; notifications are built from the
post-update document.

Transitions are not restricted by an adjacency table: an official may
move a case from any status to any other (e.g. reopen a Resolved case).
"""

import logging
from datetime import datetime, timedelta
from typing import Any, Optional

from bson import ObjectId
from pymongo.database import Database

from barangay.core.database import CASES
from barangay.core.errors import InvalidStatusError, NotFoundError, ValidationError
from barangay.core.user_context import UserContext
from barangay.core.utc import format_date, format_long, parse_iso, to_utc, utc_now
from barangay.models.case import DEFAULT_VENUE, CaseStatus, NotificationType
from barangay.services.notifications import NotificationService

logger = logging.getLogger(__name__)

DEFAULT_OVERDUE_DAYS = 45


class CaseLifecycleService:
    def __init__(
        self,
        db: Database,
        notifications: Optional[NotificationService] = None,
        overdue_days: int = DEFAULT_OVERDUE_DAYS,
    ):
        self.db = db
        self.cases = db[CASES]
        self.notifications = notifications or NotificationService(db)
        self.overdue_days = overdue_days

    # =========================================================================
    # Reads
    # =========================================================================

    def get_case(self, case_oid: ObjectId, now: Optional[datetime] = None) -> dict:
        """
        Fetch one case and run the overdue check on it.

        The returned document carries `over45Note` when the case has been
        Ongoing for the threshold or longer; the note is computed on every
        read and never stored.
        """
        row = self.cases.find_one({"_id": case_oid})
        if row is None:
            raise NotFoundError()
        self.check_overdue(row, now=now)
        return row

    def ongoing_days(self, row: dict, now: Optional[datetime] = None) -> Optional[int]:
        """Whole days since the case went Ongoing, or None if it isn't Ongoing."""
        if row.get("status") != CaseStatus.ONGOING.value:
            return None
        base = row.get("ongoingSince") or row.get("updatedAt") or row.get("createdAt")
        if base is None:
            return None
        now = now or utc_now()
        return (to_utc(now) - to_utc(base)) // timedelta(days=1)

    def overdue_note(self, row: dict, now: Optional[datetime] = None) -> Optional[str]:
        """The "ongoing for N days" note, or None below the threshold. No side effects."""
        days = self.ongoing_days(row, now=now)
        if days is None or days < self.overdue_days:
            return None
        base = row.get("ongoingSince") or row.get("updatedAt") or row.get("createdAt")
        return f"This case has been ongoing for {days} days (since {format_date(base)})."

    def check_overdue(self, row: dict, now: Optional[datetime] = None) -> bool:
        """
        Attach `over45Note` to `row` when it is overdue and, the first time
        the threshold is crossed, notify the reporter.

        Returns True if a notification was sent by this call.
        """
        note = self.overdue_note(row, now=now)
        if note is None:
            return False
        row["over45Note"] = note

        if row.get("over45Notified"):
            return False
        notified = self._flag_overdue_and_notify(row)
        row["over45Notified"] = True
        return notified

    def _flag_overdue_and_notify(self, row: dict) -> bool:
        # Conditional flip: whoever flips the guard sends the one notification
        result = self.cases.update_one(
            {"_id": row["_id"], "over45Notified": {"$ne": True}},
            {"$set": {"over45Notified": True}},
        )
        if result.modified_count != 1:
            return False
        self.notifications.notify(
            row,
            NotificationType.OVERDUE_45_DAYS,
            f"Case has been ongoing for {self.overdue_days} days or more.",
        )
        logger.info("Case %s passed %s days ongoing; reporter notified", row.get("caseId"), self.overdue_days)
        return True

    def sweep_overdue_cases(self, now: Optional[datetime] = None) -> int:
        """
        Scan every Ongoing case that hasn't been flagged yet and notify the
        ones past the threshold. Returns the number of notifications sent.
        """
        now = now or utc_now()
        sent = 0
        cursor = self.cases.find(
            {"status": CaseStatus.ONGOING.value, "over45Notified": {"$ne": True}}
        )
        for row in cursor:
            days = self.ongoing_days(row, now=now)
            if days is not None and days >= self.overdue_days and self._flag_overdue_and_notify(row):
                sent += 1
        if sent:
            logger.info("Overdue sweep notified %s case(s)", sent)
        return sent

    # =========================================================================
    # Status transitions
    # =========================================================================

    def transition(
        self,
        case_oid: ObjectId,
        requested_status: Optional[str],
        actor: UserContext,
        note: str = "",
        cancellation_reason: str = "",
    ) -> dict:
        """
        Move a case to `requested_status` and return the updated document.

        - Ongoing: `ongoingSince` stamped once; the overdue guard re-armed with it
        - Resolved: `resolveDate` stamped once
        - Cancelled: `cancelDate` stamped once; the reason stored when given
        - Always: one new `statusHistory` entry, STATUS_CHANGE notification
          (plus CANCELLED when entering Cancelled)
        """
        status = CaseStatus.normalize(requested_status)
        if status is None:
            raise InvalidStatusError()

        existing = self.cases.find_one({"_id": case_oid})
        if existing is None:
            raise NotFoundError()

        now = utc_now()
        updates: dict[str, Any] = {"status": status.value, "updatedAt": now}

        if status is CaseStatus.ONGOING and not existing.get("ongoingSince"):
            updates["ongoingSince"] = now
            updates["over45Notified"] = False
        if status is CaseStatus.RESOLVED and not existing.get("resolveDate"):
            updates["resolveDate"] = now
        if status is CaseStatus.CANCELLED:
            if not existing.get("cancelDate"):
                updates["cancelDate"] = now
            reason = str(cancellation_reason or "").strip()
            updates["cancellationReason"] = reason or str(existing.get("cancellationReason") or "").strip()

        history_entry: dict[str, Any] = {
            "_id": ObjectId(),
            "status": status.value,
            "at": now,
            "by": actor.as_actor(),
        }
        if note and str(note).strip():
            history_entry["note"] = str(note).strip()

        self.cases.update_one(
            {"_id": case_oid},
            {"$set": updates, "$push": {"statusHistory": history_entry}},
        )
        row = self.cases.find_one({"_id": case_oid})
        if row is None:
            # Deleted between the update and the read-back
            raise NotFoundError()

        logger.info(
            "Case %s: %s -> %s by %s", row.get("caseId"), existing.get("status"), status.value, actor.username
        )
        self.notifications.notify(row, NotificationType.STATUS_CHANGE, f"Case status updated to {status.value}.")
        if status is CaseStatus.CANCELLED:
            self.notifications.notify(row, NotificationType.CANCELLED, "Case has been cancelled.")
        return row

    # =========================================================================
    # Hearings and patawag forms
    # =========================================================================

    def add_hearing(
        self,
        case_oid: ObjectId,
        date_time: str,
        actor: UserContext,
        venue: str = "",
        notes: str = "",
    ) -> tuple[dict, dict]:
        """Append a hearing; returns (updated case, hearing entry)."""
        if not str(date_time or "").strip():
            raise ValidationError("Hearing date/time is required.")
        try:
            when = parse_iso(date_time)
        except ValueError:
            raise ValidationError("Invalid hearing date/time.")

        if self.cases.find_one({"_id": case_oid}, {"_id": 1}) is None:
            raise NotFoundError()

        now = utc_now()
        hearing = {
            "_id": ObjectId(),
            "dateTime": when,
            "venue": str(venue or "").strip(),
            "notes": str(notes or "").strip(),
            "createdAt": now,
            "createdBy": actor.as_actor(),
        }
        self.cases.update_one(
            {"_id": case_oid},
            {"$push": {"hearings": hearing}, "$set": {"updatedAt": now}},
        )
        row = self.cases.find_one({"_id": case_oid})
        if row is None:
            raise NotFoundError()

        self.notifications.notify(
            row,
            NotificationType.HEARING_SCHEDULED,
            f"Hearing scheduled on {format_long(when)} at {hearing['venue'] or DEFAULT_VENUE}.",
        )
        return row, hearing

    def add_patawag(
        self,
        case_oid: ObjectId,
        actor: UserContext,
        schedule_date: str = "",
        venue: str = "",
        notes: str = "",
    ) -> tuple[dict, dict]:
        """Append a patawag (summons) form; only Ongoing cases accept one."""
        when = None
        if str(schedule_date or "").strip():
            try:
                when = parse_iso(schedule_date)
            except ValueError:
                raise ValidationError("Invalid schedule date.")

        existing = self.cases.find_one({"_id": case_oid}, {"status": 1})
        if existing is None:
            raise NotFoundError()
        if existing.get("status") != CaseStatus.ONGOING.value:
            raise ValidationError("Patawag form is only available for ongoing cases.")

        now = utc_now()
        entry = {
            "_id": ObjectId(),
            "scheduleDate": when,
            "venue": str(venue or "").strip(),
            "notes": str(notes or "").strip(),
            "createdAt": now,
            "createdBy": actor.as_actor(),
        }
        self.cases.update_one(
            {"_id": case_oid},
            {"$push": {"patawagForms": entry}, "$set": {"updatedAt": now}},
        )
        row = self.cases.find_one({"_id": case_oid})
        if row is None:
            raise NotFoundError()

        self.notifications.notify(
            row,
            NotificationType.PATAWAG_CREATED,
            "A Patawag form has been generated for this case.",
        )
        return row, entry
