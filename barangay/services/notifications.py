"""
Case notification fan-out.

Every case event notifies exactly one person: the resident who reported
the case. Notifications are written after the case update has committed
and are best effort; a failed insert is logged, never retried, and never
undoes the case change.
"""

import logging
import re
from typing import Any, Mapping, Optional

from pymongo.database import Database
from pymongo.errors import PyMongoError

from barangay.core.database import CASE_NOTIFICATIONS
from barangay.core.user_context import UserContext
from barangay.core.utc import utc_now
from barangay.models.case import NotificationType

logger = logging.getLogger(__name__)

DEFAULT_LIST_LIMIT = 20
MAX_LIST_LIMIT = 100

_LEADING_INT = re.compile(r"\s*([+-]?\d+)")


def coerce_limit(raw: Optional[str]) -> int:
    """
    Read a `limit` query value leniently.

    The leading integer is used ("15abc" is 15). Missing, non-numeric and
    zero values fall back to the default. The result is clamped to
    1..MAX_LIST_LIMIT.
    """
    match = _LEADING_INT.match(raw or "")
    value = int(match.group(1)) if match else 0
    if value == 0:
        value = DEFAULT_LIST_LIMIT
    return max(1, min(MAX_LIST_LIMIT, value))


class NotificationService:
    """Writes and reads documents in `case_notifications`."""

    def __init__(self, db: Database):
        self.db = db
        self.collection = db[CASE_NOTIFICATIONS]

    def notify(
        self,
        case_doc: Optional[Mapping[str, Any]],
        type: NotificationType,
        message: str,
        meta: Optional[dict] = None,
    ) -> Optional[dict]:
        """
        Notify the reporter of `case_doc`.

        Returns the inserted notification, or None when there is nobody to
        notify or the insert failed.
        """
        if not case_doc:
            return None
        reporter = case_doc.get("reportedBy") or {}
        username = str(reporter.get("username") or "").strip().lower()
        if not username:
            return None

        doc = {
            "caseId": case_doc.get("_id"),
            "caseRef": case_doc.get("caseId"),
            "type": NotificationType(type).value,
            "message": message,
            "meta": meta,
            "user": {"username": username, "name": reporter.get("name") or ""},
            "read": False,
            "createdAt": utc_now(),
        }
        try:
            self.collection.insert_one(doc)
        except PyMongoError:
            logger.exception(
                "Failed to store %s notification for case %s", doc["type"], doc["caseRef"]
            )
            return None
        return doc

    def list_notifications(
        self,
        user: UserContext,
        limit: int = DEFAULT_LIST_LIMIT,
        unread_only: bool = False,
    ) -> tuple[list[dict], int]:
        """Newest-first notifications for `user` plus the total unread count."""
        limit = max(1, min(MAX_LIST_LIMIT, limit))
        query: dict[str, Any] = {"user.username": user.username}
        if unread_only:
            query["read"] = {"$ne": True}

        items = list(self.collection.find(query).sort([("createdAt", -1), ("_id", -1)]).limit(limit))
        unread_count = self.collection.count_documents({**query, "read": {"$ne": True}})
        return items, unread_count

    def mark_all_read(self, user: UserContext) -> int:
        result = self.collection.update_many(
            {"user.username": user.username, "read": {"$ne": True}},
            {"$set": {"read": True, "readAt": utc_now()}},
        )
        return result.modified_count
