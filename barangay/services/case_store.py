"""
Case Store

Creating, listing, counting and deleting case reports. Lifecycle changes
(status, hearings, patawag) live in case_lifecycle.
"""

import logging
import math
import re
from datetime import datetime, timedelta
from typing import Any, Mapping, Optional

from bson import ObjectId
from pymongo import ASCENDING, DESCENDING
from pymongo.database import Database

from barangay.core.database import CASES
from barangay.core.errors import ValidationError
from barangay.core.user_context import Authorizer, UserContext
from barangay.core.utc import parse_iso, utc_now
from barangay.models.case import (
    CASE_TYPES,
    HARASSMENT_TYPES,
    SENIOR_CATEGORIES,
    CaseListParams,
    CasePriority,
    CaseStatus,
)
from barangay.services.evidence import EvidenceStore, IncomingFile
from barangay.services.sequence import next_case_id

logger = logging.getLogger(__name__)

MAX_PAGE_SIZE = 100
DEFAULT_PAGE_SIZE = 10

REQUIRED_FIELDS = (
    "typeOfCase",
    "dateOfIncident",
    "description",
    "complainantName",
    "complainantAddress",
)

SEARCH_FIELDS = (
    "caseId",
    "typeOfCase",
    "complainant.name",
    "respondent.name",
    "reportedBy.name",
)

SUMMARY_KEYS = ("Total", "Reported", "Ongoing", "Hearing", "Resolved", "Cancelled")


def _text(form: Mapping[str, Any], key: str) -> str:
    value = form.get(key)
    return value.strip() if isinstance(value, str) else ""


def _day_bound(value: str, end_of_day: bool) -> datetime:
    try:
        when = parse_iso(value)
    except ValueError:
        raise ValidationError("Invalid date filter.")
    # A bare date on the upper bound covers the whole day
    if end_of_day and len(value.strip()) == 10:
        when = when + timedelta(days=1) - timedelta(milliseconds=1)
    return when


class CaseStore:
    def __init__(self, db: Database, evidence: Optional[EvidenceStore] = None):
        self.db = db
        self.cases = db[CASES]
        self.evidence = evidence

    # =========================================================================
    # Reference data
    # =========================================================================

    @staticmethod
    def case_types() -> list[str]:
        return list(CASE_TYPES)

    def summary(self) -> dict[str, int]:
        """Counts per status plus Total. Legacy "Pending" counts as Reported."""
        out = {key: 0 for key in SUMMARY_KEYS}
        for row in self.cases.aggregate([{"$group": {"_id": "$status", "n": {"$sum": 1}}}]):
            raw = row.get("_id") or ""
            mapped = CaseStatus.REPORTED.value if raw == "Pending" else raw
            if mapped in out and mapped != "Total":
                out[mapped] += row["n"]
            out["Total"] += row["n"]
        return out

    # =========================================================================
    # Listing
    # =========================================================================

    def build_filter(self, params: CaseListParams, user: UserContext) -> dict:
        """
        Translate list parameters into a Mongo filter.

        Residents only ever see their own reports; officials see everything
        unless they ask for `mine`.
        """
        query: dict[str, Any] = {}
        if not Authorizer.is_admin(user) or params.mine:
            query["reportedBy.username"] = user.username

        if params.status:
            status = CaseStatus.normalize(params.status)
            if status is CaseStatus.REPORTED:
                query["status"] = {"$in": [CaseStatus.REPORTED.value, "Pending"]}
            else:
                query["status"] = status.value if status else params.status

        if params.date_from or params.date_to:
            incident: dict[str, datetime] = {}
            if params.date_from:
                incident["$gte"] = _day_bound(params.date_from, end_of_day=False)
            if params.date_to:
                incident["$lte"] = _day_bound(params.date_to, end_of_day=True)
            query["dateOfIncident"] = incident

        if params.type:
            query["typeOfCase"] = params.type
        if params.priority:
            query["priority"] = params.priority
        if params.harassment_type:
            query["harassmentType"] = params.harassment_type
        if params.senior_category:
            query["seniorCategory"] = params.senior_category

        if params.q and params.q.strip():
            pattern = re.escape(params.q.strip())
            query["$or"] = [{field: {"$regex": pattern, "$options": "i"}} for field in SEARCH_FIELDS]
        return query

    def _sort(self, params: CaseListParams) -> list:
        direction = ASCENDING if params.sort == "asc" else DESCENDING
        return [("createdAt", direction), ("_id", direction)]

    def list_cases(self, params: CaseListParams, user: UserContext) -> dict:
        """One page of matching cases plus paging totals."""
        page = max(1, params.page)
        limit = min(MAX_PAGE_SIZE, max(1, params.limit or DEFAULT_PAGE_SIZE))
        query = self.build_filter(params, user)

        total = self.cases.count_documents(query)
        rows = list(
            self.cases.find(query).sort(self._sort(params)).skip((page - 1) * limit).limit(limit)
        )
        return {
            "rows": rows,
            "total": total,
            "page": page,
            "limit": limit,
            "totalPages": max(1, math.ceil(total / limit)),
        }

    def export_rows(self, params: CaseListParams, user: UserContext) -> list[dict]:
        """Every matching case, unpaged, for CSV export."""
        query = self.build_filter(params, user)
        return list(self.cases.find(query).sort(self._sort(params)))

    # =========================================================================
    # Create / delete
    # =========================================================================

    def create_case(
        self,
        form: Mapping[str, Any],
        files: list[IncomingFile],
        reporter: UserContext,
    ) -> dict:
        """
        Validate a report, store its evidence and insert it as Reported.

        Validation runs to completion before any file is written. If the
        insert fails, the evidence files written for it are removed.
        """
        if any(not _text(form, key) for key in REQUIRED_FIELDS):
            raise ValidationError("Please fill all required fields.")

        type_of_case = _text(form, "typeOfCase")
        priority = CasePriority.coerce(_text(form, "priority"))

        harassment_type = None
        if type_of_case == "Harassment":
            harassment_type = _text(form, "harassmentType")
            if not harassment_type:
                raise ValidationError("Please select a harassment type.")
            if harassment_type not in HARASSMENT_TYPES:
                raise ValidationError("Invalid harassment type.")

        senior_category = _text(form, "seniorCategory") or None
        if senior_category and senior_category not in SENIOR_CATEGORIES:
            raise ValidationError("Invalid senior-involved category.")

        try:
            date_of_incident = parse_iso(_text(form, "dateOfIncident"))
        except ValueError:
            raise ValidationError("Invalid date of incident.")

        if self.evidence is None:
            raise RuntimeError("CaseStore.create_case needs an EvidenceStore")
        self.evidence.check_type_rules(type_of_case, files)
        self.evidence.check_limits(files)
        self.evidence.check_minimum(files)

        now = utc_now()
        uploader = reporter.as_actor()
        evidences, written = self.evidence.save(files, uploader, now)

        try:
            status = CaseStatus.REPORTED.value
            doc = {
                "caseId": next_case_id(self.db),
                "status": status,
                "typeOfCase": type_of_case,
                "description": _text(form, "description"),
                "placeOfIncident": _text(form, "placeOfIncident"),
                "dateOfIncident": date_of_incident,
                "complainant": {
                    "name": _text(form, "complainantName"),
                    "address": _text(form, "complainantAddress"),
                    "contact": _text(form, "complainantContact"),
                },
                "respondent": {
                    "name": _text(form, "respondentName"),
                    "address": _text(form, "respondentAddress"),
                    "contact": _text(form, "respondentContact"),
                },
                "reportedBy": uploader,
                "priority": priority.value,
                "harassmentType": harassment_type,
                "seniorCategory": senior_category,
                "seniorInvolved": bool(senior_category),
                "evidences": evidences,
                "hearings": [],
                "patawagForms": [],
                "statusHistory": [
                    {"_id": ObjectId(), "status": status, "at": now, "by": uploader},
                ],
                "resolveDate": None,
                "cancelDate": None,
                "cancellationReason": "",
                "createdAt": now,
                "updatedAt": now,
            }
            result = self.cases.insert_one(doc)
        except Exception:
            logger.exception("Creating case for %s failed; removing uploaded evidence", reporter.username)
            self.evidence.cleanup(written)
            raise

        doc["_id"] = result.inserted_id
        logger.info("Case %s reported by %s (%s)", doc["caseId"], reporter.username, type_of_case)
        return doc

    def delete_case(self, case_oid: ObjectId) -> bool:
        """Hard delete. Returns whether a document was removed."""
        result = self.cases.delete_one({"_id": case_oid})
        if result.deleted_count:
            logger.info("Case %s deleted", case_oid)
        return bool(result.deleted_count)
