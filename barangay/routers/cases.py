"""
Case Management API
Residents report cases with evidence and follow them; barangay officials
move them through the lifecycle, schedule hearings and issue patawag forms.
"""

import importlib.util
import logging
from typing import Annotated, Optional

from fastapi import APIRouter, Depends, Query, Request
from fastapi.responses import HTMLResponse, Response
from pymongo.database import Database
from starlette.concurrency import run_in_threadpool

from barangay.core.config import Settings, get_settings
from barangay.core.database import CASES, get_db, parse_object_id, to_jsonable
from barangay.core.errors import NotFoundError, UploadUnavailableError
from barangay.core.security import require_admin, require_user
from barangay.core.user_context import UserContext
from barangay.models.case import CaseListParams, HearingCreate, PatawagCreate, StatusUpdate
from barangay.services.case_documents import (
    render_cancellation_letter,
    render_full_report,
    render_patawag_print,
)
from barangay.services.case_export import cases_to_csv
from barangay.services.case_lifecycle import CaseLifecycleService
from barangay.services.case_store import CaseStore
from barangay.services.evidence import collect_uploads, evidence_store_from_settings
from barangay.services.notifications import NotificationService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["Cases"])
documents_router = APIRouter(prefix="/cases", tags=["Case Documents"])

# Starlette parses multipart bodies only when python-multipart is installed
MULTIPART_AVAILABLE = bool(
    importlib.util.find_spec("python_multipart") or importlib.util.find_spec("multipart")
)
if not MULTIPART_AVAILABLE:
    logger.warning("python-multipart is not installed; case evidence uploads are disabled")


# =============================================================================
# Dependencies
# =============================================================================

def get_case_store(
    db: Database = Depends(get_db),
    settings: Settings = Depends(get_settings),
) -> CaseStore:
    return CaseStore(db, evidence_store_from_settings(settings))


def get_lifecycle(
    db: Database = Depends(get_db),
    settings: Settings = Depends(get_settings),
) -> CaseLifecycleService:
    return CaseLifecycleService(db, NotificationService(db), overdue_days=settings.overdue_days)


def _find_case_for_print(db: Database, case_id: str) -> dict:
    row = db[CASES].find_one({"_id": parse_object_id(case_id)})
    if row is None:
        raise NotFoundError("Case not found.")
    return row


# =============================================================================
# Reference data and counters
# =============================================================================

@router.get("/case-types")
def list_case_types(user: UserContext = Depends(require_user)):
    return {"ok": True, "items": CaseStore.case_types()}


@router.get("/cases/summary")
def cases_summary(
    user: UserContext = Depends(require_user),
    store: CaseStore = Depends(get_case_store),
):
    """Per-status counts for the header stats."""
    return {"ok": True, "summary": store.summary()}


# =============================================================================
# List / detail
# =============================================================================

@router.get("/cases")
def list_cases(
    params: Annotated[CaseListParams, Query()],
    user: UserContext = Depends(require_user),
    store: CaseStore = Depends(get_case_store),
):
    """
    Paged case list, or the full filtered list as CSV with `exportCsv=true`.
    Residents only see their own cases.
    """
    if params.export_csv:
        rows = store.export_rows(params, user)
        return Response(
            content=cases_to_csv(rows),
            media_type="text/csv; charset=utf-8",
            headers={"Content-Disposition": 'attachment; filename="cases.csv"'},
        )

    page = store.list_cases(params, user)
    return {"ok": True, **to_jsonable(page)}


@router.get("/cases/{case_id}")
def get_case(
    case_id: str,
    user: UserContext = Depends(require_user),
    lifecycle: CaseLifecycleService = Depends(get_lifecycle),
):
    row = lifecycle.get_case(parse_object_id(case_id))
    return {"ok": True, "row": to_jsonable(row)}


# =============================================================================
# Create (multipart with evidence files)
# =============================================================================

@router.post("/cases")
async def create_case(
    request: Request,
    user: UserContext = Depends(require_user),
    settings: Settings = Depends(get_settings),
    store: CaseStore = Depends(get_case_store),
):
    """
    Report a new case.

    Form fields: typeOfCase, dateOfIncident, description, complainantName,
    complainantAddress (required) plus optional contact/respondent fields,
    priority, harassmentType, seniorCategory. Files: evidenceFiles,
    medicoLegalFile, vandalismImage (at least 3 in total).
    """
    if not MULTIPART_AVAILABLE:
        raise UploadUnavailableError()

    form = await request.form()
    try:
        fields = {key: value for key, value in form.items() if isinstance(value, str)}
        files = await collect_uploads(form, settings.max_upload_bytes)
    finally:
        await form.close()

    row = await run_in_threadpool(store.create_case, fields, files, user)
    return {"ok": True, "row": to_jsonable(row)}


# =============================================================================
# Officials only
# =============================================================================

@router.post("/cases/{case_id}/status")
def update_status(
    case_id: str,
    body: Optional[StatusUpdate] = None,
    admin: UserContext = Depends(require_admin),
    lifecycle: CaseLifecycleService = Depends(get_lifecycle),
):
    body = body or StatusUpdate()
    row = lifecycle.transition(
        parse_object_id(case_id),
        body.status,
        admin,
        note=body.note,
        cancellation_reason=body.cancellation_reason,
    )
    return {"ok": True, "row": to_jsonable(row)}


@router.delete("/cases/{case_id}")
def delete_case(
    case_id: str,
    admin: UserContext = Depends(require_admin),
    store: CaseStore = Depends(get_case_store),
):
    store.delete_case(parse_object_id(case_id))
    return {"ok": True}


@router.post("/cases/{case_id}/hearings")
def add_hearing(
    case_id: str,
    body: Optional[HearingCreate] = None,
    admin: UserContext = Depends(require_admin),
    lifecycle: CaseLifecycleService = Depends(get_lifecycle),
):
    body = body or HearingCreate()
    row, hearing = lifecycle.add_hearing(
        parse_object_id(case_id), body.date_time, admin, venue=body.venue, notes=body.notes
    )
    return {"ok": True, "row": to_jsonable(row), "hearing": to_jsonable(hearing)}


@router.post("/cases/{case_id}/patawag")
def add_patawag(
    case_id: str,
    body: Optional[PatawagCreate] = None,
    admin: UserContext = Depends(require_admin),
    lifecycle: CaseLifecycleService = Depends(get_lifecycle),
):
    body = body or PatawagCreate()
    row, entry = lifecycle.add_patawag(
        parse_object_id(case_id), admin, schedule_date=body.schedule_date, venue=body.venue, notes=body.notes
    )
    return {"ok": True, "row": to_jsonable(row), "patawag": to_jsonable(entry)}


# =============================================================================
# Printable views
# =============================================================================

@documents_router.get("/{case_id}/full-report", response_class=HTMLResponse)
def full_report(
    case_id: str,
    user: UserContext = Depends(require_user),
    db: Database = Depends(get_db),
    settings: Settings = Depends(get_settings),
    lifecycle: CaseLifecycleService = Depends(get_lifecycle),
):
    row = _find_case_for_print(db, case_id)
    note = lifecycle.overdue_note(row)
    if note:
        row["over45Note"] = note
    return HTMLResponse(render_full_report(row, settings))


@documents_router.get("/{case_id}/patawag-print", response_class=HTMLResponse)
def patawag_print(
    case_id: str,
    user: UserContext = Depends(require_user),
    db: Database = Depends(get_db),
    settings: Settings = Depends(get_settings),
):
    return HTMLResponse(render_patawag_print(_find_case_for_print(db, case_id), settings))


@documents_router.get("/{case_id}/cancellation-letter", response_class=HTMLResponse)
def cancellation_letter(
    case_id: str,
    user: UserContext = Depends(require_user),
    db: Database = Depends(get_db),
    settings: Settings = Depends(get_settings),
):
    return HTMLResponse(render_cancellation_letter(_find_case_for_print(db, case_id), settings))
