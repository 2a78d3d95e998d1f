"""
Case store and evidence handling tests (service level).
"""

from datetime import datetime, timezone
from unittest.mock import patch

import pytest
from pymongo.errors import PyMongoError

from barangay.core.database import CASES
from barangay.core.errors import ValidationError
from barangay.models.case import CaseListParams
from barangay.services.case_store import CaseStore
from barangay.services.evidence import EvidenceStore, IncomingFile


def incoming(field="evidenceFiles", name="photo.jpg", content=b"data"):
    return IncomingFile(field=field, filename=name, content=content, content_type="image/jpeg")


def form(**overrides):
    data = {
        "typeOfCase": "Noise Complaint",
        "dateOfIncident": "2025-01-20",
        "description": "Karaoke past midnight.",
        "complainantName": "Ana Lopez",
        "complainantAddress": "Purok 1",
    }
    data.update(overrides)
    return data


@pytest.fixture
def evidence_store(tmp_path):
    return EvidenceStore(tmp_path / "uploads", url_prefix="/uploads", max_bytes=1024)


@pytest.fixture
def store(db, evidence_store):
    return CaseStore(db, evidence_store)


class TestBuildFilter:

    def test_resident_scoped_to_own_cases(self, store, resident):
        query = store.build_filter(CaseListParams(), resident)
        assert query == {"reportedBy.username": "juan"}

    def test_admin_unscoped(self, store, official):
        assert store.build_filter(CaseListParams(), official) == {}
        assert store.build_filter(CaseListParams(mine=True), official) == {"reportedBy.username": "kapitan"}

    def test_inclusive_day_range(self, store, official):
        params = CaseListParams(date_from="2025-01-01", date_to="2025-01-31")
        incident = store.build_filter(params, official)["dateOfIncident"]
        assert incident["$gte"] == datetime(2025, 1, 1, tzinfo=timezone.utc)
        assert incident["$lte"] == datetime(2025, 1, 31, 23, 59, 59, 999000, tzinfo=timezone.utc)

    def test_invalid_date_filter(self, store, official):
        with pytest.raises(ValidationError):
            store.build_filter(CaseListParams(date_from="last week"), official)

    def test_search_is_escaped_and_case_insensitive(self, store, official):
        query = store.build_filter(CaseListParams(q=" (Juan) "), official)
        clauses = query["$or"]
        assert len(clauses) == 5
        assert clauses[0] == {"caseId": {"$regex": r"\(Juan\)", "$options": "i"}}

    def test_query_aliases(self):
        params = CaseListParams.model_validate({"from": "2025-01-01", "exportCsv": "true", "harassmentType": "Verbal"})
        assert params.date_from == "2025-01-01"
        assert params.export_csv is True
        assert params.harassment_type == "Verbal"


class TestCreateCase:

    def test_stores_files_and_document(self, db, store, evidence_store, resident):
        row = store.create_case(form(), [incoming(name=f"{i}.jpg") for i in range(3)], resident)

        assert row["caseId"] == "C-0001"
        assert row["dateOfIncident"] == datetime(2025, 1, 20, tzinfo=timezone.utc)
        assert row["respondent"] == {"name": "", "address": "", "contact": ""}
        assert row["seniorInvolved"] is False
        assert len(list(evidence_store.upload_dir.iterdir())) == 3
        assert db[CASES].find_one({"_id": row["_id"]})["caseId"] == "C-0001"

    def test_invalid_incident_date(self, store, resident):
        with pytest.raises(ValidationError) as exc:
            store.create_case(form(dateOfIncident="yesterday"), [incoming()] * 3, resident)
        assert exc.value.message == "Invalid date of incident."

    def test_insert_failure_removes_files(self, db, store, evidence_store, resident):
        with patch.object(store.cases, "insert_one", side_effect=PyMongoError("write failed")):
            with pytest.raises(PyMongoError):
                store.create_case(form(), [incoming(name=f"{i}.jpg") for i in range(3)], resident)
        assert list(evidence_store.upload_dir.iterdir()) == []


class TestEvidenceStore:

    def test_oversized_file(self, evidence_store):
        with pytest.raises(ValidationError) as exc:
            evidence_store.check_limits([incoming(content=b"x" * 2048)])
        assert exc.value.message.startswith("File upload failed: File too large: photo.jpg")

    def test_several_bad_files(self, evidence_store):
        with pytest.raises(ValidationError) as exc:
            evidence_store.check_limits([incoming(content=b""), incoming(content=b"")])
        assert exc.value.message == "Multiple file uploads failed. Please check your files and try again."

    def test_per_field_count_limit(self, evidence_store):
        files = [incoming("medicoLegalFile", f"{i}.pdf") for i in range(3)]
        with pytest.raises(ValidationError):
            evidence_store.check_limits(files)

    def test_stored_names_are_random_and_keep_extension(self, evidence_store):
        first = evidence_store.stored_name("Report.PDF")
        second = evidence_store.stored_name("Report.PDF")
        assert first.endswith(".pdf")
        assert first != second
        assert evidence_store.stored_name("no-extension").endswith(".bin")
        assert evidence_store.stored_name("../../etc/passwd").endswith(".bin")

    def test_cleanup_ignores_missing(self, evidence_store, tmp_path):
        present = tmp_path / "present.jpg"
        present.write_bytes(b"x")
        assert evidence_store.cleanup([present, tmp_path / "gone.jpg"]) == 1
        assert not present.exists()
