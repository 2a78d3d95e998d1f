"""
CSV export of case lists.
"""

import csv
import io
from typing import Iterable

from barangay.core.utc import to_iso_z

CSV_HEADER = [
    "caseId",
    "status",
    "typeOfCase",
    "reportedBy",
    "createdAt",
    "dateOfIncident",
    "placeOfIncident",
    "complainantName",
    "complainantAddress",
    "respondentName",
]


def case_to_csv_row(row: dict) -> list[str]:
    reporter = row.get("reportedBy") or {}
    complainant = row.get("complainant") or {}
    respondent = row.get("respondent") or {}
    return [
        row.get("caseId") or "",
        row.get("status") or "",
        row.get("typeOfCase") or "",
        reporter.get("name") or reporter.get("username") or "",
        to_iso_z(row.get("createdAt")),
        to_iso_z(row.get("dateOfIncident")),
        row.get("placeOfIncident") or "",
        complainant.get("name") or "",
        complainant.get("address") or "",
        respondent.get("name") or "",
    ]


def cases_to_csv(rows: Iterable[dict]) -> str:
    """
    Render cases as CSV text.

    Fields holding a comma, quote or line break are quoted, with embedded
    quotes doubled; everything else is written bare.
    """
    output = io.StringIO()
    writer = csv.writer(output, quoting=csv.QUOTE_MINIMAL, lineterminator="\n")
    writer.writerow(CSV_HEADER)
    for row in rows:
        writer.writerow(case_to_csv_row(row))
    return output.getvalue()
