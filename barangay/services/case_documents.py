"""
Printable case documents.

Three self-contained HTML pages, each with a print button:
- full case report (letterhead, parties, evidence, hearings, timeline)
- patawag (summons) form for the latest patawag entry
- cancellation letter

Every value taken from a case document is HTML-escaped.
"""

import html
from datetime import datetime
from typing import Any, Optional

from barangay.core.config import Settings
from barangay.core.utc import format_date, format_long, format_short, to_utc, utc_now
from barangay.models.case import CIVIL_CASE_TYPES, CRIMINAL_CASE_TYPES, DEFAULT_VENUE


def esc(value: Any, default: str = "") -> str:
    """Escape a value for HTML; empty values become `default` (also escaped)."""
    if value is None or value == "":
        return html.escape(default)
    return html.escape(str(value))


def _checked(flag: bool) -> str:
    return "checked" if flag else ""


_SIMPLE_STYLE = """
      body { font-family: Arial, sans-serif; padding: 40px; }
      h1 { text-align: center; margin-bottom: 24px; }
      .meta { margin-bottom: 20px; font-size: 14px; }
      .section { margin-top: 18px; }
      .label { font-weight: bold; }
      @media print { button { display: none; } }
"""

_REPORT_STYLE = """
      @page { size: letter; margin: 0.6in 0.8in; }
      body { font-family: 'Times New Roman', Times, serif; font-size: 11pt; line-height: 1.6;
             color: #000; max-width: 8.5in; margin: 0 auto; padding: 20px; }
      .print-btn { position: fixed; top: 25px; right: 25px; padding: 12px 24px; background: #0038a8;
                   color: #fff; border: none; border-radius: 6px; cursor: pointer; }
      .control-number { float: right; font-size: 9pt; color: #666; }
      .letterhead { border: 3px solid #0038a8; padding: 24px 32px; margin-bottom: 24px; text-align: center; }
      .letterhead-title { font-size: 14pt; font-weight: bold; text-transform: uppercase; }
      .letterhead-subtitle { font-size: 14pt; color: #0038a8; font-weight: bold; text-transform: uppercase; }
      .office-name { font-weight: bold; color: #0038a8; text-transform: uppercase; margin-top: 10px; }
      .document-title { text-align: center; font-size: 22pt; font-weight: bold; margin: 20px 0 30px;
                        text-transform: uppercase; letter-spacing: 2px; }
      .form-item { margin-bottom: 16px; }
      .form-label { font-weight: bold; }
      .form-value { border-bottom: 2px solid #000; padding: 4px 0; min-height: 20px; }
      .form-note { font-size: 9pt; color: #666; font-style: italic; }
      .section { margin: 24px 0; page-break-inside: avoid; }
      .section-title { font-weight: bold; color: #0038a8; border-bottom: 2px solid #0038a8; margin-bottom: 10px; }
      table { width: 100%; border-collapse: collapse; }
      th, td { border: 1px solid #ccc; padding: 6px 8px; text-align: left; font-size: 10pt; }
      .hearing-box, .patawag-box { border: 1px solid #ccc; padding: 10px 14px; margin-bottom: 12px; }
      .note-box { border-left: 4px solid #c0392b; background: #fdf2f2; padding: 10px 14px; }
      .timeline-item { margin-bottom: 8px; }
      .timeline-label { font-weight: bold; }
      .signature-section { display: flex; justify-content: space-between; margin-top: 50px; }
      .signature-box { width: 45%; text-align: center; border-top: 1px solid #000; padding-top: 6px; }
      @media print { .print-btn { display: none; } }
"""


def _page(title: str, style: str, body: str) -> str:
    return f"""<!doctype html>
<html>
  <head>
    <meta charset="utf-8">
    <title>{title}</title>
    <style>{style}    </style>
  </head>
  <body>
{body}
  </body>
</html>"""


# =============================================================================
# Cancellation letter
# =============================================================================

def render_cancellation_letter(row: dict, settings: Settings) -> str:
    complainant = row.get("complainant") or {}
    barangay = esc(settings.barangay_name)
    reason = row.get("cancellationReason")
    reason_html = f'<p><span class="label">Reason:</span> {esc(reason)}</p>' if reason else ""
    cancelled_on = format_long(row.get("cancelDate"), default="")

    body = f"""    <button onclick="window.print()">Print</button>
    <h1>Case Cancellation Letter</h1>
    <div class="meta">
      <div><span class="label">Case ID:</span> {esc(row.get("caseId"))}</div>
      <div><span class="label">Type of Case:</span> {esc(row.get("typeOfCase"))}</div>
      <div><span class="label">Status:</span> {esc(row.get("status"))}</div>
      <div><span class="label">Cancelled On:</span> {esc(cancelled_on)}</div>
    </div>
    <div class="section">
      <p>Dear {esc(complainant.get("name"), "Sir/Madam")},</p>
      <p>
        This is to formally inform you that {barangay} has marked the above-mentioned case
        as <strong>Cancelled</strong>.
      </p>
      {reason_html}
      <p>
        Should you have any questions or wish to reopen or clarify this matter, please visit the
        Barangay Hall or contact the Barangay officials.
      </p>
    </div>
    <div class="section" style="margin-top:40px;">
      <p>Respectfully,</p>
      <p><strong>{barangay}</strong></p>
    </div>"""
    return _page(f"Cancellation Letter - {esc(row.get('caseId'))}", _SIMPLE_STYLE, body)


# =============================================================================
# Patawag form
# =============================================================================

def latest_patawag(row: dict) -> Optional[dict]:
    forms = row.get("patawagForms") or []
    return forms[-1] if forms else None


def render_patawag_print(row: dict, settings: Settings, now: Optional[datetime] = None) -> str:
    """Summons page for the most recent patawag entry (placeholders if none)."""
    patawag = latest_patawag(row) or {}
    complainant = row.get("complainant") or {}
    respondent = row.get("respondent") or {}
    schedule = format_long(patawag.get("scheduleDate"), default="To be determined")
    notes = patawag.get("notes")
    notes_html = f'<p><span class="label">Notes:</span> {esc(notes)}</p>' if notes else ""

    body = f"""    <button onclick="window.print()">Print</button>
    <h1>BARANGAY PATAWAG FORM</h1>
    <div class="meta">
      <div><span class="label">Case ID:</span> {esc(row.get("caseId"))}</div>
      <div><span class="label">Complainant:</span> {esc(complainant.get("name"))}</div>
      <div><span class="label">Respondent:</span> {esc(respondent.get("name"))}</div>
      <div><span class="label">Schedule:</span> {esc(schedule)}</div>
      <div><span class="label">Venue:</span> {esc(patawag.get("venue"), DEFAULT_VENUE)}</div>
    </div>
    <div class="section">
      <p>
        You are hereby requested to appear at the Barangay Hall of {esc(settings.barangay_name)} on the above
        schedule regarding the said case.
      </p>
      {notes_html}
    </div>
    <div class="section" style="margin-top:40px;">
      <p>Issued on: {esc(format_date(now or utc_now()))}</p>
      <p>Barangay Captain / Lupon Member</p>
    </div>"""
    return _page(f"Patawag Form - {esc(row.get('caseId'))}", _SIMPLE_STYLE, body)


# =============================================================================
# Full case report
# =============================================================================

def _form_item(label: str, value: str, note: str = "") -> str:
    note_html = f'\n        <div class="form-note">{note}</div>' if note else ""
    return f"""      <div class="form-item">
        <div class="form-label">{label}</div>
        <div class="form-value">{value}</div>{note_html}
      </div>"""


def _evidence_section(evidences: list) -> str:
    if not evidences:
        return ""
    rows = "\n".join(
        f"""          <tr>
            <td><strong>{idx}</strong></td>
            <td>{esc(ev.get("kind"), "Document")}</td>
            <td><a href="{esc(ev.get("url"))}" target="_blank">{esc(ev.get("filename"))}</a></td>
            <td>{esc(format_short(ev.get("uploadedAt")))}</td>
          </tr>"""
        for idx, ev in enumerate(evidences, start=1)
    )
    return f"""    <div class="section">
      <div class="section-title">IV. Evidence Files ({len(evidences)})</div>
      <table class="evidence-table">
        <thead><tr><th>#</th><th>Type</th><th>File Name</th><th>Uploaded</th></tr></thead>
        <tbody>
{rows}
        </tbody>
      </table>
    </div>"""


def _info_rows(pairs: list[tuple[str, str]]) -> str:
    return "\n".join(f"          <tr><td>{label}</td><td>{value}</td></tr>" for label, value in pairs)


def _hearings_section(hearings: list) -> str:
    if not hearings:
        return ""
    boxes = []
    for idx, hearing in enumerate(hearings, start=1):
        pairs = [
            ("Date &amp; Time:", f"<strong>{esc(format_long(hearing.get('dateTime')))}</strong>"),
            ("Venue:", esc(hearing.get("venue"), DEFAULT_VENUE)),
        ]
        if hearing.get("notes"):
            pairs.append(("Notes:", esc(hearing["notes"])))
        scheduled_by = (hearing.get("createdBy") or {}).get("name")
        if scheduled_by:
            pairs.append(("Scheduled By:", esc(scheduled_by)))
        boxes.append(f"""      <div class="hearing-box">
        <h4>Hearing #{idx}</h4>
        <table class="info-table">
{_info_rows(pairs)}
        </table>
      </div>""")
    return f"""    <div class="section">
      <div class="section-title">V. Scheduled Hearings ({len(hearings)})</div>
{chr(10).join(boxes)}
    </div>"""


def _patawag_section(forms: list) -> str:
    if not forms:
        return ""
    boxes = []
    for idx, form in enumerate(forms, start=1):
        pairs = [
            ("Schedule Date:", f"<strong>{esc(format_long(form.get('scheduleDate'), default='Not Scheduled'))}</strong>"),
            ("Venue:", esc(form.get("venue"), DEFAULT_VENUE)),
        ]
        if form.get("notes"):
            pairs.append(("Notes:", esc(form["notes"])))
        if form.get("createdAt"):
            pairs.append(("Form Created:", esc(format_long(form["createdAt"]))))
        created_by = (form.get("createdBy") or {}).get("name")
        if created_by:
            pairs.append(("Created By:", esc(created_by)))
        boxes.append(f"""      <div class="patawag-box">
        <h4>Patawag Form #{idx}</h4>
        <table class="info-table">
{_info_rows(pairs)}
        </table>
      </div>""")
    return f"""    <div class="section">
      <div class="section-title">VI. Patawag Forms ({len(forms)})</div>
{chr(10).join(boxes)}
    </div>"""


def _timeline_item(label: str, value: str) -> str:
    return f"""        <div class="timeline-item">
          <div class="timeline-label">{label}</div>
          <div class="timeline-value">{value}</div>
        </div>"""


def _timeline_section(row: dict) -> str:
    items = [_timeline_item("Case Created", esc(format_long(row.get("createdAt"))))]
    if row.get("ongoingSince"):
        items.append(_timeline_item("Status Changed to Ongoing", esc(format_long(row["ongoingSince"]))))
    if row.get("resolveDate"):
        items.append(_timeline_item("Case Resolved", esc(format_long(row["resolveDate"]))))
    if row.get("cancelDate"):
        value = esc(format_long(row["cancelDate"]))
        if row.get("cancellationReason"):
            value += f"<br><strong>Reason:</strong> {esc(row['cancellationReason'])}"
        items.append(_timeline_item("Case Cancelled", value))
    items.append(_timeline_item("Last Updated", esc(format_long(row.get("updatedAt")))))
    return f"""    <div class="section">
      <div class="section-title">VII. Case Timeline</div>
      <div class="timeline">
{chr(10).join(items)}
      </div>
    </div>"""


def _history_section(history: list) -> str:
    if not history:
        return ""
    items = []
    for entry in history:
        value = esc(format_long(entry.get("at")))
        by_name = (entry.get("by") or {}).get("name")
        if by_name:
            value += f" by <strong>{esc(by_name)}</strong>"
        if entry.get("note"):
            value += f"<br><em>Note: {esc(entry['note'])}</em>"
        items.append(_timeline_item(esc(entry.get("status"), "Status Change"), value))
    return f"""    <div class="section">
      <div class="section-title">VIII. Status History</div>
      <div class="timeline">
{chr(10).join(items)}
      </div>
    </div>"""


def render_full_report(row: dict, settings: Settings, now: Optional[datetime] = None) -> str:
    """
    Official case report. If the caller attached `over45Note` to the row,
    the 45-day notice box is included.
    """
    complainant = row.get("complainant") or {}
    respondent = row.get("respondent") or {}
    type_of_case = row.get("typeOfCase") or ""
    incident = row.get("dateOfIncident")
    incident_time = to_utc(incident).strftime("%I:%M %p") if incident else "Not Specified"
    control_no = str(row.get("_id") or "")[-8:].upper()

    parties = "\n".join([
        _form_item("4.1 Complainant(s) / Reklamante:", esc(complainant.get("name"), "Not Provided")),
        _form_item("4.2 Address / Tirahan:", esc(complainant.get("address"), "Not Provided")),
        _form_item("4.3 Contact Number:", esc(complainant.get("contact"), "Not Provided")),
        _form_item("4.4 Respondent(s) / Sinisingil:", esc(respondent.get("name"), "Not Provided")),
        _form_item("4.5 Address / Tirahan:", esc(respondent.get("address"), "Not Provided")),
        _form_item("4.6 Contact Number:", esc(respondent.get("contact"), "Not Provided")),
    ])

    priority_html = ""
    if row.get("priority"):
        priority_html = _form_item("9.) Priority Level / Antas ng Priyoridad:", f"<strong>{esc(row['priority'])}</strong>")

    over45_html = ""
    if row.get("over45Note"):
        over45_html = f"""    <div class="section">
      <div class="note-box">
        <strong>IMPORTANT NOTICE - 45-DAY PERIOD</strong>
        {esc(row["over45Note"])}
      </div>
    </div>"""

    barangay = esc(settings.barangay_name)
    body = f"""    <button class="print-btn" onclick="window.print()">Print Report</button>
    <div class="control-number">Control No: {esc(control_no)}</div>
    <div style="clear: both;"></div>

    <div class="letterhead">
      <div class="letterhead-title">Republic of the Philippines</div>
      <div class="letterhead-subtitle">{esc(settings.barangay_province)}</div>
      <div class="letterhead-address">{esc(settings.barangay_city)}</div>
      <div class="letterhead-subtitle">{barangay}</div>
      <div class="office-name">Office of the Punong Barangay</div>
    </div>

    <div class="document-title">Barangay Case Report</div>

    <div class="form-section">
{_form_item("1.) Barangay Case Number / Numero ng Kaso:", esc(row.get("caseId")), "(to be filled by Brgy. Staff)")}
{_form_item("2.) Date / Petsa ng pag File:", esc(format_date(row.get("createdAt"))))}
      <div class="form-item">
        <div class="form-label">3.) Name / Title ng Case / Kaso:</div>
        <div class="form-value">{esc(type_of_case, "Not Specified")}</div>
        <div>
          <strong>Nature ng Kaso:</strong>
          <label><input type="checkbox" {_checked(type_of_case in CRIMINAL_CASE_TYPES)} disabled> Criminal Case</label>
          <label><input type="checkbox" {_checked(type_of_case in CIVIL_CASE_TYPES)} disabled> Civil Case</label>
        </div>
        <div class="form-note">(Refer to Katarungang Pambarangay Handbook)</div>
      </div>
      <div class="form-item">
        <div class="form-label">4.) Who / Sino?</div>
{parties}
      </div>
{_form_item("5.) What / Ano?", esc(row.get("description"), "No description provided."))}
{_form_item("6.) Where / Saan?", esc(row.get("placeOfIncident"), "Not Specified"))}
{_form_item("7.) When / Kailan? Date / Petsa:", esc(format_date(incident)))}
{_form_item("Time / Oras:", esc(incident_time))}
{_form_item("8.) Case Status / Estado ng Kaso:", esc(row.get("status")))}
{priority_html}
    </div>

{_evidence_section(row.get("evidences") or [])}
{_hearings_section(row.get("hearings") or [])}
{_patawag_section(row.get("patawagForms") or [])}
{over45_html}
{_timeline_section(row)}
{_history_section(row.get("statusHistory") or [])}

    <div class="form-item">
      <div class="form-label">Barangay Case No. (BCN):</div>
      <div class="form-value">{esc(row.get("caseId"))}</div>
    </div>

    <div class="signature-section">
      <div class="signature-box"><strong>Assisted &amp; Received:</strong><br>Barangay Secretary</div>
      <div class="signature-box"><strong>Punong Barangay:</strong><br>Barangay Captain</div>
    </div>

    <p style="font-size: 9pt; color: #666; margin-top: 30px; text-align: center;">
      Report generated on {esc(format_long(now or utc_now()))} | This is an official document generated by the
      {barangay} Case Management System.
    </p>"""
    return _page(f"Official Case Report - {esc(row.get('caseId'))}", _REPORT_STYLE, body)
