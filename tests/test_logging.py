"""
Logging configuration tests.
"""

import json
import logging

import pytest

from barangay.core.logging_config import JSONFormatter, RequestIdFilter, request_id_var


def make_record(message="Case C-0001: Reported -> Ongoing by kapitan"):
    return logging.LogRecord("barangay.test", logging.INFO, __file__, 1, message, None, None)


class TestRequestIdFilter:

    def test_copies_current_request_id(self):
        token = request_id_var.set("req-42")
        try:
            record = make_record()
            assert RequestIdFilter().filter(record) is True
        finally:
            request_id_var.reset(token)
        assert record.request_id == "req-42"

    def test_outside_a_request(self):
        record = make_record()
        RequestIdFilter().filter(record)
        assert record.request_id is None


class TestJSONFormatter:

    def test_includes_request_id_when_set(self):
        record = make_record()
        record.request_id = "req-42"
        payload = json.loads(JSONFormatter().format(record))
        assert payload["request_id"] == "req-42"
        assert payload["level"] == "INFO"
        assert payload["ts"].endswith("Z")

    def test_omits_missing_request_id(self):
        record = make_record()
        record.request_id = None
        assert "request_id" not in json.loads(JSONFormatter().format(record))


@pytest.mark.anyio
async def test_route_logs_carry_request_id(admin_client, make_case, caplog):
    caplog.set_level(logging.INFO, logger="barangay.services.case_lifecycle")
    caplog.handler.addFilter(RequestIdFilter())
    case = make_case()

    response = await admin_client.post(
        f"/api/cases/{case['_id']}/status",
        json={"status": "Ongoing"},
        headers={"X-Request-Id": "req-status-1"},
    )

    assert response.status_code == 200
    transitions = [r for r in caplog.records if r.name == "barangay.services.case_lifecycle"]
    assert transitions
    assert all(r.request_id == "req-status-1" for r in transitions)
