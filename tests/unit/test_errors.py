import requests

from deepcrawl.errors import (
    FaultKind,
    OracleAPIError,
    QuotaExceeded,
    TransientFault,
    classify_fault,
    fault_status,
)


class _CodedError(Exception):
    def __init__(self, message, **attrs):
        super().__init__(message)
        for name, value in attrs.items():
            setattr(self, name, value)


def test_numeric_429_is_quota():
    assert classify_fault(OracleAPIError("slow down", status_code=429)) is FaultKind.QUOTA
    assert classify_fault(_CodedError("nope", code=429)) is FaultKind.QUOTA
    assert classify_fault(_CodedError("nope", status="429")) is FaultKind.QUOTA


def test_resource_exhausted_status_is_quota():
    assert classify_fault(_CodedError("denied", status="RESOURCE_EXHAUSTED")) is FaultKind.QUOTA


def test_quota_message_is_quota():
    assert classify_fault(RuntimeError("You exceeded your current Quota")) is FaultKind.QUOTA
    assert classify_fault(RuntimeError("HTTP 429 Too Many Requests")) is FaultKind.QUOTA


def test_http_error_response_status_is_inspected():
    response = requests.Response()
    response.status_code = 429
    error = requests.HTTPError("rate limited", response=response)
    assert classify_fault(error) is FaultKind.QUOTA


def test_other_errors_are_transient():
    assert classify_fault(OracleAPIError("boom", status_code=500, status="INTERNAL")) is FaultKind.TRANSIENT
    assert classify_fault(requests.ConnectionError("connection reset")) is FaultKind.TRANSIENT
    assert classify_fault(ValueError("bad")) is FaultKind.TRANSIENT


def test_fault_status_prefers_numeric_codes():
    assert fault_status(OracleAPIError("missing", status_code=404, status="NOT_FOUND")) == "404"
    assert fault_status(ValueError("no code")) == "500"


def test_fault_statuses():
    assert QuotaExceeded("all gone").status == "429"
    assert TransientFault("broken", status="403").status == "403"
