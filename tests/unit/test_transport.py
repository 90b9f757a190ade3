import json

import pytest
import requests

from deepcrawl.errors import FaultKind, OracleAPIError, classify_fault
from deepcrawl.oracle import GeminiTransport


def _response(status_code, payload):
    resp = requests.Response()
    resp.status_code = status_code
    resp._content = json.dumps(payload).encode("utf-8") if not isinstance(payload, bytes) else payload
    return resp


class _FakeSession:
    def __init__(self, resp):
        self.resp = resp
        self.requests = []

    def post(self, url, json=None, headers=None, timeout=None):
        self.requests.append({"url": url, "json": json, "headers": headers, "timeout": timeout})
        return self.resp


def test_generate_posts_prompt_and_joins_text_parts():
    payload = {"candidates": [{"content": {"parts": [{"text": "[{\"url\": "}, {"text": "\"https://x.test/\"}]"}]}}]}
    session = _FakeSession(_response(200, payload))
    transport = GeminiTransport(model="gemini-test", timeout=12.0, session=session)

    text = transport.generate("secret-key", "hello", json_mode=True)

    assert text == '[{"url": "https://x.test/"}]'
    sent = session.requests[0]
    assert sent["url"].endswith("/models/gemini-test:generateContent")
    assert sent["headers"] == {"x-goog-api-key": "secret-key"}
    assert sent["timeout"] == 12.0
    assert sent["json"]["contents"][0]["parts"][0]["text"] == "hello"
    assert sent["json"]["generationConfig"] == {"responseMimeType": "application/json"}


def test_generate_without_json_mode_omits_generation_config():
    session = _FakeSession(_response(200, {"candidates": []}))

    assert GeminiTransport(session=session).generate("k", "summarize") == ""
    assert "generationConfig" not in session.requests[0]["json"]


def test_quota_error_body_is_classified_as_quota():
    body = {"error": {"code": 429, "message": "Resource has been exhausted", "status": "RESOURCE_EXHAUSTED"}}
    transport = GeminiTransport(session=_FakeSession(_response(429, body)))

    with pytest.raises(OracleAPIError) as excinfo:
        transport.generate("k", "prompt")

    error = excinfo.value
    assert error.status_code == 429
    assert error.status == "RESOURCE_EXHAUSTED"
    assert classify_fault(error) is FaultKind.QUOTA


def test_non_json_error_body_is_transient():
    transport = GeminiTransport(session=_FakeSession(_response(503, b"upstream unavailable")))

    with pytest.raises(OracleAPIError) as excinfo:
        transport.generate("k", "prompt")

    assert excinfo.value.status_code == 503
    assert "upstream unavailable" in str(excinfo.value)
    assert classify_fault(excinfo.value) is FaultKind.TRANSIENT


def test_non_json_success_body_reads_as_empty_reply():
    transport = GeminiTransport(session=_FakeSession(_response(200, b"<html>proxy login page</html>")))

    assert transport.generate("k", "prompt", json_mode=True) == ""


@pytest.mark.parametrize("payload", [
    [1, 2],
    {"candidates": "none"},
    {"candidates": [{"content": "text"}]},
    {"candidates": [{"content": {"parts": [{"text": 7}, "loose"]}}]},
])
def test_off_shape_success_body_reads_as_empty_reply(payload):
    transport = GeminiTransport(session=_FakeSession(_response(200, payload)))

    assert transport.generate("k", "prompt") == ""
