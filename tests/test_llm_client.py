import io
import json
from urllib.error import HTTPError, URLError

import pytest

from nlcommands.engine.models import Alternative, RunHostCommand, RunShell
from nlcommands.llm.client import LLMClient
from nlcommands.llm.extract import (
    JSONExtractionError,
    extract_first_json_object,
    find_first_object_span,
)


class FakeResponse:
    def __init__(self, body: bytes) -> None:
        self.body = body

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        return None

    def read(self):
        return self.body


def _envelope(text: str) -> bytes:
    return json.dumps(
        {"output": [{"content": [{"type": "output_text", "text": text}]}]}
    ).encode("utf-8")


def test_payload_carries_model_and_prompt() -> None:
    client = LLMClient(api_key="k", model="gpt-4o-mini")

    payload = client._build_payload("open the explorer")

    assert payload["model"] == "gpt-4o-mini"
    assert payload["input"].endswith('User request: "open the explorer"')
    assert "isCommandHistorySidebar" in payload["input"]
    assert "workbench.view.explorer" in payload["input"]


def test_extract_output_text_prefers_top_level_field() -> None:
    assert LLMClient._extract_output_text({"output_text": "{}", "output": []}) == "{}"


def test_extract_output_text_ignores_non_text_content() -> None:
    payload = {
        "output": [
            {"content": [{"type": "reasoning", "text": "ignored"}]},
            {"content": [{"type": "output_text", "text": '{"intent": "x"}'}]},
        ]
    }

    assert LLMClient._extract_output_text(payload) == '{"intent": "x"}'


def test_parse_response_normalizes_fields() -> None:
    client = LLMClient(api_key="k")
    text = json.dumps(
        {
            "intent": "Open explorer",
            "command": "workbench.view.explorer",
            "terminal": "",
            "search": None,
            "confidence": 1.7,
            "alternatives": [
                {"command": None, "terminal": "ls", "description": "List files"},
                "not-an-object",
            ],
            "isCommandHistorySidebar": "yes",
        }
    )

    proposal = client.parse_response({"output_text": f"Sure! {text} Hope that helps."})

    assert proposal.error is None
    assert proposal.intent == "Open explorer"
    assert proposal.action == RunHostCommand("workbench.view.explorer")
    assert proposal.search_term is None
    assert proposal.confidence == 1.0
    assert proposal.alternatives == [
        Alternative(command=None, terminal_command="ls", description="List files")
    ]
    assert proposal.routes_to_history_sidebar is False


def test_host_command_wins_over_terminal() -> None:
    proposal = LLMClient(api_key="k").parse_response(
        {"output_text": '{"command": "workbench.view.scm", "terminal": "git status"}'}
    )

    assert proposal.action == RunHostCommand("workbench.view.scm")


def test_terminal_only_proposal() -> None:
    proposal = LLMClient(api_key="k").parse_response(
        {"output_text": '{"intent": "tests", "terminal": "npm test", "confidence": 0.8}'}
    )

    assert proposal.action == RunShell("npm test")
    assert proposal.terminal_command == "npm test"
    assert proposal.confidence == 0.8


def test_missing_fields_take_defaults() -> None:
    proposal = LLMClient(api_key="k").parse_response({"output_text": "{}"})

    assert proposal.action is None
    assert proposal.confidence == 0.0
    assert proposal.alternatives == []
    assert proposal.routes_to_history_sidebar is False
    assert proposal.error is None


def test_resolve_without_api_key_is_transport_failure(monkeypatch) -> None:
    def fail_urlopen(*_args, **_kwargs):
        raise AssertionError("no request expected")

    monkeypatch.setattr("nlcommands.llm.client.request.urlopen", fail_urlopen)

    proposal = LLMClient(api_key=None).resolve("open explorer")

    assert proposal.error_kind == "transport"
    assert "API key" in (proposal.error or "")


def test_resolve_posts_once_and_parses(monkeypatch) -> None:
    calls = []

    def fake_urlopen(req, timeout):
        calls.append((req, timeout))
        return FakeResponse(
            _envelope('{"intent": "explorer", "command": "workbench.view.explorer", "confidence": 0.95}')
        )

    monkeypatch.setattr("nlcommands.llm.client.request.urlopen", fake_urlopen)
    client = LLMClient(api_key="secret", api_url="https://example.com/v1/responses", timeout=5.0)

    proposal = client.resolve("show the explorer")

    assert len(calls) == 1
    req, timeout = calls[0]
    assert timeout == 5.0
    assert req.full_url == "https://example.com/v1/responses"
    assert req.get_header("Authorization") == "Bearer secret"
    body = json.loads(req.data.decode("utf-8"))
    assert body["model"] == "gpt-4o"
    assert 'User request: "show the explorer"' in body["input"]
    assert proposal.action == RunHostCommand("workbench.view.explorer")
    assert proposal.confidence == 0.95


def test_resolve_http_error_includes_response_excerpt(monkeypatch) -> None:
    class FakeHTTPError(HTTPError):
        def __init__(self):
            super().__init__(
                url="https://example.com",
                code=401,
                msg="Unauthorized",
                hdrs=None,
                fp=io.BytesIO(b'{"error":{"message":"bad key"}}'),
            )

    def fake_urlopen(*_args, **_kwargs):
        raise FakeHTTPError()

    monkeypatch.setattr("nlcommands.llm.client.request.urlopen", fake_urlopen)

    proposal = LLMClient(api_key="k").resolve("test")

    assert proposal.error_kind == "transport"
    assert "HTTP 401" in (proposal.error or "")
    assert "bad key" in (proposal.error or "")
    assert proposal.action is None


def test_resolve_http_error_without_body(monkeypatch) -> None:
    def fake_urlopen(*_args, **_kwargs):
        raise HTTPError(
            url="https://example.com",
            code=503,
            msg="Service Unavailable",
            hdrs=None,
            fp=None,
        )

    monkeypatch.setattr("nlcommands.llm.client.request.urlopen", fake_urlopen)

    proposal = LLMClient(api_key="k").resolve("test")

    assert proposal.error_kind == "transport"
    assert "HTTP 503" in (proposal.error or "")


@pytest.mark.parametrize(
    ("raised", "expected"),
    [
        (URLError("connection refused"), "transport error"),
        (TimeoutError(), "timed out"),
    ],
)
def test_resolve_network_failures_are_transport_errors(monkeypatch, raised, expected) -> None:
    def fake_urlopen(*_args, **_kwargs):
        raise raised

    monkeypatch.setattr("nlcommands.llm.client.request.urlopen", fake_urlopen)

    proposal = LLMClient(api_key="k").resolve("test")

    assert proposal.error_kind == "transport"
    assert expected in (proposal.error or "")


def test_resolve_invalid_envelope_is_transport_error(monkeypatch) -> None:
    monkeypatch.setattr(
        "nlcommands.llm.client.request.urlopen", lambda *_a, **_k: FakeResponse(b"not-json")
    )

    proposal = LLMClient(api_key="k").resolve("test")

    assert proposal.error_kind == "transport"


def test_resolve_reply_without_json_is_parse_error(monkeypatch) -> None:
    monkeypatch.setattr(
        "nlcommands.llm.client.request.urlopen",
        lambda *_a, **_k: FakeResponse(_envelope("I am not sure what you mean.")),
    )

    proposal = LLMClient(api_key="k").resolve("test")

    assert proposal.error_kind == "parse"
    assert proposal.confidence == 0
    assert proposal.action is None
    assert proposal.raw_response is not None


def test_find_first_object_span_skips_braces_in_strings() -> None:
    text = 'prefix {"intent": "use {braces}", "nested": {"a": "\\"}"}} trailing {"second": 1}'

    span = find_first_object_span(text)

    assert span == '{"intent": "use {braces}", "nested": {"a": "\\"}"}}'
    assert json.loads(span)["nested"] == {"a": '"}'}


def test_find_first_object_span_unbalanced() -> None:
    assert find_first_object_span('{"intent": "x"') is None
    assert find_first_object_span("no json here") is None


def test_extract_first_json_object_errors() -> None:
    with pytest.raises(JSONExtractionError):
        extract_first_json_object("{not json}")
    with pytest.raises(JSONExtractionError):
        extract_first_json_object("")
