"""Model client that turns one utterance into an ``ActionProposal``."""

from __future__ import annotations

import json
import logging
from urllib import request
from urllib.error import HTTPError, URLError

from nlcommands.engine.models import ActionProposal, Alternative, RunHostCommand, RunShell, clamp_unit
from nlcommands.llm.extract import JSONExtractionError, extract_first_json_object

DEFAULT_API_URL = "https://api.openai.com/v1/responses"
DEFAULT_MODEL = "gpt-4o"

VIEW_COMMANDS = (
    ("Explorer", "workbench.view.explorer"),
    ("Extensions", "workbench.view.extensions"),
    ("Source Control", "workbench.view.scm"),
    ("Debug", "workbench.view.debug"),
    ("Run", "workbench.view.run"),
    ("Testing", "workbench.view.testing"),
    ("GitHub Pull Requests", "github.pullRequests.explorer"),
    ("Remote Explorer", "workbench.view.remote"),
)

SYSTEM_PROMPT_PARTS = [
    "You are an assistant that maps natural language requests to editor commands.",
    (
        "If the user request is best handled by running a terminal command,"
        " put that command in the terminal field."
    ),
    "Respond with a JSON object in the following format:",
    "{",
    '  "intent": "short description of the user\'s intent",',
    '  "command": "the most likely editor command id (or null if not applicable)",',
    '  "terminal": "the terminal command to run, or null if not applicable",',
    '  "search": "the search term if the intent is to search the workspace, or null",',
    '  "confidence": 0-1,',
    '  "alternatives": [',
    '    {"command": "alternative command id or null", "terminal":'
    ' "alternative terminal command or null", "description": "when to use"}',
    "  ],",
    '  "isCommandHistorySidebar": true if the request is semantically asking to open'
    " the command history sidebar, false otherwise",
    "}",
    "If the user request is to search the workspace, always set the search property to the search term.",
    (
        "If the user asks to open, show, or see any of the following, map to the"
        " corresponding command:"
    ),
    *(f"- {label}: {command_id}" for label, command_id in VIEW_COMMANDS),
    (
        "If the user's request is semantically asking to open the command history"
        " sidebar (even if not using those exact words), set isCommandHistorySidebar to true."
    ),
    "For terminal commands:",
    (
        '- If the user wants to list only directories/folders (not files), use:'
        ' "list directories recursively"'
    ),
    '- If the user wants to list both files and directories, use: "ls" or "dir"',
    "Respond with only the JSON object and nothing else.",
]
SYSTEM_PROMPT = "\n".join(SYSTEM_PROMPT_PARTS)

LOGGER = logging.getLogger(__name__)


class LLMClient:
    """Small HTTP client for intent-resolution model calls.

    Every call is exactly one round trip. Failures never raise: they come back
    as an empty proposal tagged with ``error`` and ``error_kind``.
    """

    def __init__(
        self,
        *,
        api_key: str | None,
        model: str = DEFAULT_MODEL,
        api_url: str = DEFAULT_API_URL,
        timeout: float = 60.0,
        system_prompt: str = SYSTEM_PROMPT,
    ) -> None:
        self.api_key = api_key
        self.model = model or DEFAULT_MODEL
        self.api_url = api_url
        self.timeout = timeout
        self.system_prompt = system_prompt

    def resolve(self, utterance: str) -> ActionProposal:
        if not self.api_key:
            LOGGER.error("llm_missing_api_key", extra={"model": self.model})
            return ActionProposal.failure(
                "OpenAI API key not found. Set NLC_OPENAI_API_KEY or OPENAI_API_KEY.",
                kind="transport",
            )

        payload = self._build_payload(utterance)
        body = json.dumps(payload).encode("utf-8")
        headers = {
            "Content-Type": "application/json",
            "Authorization": f"Bearer {self.api_key}",
        }

        LOGGER.debug(
            "llm_request_prepared",
            extra={
                "api_url": self.api_url,
                "model": self.model,
                "payload_bytes": len(body),
            },
        )

        req = request.Request(self.api_url, data=body, headers=headers, method="POST")
        try:
            with request.urlopen(req, timeout=self.timeout) as resp:  # noqa: S310
                raw_response = json.loads(resp.read().decode("utf-8"))
        except HTTPError as exc:
            body_excerpt = self._read_error_body_excerpt(exc)
            LOGGER.error(
                "llm_request_http_error",
                extra={
                    "api_url": self.api_url,
                    "model": self.model,
                    "http_status": exc.code,
                    "reason": exc.reason,
                    "response_excerpt": body_excerpt,
                },
            )
            details = f"Model request failed with HTTP {exc.code}: {exc.reason}"
            if body_excerpt:
                details = f"{details}. Response body: {body_excerpt}"
            return ActionProposal.failure(details, kind="transport")
        except URLError as exc:
            LOGGER.error(
                "llm_request_transport_error",
                extra={"api_url": self.api_url, "model": self.model, "reason": str(exc.reason)},
            )
            return ActionProposal.failure(
                f"Model request transport error: {exc.reason}", kind="transport"
            )
        except TimeoutError:
            LOGGER.error(
                "llm_request_timeout",
                extra={"api_url": self.api_url, "model": self.model, "timeout_seconds": self.timeout},
            )
            return ActionProposal.failure(
                f"Model request timed out after {self.timeout:.1f}s", kind="transport"
            )
        except (UnicodeDecodeError, json.JSONDecodeError) as exc:
            LOGGER.error(
                "llm_response_envelope_error",
                extra={"api_url": self.api_url, "model": self.model, "error": str(exc)},
            )
            return ActionProposal.failure(f"Model response envelope error: {exc}", kind="transport")

        return self.parse_response(raw_response)

    def parse_response(self, raw_response: object) -> ActionProposal:
        """Normalize a Responses API envelope into a proposal."""
        text = self._extract_output_text(raw_response)
        try:
            parsed = extract_first_json_object(text)
        except JSONExtractionError as exc:
            LOGGER.warning(
                "llm_response_parse_error",
                extra={"model": self.model, "error": str(exc), "response_excerpt": text[:200]},
            )
            return ActionProposal.failure(str(exc), kind="parse", raw_response=raw_response)
        return self._to_proposal(parsed, raw_response=raw_response)

    def _build_payload(self, utterance: str) -> dict[str, object]:
        return {"model": self.model, "input": self._build_prompt(utterance)}

    def _build_prompt(self, utterance: str) -> str:
        return f'{self.system_prompt}\nUser request: "{utterance}"'

    @staticmethod
    def _coerce_object_dict(value: object) -> dict[str, object] | None:
        if not isinstance(value, dict):
            return None
        return {str(key): raw_value for key, raw_value in value.items()}

    @classmethod
    def _extract_output_text(cls, payload: object) -> str:
        if isinstance(payload, str):
            return payload
        envelope = cls._coerce_object_dict(payload)
        if envelope is None:
            return ""

        output_text = envelope.get("output_text")
        if isinstance(output_text, str) and output_text:
            return output_text

        output_items = envelope.get("output")
        if not isinstance(output_items, list):
            return ""
        chunks: list[str] = []
        for item in output_items:
            item_object = cls._coerce_object_dict(item)
            if item_object is None:
                continue
            content_items = item_object.get("content")
            if not isinstance(content_items, list):
                continue
            for content in content_items:
                content_object = cls._coerce_object_dict(content)
                if content_object is None:
                    continue
                content_text = content_object.get("text")
                if content_object.get("type") == "output_text" and isinstance(content_text, str):
                    chunks.append(content_text)
        return "".join(chunks)

    @staticmethod
    def _read_error_body_excerpt(exc: HTTPError, *, max_chars: int = 500) -> str | None:
        if exc.fp is None:
            return None
        try:
            raw = exc.read()
        except OSError:
            return None

        if not raw:
            return None

        excerpt = raw.decode("utf-8", errors="replace").replace("\n", " ").strip()
        if len(excerpt) > max_chars:
            return f"{excerpt[:max_chars]}..."
        return excerpt

    @classmethod
    def _to_proposal(
        cls, parsed: dict[str, object], *, raw_response: object = None
    ) -> ActionProposal:
        intent = parsed.get("intent")
        command = _optional_text(parsed.get("command"))
        terminal = _optional_text(parsed.get("terminal"))
        history_flag = parsed.get("isCommandHistorySidebar", False)

        action: RunHostCommand | RunShell | None = None
        if command is not None:
            action = RunHostCommand(command)
        elif terminal is not None:
            action = RunShell(terminal)

        return ActionProposal(
            intent=intent.strip() if isinstance(intent, str) else "",
            action=action,
            search_term=_optional_text(parsed.get("search")),
            confidence=clamp_unit(parsed.get("confidence")),
            alternatives=cls._to_alternatives(parsed.get("alternatives")),
            routes_to_history_sidebar=history_flag if isinstance(history_flag, bool) else False,
            raw_response=raw_response,
        )

    @classmethod
    def _to_alternatives(cls, value: object) -> list[Alternative]:
        if not isinstance(value, list):
            return []
        alternatives: list[Alternative] = []
        for item in value:
            item_object = cls._coerce_object_dict(item)
            if item_object is None:
                continue
            alternatives.append(
                Alternative(
                    command=_optional_text(item_object.get("command")),
                    terminal_command=_optional_text(item_object.get("terminal")),
                    description=_optional_text(item_object.get("description")),
                )
            )
        return alternatives


def _optional_text(value: object) -> str | None:
    if isinstance(value, str) and value.strip():
        return value.strip()
    return None
