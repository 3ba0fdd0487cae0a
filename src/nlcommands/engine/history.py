"""Recent-utterance history for one conversation."""

from __future__ import annotations

import json
import logging
import re
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path

LOGGER = logging.getLogger(__name__)

HISTORY_VIEW_COMMAND = "commandHistory.focus"
CLEAR_HISTORY_COMMAND = "commandHistory.clearHistory"
DEFAULT_HISTORY_LIMIT = 20

_PLEASE_PREFIX = re.compile(r"^\s*please\b[\s,:]*", re.IGNORECASE)


@dataclass(frozen=True, slots=True)
class HistoryEntry:
    label: str
    time: datetime
    parameters: str = ""


def strip_please_prefix(text: str) -> str:
    return _PLEASE_PREFIX.sub("", text)


class HistoryStore:
    """Newest-first session entries plus a de-duplicated recall list.

    Entries are only ever prepended or cleared. The recall list mirrors the
    persisted shape: plain strings, newest first, capped at ``limit``, with a
    re-added string moved to the front instead of duplicated.
    """

    def __init__(self, *, limit: int = DEFAULT_HISTORY_LIMIT, path: str | Path | None = None) -> None:
        self.limit = limit if limit > 0 else DEFAULT_HISTORY_LIMIT
        self.path = Path(path) if path is not None else None
        self._entries: list[HistoryEntry] = []
        self._recent: list[str] = self._load(self.path) if self.path is not None else []

    @property
    def entries(self) -> list[HistoryEntry]:
        return list(self._entries)

    @property
    def recent(self) -> list[str]:
        return list(self._recent)

    def record(self, utterance: str, *, parameters: str = "") -> HistoryEntry | None:
        label = strip_please_prefix(utterance.strip())
        if not label:
            return None
        entry = HistoryEntry(label=label, time=datetime.now(timezone.utc), parameters=parameters)
        self._entries.insert(0, entry)
        del self._entries[self.limit :]
        self._recent = [label, *(item for item in self._recent if item != label)][: self.limit]
        self._save()
        return entry

    def clear(self) -> None:
        self._entries.clear()
        self._recent.clear()
        self._save()

    def filter(self, text: str) -> list[HistoryEntry]:
        needle = text.strip().lower()
        if not needle:
            return self.entries
        return [
            entry
            for entry in self._entries
            if needle in entry.label.lower() or needle in entry.parameters.lower()
        ]

    def _load(self, path: Path) -> list[str]:
        if not path.is_file():
            return []
        try:
            with path.open("r", encoding="utf-8") as fh:
                parsed = json.load(fh)
        except (OSError, json.JSONDecodeError) as exc:
            LOGGER.warning("history_load_failed", extra={"path": str(path), "error": str(exc)})
            return []
        if not isinstance(parsed, list):
            return []
        recent: list[str] = []
        for item in parsed:
            if isinstance(item, str) and item.strip() and item.strip() not in recent:
                recent.append(item.strip())
        return recent[: self.limit]

    def _save(self) -> None:
        if self.path is None:
            return
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            with self.path.open("w", encoding="utf-8") as fh:
                json.dump(self._recent, fh, indent=2, ensure_ascii=False)
        except OSError as exc:
            LOGGER.warning("history_save_failed", extra={"path": str(self.path), "error": str(exc)})
