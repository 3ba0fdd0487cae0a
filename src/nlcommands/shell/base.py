"""Base shell adapter primitives with destructive-command guardrails."""

from __future__ import annotations

import abc
import locale
import logging
import re
import subprocess
import time
from collections.abc import Callable
from dataclasses import dataclass

LOGGER = logging.getLogger(__name__)

PolicyHook = Callable[[str, str], bool]

DESTRUCTIVE_BLOCK_REASON = "destructive command requires explicit confirmation"

_DESTRUCTIVE_PATTERNS = [
    re.compile(pattern, re.IGNORECASE)
    for pattern in (
        r"\brm\s+-(?:[a-z]*r[a-z]*f|[a-z]*f[a-z]*r)[a-z]*\b",
        r"\bdel\s+(/[fsq]\s+)+",
        r"\bformat\s+[a-z]:",
        r"\bremove-item\b.*\s-(?:recurse|r|rf|fr)\b",
        r"\bdd\s+if=",
        r"\bmkfs(\.\w+)?\b",
        r"\bgit\s+(reset\s+--hard|clean\s+-[a-z]*f)",
        r"\bdrop\s+(table|database)\b",
    )
]

_SECRET_PATTERNS = [
    re.compile(pattern, re.IGNORECASE)
    for pattern in (
        r"(--?(?:password|token|secret|api[-_]?key)\s+)([^\s]+)",
        r"((?:password|token|secret|api[-_]?key)\s*=\s*)([^\s]+)",
    )
]


@dataclass(slots=True)
class CommandResult:
    """Result of sending one line to a shell."""

    command: str
    shell: str
    returncode: int
    stdout: str
    stderr: str
    timed_out: bool = False
    duration_seconds: float = 0.0
    executed: bool = True
    blocked: bool = False
    block_reason: str | None = None

    @property
    def succeeded(self) -> bool:
        return self.executed and not self.blocked and self.returncode == 0


class ShellAdapter(abc.ABC):
    """Abstract adapter for shell-specific command execution."""

    def __init__(
        self,
        *,
        allowlist_hook: PolicyHook | None = None,
        denylist_hook: PolicyHook | None = None,
        confirmation_mode: bool = True,
    ) -> None:
        self.allowlist_hook = allowlist_hook
        self.denylist_hook = denylist_hook
        self.confirmation_mode = confirmation_mode

    @property
    @abc.abstractmethod
    def name(self) -> str:
        """Friendly shell adapter name, also used as the shell kind."""

    @abc.abstractmethod
    def build_args(self, command: str) -> list[str]:
        """Return the argv used to run ``command`` in this shell."""

    def execute(
        self,
        command: str,
        *,
        cwd: str | None = None,
        timeout: float | None = None,
        dry_run: bool = False,
        confirmed: bool = False,
    ) -> CommandResult:
        self.log_request(command, timeout=timeout, dry_run=dry_run)
        blocked_reason = self.enforce_guardrails(command, dry_run=dry_run, confirmed=confirmed)
        if blocked_reason:
            return self._finish(
                CommandResult(
                    command=command,
                    shell=self.name,
                    returncode=126,
                    stdout="",
                    stderr=blocked_reason,
                    executed=False,
                    blocked=True,
                    block_reason=blocked_reason,
                )
            )

        if dry_run:
            return self._finish(
                CommandResult(
                    command=command,
                    shell=self.name,
                    returncode=0,
                    stdout="dry-run: command not executed",
                    stderr="",
                    executed=False,
                )
            )

        started = self.monotonic_now()
        try:
            process = subprocess.run(
                self.build_args(command),
                capture_output=True,
                cwd=cwd,
                timeout=timeout,
                check=False,
                text=False,
            )
            result = CommandResult(
                command=command,
                shell=self.name,
                returncode=process.returncode,
                stdout=normalize_output(process.stdout),
                stderr=normalize_output(process.stderr),
                duration_seconds=self.monotonic_now() - started,
            )
        except subprocess.TimeoutExpired as exc:
            result = CommandResult(
                command=command,
                shell=self.name,
                returncode=124,
                stdout=normalize_output(exc.stdout),
                stderr=normalize_output(exc.stderr),
                timed_out=True,
                duration_seconds=self.monotonic_now() - started,
            )
        except FileNotFoundError:
            result = CommandResult(
                command=command,
                shell=self.name,
                returncode=127,
                stdout="",
                stderr=f"{self.name} executable not found: {self.build_args(command)[0]}",
                executed=False,
                duration_seconds=self.monotonic_now() - started,
            )
        return self._finish(result)

    def enforce_guardrails(
        self,
        command: str,
        *,
        dry_run: bool,
        confirmed: bool,
    ) -> str | None:
        """Run policy checks and return a block reason when rejected."""
        if self.denylist_hook and self.denylist_hook(command, self.name):
            return "command blocked by denylist policy"
        if self.allowlist_hook and not self.allowlist_hook(command, self.name):
            return "command rejected by allowlist policy"

        if self.confirmation_mode and self.is_destructive_command(command) and not (
            confirmed or dry_run
        ):
            return DESTRUCTIVE_BLOCK_REASON
        return None

    def is_destructive_command(self, command: str) -> bool:
        """Return true when a command matches destructive command heuristics."""
        return any(pattern.search(command) for pattern in _DESTRUCTIVE_PATTERNS)

    def log_request(self, command: str, *, timeout: float | None, dry_run: bool) -> None:
        LOGGER.info(
            "command_request",
            extra={
                "shell": self.name,
                "command": sanitize_command(command),
                "timeout": timeout,
                "dry_run": dry_run,
            },
        )

    def log_result(self, result: CommandResult) -> None:
        LOGGER.info(
            "command_result",
            extra={
                "shell": result.shell,
                "returncode": result.returncode,
                "timed_out": result.timed_out,
                "duration_seconds": round(result.duration_seconds, 4),
                "executed": result.executed,
                "blocked": result.blocked,
                "stdout_length": len(result.stdout),
                "stderr_length": len(result.stderr),
            },
        )

    def _finish(self, result: CommandResult) -> CommandResult:
        self.log_result(result)
        return result

    @staticmethod
    def monotonic_now() -> float:
        return time.monotonic()


def sanitize_command(command: str) -> str:
    """Mask secret-looking arguments before a command is logged."""
    sanitized = command
    for pattern in _SECRET_PATTERNS:
        sanitized = pattern.sub(r"\1***", sanitized)
    return sanitized


def normalize_output(payload: bytes | str | None) -> str:
    if payload is None:
        return ""
    if isinstance(payload, str):
        return payload

    for encoding in ("utf-8", "utf-8-sig", "utf-16", locale.getpreferredencoding(False), "cp1252"):
        try:
            return payload.decode(encoding)
        except (LookupError, UnicodeDecodeError):
            continue
    return payload.decode("utf-8", errors="replace")
