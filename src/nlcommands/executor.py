"""Action executors: the host surface the engine drives."""

from __future__ import annotations

import logging
import os
from collections.abc import Callable, Sequence
from dataclasses import dataclass
from pathlib import Path
from typing import Protocol

from nlcommands.shell import ShellAdapter, adapt_for_shell
from nlcommands.shell.base import DESTRUCTIVE_BLOCK_REASON, sanitize_command

LOGGER = logging.getLogger(__name__)

HostCommandHandler = Callable[[str | None], str | None]
InputFunc = Callable[[str], str]
OutputFunc = Callable[[str], None]

FIND_IN_FILES_COMMAND = "workbench.action.findInFiles"

_SKIPPED_DIRECTORIES = {".git", "node_modules", "__pycache__", ".venv", "venv", "bin", "obj"}
_MAX_SEARCH_FILE_BYTES = 1_000_000


@dataclass(slots=True)
class ExecutionOutcome:
    ok: bool
    detail: str = ""


class ActionExecutor(Protocol):
    def run_host_command(self, command_id: str, argument: str | None = None) -> ExecutionOutcome: ...

    def run_terminal(self, line: str, *, confirmed: bool = False) -> ExecutionOutcome: ...

    def interrupt_terminal(self) -> ExecutionOutcome: ...

    def search_workspace(self, term: str) -> ExecutionOutcome: ...

    def pick(self, placeholder: str, labels: Sequence[str]) -> int | None: ...


class ConsoleExecutor:
    """Executor backed by a shell adapter and the local filesystem.

    Host commands are looked up in a handler registry. A handler receives the
    optional argument and returns a detail string, or ``None`` when it could
    not do anything.
    """

    def __init__(
        self,
        shell: ShellAdapter,
        *,
        working_directory: str | None = None,
        timeout: float | None = None,
        max_search_results: int = 50,
        input_func: InputFunc = input,
        output_func: OutputFunc = print,
    ) -> None:
        self.shell = shell
        self.working_directory = working_directory
        self.timeout = timeout
        self.max_search_results = max_search_results
        self.input_func = input_func
        self.output_func = output_func
        self._handlers: dict[str, HostCommandHandler] = {}
        self.register(FIND_IN_FILES_COMMAND, self._find_in_files)

    @property
    def shell_name(self) -> str:
        return self.shell.name

    def register(self, command_id: str, handler: HostCommandHandler) -> None:
        self._handlers[command_id] = handler

    def run_host_command(self, command_id: str, argument: str | None = None) -> ExecutionOutcome:
        handler = self._handlers.get(command_id)
        if handler is None:
            LOGGER.info("host_command_unknown", extra={"command_id": command_id})
            return ExecutionOutcome(ok=False, detail=f"No handler registered for {command_id}.")
        detail = handler(argument)
        if detail is None:
            return ExecutionOutcome(ok=False)
        return ExecutionOutcome(ok=True, detail=detail)

    def run_terminal(self, line: str, *, confirmed: bool = False) -> ExecutionOutcome:
        # Checked on the line as written; adapted PowerShell forms can hide "rm -rf".
        if (
            self.shell.confirmation_mode
            and not confirmed
            and self.shell.is_destructive_command(line)
        ):
            LOGGER.warning(
                "terminal_line_blocked",
                extra={"shell": self.shell.name, "command": sanitize_command(line)},
            )
            return ExecutionOutcome(ok=False, detail=DESTRUCTIVE_BLOCK_REASON)
        adapted = adapt_for_shell(line, self.shell.name)
        if adapted != line:
            LOGGER.debug(
                "terminal_line_adapted",
                extra={"shell": self.shell.name, "original": line, "adapted": adapted},
            )
        result = self.shell.execute(
            adapted,
            cwd=self.working_directory,
            timeout=self.timeout,
            confirmed=confirmed,
        )
        if result.blocked:
            return ExecutionOutcome(ok=False, detail=result.block_reason or result.stderr)
        output = "\n".join(part for part in (result.stdout.rstrip(), result.stderr.rstrip()) if part)
        if result.timed_out:
            output = f"{output}\ncommand timed out".lstrip()
        return ExecutionOutcome(ok=result.succeeded, detail=output)

    def interrupt_terminal(self) -> ExecutionOutcome:
        # Terminal lines run to completion before the next utterance is read.
        LOGGER.info("terminal_interrupt_unavailable", extra={"shell": self.shell.name})
        return ExecutionOutcome(ok=False, detail="No running terminal process to interrupt.")

    def search_workspace(self, term: str) -> ExecutionOutcome:
        root = Path(self.working_directory) if self.working_directory else Path.cwd()
        matches = self._scan(root, term)
        if not matches:
            return ExecutionOutcome(ok=True, detail=f'No matches for "{term}".')
        header = f'{len(matches)} match(es) for "{term}":'
        return ExecutionOutcome(ok=True, detail="\n".join([header, *matches]))

    def pick(self, placeholder: str, labels: Sequence[str]) -> int | None:
        if not labels:
            return None
        self.output_func(placeholder)
        for index, label in enumerate(labels, start=1):
            self.output_func(f"  {index}. {label}")
        try:
            choice = self.input_func("Choice (blank to cancel): ").strip()
        except EOFError:
            return None
        if not choice.isdigit():
            return None
        selected = int(choice)
        if not 1 <= selected <= len(labels):
            return None
        return selected - 1

    def _find_in_files(self, argument: str | None) -> str | None:
        if not argument:
            return None
        return self.search_workspace(argument).detail

    def _scan(self, root: Path, term: str) -> list[str]:
        needle = term.lower()
        matches: list[str] = []
        for current, directories, files in os.walk(root):
            directories[:] = sorted(name for name in directories if name not in _SKIPPED_DIRECTORIES)
            for filename in sorted(files):
                path = Path(current) / filename
                try:
                    if path.stat().st_size > _MAX_SEARCH_FILE_BYTES:
                        continue
                    with path.open("r", encoding="utf-8", errors="strict") as fh:
                        lines = fh.readlines()
                except (OSError, UnicodeDecodeError):
                    continue
                for number, text in enumerate(lines, start=1):
                    if needle in text.lower():
                        matches.append(f"{path.relative_to(root)}:{number}: {text.strip()}")
                        if len(matches) >= self.max_search_results:
                            return matches
        return matches
