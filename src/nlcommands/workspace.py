"""Project-kind detection for context-appropriate terminal commands."""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Literal, Protocol

LOGGER = logging.getLogger(__name__)

ProjectKind = Literal["node", "dotnet", "unknown"]
TaskKind = Literal["test", "build", "build_and_run"]

_SKIPPED_DIRECTORIES = {"node_modules", ".git"}
_DOTNET_SUFFIXES = (".csproj", ".sln")


class ProjectContextProbe(Protocol):
    def detect(self) -> ProjectKind: ...


@dataclass(frozen=True, slots=True)
class ProjectCommands:
    test: str
    build: str
    build_and_run: str | None


PROJECT_COMMANDS: dict[ProjectKind, ProjectCommands] = {
    "node": ProjectCommands(
        test="npm test",
        build="npm run build",
        build_and_run="npm run build && npm start",
    ),
    "dotnet": ProjectCommands(
        test="dotnet test",
        build="dotnet build",
        build_and_run="dotnet build && dotnet run",
    ),
    "unknown": ProjectCommands(test="npm test", build="npm run build", build_and_run=None),
}


def command_for_task(kind: ProjectKind, task: TaskKind) -> str | None:
    """Return the terminal line for ``task`` in a ``kind`` project, if any."""
    commands = PROJECT_COMMANDS.get(kind, PROJECT_COMMANDS["unknown"])
    if task == "test":
        return commands.test
    if task == "build":
        return commands.build
    return commands.build_and_run


class WorkspaceProbe:
    """Inspect a workspace folder and report a coarse project kind."""

    def __init__(self, folder: str | Path | None) -> None:
        self.folder = Path(folder) if folder is not None else None

    def detect(self) -> ProjectKind:
        if self.folder is None or not self.folder.is_dir():
            return "unknown"
        if (self.folder / "package.json").is_file():
            return "node"
        if self._has_dotnet_files(self.folder):
            return "dotnet"
        return "unknown"

    def _has_dotnet_files(self, folder: Path) -> bool:
        try:
            for _root, directories, files in os.walk(folder):
                directories[:] = [name for name in directories if name not in _SKIPPED_DIRECTORIES]
                if any(name.endswith(_DOTNET_SUFFIXES) for name in files):
                    return True
        except OSError as exc:
            LOGGER.warning(
                "workspace_probe_failed",
                extra={"folder": str(folder), "error": str(exc)},
            )
        return False


class FixedProbe:
    """Probe that always reports the same kind."""

    def __init__(self, kind: ProjectKind = "unknown") -> None:
        self.kind = kind

    def detect(self) -> ProjectKind:
        return self.kind
