"""Rewrite Unix-idiom terminal lines for PowerShell-family shells."""

from __future__ import annotations

import re
from collections.abc import Callable
from dataclasses import dataclass

POWERSHELL_SHELL_KINDS = {"powershell", "pwsh", "powershell.exe", "pwsh.exe"}

_WHITESPACE = re.compile(r"\s+")


@dataclass(frozen=True, slots=True)
class _Rewrite:
    name: str
    pattern: re.Pattern[str]
    replace: Callable[[re.Match[str]], str]


def _fixed(value: str) -> Callable[[re.Match[str]], str]:
    return lambda _match: value


# Order matters: the directory-only forms of ``ls`` must be tried before the
# generic ``ls`` rule, which would otherwise swallow them.
_REWRITES: tuple[_Rewrite, ...] = (
    _Rewrite(
        "parent_directory",
        re.compile(
            r"^(go up( one)? level|go to parent( directory)?|up one level|parent directory)$",
            re.IGNORECASE,
        ),
        _fixed("cd .."),
    ),
    _Rewrite(
        "list_directories_only",
        re.compile(r"^ls\s+-d(\s+\.?\*/?)?$", re.IGNORECASE),
        _fixed("Get-ChildItem -Directory"),
    ),
    _Rewrite(
        "list_directories_phrase",
        re.compile(
            r"^(list|show)\s+(all\s+)?(directories|folders|dirs)(\s+recursively)?$",
            re.IGNORECASE,
        ),
        _fixed("Get-ChildItem -Directory -Recurse"),
    ),
    _Rewrite(
        "list",
        re.compile(r"^ls(\s+[^|]*)?$", re.IGNORECASE),
        _fixed("dir"),
    ),
    _Rewrite(
        "cat",
        re.compile(r"^cat\s+(.+)$", re.IGNORECASE),
        lambda match: f"Get-Content {match.group(1)}",
    ),
    _Rewrite(
        "touch",
        re.compile(r"^touch\s+(.+)$", re.IGNORECASE),
        lambda match: f"New-Item {match.group(1)} -ItemType File",
    ),
    _Rewrite(
        "rm",
        re.compile(r"^rm\s+(.+)$", re.IGNORECASE),
        lambda match: f"Remove-Item {match.group(1)}",
    ),
    _Rewrite(
        "mv",
        re.compile(r"^mv\s+(\S+)\s+(.+)$", re.IGNORECASE),
        lambda match: f"Move-Item {match.group(1)} {match.group(2)}",
    ),
    _Rewrite(
        "cp",
        re.compile(r"^cp\s+(\S+)\s+(.+)$", re.IGNORECASE),
        lambda match: f"Copy-Item {match.group(1)} {match.group(2)}",
    ),
    _Rewrite(
        "grep",
        re.compile(r"^grep\s+(\S+)\s+(.+)$", re.IGNORECASE),
        lambda match: f"Select-String -Pattern {match.group(1)} -Path {match.group(2)}",
    ),
)


def is_powershell(shell_kind: str | None) -> bool:
    if not shell_kind:
        return False
    return shell_kind.strip().lower() in POWERSHELL_SHELL_KINDS


def adapt_for_shell(command: str, shell_kind: str | None) -> str:
    """Return ``command`` rewritten for ``shell_kind``.

    Only PowerShell-family shells are rewritten; every other shell kind gets
    the input back untouched. Unmatched PowerShell input is returned trimmed
    with internal whitespace collapsed.
    """
    if not is_powershell(shell_kind):
        return command

    normalized = _WHITESPACE.sub(" ", command.strip())
    for rewrite in _REWRITES:
        match = rewrite.pattern.match(normalized)
        if match:
            return rewrite.replace(match)
    return normalized
