"""Data models shared by the phrase matcher, resolver and decision engine."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Literal, Union

ErrorKind = Literal["transport", "parse"]
PendingKind = Literal["command", "terminal", "interrupt"]
DecisionReason = Literal[
    "auto_accept",
    "confirmed",
    "alternative_selected",
    "history_override",
    "interrupt_override",
]


@dataclass(frozen=True, slots=True)
class RunHostCommand:
    """Invoke a host (editor) command by identifier."""

    command_id: str
    argument: str | None = None

    def describe(self) -> str:
        return f'command "{self.command_id}"'


@dataclass(frozen=True, slots=True)
class RunShell:
    """Send a command line to the terminal."""

    line: str

    def describe(self) -> str:
        return f'terminal command "{self.line}"'


@dataclass(frozen=True, slots=True)
class Search:
    term: str

    def describe(self) -> str:
        return f'workspace search for "{self.term}"'


@dataclass(frozen=True, slots=True)
class OpenMenu:
    """Present one of the simulated menus as a picker."""

    menu: str

    def describe(self) -> str:
        return f"{self.menu} menu"


@dataclass(frozen=True, slots=True)
class ShowExamples:
    def describe(self) -> str:
        return "example commands"


@dataclass(frozen=True, slots=True)
class TryHostCommands:
    """Try host commands in order until one of them succeeds."""

    command_ids: tuple[str, ...]
    failure_message: str

    def describe(self) -> str:
        return " / ".join(self.command_ids)


@dataclass(frozen=True, slots=True)
class InterruptTerminal:
    def describe(self) -> str:
        return "interrupt (Ctrl+C) the running terminal process"


Action = Union[
    RunHostCommand,
    RunShell,
    Search,
    OpenMenu,
    ShowExamples,
    TryHostCommands,
    InterruptTerminal,
]


@dataclass(frozen=True, slots=True)
class Alternative:
    """One model-suggested alternative, in relevance order."""

    command: str | None = None
    terminal_command: str | None = None
    description: str | None = None

    @property
    def action(self) -> RunHostCommand | RunShell | None:
        if self.command:
            return RunHostCommand(self.command)
        if self.terminal_command:
            return RunShell(self.terminal_command)
        return None

    def label(self, index: int) -> str:
        parts = [f"{index}."]
        if self.command:
            parts.append(f"Command: {self.command}")
        if self.terminal_command:
            parts.append(f"Terminal: {self.terminal_command}")
        if self.description:
            parts.append(f"- {self.description}")
        return " ".join(parts)


@dataclass(slots=True)
class ActionProposal:
    """Normalized interpretation of one utterance."""

    intent: str = ""
    action: RunHostCommand | RunShell | None = None
    search_term: str | None = None
    confidence: float = 0.0
    alternatives: list[Alternative] = field(default_factory=list)
    routes_to_history_sidebar: bool = False
    error: str | None = None
    error_kind: ErrorKind | None = None
    raw_response: object | None = None

    @classmethod
    def failure(
        cls,
        error: str,
        *,
        kind: ErrorKind,
        raw_response: object | None = None,
    ) -> ActionProposal:
        return cls(error=error, error_kind=kind, raw_response=raw_response)

    @property
    def command(self) -> str | None:
        return self.action.command_id if isinstance(self.action, RunHostCommand) else None

    @property
    def terminal_command(self) -> str | None:
        return self.action.line if isinstance(self.action, RunShell) else None

    @property
    def has_primary_action(self) -> bool:
        return self.action is not None

    @property
    def is_actionable(self) -> bool:
        return self.has_primary_action or bool(self.alternatives)


@dataclass(frozen=True, slots=True)
class PendingConfirmation:
    """The single action awaiting a yes/no answer in a conversation."""

    kind: PendingKind
    value: str
    reply_context: str = ""
    argument: str | None = None
    confidence: float = 0.0

    @property
    def action(self) -> RunHostCommand | RunShell | InterruptTerminal:
        if self.kind == "command":
            return RunHostCommand(self.value, argument=self.argument)
        if self.kind == "interrupt":
            return InterruptTerminal()
        return RunShell(self.value)


@dataclass(frozen=True, slots=True)
class ConversationState:
    pending: PendingConfirmation | None = None


@dataclass(frozen=True, slots=True)
class ConfidenceThresholds:
    auto_accept: float = 0.9
    confirm: float = 0.7

    def __post_init__(self) -> None:
        object.__setattr__(self, "auto_accept", clamp_unit(self.auto_accept, default=0.9))
        object.__setattr__(self, "confirm", clamp_unit(self.confirm, default=0.7))

    @property
    def always_confirm(self) -> bool:
        return self.auto_accept >= 1


@dataclass(frozen=True, slots=True)
class Execute:
    action: Action
    reason: DecisionReason
    confidence: float = 1.0
    confirmed_by_user: bool = False
    message: str = ""


@dataclass(frozen=True, slots=True)
class Confirm:
    pending: PendingConfirmation
    prompt: str
    reprompt: bool = False


@dataclass(frozen=True, slots=True)
class Clarify:
    message: str
    error: str | None = None
    action: Action | None = None


@dataclass(frozen=True, slots=True)
class ShowAlternatives:
    alternatives: tuple[Alternative, ...]
    prompt: str


@dataclass(frozen=True, slots=True)
class Cancelled:
    message: str


Decision = Union[Execute, Confirm, Clarify, ShowAlternatives, Cancelled]


def clamp_unit(value: object, *, default: float = 0.0) -> float:
    """Clamp a numeric value into [0, 1]; non-numbers become ``default``."""
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return default
    number = float(value)
    if number != number:
        return default
    return min(1.0, max(0.0, number))
