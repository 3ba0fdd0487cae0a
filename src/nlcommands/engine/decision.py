"""Confidence-gated decision policy for model proposals."""

from __future__ import annotations

import logging
import re
from dataclasses import replace

from nlcommands.engine.history import HISTORY_VIEW_COMMAND
from nlcommands.engine.models import (
    Action,
    ActionProposal,
    Alternative,
    Cancelled,
    Clarify,
    ConfidenceThresholds,
    Confirm,
    ConversationState,
    Decision,
    Execute,
    InterruptTerminal,
    PendingConfirmation,
    RunHostCommand,
    RunShell,
    ShowAlternatives,
)
from nlcommands.workspace import FixedProbe, ProjectContextProbe, TaskKind, command_for_task

LOGGER = logging.getLogger(__name__)

YES_ANSWERS = frozenset({"yes", "y"})
NO_ANSWERS = frozenset({"no", "n"})

CLARIFY_MESSAGE = (
    "I need a bit more detail or clarification before I can run a command."
    " Please rephrase or provide more information."
)

_HISTORY_PATTERN = re.compile(
    r"\b(?:command history|history sidebar|nlc history|natural language command history"
    r"|command log|command timeline)\b|^commandhistory\.",
    re.IGNORECASE,
)
_INTERRUPT_PATTERN = re.compile(
    r"^(?:\^c|ctrl\+c|cancel|stop|interrupt|terminate|kill|shut ?down|abort|break)"
    r"(?: running)?(?: the)?(?: command| process| task| job| terminal)?$",
    re.IGNORECASE,
)
# Checked in order; build-and-run phrases contain the plain build/run words.
_TASK_PATTERNS: tuple[tuple[TaskKind, re.Pattern[str]], ...] = (
    (
        "build_and_run",
        re.compile(
            r"\b(?:(?:build|compile)(?: and)? run|run(?: and)? build|build then run"
            r"|build & run|run & build|(?:run|start) (?:the )?app(?:lication)?)\b",
            re.IGNORECASE,
        ),
    ),
    (
        "test",
        re.compile(
            r"^(?:npm |dotnet )?test$"
            r"|\b(?:run|execute|start)(?: all| the| my)*(?: unit| integration)? tests?\b",
            re.IGNORECASE,
        ),
    ),
    (
        "build",
        re.compile(
            r"^(?:build|compile)(?: the)?(?: app| application| project| solution)?$"
            r"|\b(?:run|start)(?: the)? build(?: task)?\b"
            r"|\b(?:build|compile) (?:the |my )?(?:app|application|project|solution)\b",
            re.IGNORECASE,
        ),
    ),
)


class DecisionEngine:
    """Decide whether to execute, confirm, clarify or offer alternatives.

    The engine holds no conversation state of its own: every call takes a
    ``ConversationState`` and returns the next one alongside the decision.
    """

    def __init__(
        self,
        thresholds: ConfidenceThresholds | None = None,
        *,
        probe: ProjectContextProbe | None = None,
    ) -> None:
        self.thresholds = thresholds or ConfidenceThresholds()
        self.probe = probe or FixedProbe()

    def answer(
        self, utterance: str, state: ConversationState
    ) -> tuple[Decision, ConversationState]:
        """Interpret ``utterance`` as the answer to the pending confirmation."""
        pending = state.pending
        if pending is None:
            msg = "No confirmation is pending for this conversation"
            raise ValueError(msg)

        normalized = utterance.strip().lower()
        if normalized in YES_ANSWERS:
            action = pending.action
            decision: Decision = Execute(
                action=action,
                reason="confirmed",
                confidence=pending.confidence,
                confirmed_by_user=True,
                message=_join(pending.reply_context, f"Running {action.describe()}."),
            )
            next_state = replace(state, pending=None)
        elif normalized in NO_ANSWERS:
            decision = Cancelled(
                message=_join(pending.reply_context, f"Cancelled {pending.action.describe()}.")
            )
            next_state = replace(state, pending=None)
        else:
            decision = Confirm(
                pending=pending,
                prompt=f"Please answer yes or no. {_confirm_prompt(pending)}",
                reprompt=True,
            )
            next_state = state

        self._log(decision)
        return decision, next_state

    def decide(
        self, proposal: ActionProposal, state: ConversationState
    ) -> tuple[Decision, ConversationState]:
        decision, next_state = self._decide(proposal, state)
        self._log(decision, proposal=proposal)
        return decision, next_state

    def choose_alternative(self, alternative: Alternative) -> Decision:
        """Execute an alternative the user picked; the pick is the confirmation.

        The picked alternative still goes through the interrupt and project
        command substitutions, so "run tests" becomes the project's test line.
        """
        picked = ActionProposal(action=alternative.action)
        if picked.action is None:
            return Clarify(message=CLARIFY_MESSAGE)
        action: Action
        if _is_interrupt(picked.terminal_command):
            action = InterruptTerminal()
        else:
            action = self._substitute_project_command(picked) or picked.action
        decision = Execute(
            action=action,
            reason="alternative_selected",
            confirmed_by_user=True,
            message=f"Running {action.describe()}.",
        )
        self._log(decision)
        return decision

    def _decide(
        self, proposal: ActionProposal, state: ConversationState
    ) -> tuple[Decision, ConversationState]:
        if state.pending is not None:
            return (
                Confirm(
                    pending=state.pending,
                    prompt=f"Please answer the pending question first. {_confirm_prompt(state.pending)}",
                    reprompt=True,
                ),
                state,
            )

        if self._routes_to_history(proposal):
            return (
                Execute(
                    action=RunHostCommand(HISTORY_VIEW_COMMAND),
                    reason="history_override",
                    confidence=proposal.confidence,
                    message="Opening the command history.",
                ),
                state,
            )

        if _is_interrupt(proposal.terminal_command):
            if self.thresholds.always_confirm:
                pending = _pending_for(InterruptTerminal(), proposal)
                return (
                    Confirm(pending=pending, prompt=_confirm_prompt(pending)),
                    replace(state, pending=pending),
                )
            return (
                Execute(
                    action=InterruptTerminal(),
                    reason="interrupt_override",
                    confidence=proposal.confidence,
                    message="Interrupting the running terminal process.",
                ),
                state,
            )

        action = self._substitute_project_command(proposal)
        if action is not None:
            return self._apply_confidence_policy(proposal, action, state)

        if not proposal.is_actionable:
            return Clarify(message=CLARIFY_MESSAGE, error=proposal.error), state

        alternatives = tuple(proposal.alternatives)
        lines = [alternative.label(index) for index, alternative in enumerate(alternatives, 1)]
        return (
            ShowAlternatives(
                alternatives=alternatives,
                prompt="\n".join(["Did you mean one of these?", *lines]),
            ),
            state,
        )

    def _apply_confidence_policy(
        self,
        proposal: ActionProposal,
        action: RunHostCommand | RunShell,
        state: ConversationState,
    ) -> tuple[Decision, ConversationState]:
        confidence = proposal.confidence
        thresholds = self.thresholds
        if not thresholds.always_confirm and confidence >= thresholds.auto_accept:
            return (
                Execute(
                    action=action,
                    reason="auto_accept",
                    confidence=confidence,
                    message=(
                        f"Auto-executing {action.describe()} (confidence {confidence:.1%}"
                        f" >= {thresholds.auto_accept:.0%})."
                    ),
                ),
                state,
            )

        if thresholds.always_confirm or confidence >= thresholds.confirm:
            pending = _pending_for(action, proposal)
            return (
                Confirm(pending=pending, prompt=_confirm_prompt(pending)),
                replace(state, pending=pending),
            )

        return (
            Clarify(
                message=(
                    f"I'm only {confidence:.0%} confident about {action.describe()}. "
                    f"{CLARIFY_MESSAGE}"
                ),
                action=action,
            ),
            state,
        )

    def _substitute_project_command(
        self, proposal: ActionProposal
    ) -> RunHostCommand | RunShell | None:
        action = proposal.action
        if isinstance(action, RunHostCommand) and proposal.search_term and not action.argument:
            action = RunHostCommand(action.command_id, argument=proposal.search_term)

        task = _match_task(proposal.intent, proposal.terminal_command, proposal.command)
        if task is None:
            return action
        replacement = command_for_task(self.probe.detect(), task)
        if replacement is None:
            return action
        LOGGER.debug(
            "project_command_substituted",
            extra={"task": task, "replacement": replacement, "original": _describe(action)},
        )
        return RunShell(replacement)

    @staticmethod
    def _routes_to_history(proposal: ActionProposal) -> bool:
        if proposal.routes_to_history_sidebar:
            return True
        return any(
            text and _HISTORY_PATTERN.search(text)
            for text in (proposal.intent, proposal.command)
        )

    def _log(self, decision: Decision, *, proposal: ActionProposal | None = None) -> None:
        LOGGER.info(
            "decision_made",
            extra={
                "decision": type(decision).__name__,
                "reason": getattr(decision, "reason", None),
                "confidence": proposal.confidence if proposal is not None else None,
                "auto_accept": self.thresholds.auto_accept,
                "confirm": self.thresholds.confirm,
            },
        )


def _match_task(*texts: str | None) -> TaskKind | None:
    candidates = [text.strip() for text in texts if text and text.strip()]
    for task, pattern in _TASK_PATTERNS:
        if any(pattern.search(text) for text in candidates):
            return task
    return None


def _is_interrupt(terminal_command: str | None) -> bool:
    return bool(terminal_command and _INTERRUPT_PATTERN.match(terminal_command.strip()))


def _pending_for(
    action: RunHostCommand | RunShell | InterruptTerminal, proposal: ActionProposal
) -> PendingConfirmation:
    context = _reply_context(proposal)
    if isinstance(action, RunHostCommand):
        return PendingConfirmation(
            kind="command",
            value=action.command_id,
            argument=action.argument,
            reply_context=context,
            confidence=proposal.confidence,
        )
    if isinstance(action, InterruptTerminal):
        return PendingConfirmation(
            kind="interrupt",
            value=proposal.terminal_command or "",
            reply_context=context,
            confidence=proposal.confidence,
        )
    return PendingConfirmation(
        kind="terminal",
        value=action.line,
        reply_context=context,
        confidence=proposal.confidence,
    )


def _confirm_prompt(pending: PendingConfirmation) -> str:
    if pending.kind == "interrupt":
        return "Interrupt the running terminal process? (yes/no)"
    return f"Run {pending.action.describe()}? (yes/no)"


def _reply_context(proposal: ActionProposal) -> str:
    summary = f"(confidence {proposal.confidence:.1%})"
    if proposal.intent:
        return f"{proposal.intent} {summary}"
    return summary


def _describe(action: RunHostCommand | RunShell | None) -> str | None:
    return action.describe() if action is not None else None


def _join(prefix: str, message: str) -> str:
    return f"{prefix}: {message}" if prefix else message
