"""Per-conversation orchestration of matcher, resolver, engine and executor."""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Literal, Protocol

from nlcommands.engine.decision import DecisionEngine
from nlcommands.engine.history import (
    CLEAR_HISTORY_COMMAND,
    HISTORY_VIEW_COMMAND,
    HistoryEntry,
    HistoryStore,
)
from nlcommands.engine.menus import EXAMPLE_UTTERANCES, MENU_ACTIONS, menu_notice, menu_placeholder
from nlcommands.engine.models import (
    Action,
    ActionProposal,
    Cancelled,
    Confirm,
    ConversationState,
    Decision,
    Execute,
    InterruptTerminal,
    OpenMenu,
    RunHostCommand,
    RunShell,
    Search,
    ShowAlternatives,
    ShowExamples,
    TryHostCommands,
)
from nlcommands.engine.phrases import PhraseMatch, PhraseMatcher
from nlcommands.executor import ActionExecutor, ExecutionOutcome

LOGGER = logging.getLogger(__name__)

ReplyLevel = Literal["info", "warning", "error"]

_RAW_RESPONSE_MAX_CHARS = 2000


class IntentResolver(Protocol):
    def resolve(self, utterance: str) -> ActionProposal: ...


@dataclass(slots=True)
class Reply:
    """What the conversation says back after one utterance."""

    lines: list[str] = field(default_factory=list)
    level: ReplyLevel = "info"
    decision: Decision | None = None

    @property
    def text(self) -> str:
        return "\n".join(self.lines)


class Conversation:
    """Drive one conversation from raw text to an executed action.

    Each utterance goes through, in order: the pending yes/no answer, the
    history record, the phrase intercept rules, the model, the decision engine
    and the executor. Clarifications get a second chance through the phrase
    fallback rules before they are returned.
    """

    def __init__(
        self,
        *,
        resolver: IntentResolver,
        engine: DecisionEngine,
        executor: ActionExecutor,
        matcher: PhraseMatcher | None = None,
        history: HistoryStore | None = None,
        log_dir: str | Path | None = None,
        debug_show_raw_response: bool = False,
    ) -> None:
        self.resolver = resolver
        self.engine = engine
        self.executor = executor
        self.matcher = matcher or PhraseMatcher()
        self.history = history or HistoryStore()
        self.log_dir = Path(log_dir) if log_dir is not None else None
        self.debug_show_raw_response = debug_show_raw_response
        self.state = ConversationState()
        self._current_entry: HistoryEntry | None = None

    @property
    def awaiting_confirmation(self) -> bool:
        return self.state.pending is not None

    def handle(self, utterance: str) -> Reply:
        text = utterance.strip()
        if not text:
            return Reply(["No command entered."], level="warning")

        if self.state.pending is not None:
            decision, self.state = self.engine.answer(text, self.state)
            reply = self._apply(decision, utterance=text)
            self._append_log(text, reply=reply, source="confirmation")
            return reply

        self._current_entry = self.history.record(text)

        match = self.matcher.intercept(text)
        if match is not None:
            reply = self._perform_phrase(match)
            self._append_log(text, reply=reply, source=f"phrase:{match.rule}")
            return reply

        proposal = self.resolver.resolve(text)
        if proposal.error_kind == "transport":
            reply = Reply([f"Error: {proposal.error}"], level="error")
            self._append_log(text, reply=reply, source="model", proposal=proposal)
            return reply

        decision, self.state = self.engine.decide(proposal, self.state)
        reply = self._apply(decision, utterance=text)
        if self.debug_show_raw_response and proposal.raw_response is not None:
            reply.lines.append(f"Raw model response: {_render_raw(proposal.raw_response)}")
        self._append_log(text, reply=reply, source="model", proposal=proposal)
        return reply

    def _apply(self, decision: Decision, *, utterance: str) -> Reply:
        if isinstance(decision, Execute):
            reply = self._perform(decision.action, confirmed=decision.confirmed_by_user)
            if decision.message:
                reply.lines.insert(0, decision.message)
            reply.decision = decision
            return reply

        if isinstance(decision, Confirm):
            return Reply([decision.prompt], decision=decision)

        if isinstance(decision, Cancelled):
            return Reply([decision.message], decision=decision)

        if isinstance(decision, ShowAlternatives):
            labels = [
                alternative.label(index)
                for index, alternative in enumerate(decision.alternatives, start=1)
            ]
            selected = self.executor.pick("Did you mean one of these?", labels)
            if selected is None:
                return Reply(["No alternative selected."], decision=decision)
            return self._apply(
                self.engine.choose_alternative(decision.alternatives[selected]),
                utterance=utterance,
            )

        # A low-confidence candidate or a confirm-everything policy never falls
        # through to an unconfirmed phrase action.
        fallback = None
        if decision.action is None and not self.engine.thresholds.always_confirm:
            fallback = self.matcher.fallback(utterance)
        if fallback is not None:
            LOGGER.info("phrase_fallback_used", extra={"rule": fallback.rule})
            reply = self._perform_phrase(fallback)
            reply.lines.insert(0, f"Falling back to {fallback.action.describe()}.")
            reply.decision = decision
            return reply

        lines = [decision.message]
        if decision.error:
            lines.append(f"Details: {decision.error}")
        return Reply(lines, decision=decision)

    def _perform_phrase(self, match: PhraseMatch) -> Reply:
        return self._perform(match.action, confirmed=False)

    def _perform(self, action: Action, *, confirmed: bool) -> Reply:
        try:
            if isinstance(action, RunHostCommand):
                return self._run_host_command(action)
            if isinstance(action, RunShell):
                outcome = self.executor.run_terminal(action.line, confirmed=confirmed)
                return _outcome_reply(action, outcome)
            if isinstance(action, Search):
                return _outcome_reply(action, self.executor.search_workspace(action.term))
            if isinstance(action, InterruptTerminal):
                return _outcome_reply(action, self.executor.interrupt_terminal())
            if isinstance(action, OpenMenu):
                return self._open_menu(action.menu)
            if isinstance(action, ShowExamples):
                return Reply(["Try saying:", *(f"- {example}" for example in EXAMPLE_UTTERANCES)])
            if isinstance(action, TryHostCommands):
                return self._try_host_commands(action)
        except Exception as exc:
            LOGGER.exception(
                "action_execution_failed",
                extra={"action": action.describe(), "error": str(exc)},
            )
            return Reply([f"Error running {action.describe()}: {exc}"], level="error")
        msg = f"Unsupported action: {action!r}"
        raise TypeError(msg)

    def _run_host_command(self, action: RunHostCommand) -> Reply:
        if action.command_id == HISTORY_VIEW_COMMAND:
            return self._show_history(action.argument)
        if action.command_id == CLEAR_HISTORY_COMMAND:
            self.history.clear()
            return Reply(["Command history cleared."])
        outcome = self.executor.run_host_command(action.command_id, action.argument)
        return _outcome_reply(action, outcome)

    def _show_history(self, term: str | None = None) -> Reply:
        if term:
            entries = [
                entry
                for entry in self.history.filter(term)
                if entry is not self._current_entry
            ]
            if not entries:
                return Reply([f'No command history matches "{term}".'])
            lines = [f'Command history matching "{term}":']
        else:
            entries = self.history.entries
            if not entries:
                return Reply(["Command history is empty."])
            lines = ["Command history:"]
        for entry in entries:
            suffix = f" [{entry.parameters}]" if entry.parameters else ""
            lines.append(f"- {entry.label}{suffix} ({entry.time.strftime('%H:%M:%S')})")
        return Reply(lines)

    def _open_menu(self, menu: str) -> Reply:
        actions = MENU_ACTIONS.get(menu)
        if not actions:
            return Reply([f"No actions are known for the {menu} menu."], level="warning")
        notice = menu_notice(menu)
        lines = [notice] if notice else []
        selected = self.executor.pick(menu_placeholder(menu), [action.label for action in actions])
        if selected is None:
            return Reply([*lines, "No action selected."])
        chosen = actions[selected]
        reply = self._run_host_command(RunHostCommand(chosen.command))
        reply.lines[:0] = [*lines, f"Running {chosen.label}."]
        return reply

    def _try_host_commands(self, action: TryHostCommands) -> Reply:
        for command_id in action.command_ids:
            outcome = self.executor.run_host_command(command_id)
            if outcome.ok:
                LOGGER.debug("host_command_chain_succeeded", extra={"command_id": command_id})
                return _outcome_reply(RunHostCommand(command_id), outcome)
        return Reply([action.failure_message], level="warning")

    def _append_log(
        self,
        utterance: str,
        *,
        reply: Reply,
        source: str,
        proposal: ActionProposal | None = None,
    ) -> None:
        if self.log_dir is None:
            return
        decision = reply.decision
        entry = {
            "log_version": 1,
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "utterance": utterance,
            "source": source,
            "model": getattr(self.resolver, "model", None),
            "shell": getattr(self.executor, "shell_name", None),
            "decision": type(decision).__name__ if decision is not None else None,
            "reason": getattr(decision, "reason", None),
            "action": _describe_decision(decision),
            "confidence": proposal.confidence if proposal is not None else None,
            "error_kind": proposal.error_kind if proposal is not None else None,
            "level": reply.level,
            "reply": reply.text,
        }
        try:
            self.log_dir.mkdir(parents=True, exist_ok=True)
            day_file = self.log_dir / f"session-{datetime.now(timezone.utc).date().isoformat()}.log"
            with day_file.open("a", encoding="utf-8") as handle:
                handle.write(json.dumps(entry) + "\n")
        except OSError as exc:
            LOGGER.warning(
                "session_log_write_failed",
                extra={"log_dir": str(self.log_dir), "error": str(exc)},
            )


def _outcome_reply(action: Action, outcome: ExecutionOutcome) -> Reply:
    if outcome.ok:
        return Reply([outcome.detail] if outcome.detail else [])
    lines = [f"Could not run {action.describe()}: not found or failed."]
    if outcome.detail:
        lines.append(outcome.detail)
    return Reply(lines, level="warning")


def _describe_decision(decision: Decision | None) -> str | None:
    if isinstance(decision, Execute):
        return decision.action.describe()
    if isinstance(decision, Confirm):
        return decision.pending.action.describe()
    if isinstance(decision, ShowAlternatives):
        return "; ".join(
            alternative.label(index) for index, alternative in enumerate(decision.alternatives, 1)
        )
    return None


def _render_raw(raw_response: object) -> str:
    try:
        rendered = json.dumps(raw_response, ensure_ascii=False)
    except (TypeError, ValueError):
        rendered = repr(raw_response)
    if len(rendered) > _RAW_RESPONSE_MAX_CHARS:
        return f"{rendered[:_RAW_RESPONSE_MAX_CHARS]}..."
    return rendered
