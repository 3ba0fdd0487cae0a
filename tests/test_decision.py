from __future__ import annotations

import pytest

from nlcommands.engine.decision import DecisionEngine
from nlcommands.engine.history import HISTORY_VIEW_COMMAND
from nlcommands.engine.models import (
    ActionProposal,
    Alternative,
    Cancelled,
    Clarify,
    ConfidenceThresholds,
    Confirm,
    ConversationState,
    Execute,
    InterruptTerminal,
    PendingConfirmation,
    RunHostCommand,
    RunShell,
    ShowAlternatives,
)
from nlcommands.llm.client import LLMClient
from nlcommands.workspace import FixedProbe


def _proposal(**kwargs: object) -> ActionProposal:
    return ActionProposal(**kwargs)  # type: ignore[arg-type]


def test_high_confidence_host_command_executes() -> None:
    engine = DecisionEngine()
    proposal = _proposal(action=RunHostCommand("workbench.view.explorer"), confidence=0.95)

    decision, state = engine.decide(proposal, ConversationState())

    assert isinstance(decision, Execute)
    assert decision.action == RunHostCommand("workbench.view.explorer")
    assert decision.reason == "auto_accept"
    assert decision.confirmed_by_user is False
    assert state.pending is None


def test_low_confidence_terminal_command_clarifies() -> None:
    engine = DecisionEngine()
    proposal = _proposal(action=RunShell("npm test"), confidence=0.5)

    decision, state = engine.decide(proposal, ConversationState())

    assert isinstance(decision, Clarify)
    assert state.pending is None


def test_mid_confidence_confirms_then_yes_executes() -> None:
    engine = DecisionEngine(ConfidenceThresholds(auto_accept=0.9, confirm=0.7))
    proposal = _proposal(intent="do x", action=RunHostCommand("x"), confidence=0.8)

    decision, state = engine.decide(proposal, ConversationState())

    assert isinstance(decision, Confirm)
    assert decision.prompt.endswith("(yes/no)")
    assert state.pending == decision.pending
    assert state.pending.kind == "command"
    assert state.pending.value == "x"

    answer, state = engine.answer("yes", state)

    assert isinstance(answer, Execute)
    assert answer.action == RunHostCommand("x")
    assert answer.reason == "confirmed"
    assert answer.confirmed_by_user is True
    assert state.pending is None


def test_unrecognized_answer_reprompts_and_keeps_pending() -> None:
    engine = DecisionEngine()
    _decision, state = engine.decide(
        _proposal(action=RunHostCommand("x"), confidence=0.8), ConversationState()
    )

    answer, next_state = engine.answer("maybe", state)

    assert isinstance(answer, Confirm)
    assert answer.reprompt is True
    assert next_state == state
    assert next_state.pending is not None


@pytest.mark.parametrize("reply", ["no", "N", "  No  "])
def test_no_clears_pending(reply: str) -> None:
    engine = DecisionEngine()
    state = ConversationState(pending=PendingConfirmation(kind="terminal", value="npm test"))

    answer, next_state = engine.answer(reply, state)

    assert isinstance(answer, Cancelled)
    assert next_state.pending is None


@pytest.mark.parametrize("reply", ["Y", " yes "])
def test_yes_is_case_insensitive(reply: str) -> None:
    engine = DecisionEngine()
    state = ConversationState(pending=PendingConfirmation(kind="terminal", value="npm test"))

    answer, _state = engine.answer(reply, state)

    assert isinstance(answer, Execute)
    assert answer.action == RunShell("npm test")


def test_answer_without_pending_is_a_programming_error() -> None:
    with pytest.raises(ValueError):
        DecisionEngine().answer("yes", ConversationState())


def test_new_proposal_while_pending_reprompts() -> None:
    engine = DecisionEngine()
    pending = PendingConfirmation(kind="command", value="x")
    state = ConversationState(pending=pending)

    decision, next_state = engine.decide(
        _proposal(action=RunHostCommand("y"), confidence=1.0), state
    )

    assert isinstance(decision, Confirm)
    assert decision.reprompt is True
    assert decision.pending == pending
    assert next_state is state


@pytest.mark.parametrize("confidence", [0.0, 0.3, 0.69, 0.7, 0.75, 0.89, 0.9, 0.95, 1.0])
def test_confidence_bands(confidence: float) -> None:
    thresholds = ConfidenceThresholds(auto_accept=0.9, confirm=0.7)
    engine = DecisionEngine(thresholds)

    decision, _state = engine.decide(
        _proposal(action=RunHostCommand("x"), confidence=confidence), ConversationState()
    )

    if confidence >= thresholds.auto_accept:
        assert isinstance(decision, Execute)
    elif confidence >= thresholds.confirm:
        assert isinstance(decision, Confirm)
    else:
        assert isinstance(decision, Clarify)


@pytest.mark.parametrize("confidence", [0.0, 0.5, 0.99, 1.0])
def test_auto_accept_of_one_never_executes_directly(confidence: float) -> None:
    engine = DecisionEngine(ConfidenceThresholds(auto_accept=1.0, confirm=0.7))

    decision, state = engine.decide(
        _proposal(action=RunShell("npm run lint"), confidence=confidence), ConversationState()
    )

    assert isinstance(decision, Confirm)
    assert state.pending is not None


def test_thresholds_are_clamped() -> None:
    thresholds = ConfidenceThresholds(auto_accept=1.5, confirm=-0.2)

    assert thresholds.auto_accept == 1.0
    assert thresholds.confirm == 0.0
    assert thresholds.always_confirm is True


def test_malformed_model_reply_clarifies() -> None:
    proposal = LLMClient(api_key="k").parse_response({"output_text": "I cannot help with that"})

    assert proposal.confidence == 0
    assert proposal.action is None
    assert proposal.alternatives == []
    assert proposal.error

    decision, _state = DecisionEngine().decide(proposal, ConversationState())

    assert isinstance(decision, Clarify)
    assert decision.error == proposal.error


def test_history_override_bypasses_confidence() -> None:
    proposal = _proposal(
        action=RunHostCommand("workbench.view.explorer"),
        confidence=0.1,
        routes_to_history_sidebar=True,
    )

    decision, _state = DecisionEngine().decide(proposal, ConversationState())

    assert isinstance(decision, Execute)
    assert decision.reason == "history_override"
    assert decision.action == RunHostCommand(HISTORY_VIEW_COMMAND)


def test_history_phrase_in_intent_triggers_override() -> None:
    proposal = _proposal(intent="Open the command history", confidence=0.2)

    decision, _state = DecisionEngine().decide(proposal, ConversationState())

    assert isinstance(decision, Execute)
    assert decision.reason == "history_override"


@pytest.mark.parametrize("line", ["ctrl+c", "Cancel", "stop the process", "kill"])
def test_interrupt_terminal_override(line: str) -> None:
    proposal = _proposal(action=RunShell(line), confidence=0.3)

    decision, _state = DecisionEngine().decide(proposal, ConversationState())

    assert isinstance(decision, Execute)
    assert decision.action == InterruptTerminal()
    assert decision.reason == "interrupt_override"


@pytest.mark.parametrize(
    ("kind", "intent", "expected"),
    [
        ("dotnet", "run the tests", "dotnet test"),
        ("node", "run the tests", "npm test"),
        ("dotnet", "build the project", "dotnet build"),
        ("node", "build and run the app", "npm run build && npm start"),
        ("dotnet", "build and run", "dotnet build && dotnet run"),
        ("unknown", "run my tests", "npm test"),
    ],
)
def test_project_commands_follow_probe(kind: str, intent: str, expected: str) -> None:
    engine = DecisionEngine(probe=FixedProbe(kind))  # type: ignore[arg-type]
    proposal = _proposal(intent=intent, action=RunShell("make"), confidence=0.95)

    decision, _state = engine.decide(proposal, ConversationState())

    assert isinstance(decision, Execute)
    assert decision.action == RunShell(expected)


def test_build_and_run_without_project_keeps_original_action() -> None:
    engine = DecisionEngine(probe=FixedProbe("unknown"))
    proposal = _proposal(intent="build and run", action=RunShell("make run"), confidence=0.95)

    decision, _state = engine.decide(proposal, ConversationState())

    assert isinstance(decision, Execute)
    assert decision.action == RunShell("make run")


def test_project_substitution_stays_confidence_gated() -> None:
    engine = DecisionEngine(probe=FixedProbe("node"))
    proposal = _proposal(intent="run the tests", confidence=0.75)

    decision, state = engine.decide(proposal, ConversationState())

    assert isinstance(decision, Confirm)
    assert state.pending == PendingConfirmation(
        kind="terminal",
        value="npm test",
        reply_context=decision.pending.reply_context,
        confidence=0.75,
    )


def test_search_term_becomes_host_command_argument() -> None:
    proposal = _proposal(
        action=RunHostCommand("workbench.action.findInFiles"),
        search_term="TODO",
        confidence=0.95,
    )

    decision, _state = DecisionEngine().decide(proposal, ConversationState())

    assert isinstance(decision, Execute)
    assert decision.action == RunHostCommand("workbench.action.findInFiles", argument="TODO")


def test_alternatives_offered_without_primary_action() -> None:
    alternatives = [
        Alternative(command="workbench.view.scm", description="Source control"),
        Alternative(terminal_command="git status", description="Status in terminal"),
    ]
    proposal = _proposal(confidence=0.4, alternatives=alternatives)

    decision, state = DecisionEngine().decide(proposal, ConversationState())

    assert isinstance(decision, ShowAlternatives)
    assert decision.alternatives == tuple(alternatives)
    assert "1. Command: workbench.view.scm" in decision.prompt
    assert "2. Terminal: git status" in decision.prompt
    assert state.pending is None


def test_choosing_an_alternative_executes_it() -> None:
    decision = DecisionEngine().choose_alternative(Alternative(terminal_command="git status"))

    assert isinstance(decision, Execute)
    assert decision.action == RunShell("git status")
    assert decision.reason == "alternative_selected"
    assert decision.confirmed_by_user is True


def test_empty_alternative_clarifies() -> None:
    assert isinstance(DecisionEngine().choose_alternative(Alternative()), Clarify)


def test_search_only_proposal_clarifies() -> None:
    decision, _state = DecisionEngine().decide(
        _proposal(search_term="TODO", confidence=0.99), ConversationState()
    )

    assert isinstance(decision, Clarify)


def test_low_confidence_clarify_keeps_its_candidate_action() -> None:
    decision, _state = DecisionEngine(probe=FixedProbe("node")).decide(
        _proposal(action=RunShell("npm test"), confidence=0.5), ConversationState()
    )

    assert isinstance(decision, Clarify)
    assert decision.action == RunShell("npm test")


def test_interrupt_confirms_when_auto_accept_is_one() -> None:
    engine = DecisionEngine(ConfidenceThresholds(auto_accept=1.0))

    decision, state = engine.decide(
        _proposal(action=RunShell("ctrl+c"), confidence=0.99), ConversationState()
    )

    assert isinstance(decision, Confirm)
    assert decision.prompt == "Interrupt the running terminal process? (yes/no)"
    assert state.pending is not None
    assert state.pending.action == InterruptTerminal()

    answered, cleared = engine.answer("yes", state)
    assert isinstance(answered, Execute)
    assert answered.action == InterruptTerminal()
    assert answered.confirmed_by_user is True
    assert cleared.pending is None


def test_chosen_alternative_gets_project_command() -> None:
    engine = DecisionEngine(probe=FixedProbe("dotnet"))

    decision = engine.choose_alternative(Alternative(terminal_command="run tests"))

    assert isinstance(decision, Execute)
    assert decision.action == RunShell("dotnet test")
    assert decision.confirmed_by_user is True


def test_chosen_interrupt_alternative_interrupts() -> None:
    decision = DecisionEngine().choose_alternative(Alternative(terminal_command="ctrl+c"))

    assert isinstance(decision, Execute)
    assert decision.action == InterruptTerminal()
