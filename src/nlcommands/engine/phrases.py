"""Deterministic phrase rules that map utterances to fixed actions.

The table is ordered and the first matching rule wins. Several patterns are
substrings of each other, so precedence is part of the contract:

* intercept rules run before any model call. Specific menu phrases come first,
  then the copilot chat focus chain, then history phrases, then the explicit
  "show sidebars" forms, and only then the bare ``sidebar`` catch-all. The
  examples/help rule is last so "help menu" still opens the help menu.
* fallback rules run only after the decision engine could not act on the
  model's proposal. They map loose view names to view-focus commands.
"""

from __future__ import annotations

import logging
import re
from collections.abc import Callable
from dataclasses import dataclass
from typing import Literal

from nlcommands.engine.history import CLEAR_HISTORY_COMMAND, HISTORY_VIEW_COMMAND
from nlcommands.engine.menus import COPILOT_CHAT_FOCUS_COMMANDS
from nlcommands.engine.models import (
    OpenMenu,
    RunHostCommand,
    Search,
    ShowExamples,
    TryHostCommands,
)

LOGGER = logging.getLogger(__name__)

RuleStage = Literal["intercept", "fallback"]
ResolvedAction = OpenMenu | RunHostCommand | Search | ShowExamples | TryHostCommands

_WHITESPACE = re.compile(r"\s+")


@dataclass(frozen=True, slots=True)
class PhraseRule:
    """One ordered rule.

    A rule without a fixed ``action`` captures a ``term`` group and builds its
    action from it with ``with_term`` (a workspace search by default).
    """

    name: str
    pattern: re.Pattern[str]
    action: ResolvedAction | None
    stage: RuleStage = "intercept"
    with_term: Callable[[str], ResolvedAction] = Search

    def resolve(self, match: re.Match[str]) -> ResolvedAction | None:
        if self.action is not None:
            return self.action
        term = (match.groupdict().get("term") or "").strip(" \"'.?!")
        return self.with_term(term) if term else None


def _history_matching(term: str) -> RunHostCommand:
    return RunHostCommand(HISTORY_VIEW_COMMAND, argument=term)


@dataclass(frozen=True, slots=True)
class PhraseMatch:
    rule: str
    action: ResolvedAction
    stage: RuleStage


def normalize_utterance(text: str) -> str:
    return _WHITESPACE.sub(" ", text.strip().lower())


def _menu_rule(menu: str) -> PhraseRule:
    variants = [
        rf"\b{menu} menu\b",
        rf"\b{menu} (?:top menu|dropdown)\b",
        rf"\btop {menu} menu\b",
    ]
    return PhraseRule(f"{menu}_menu", re.compile("|".join(variants)), OpenMenu(menu))


DEFAULT_RULES: tuple[PhraseRule, ...] = (
    PhraseRule(
        "debug_menu",
        re.compile(r"\b(?:debugging commands|debug menu|debugging actions|debug actions)\b"),
        OpenMenu("debug"),
    ),
    _menu_rule("edit"),
    _menu_rule("selection"),
    _menu_rule("view"),
    _menu_rule("go"),
    _menu_rule("run"),
    _menu_rule("help"),
    _menu_rule("file"),
    _menu_rule("terminal"),
    PhraseRule(
        "copilot_chat_focus",
        re.compile(
            r"\b(?:focus|open|show|switch to|go to|move (?:keyboard )?focus to)"
            r"\s+(?:the )?(?:github )?copilot chat\b"
        ),
        TryHostCommands(COPILOT_CHAT_FOCUS_COMMANDS, "Could not focus Copilot Chat."),
    ),
    PhraseRule(
        "clear_history",
        re.compile(r"\b(?:clear|reset|wipe)\s+(?:the |my )?(?:command )?history\b"),
        RunHostCommand(CLEAR_HISTORY_COMMAND),
    ),
    PhraseRule(
        "history_search",
        re.compile(
            r"\b(?:show|search|filter|find in)(?: the| my)? (?:command )?history"
            r" (?:matching|containing|for|with) (?P<term>.+)$"
        ),
        None,
        with_term=_history_matching,
    ),
    PhraseRule(
        "history_sidebar",
        re.compile(
            r"\b(?:command history|history sidebar|nlc history"
            r"|natural language command history)\b"
        ),
        RunHostCommand(HISTORY_VIEW_COMMAND),
    ),
    PhraseRule(
        "show_sidebars",
        re.compile(
            r"\b(?:show|list|display|see|focus|open|choose|switch)(?: all)?(?: my)?"
            r" sidebars?(?: list| picker)?\b"
        ),
        OpenMenu("sidebars"),
    ),
    PhraseRule("sidebar_catch_all", re.compile(r"sidebar"), OpenMenu("sidebars")),
    PhraseRule(
        "examples",
        re.compile(
            r"\bwhat can i say\b|^(?:show )?(?:me )?(?:the )?(?:help|examples)$"
            r"|\bshow (?:me )?(?:some )?(?:command )?examples\b"
            r"|\bshow natural(?: language)? commands\b"
        ),
        ShowExamples(),
    ),
    PhraseRule(
        "search_files",
        re.compile(
            r"^(?:please )?(?:search (?:the workspace )?for|find all|global search for|find)"
            r"\s+(?P<term>.+?)(?:\s+in (?:the |my )?(?:workspace|project|files))?$"
        ),
        None,
        stage="fallback",
    ),
    PhraseRule(
        "problems",
        re.compile(r"\bproblems?\b"),
        RunHostCommand("workbench.actions.view.problems"),
        stage="fallback",
    ),
    PhraseRule(
        "remote_explorer",
        re.compile(r"\bremote\b"),
        RunHostCommand("workbench.view.remote"),
        stage="fallback",
    ),
    PhraseRule(
        "explorer",
        re.compile(r"\b(?:file ?)?explorer\b|\b(?:show|see) files\b"),
        RunHostCommand("workbench.view.explorer"),
        stage="fallback",
    ),
    PhraseRule(
        "extensions",
        re.compile(r"\bextensions?\b|\bmarketplace\b"),
        RunHostCommand("workbench.view.extensions"),
        stage="fallback",
    ),
    PhraseRule(
        "source_control",
        re.compile(r"\bsource control\b|\bgit\b|\bscm\b"),
        RunHostCommand("workbench.view.scm"),
        stage="fallback",
    ),
    PhraseRule(
        "debug_view",
        re.compile(r"\bdebug(?:ger|ging)?\b|\b(?:show|see|open) run\b"),
        RunHostCommand("workbench.view.debug"),
        stage="fallback",
    ),
    PhraseRule(
        "testing",
        re.compile(r"\btest(?:s|ing)?\b"),
        RunHostCommand("workbench.view.testing"),
        stage="fallback",
    ),
    PhraseRule(
        "pull_requests",
        re.compile(r"\bgithub\b|\bpull requests?\b|\bprs?\b"),
        RunHostCommand("github.pullRequests.explorer"),
        stage="fallback",
    ),
)


class PhraseMatcher:
    """Ordered rule table; pure and side-effect free."""

    def __init__(self, rules: tuple[PhraseRule, ...] = DEFAULT_RULES) -> None:
        self.rules = rules

    def match(self, text: str) -> PhraseMatch | None:
        return self._first_match(text, stage=None)

    def intercept(self, text: str) -> PhraseMatch | None:
        return self._first_match(text, stage="intercept")

    def fallback(self, text: str) -> PhraseMatch | None:
        return self._first_match(text, stage="fallback")

    def _first_match(self, text: str, *, stage: RuleStage | None) -> PhraseMatch | None:
        normalized = normalize_utterance(text)
        if not normalized:
            return None
        for rule in self.rules:
            if stage is not None and rule.stage != stage:
                continue
            found = rule.pattern.search(normalized)
            if not found:
                continue
            action = rule.resolve(found)
            if action is None:
                continue
            LOGGER.debug(
                "phrase_rule_matched",
                extra={"rule": rule.name, "stage": rule.stage, "utterance": normalized},
            )
            return PhraseMatch(rule=rule.name, action=action, stage=rule.stage)
        return None
