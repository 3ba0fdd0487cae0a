"""Command-line interface for nlcommands."""

from __future__ import annotations

import argparse
import logging
from pathlib import Path
from typing import cast

from .config import AppConfig
from .engine.conversation import Conversation, Reply
from .engine.decision import DecisionEngine
from .engine.history import HistoryStore
from .executor import ConsoleExecutor
from .llm.client import LLMClient
from .shell import create_shell_adapter
from .workspace import WorkspaceProbe

LOGGER = logging.getLogger(__name__)

EXIT_WORDS = {"q", "quit", "exit"}


class CLIArgs(argparse.Namespace):
    utterance: str | None
    working_directory: str | None
    verbose: bool


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="nlcommands", description="Natural language command assistant"
    )
    parser.add_argument(
        "--cwd",
        dest="working_directory",
        help=(
            "Override the working directory used for terminal commands, workspace "
            "search and project detection. Takes precedence over config/env cwd values."
        ),
    )
    parser.add_argument(
        "-v",
        "--verbose",
        action="store_true",
        help="Log debug events to stderr",
    )
    parser.add_argument(
        "utterance",
        nargs="?",
        help="Handle a single request and exit instead of starting the prompt loop",
    )
    return parser


def build_conversation(config: AppConfig, working_directory: str | None) -> Conversation:
    adapter = create_shell_adapter(config.shell)
    LOGGER.debug("shell_adapter_selected", extra={"shell": adapter.name})
    executor = ConsoleExecutor(adapter, working_directory=working_directory)
    client = LLMClient(api_key=config.api_key, model=config.model, api_url=config.api_url)
    engine = DecisionEngine(
        config.thresholds,
        probe=WorkspaceProbe(working_directory or Path.cwd()),
    )
    history = HistoryStore(limit=config.history_limit, path=config.history_file)
    return Conversation(
        resolver=client,
        engine=engine,
        executor=executor,
        history=history,
        log_dir=config.log_dir,
        debug_show_raw_response=config.debug_show_raw_response,
    )


def main() -> int:
    parser = build_parser()
    args = cast(CLIArgs, parser.parse_args())
    logging.basicConfig(level=logging.DEBUG if args.verbose else logging.WARNING)
    config = AppConfig.from_env()

    configured_working_directory = (
        args.working_directory if args.working_directory is not None else config.working_directory
    )
    working_directory: str | None = None
    if configured_working_directory is not None:
        resolved_working_directory = Path(configured_working_directory).expanduser().resolve()
        if not resolved_working_directory.exists() or not resolved_working_directory.is_dir():
            print(f"Invalid configured cwd directory: {configured_working_directory}")
            return 1
        working_directory = str(resolved_working_directory)

    conversation = build_conversation(config, working_directory)

    if args.utterance is not None:
        reply = conversation.handle(args.utterance)
        _print_reply(reply)
        while conversation.awaiting_confirmation:
            answer = _read_line("> ")
            if answer is None:
                break
            reply = conversation.handle(answer)
            _print_reply(reply)
        return 1 if reply.level == "error" else 0

    print("Type a request, or q to quit.")
    while True:
        line = _read_line("> ")
        if line is None or line.strip().lower() in EXIT_WORDS:
            return 0
        _print_reply(conversation.handle(line))


def _read_line(prompt: str) -> str | None:
    try:
        return input(prompt)
    except EOFError:
        return None


def _print_reply(reply: Reply) -> None:
    for line in reply.lines:
        if reply.level == "error":
            print(f"[error] {line}")
        elif reply.level == "warning":
            print(f"[warning] {line}")
        else:
            print(line)


if __name__ == "__main__":
    raise SystemExit(main())
