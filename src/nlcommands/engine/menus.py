"""Static menu, sidebar and example tables used by the phrase matcher."""

from __future__ import annotations

from dataclasses import dataclass
from types import MappingProxyType


@dataclass(frozen=True, slots=True)
class MenuAction:
    label: str
    command: str


def _actions(*pairs: tuple[str, str]) -> tuple[MenuAction, ...]:
    return tuple(MenuAction(label=label, command=command) for label, command in pairs)


MENU_ACTIONS = MappingProxyType(
    {
        "file": _actions(
            ("New File", "explorer.newFile"),
            ("Open File...", "workbench.action.files.openFile"),
            ("Open Folder...", "workbench.action.files.openFolder"),
            ("Save", "workbench.action.files.save"),
            ("Save As...", "workbench.action.files.saveAs"),
            ("Save All", "workbench.action.files.saveAll"),
            ("Close Editor", "workbench.action.closeActiveEditor"),
            ("Close Folder", "workbench.action.closeFolder"),
            ("Revert File", "workbench.action.files.revert"),
        ),
        "edit": _actions(
            ("Undo", "undo"),
            ("Redo", "redo"),
            ("Cut", "editor.action.clipboardCutAction"),
            ("Copy", "editor.action.clipboardCopyAction"),
            ("Paste", "editor.action.clipboardPasteAction"),
            ("Find", "actions.find"),
            ("Replace", "editor.action.startFindReplaceAction"),
            ("Select All", "editor.action.selectAll"),
        ),
        "selection": _actions(
            ("Select All", "editor.action.selectAll"),
            ("Expand Selection", "editor.action.smartSelect.expand"),
            ("Shrink Selection", "editor.action.smartSelect.shrink"),
            ("Copy Line Up", "editor.action.copyLinesUpAction"),
            ("Copy Line Down", "editor.action.copyLinesDownAction"),
            ("Move Line Up", "editor.action.moveLinesUpAction"),
            ("Move Line Down", "editor.action.moveLinesDownAction"),
        ),
        "view": _actions(
            ("Command Palette", "workbench.action.showCommands"),
            ("Explorer", "workbench.view.explorer"),
            ("Search", "workbench.view.search"),
            ("Source Control", "workbench.view.scm"),
            ("Run & Debug", "workbench.view.debug"),
            ("Extensions", "workbench.view.extensions"),
            ("Problems", "workbench.actions.view.problems"),
            ("Output", "workbench.action.output.toggleOutput"),
            ("Terminal", "workbench.action.terminal.toggleTerminal"),
        ),
        "go": _actions(
            ("Go to File...", "workbench.action.quickOpen"),
            ("Go to Symbol...", "workbench.action.gotoSymbol"),
            ("Go to Line...", "workbench.action.gotoLine"),
            ("Go Back", "workbench.action.navigateBack"),
            ("Go Forward", "workbench.action.navigateForward"),
            ("Go to Next Problem", "editor.action.marker.next"),
            ("Go to Previous Problem", "editor.action.marker.prev"),
        ),
        "run": _actions(
            ("Start Debugging", "workbench.action.debug.start"),
            ("Run Without Debugging", "workbench.action.debug.run"),
            ("Stop Debugging", "workbench.action.debug.stop"),
            ("Restart Debugging", "workbench.action.debug.restart"),
            ("Run Task...", "workbench.action.tasks.runTask"),
        ),
        "terminal": _actions(
            ("New Terminal", "workbench.action.terminal.new"),
            ("Split Terminal", "workbench.action.terminal.split"),
            ("Kill Terminal", "workbench.action.terminal.kill"),
            ("Run Task...", "workbench.action.tasks.runTask"),
            ("Configure Tasks...", "workbench.action.tasks.configureTaskRunner"),
            ("Show Terminal", "workbench.action.terminal.toggleTerminal"),
            ("Focus Next Terminal", "workbench.action.terminal.focusNext"),
            ("Focus Previous Terminal", "workbench.action.terminal.focusPrevious"),
        ),
        "help": _actions(
            ("Welcome", "workbench.action.showWelcomePage"),
            ("Documentation", "workbench.action.openDocumentationUrl"),
            ("Release Notes", "update.showCurrentReleaseNotes"),
            ("Keyboard Shortcuts Reference", "workbench.action.openGlobalKeybindings"),
            ("Report Issue", "workbench.action.openIssueReporter"),
            ("About", "workbench.action.showAboutDialog"),
        ),
        "debug": _actions(
            ("Start Debugging", "workbench.action.debug.start"),
            ("Stop Debugging", "workbench.action.debug.stop"),
            ("Restart Debugging", "workbench.action.debug.restart"),
            ("Step Over", "workbench.action.debug.stepOver"),
            ("Step Into", "workbench.action.debug.stepInto"),
            ("Step Out", "workbench.action.debug.stepOut"),
            ("Continue", "workbench.action.debug.continue"),
            ("Pause", "workbench.action.debug.pause"),
            ("Toggle Breakpoint", "editor.debug.action.toggleBreakpoint"),
            ("Open Breakpoints View", "workbench.debug.action.focusBreakpointsView"),
            ("Open Debug Console", "workbench.debug.action.toggleRepl"),
        ),
        "sidebars": _actions(
            ("Explorer", "workbench.view.explorer"),
            ("Source Control", "workbench.view.scm"),
            ("Run & Debug", "workbench.view.debug"),
            ("Extensions", "workbench.view.extensions"),
            ("Remote Explorer", "workbench.view.remote"),
            ("Testing", "workbench.view.testing"),
            ("Outline", "outline.focus"),
            ("Comments", "workbench.panel.comments"),
            ("Timeline", "timeline.focus"),
            ("Notebooks", "notebook.focus"),
            ("Cursorless", "workbench.view.extension.cursorless"),
        ),
    }
)

# Menus the host cannot open natively; the picker stands in for them.
SIMULATED_MENUS = frozenset(MENU_ACTIONS) - {"sidebars"}

COPILOT_CHAT_FOCUS_COMMANDS = (
    "github.copilot-chat.focus",
    "workbench.panel.chat.view.copilot.focus",
    "workbench.action.focusChat",
    "workbench.view.extension.github-copilot-chat",
    "workbench.view.extension.copilot-chat",
    "workbench.action.openChat",
    "workbench.action.focusSidePanel",
)

EXAMPLE_UTTERANCES = (
    "Open the terminal and run my tests",
    "Show the command history sidebar",
    "Open the explorer",
    "Show me my extensions",
    "Switch to the source control view",
    "Open settings in JSON view",
    "Create a new file called hello.txt",
    "Find all TODO comments in the workspace",
    "Show me the output panel",
    "Run the build task",
    "What is the current git branch?",
    "Show me the problems panel",
    "Open the debug console",
    "Show me the command palette",
    "Show the terminal menu",
    "Clear the command history",
)


def menu_placeholder(menu: str) -> str:
    if menu == "sidebars":
        return "Select a sidebar to focus:"
    return f"Select a {menu} action to run:"


def menu_notice(menu: str) -> str | None:
    if menu not in SIMULATED_MENUS:
        return None
    title = menu.capitalize()
    return (
        f"Opening the native {title} menu is not supported by the host. "
        f"Here are common {menu} actions you can use instead."
    )
