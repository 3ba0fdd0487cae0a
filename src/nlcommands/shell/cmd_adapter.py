"""Windows Command Prompt adapter."""

from __future__ import annotations

from .base import PolicyHook, ShellAdapter


class CmdAdapter(ShellAdapter):
    """Adapter for command execution via ``cmd.exe``."""

    def __init__(
        self,
        executable: str = "cmd.exe",
        *,
        allowlist_hook: PolicyHook | None = None,
        denylist_hook: PolicyHook | None = None,
        confirmation_mode: bool = True,
    ) -> None:
        super().__init__(
            allowlist_hook=allowlist_hook,
            denylist_hook=denylist_hook,
            confirmation_mode=confirmation_mode,
        )
        self.executable = executable

    @property
    def name(self) -> str:
        return "cmd"

    def build_args(self, command: str) -> list[str]:
        return [self.executable, "/d", "/s", "/c", command]
