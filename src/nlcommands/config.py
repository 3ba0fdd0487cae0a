"""Environment-backed application configuration."""

from __future__ import annotations

import json
import os
from dataclasses import dataclass
from pathlib import Path

from nlcommands.engine.history import DEFAULT_HISTORY_LIMIT
from nlcommands.engine.models import ConfidenceThresholds, clamp_unit
from nlcommands.llm.client import DEFAULT_API_URL, DEFAULT_MODEL

DEFAULT_AUTO_ACCEPT = 0.9
DEFAULT_CONFIRM = 0.7


def _to_bool(value: str | None, default: bool = False) -> bool:
    """Convert common env var truthy/falsy values into booleans."""
    if value is None:
        return default
    normalized = value.strip().lower()
    if normalized in {"1", "true", "yes", "on"}:
        return True
    if normalized in {"0", "false", "no", "off"}:
        return False
    return default


@dataclass(slots=True)
class AppConfig:
    """Runtime settings loaded from environment variables and config files."""

    api_key: str | None
    model: str
    api_url: str
    auto_accept: float
    confirm: float
    debug_show_raw_response: bool
    shell: str
    log_dir: str
    history_file: str | None
    history_limit: int
    working_directory: str | None

    @property
    def thresholds(self) -> ConfidenceThresholds:
        return ConfidenceThresholds(auto_accept=self.auto_accept, confirm=self.confirm)

    @classmethod
    def from_env(cls) -> AppConfig:
        file_config = _load_preferred_file_config()
        openai_from_file = file_config.get("openai")
        openai_config = openai_from_file if isinstance(openai_from_file, dict) else {}
        thresholds_from_file = file_config.get("confidenceThresholds")
        thresholds_config = thresholds_from_file if isinstance(thresholds_from_file, dict) else {}

        return cls(
            api_key=(
                os.getenv("NLC_OPENAI_API_KEY")
                or os.getenv("NLC_API_KEY")
                or os.getenv("OPENAI_API_KEY")
                or _to_optional_string(openai_config.get("api_key"))
                or _to_optional_string(file_config.get("api_key"))
            ),
            model=(
                os.getenv("NLC_MODEL")
                or _to_optional_string(file_config.get("model"))
                or DEFAULT_MODEL
            ),
            api_url=(
                os.getenv("NLC_API_URL")
                or _to_optional_string(openai_config.get("api_url"))
                or DEFAULT_API_URL
            ),
            auto_accept=_to_unit_float(
                os.getenv("NLC_AUTO_ACCEPT") or thresholds_config.get("autoAccept"),
                default=DEFAULT_AUTO_ACCEPT,
            ),
            confirm=_to_unit_float(
                os.getenv("NLC_CONFIRM") or thresholds_config.get("confirm"),
                default=DEFAULT_CONFIRM,
            ),
            debug_show_raw_response=_to_bool(
                os.getenv("NLC_DEBUG_SHOW_RAW_RESPONSE"),
                default=file_config.get("debugShowRawResponse") is True,
            ),
            shell=_resolve_shell(
                os.getenv("NLC_SHELL")
                or _to_optional_string(file_config.get("shell"))
            ),
            log_dir=(
                os.getenv("NLC_LOG_DIR")
                or _to_optional_string(file_config.get("log_dir"))
                or "logs"
            ),
            history_file=(
                os.getenv("NLC_HISTORY_FILE")
                or _to_optional_string(file_config.get("history_file"))
            ),
            history_limit=_to_positive_int(
                os.getenv("NLC_HISTORY_LIMIT") or file_config.get("history_limit"),
                default=DEFAULT_HISTORY_LIMIT,
            ),
            working_directory=(
                os.getenv("NLC_CWD")
                or _to_optional_string(file_config.get("cwd"))
            ),
        )


def _to_optional_string(value: object) -> str | None:
    if isinstance(value, str) and value.strip():
        return value.strip()
    return None


def _load_file_config(path_value: str) -> dict[str, object]:
    path = Path(path_value)
    if not path.exists() or not path.is_file():
        return {}
    try:
        with path.open("r", encoding="utf-8") as fh:
            parsed = json.load(fh)
    except (OSError, json.JSONDecodeError):
        return {}
    if isinstance(parsed, dict):
        return parsed
    return {}


def _load_preferred_file_config() -> dict[str, object]:
    explicit_path = os.getenv("NLC_CONFIG_FILE")
    if explicit_path:
        return _load_file_config(explicit_path)

    shared_config = _load_file_config("nlcommands.config.json")
    local_override = _load_file_config("nlcommands.config.local.json")
    return _merge_dicts(shared_config, local_override)


def _merge_dicts(base: dict[str, object], override: dict[str, object]) -> dict[str, object]:
    merged: dict[str, object] = dict(base)
    for key, value in override.items():
        base_value = merged.get(key)
        if isinstance(base_value, dict) and isinstance(value, dict):
            merged[key] = _merge_dicts(base_value, value)
        else:
            merged[key] = value
    return merged


def _shell_value(value: str) -> str:
    normalized = value.strip().lower()
    aliases = {
        "cmd": "cmd",
        "powershell": "powershell",
        "pwsh": "powershell",
        "bash": "bash",
        "sh": "bash",
        "shell": "bash",
    }
    return aliases.get(normalized, _default_shell_for_platform())


def _default_shell_for_platform(os_name: str | None = None) -> str:
    platform_name = os.name if os_name is None else os_name
    return "powershell" if platform_name == "nt" else "bash"


def _resolve_shell(value: str | None) -> str:
    if value is None:
        return _default_shell_for_platform()
    return _shell_value(value)


def _to_unit_float(value: object, *, default: float) -> float:
    """Parse a threshold in [0, 1]; anything unparseable yields ``default``."""
    if isinstance(value, str):
        try:
            value = float(value.strip())
        except ValueError:
            return default
    return clamp_unit(value, default=default)


def _to_positive_int(value: object, *, default: int) -> int:
    if isinstance(value, bool):
        return default
    if isinstance(value, int):
        return value if value > 0 else default
    if isinstance(value, str):
        try:
            parsed = int(value.strip())
        except ValueError:
            return default
        return parsed if parsed > 0 else default
    return default
