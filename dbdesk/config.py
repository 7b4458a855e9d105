"""App configuration loading helpers."""

from __future__ import annotations

from pathlib import Path

import tomllib

from pydantic import BaseModel, Field

from .connections import Timeouts

CONFIG_DIR = Path.home() / ".config" / "dbdesk"
CONFIG_FILE = CONFIG_DIR / "config.toml"

_LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")


class AppConfig(BaseModel):
    """Shape of the application configuration file."""

    theme: str = "dark"
    connect_timeout: float | None = Field(default=5.0, gt=0)
    query_timeout: float | None = Field(default=None, gt=0)
    row_limit: int = Field(default=500, gt=0)
    log_level: str = "WARNING"
    log_file: Path = Field(default_factory=lambda: CONFIG_DIR / "dbdesk.log")
    profiles_file: Path | None = None
    active_profile: str | None = None

    def timeouts(self) -> Timeouts:
        """Timeouts handed to the connector for every call."""

        return Timeouts(connect=self.connect_timeout, query=self.query_timeout)

    def with_active_profile(self, profile_id: str | None) -> AppConfig:
        """Return a copy with the active profile updated."""

        return self.model_copy(update={"active_profile": profile_id})


def load_config() -> AppConfig:
    """Load configuration from disk; fall back to defaults if missing."""

    try:
        data = _read_config_file()
    except FileNotFoundError:
        return AppConfig()
    except (tomllib.TOMLDecodeError, OSError):
        return AppConfig()
    return AppConfig(**data)


def save_config(config: AppConfig) -> None:
    """Persist configuration to disk."""

    CONFIG_FILE.parent.mkdir(parents=True, exist_ok=True)
    lines: list[str] = [
        f"theme = {_toml_string(config.theme)}",
        f"row_limit = {config.row_limit}",
        f"log_level = {_toml_string(config.log_level)}",
        f"log_file = {_toml_string(str(config.log_file))}",
    ]
    if config.connect_timeout is not None:
        lines.append(f"connect_timeout = {config.connect_timeout}")
    if config.query_timeout is not None:
        lines.append(f"query_timeout = {config.query_timeout}")
    if config.profiles_file is not None:
        lines.append(f"profiles_file = {_toml_string(str(config.profiles_file))}")
    if config.active_profile:
        lines.append(f"active_profile = {_toml_string(config.active_profile)}")
    CONFIG_FILE.write_text("\n".join(lines) + "\n")


def _read_config_file() -> dict[str, object]:
    with CONFIG_FILE.open("rb") as handle:
        raw = tomllib.load(handle)
    data: dict[str, object] = {}
    theme = raw.get("theme")
    if isinstance(theme, str):
        data["theme"] = theme
    for key in ("connect_timeout", "query_timeout"):
        value = raw.get(key)
        if isinstance(value, (int, float)) and not isinstance(value, bool) and value > 0:
            data[key] = float(value)
    row_limit = raw.get("row_limit")
    if isinstance(row_limit, int) and not isinstance(row_limit, bool) and row_limit > 0:
        data["row_limit"] = row_limit
    log_level = raw.get("log_level")
    if isinstance(log_level, str) and log_level.upper() in _LOG_LEVELS:
        data["log_level"] = log_level.upper()
    for key in ("log_file", "profiles_file"):
        value = raw.get(key)
        if isinstance(value, str) and value:
            data[key] = Path(value).expanduser()
    active_profile = raw.get("active_profile")
    if isinstance(active_profile, str):
        data["active_profile"] = active_profile
    return data


def _toml_string(value: str) -> str:
    escaped = value.replace("\\", "\\\\").replace('"', '\\"')
    return f'"{escaped}"'


__all__ = ["AppConfig", "CONFIG_FILE", "load_config", "save_config"]
