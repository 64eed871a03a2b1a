"""YAML configuration for the CodeBanter server."""

from __future__ import annotations

import copy
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional

import yaml

from .errors import ConfigError
from .models.anthropic import DEFAULT_MODEL
from .tools.reload_server import DEFAULT_RELOAD_COMMAND

__all__ = [
    "DEFAULT_CONFIG_NAME",
    "DEFAULT_CONFIG_TEMPLATE",
    "Settings",
    "default_config",
    "load_config",
    "write_config",
]

DEFAULT_CONFIG_NAME = "config.yaml"

DEFAULT_CONFIG_TEMPLATE: Dict[str, Any] = {
    "server": {
        "host": "127.0.0.1",
        "port": 3000,
        "ui_path": "ui",
        "open_browser": True,
    },
    "models": {
        "default": DEFAULT_MODEL,
        "api_key": "",
        "base_url": "https://api.anthropic.com/v1/messages",
        "max_tokens": 4096,
        "timeout": None,
        "max_attempts": 1,
        "temperature": None,
    },
    "preview": {
        "port": 3001,
        "command": list(DEFAULT_RELOAD_COMMAND),
        "startup_timeout": 30,
    },
    "snapshots": {
        "max_entries": None,
    },
    "workspace": {
        "folders": ["."],
        "watch": True,
    },
    "logging": {
        "level": "INFO",
    },
}


def default_config() -> Dict[str, Any]:
    """Return a deep copy of the default configuration template."""
    return copy.deepcopy(DEFAULT_CONFIG_TEMPLATE)


def write_config(config_path: Path, config_data: Mapping[str, Any]) -> None:
    """Persist configuration data to disk with stable formatting."""
    config_path.parent.mkdir(parents=True, exist_ok=True)
    with config_path.open("w", encoding="utf-8") as handle:
        yaml.safe_dump(dict(config_data), handle, sort_keys=False)


def load_config(config_path: Path) -> Dict[str, Any]:
    """Load YAML configuration from disk and return it as a dictionary."""
    if not config_path.exists():
        raise ConfigError(f"Config file not found: {config_path}")

    try:
        with config_path.open("r", encoding="utf-8") as handle:
            data = yaml.safe_load(handle) or {}
    except yaml.YAMLError as error:
        raise ConfigError(f"Failed to parse config: {error}") from error

    if not isinstance(data, dict):
        raise ConfigError("Configuration must be a mapping at the top level.")

    return data


def _section(config: Mapping[str, Any], name: str) -> Mapping[str, Any]:
    value = config.get(name)
    return value if isinstance(value, Mapping) else {}


def _positive_int(value: Any, default: Optional[int]) -> Optional[int]:
    if isinstance(value, bool):
        return default
    if isinstance(value, int) and value > 0:
        return value
    return default


def _positive_float(value: Any, default: Optional[float]) -> Optional[float]:
    if isinstance(value, bool):
        return default
    if isinstance(value, (int, float)) and value > 0:
        return float(value)
    return default


@dataclass(slots=True)
class Settings:
    """Resolved runtime settings derived from a configuration mapping."""

    host: str = "127.0.0.1"
    port: int = 3000
    ui_path: Optional[Path] = None
    open_browser: bool = True
    model: str = DEFAULT_MODEL
    api_key: Optional[str] = None
    base_url: str = "https://api.anthropic.com/v1/messages"
    max_tokens: int = 4096
    timeout: Optional[float] = None
    max_attempts: int = 1
    temperature: Optional[float] = None
    preview_port: int = 3001
    preview_command: List[str] = field(default_factory=lambda: list(DEFAULT_RELOAD_COMMAND))
    preview_startup_timeout: float = 30.0
    snapshot_max_entries: Optional[int] = None
    folders: List[Path] = field(default_factory=list)
    watch_files: bool = True
    log_level: str = "INFO"

    @classmethod
    def from_config(cls, config: Mapping[str, Any], *, base_dir: Path) -> "Settings":
        """Build settings from ``config``; relative paths resolve against ``base_dir``."""
        server = _section(config, "server")
        models = _section(config, "models")
        preview = _section(config, "preview")
        snapshots = _section(config, "snapshots")
        workspace = _section(config, "workspace")
        logging_cfg = _section(config, "logging")

        def _resolve(value: Any) -> Path:
            path = Path(str(value)).expanduser()
            return path if path.is_absolute() else (base_dir / path).resolve()

        ui_value = server.get("ui_path")
        ui_path = _resolve(ui_value) if isinstance(ui_value, str) and ui_value.strip() else None

        api_key = models.get("api_key")
        if not (isinstance(api_key, str) and api_key.strip()):
            api_key = os.getenv("ANTHROPIC_API_KEY")
        api_key = api_key.strip() if isinstance(api_key, str) and api_key.strip() else None

        command = preview.get("command")
        if not (isinstance(command, list) and command and all(isinstance(part, str) for part in command)):
            command = list(DEFAULT_RELOAD_COMMAND)

        folders_value = workspace.get("folders")
        if isinstance(folders_value, str):
            folders_value = [folders_value]
        temperature = models.get("temperature")
        if isinstance(temperature, bool) or not isinstance(temperature, (int, float)) or temperature < 0:
            temperature = None

        folders = [_resolve(item) for item in folders_value or [] if isinstance(item, str) and item.strip()]

        return cls(
            host=str(server.get("host") or "127.0.0.1"),
            port=_positive_int(server.get("port"), 3000) or 3000,
            ui_path=ui_path,
            open_browser=bool(server.get("open_browser", True)),
            model=str(models.get("default") or DEFAULT_MODEL),
            api_key=api_key,
            base_url=str(models.get("base_url") or "https://api.anthropic.com/v1/messages"),
            max_tokens=_positive_int(models.get("max_tokens"), 4096) or 4096,
            timeout=_positive_float(models.get("timeout"), None),
            max_attempts=_positive_int(models.get("max_attempts"), 1) or 1,
            temperature=float(temperature) if temperature is not None else None,
            preview_port=_positive_int(preview.get("port"), 3001) or 3001,
            preview_command=list(command),
            preview_startup_timeout=_positive_float(preview.get("startup_timeout"), 30.0) or 30.0,
            snapshot_max_entries=_positive_int(snapshots.get("max_entries"), None),
            folders=folders,
            watch_files=bool(workspace.get("watch", True)),
            log_level=str(logging_cfg.get("level") or "INFO").upper(),
        )
