"""Config I/O for ~/.tempinbox/config.yaml.

Priority order (highest wins):
1. Environment variables (TEMPINBOX_*)
2. config.yaml
3. Schema defaults
"""

from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Any

import yaml
from pydantic import ValidationError

from . import conventions
from .schema import TempInboxConfig

logger = logging.getLogger(__name__)


def tempinbox_home() -> Path:
    return Path(conventions.TEMPINBOX_HOME).expanduser()


def config_path() -> Path:
    """Return the path to ~/.tempinbox/config.yaml, expanded."""
    return tempinbox_home() / conventions.CONFIG_FILENAME


def _read_file(path: Path) -> dict[str, Any]:
    if not path.exists():
        return {}
    try:
        data = yaml.safe_load(path.read_text())
    except (OSError, yaml.YAMLError):
        logger.warning("Failed to read %s", path, exc_info=True)
        return {}
    return data if isinstance(data, dict) else {}


def _env_overrides() -> dict[str, Any]:
    """Collect TEMPINBOX_* environment overrides into config keys."""
    overrides: dict[str, Any] = {}

    url = os.environ.get("TEMPINBOX_API_URL", "")
    if url:
        overrides["api_base_url"] = url

    for env_key, config_key in (
        ("TEMPINBOX_SESSION_LIFETIME", "session_lifetime_seconds"),
        ("TEMPINBOX_POLL_INTERVAL", "poll_interval_seconds"),
    ):
        raw = os.environ.get(env_key, "")
        if not raw:
            continue
        try:
            overrides[config_key] = int(raw)
        except ValueError:
            logger.warning("Ignoring non-integer %s=%r", env_key, raw)

    simulator = os.environ.get("TEMPINBOX_SIMULATOR_MODE", "")
    if simulator:
        overrides["simulator_mode"] = simulator.lower() in ("1", "true", "yes")

    level = os.environ.get("TEMPINBOX_LOG_LEVEL", "")
    if level:
        overrides["log_level"] = level.upper()

    return overrides


def load_config(path: Path | None = None) -> TempInboxConfig:
    """Load config.yaml plus env overrides, returning defaults if invalid.

    An invalid file logs a warning and falls back to defaults so the
    inbox can still start.
    """
    if path is None:
        path = config_path()

    data = _read_file(path)
    data.update(_env_overrides())
    if not data:
        return TempInboxConfig()

    try:
        return TempInboxConfig(**data)
    except ValidationError as exc:
        logger.warning("Invalid config at %s: %s. Using defaults.", path, exc)
        return TempInboxConfig()


def save_config(config: TempInboxConfig, path: Path | None = None) -> Path:
    """Write config to ~/.tempinbox/config.yaml."""
    if path is None:
        path = config_path()
    path.parent.mkdir(parents=True, exist_ok=True)

    data = config.model_dump()
    path.write_text(yaml.dump(data, default_flow_style=False, sort_keys=False))
    return path
