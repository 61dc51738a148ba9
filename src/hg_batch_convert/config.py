from __future__ import annotations

import argparse
import json
from pathlib import Path

from .convert import ConvertSettings
from .errors import ConfigurationError
from .identity import GLOBAL_SETUP_TIMEOUT_S

DEFAULT_CONFIG_NAME = "hg-batch-convert.json"

# config key -> ConvertSettings field
_SETTING_KEYS = {
    "fast_export_path": "fast_export",
    "source_encoding": "source_encoding",
    "default_branch": "default_branch",
    "authors_filename": "authors_filename",
    "log_timeout_s": "log_timeout_s",
}


def load_config(config_path: Path) -> dict:
    if not config_path.exists():
        return {}
    try:
        data = json.loads(config_path.read_text(encoding="utf-8"))
    except (OSError, ValueError) as e:
        raise ConfigurationError(f"cannot read {config_path}: {e}") from e
    if not isinstance(data, dict):
        raise ConfigurationError(f"{config_path}: expected a JSON object")
    return data


def _positive_float(config: dict, key: str) -> float:
    try:
        value = float(config[key])
    except (TypeError, ValueError) as e:
        raise ConfigurationError(f"{key} must be a number, got {config[key]!r}") from e
    if value <= 0:
        raise ConfigurationError(f"{key} must be positive, got {value:g}")
    return value


def settings_from(config: dict, args: argparse.Namespace | None = None) -> ConvertSettings:
    """Resolve converter settings: command-line flag, then config file, then default."""
    values: dict[str, object] = {}
    for key, field in _SETTING_KEYS.items():
        if key not in config or config[key] in (None, ""):
            continue
        if key == "log_timeout_s":
            values[field] = _positive_float(config, key)
        else:
            values[field] = str(config[key])

    if args is not None:
        if getattr(args, "fast_export", ""):
            values["fast_export"] = str(args.fast_export)
        if getattr(args, "encoding", ""):
            values["source_encoding"] = str(args.encoding)
        if getattr(args, "branch", ""):
            values["default_branch"] = str(args.branch)
        if getattr(args, "dry_run", False):
            values["dry_run"] = True

    return ConvertSettings(**values)


def global_timeout_from(config: dict) -> float:
    if config.get("global_timeout_s") in (None, ""):
        return GLOBAL_SETUP_TIMEOUT_S
    return _positive_float(config, "global_timeout_s")
