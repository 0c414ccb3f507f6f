"""
Settings file handling for keylight sessions.
Reads optional overrides from a JSON file located using XDG standards.
"""

import json
import os
from pathlib import Path
from typing import Any, Dict, Optional, Union

from loguru import logger

from .core.settings_schema import Settings, defaults_dict, settings_from_dict


def config_path() -> Path:
    """Get settings file path following XDG standards"""
    # Use XDG_CONFIG_HOME if set, otherwise default to ~/.config
    config_home = os.environ.get('XDG_CONFIG_HOME')
    if config_home:
        config_dir = Path(config_home) / 'keylight-session'
    else:
        config_dir = Path.home() / '.config' / 'keylight-session'
    return config_dir / 'settings.json'


def _read_overrides(path: Path) -> Dict[str, Any]:
    """Load raw dotted-key overrides, return empty dict if unusable"""
    if not path.exists():
        return {}
    try:
        with open(path, 'r', encoding='utf-8') as f:
            data = json.load(f)
    except (json.JSONDecodeError, IOError) as e:
        logger.warning(f"Error loading settings from {path}: {e}")
        return {}
    if not isinstance(data, dict):
        logger.warning(f"Invalid settings structure in {path}, using defaults")
        return {}
    return data


def _accepts(default: Any, value: Any) -> bool:
    if isinstance(default, bool) or isinstance(value, bool):
        return isinstance(default, bool) and isinstance(value, bool)
    if isinstance(default, float):
        return isinstance(value, (int, float))
    return isinstance(value, type(default))


def load_settings(path: Optional[Union[str, Path]] = None) -> Settings:
    """Load settings, overlaying values from the settings file on the defaults.

    Unknown keys and values of the wrong type are reported and skipped. The
    file is never created.
    """
    path = Path(path) if path is not None else config_path()
    defaults = defaults_dict()
    accepted: Dict[str, Any] = {}

    for key, value in _read_overrides(path).items():
        if key not in defaults:
            logger.warning(f"Ignoring unknown setting {key!r} in {path}")
            continue
        if not _accepts(defaults[key], value):
            logger.warning(f"Ignoring setting {key!r} in {path}: unexpected value {value!r}")
            continue
        accepted[key] = value

    if accepted:
        logger.debug(f"Loaded {len(accepted)} setting override(s) from {path}")
    return settings_from_dict(accepted)
