"""
Configuration utilities for wdspatch
------------------------------------

This module provides helper functions to load and merge configuration
files for the image updater.  Configurations may be supplied in YAML or
JSON format.  A default configuration is provided and will be merged
with any user-supplied configuration such that missing values fall back
to sensible defaults.

The default configuration covers the working paths, updater behaviour,
the servicing backend and logging.  Values given on the command line
take precedence over the file.
"""

from __future__ import annotations

import copy
import json
import os
from typing import Any, Dict, Optional

import yaml

from .models import CLEANUP_LEGACY, UpdateSettings
from .naming import default_tool_name


# ----------------------------------------------------------------------
# Default configuration
# ----------------------------------------------------------------------

DEFAULT_CONFIG: Dict[str, Any] = {
    "paths": {
        # Scratch folder for exported images and mount points.  Left
        # empty, the operator is prompted for it at start-up.
        "scratch_path": None,
        # WSUS content directory, one subfolder per update package.
        # Left empty, the operator is prompted for it at start-up.
        "wsus_content_path": None,
    },
    "updater": {
        # 'legacy' leaves temporary files behind on the failure paths
        # where they always have been; 'always' removes them.
        "cleanup_policy": CLEANUP_LEGACY,
        # Name recorded in the "(Updated <date> via <tool>)" annotation.
        # None means the name the program was started under.
        "tool_name": None,
        # Glob patterns selecting images by name.  Empty selects all.
        "image_filters": [],
    },
    "servicing": {
        # 'dry-run' logs mutating operations without running them.
        "mode": "real-run",
        "powershell": "powershell.exe",
    },
    "logging": {
        # Logging level.  One of 'DEBUG', 'INFO', 'WARNING', 'ERROR', 'CRITICAL'.
        "level": "INFO",
        # Optional file name to write logs to.
        "file": None,
    },
}


def _merge_dicts(a: Dict[str, Any], b: Dict[str, Any]) -> Dict[str, Any]:
    """Recursively merge two dictionaries.

    Values in dictionary ``b`` override those in ``a``.  Nested
    dictionaries are merged recursively.

    Parameters
    ----------
    a : dict
        Base dictionary whose keys will be overridden by ``b``.
    b : dict
        Dictionary with override values.

    Returns
    -------
    dict
        A new dictionary containing the merged values.
    """
    result: Dict[str, Any] = dict(a)
    for key, value in b.items():
        if (
            key in result
            and isinstance(result[key], dict)
            and isinstance(value, dict)
        ):
            result[key] = _merge_dicts(result[key], value)
        else:
            result[key] = value
    return result


def load_config(path: Optional[str]) -> Dict[str, Any]:
    """Load a configuration file and merge it with the default config.

    Parameters
    ----------
    path : str or None
        Path to a YAML or JSON configuration file.  If None or missing,
        only the default configuration is returned.

    Returns
    -------
    dict
        The merged configuration.

    Raises
    ------
    ValueError
        If the file cannot be parsed or does not hold a mapping.
    """
    cfg = copy.deepcopy(DEFAULT_CONFIG)
    if path is None or not os.path.isfile(path):
        return cfg
    with open(path, "r", encoding="utf-8") as f:
        text = f.read()
    try:
        # Detect YAML vs JSON by first character
        if text.lstrip().startswith("{"):
            data = json.loads(text)
        else:
            data = yaml.safe_load(text) or {}
    except (ValueError, yaml.YAMLError) as exc:
        raise ValueError(f"Could not parse configuration {path}: {exc}") from exc
    if not isinstance(data, dict):
        raise ValueError(f"Configuration {path} must contain a mapping")
    return _merge_dicts(cfg, data)


def dump_default_config(path: str) -> None:
    """Write the default configuration to a file in YAML format.

    Parameters
    ----------
    path : str
        Destination path to write the YAML file.
    """
    try:
        with open(path, "w", encoding="utf-8") as f:
            yaml.safe_dump(DEFAULT_CONFIG, f, default_flow_style=False, sort_keys=False)
    except OSError as e:
        raise RuntimeError(f"Failed to write config to {path}: {e}")


def build_settings(cfg: Dict[str, Any]) -> UpdateSettings:
    """Turn a merged configuration into ``UpdateSettings``.

    Both paths must already be filled in, either by the file, the
    command line or the interactive prompts.
    """
    paths = cfg.get("paths", {})
    updater = cfg.get("updater", {})
    return UpdateSettings(
        scratch_path=paths["scratch_path"],
        wsus_content_path=paths["wsus_content_path"],
        tool_name=updater.get("tool_name") or default_tool_name(),
        cleanup_policy=updater.get("cleanup_policy", CLEANUP_LEGACY),
        image_filters=list(updater.get("image_filters") or []),
    )
