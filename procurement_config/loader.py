"""
Configuration Loader (``procurement_config.loader``).

Loads the approval rules YAML file and parses it into an
``ApprovalRulesConfig``.  Runtime callers go through
``procurement_config.get_active_config()``; the functions here are the
building blocks it uses and are handy in tests.

Failure modes
-------------
* Missing YAML file  -> ``FileNotFoundError`` propagates.
* Malformed YAML  -> ``yaml.YAMLError`` propagates.
* Wrong document shape or invalid values  -> ``ConfigurationError``.
"""

from __future__ import annotations

import hashlib
import json
from pathlib import Path
from typing import Any

import yaml

from procurement_config.schema import ApprovalRulesConfig
from procurement_kernel.exceptions import ConfigurationError

ROOT_KEY = "approval_rules"


def load_yaml_file(path: Path) -> dict[str, Any]:
    """
    Load a single YAML file and return its contents as a dict.

    Returns an empty dict for an empty file.
    """
    with open(path, encoding="utf-8") as f:
        data = yaml.safe_load(f)
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ConfigurationError(str(path), "top level must be a mapping")
    return data


def parse_approval_rules(data: dict[str, Any]) -> ApprovalRulesConfig:
    """
    Parse an ``ApprovalRulesConfig`` from a loaded YAML document.

    The rules live under the ``approval_rules`` key.  A document without
    that key yields the defaults.
    """
    section = data.get(ROOT_KEY) or {}
    if not isinstance(section, dict):
        raise ConfigurationError(ROOT_KEY, "must be a mapping")
    return ApprovalRulesConfig.from_dict(section)


def compute_checksum(data: dict[str, Any]) -> str:
    """SHA-256 of the canonical JSON form of ``data``; identical input, identical hash."""
    canonical = json.dumps(data, sort_keys=True, default=str)
    return hashlib.sha256(canonical.encode()).hexdigest()
