"""
procurement_config -- single public entrypoint for approval rules.

``get_active_config()`` is the only way runtime code obtains an
``ApprovalRulesConfig``.  It reads the packaged ``approval_rules.yaml``
(or an explicit override path), validates it, and emits a
``PROCUREMENT_CONFIG_TRACE`` log record carrying the file's checksum so
every approval decision can be tied back to the exact rules in force.
"""

from __future__ import annotations

from pathlib import Path

from procurement_config.loader import (
    compute_checksum,
    load_yaml_file,
    parse_approval_rules,
)
from procurement_config.schema import ApprovalRulesConfig
from procurement_kernel.logging_config import get_logger

_logger = get_logger("config")

DEFAULT_RULES_PATH = Path(__file__).parent / "approval_rules.yaml"


def get_active_config(path: Path | None = None) -> ApprovalRulesConfig:
    """Load, validate and return the approval rules.

    Args:
        path: Override YAML file.  Defaults to the packaged
            ``approval_rules.yaml``.

    Raises:
        FileNotFoundError: If the file does not exist.
        yaml.YAMLError: If the file is not valid YAML.
        ConfigurationError: If any setting is invalid.
    """
    source = path or DEFAULT_RULES_PATH
    data = load_yaml_file(source)
    config = parse_approval_rules(data)

    _logger.info(
        "PROCUREMENT_CONFIG_TRACE",
        extra={
            "trace_type": "PROCUREMENT_CONFIG_TRACE",
            "source": str(source),
            "checksum": compute_checksum(data),
            "config_version": config.version,
            "currency": config.currency,
        },
    )
    return config


__all__ = [
    "ApprovalRulesConfig",
    "DEFAULT_RULES_PATH",
    "get_active_config",
]
