"""Configuration loading utilities for the message bank.

This module handles layered configuration:
1. Explicit path argument (highest precedence)
2. Environment variable MESSAGE_BANK_CONFIG
3. Fallback to "config/default.yaml"

It also supports optional overrides from environment variables with prefix
``MESSAGE_BANK__`` (e.g., MESSAGE_BANK__TCP__PORT=5000).
"""

from __future__ import annotations

import copy
import logging
import os
from pathlib import Path
from typing import Any, Dict

import yaml

logger = logging.getLogger(__name__)

ENV_PATH = "MESSAGE_BANK_CONFIG"
ENV_PREFIX = "MESSAGE_BANK__"

DEFAULTS: Dict[str, Any] = {
    "bank": {"default_timeout": 30, "gather_timeout": 10},
    "server": {"host": "127.0.0.1", "port": 8000, "cors_origins": ["*"]},
    "tcp": {"host": "127.0.0.1", "port": 4545},
    "logging": {"level": "INFO"},
}


def _coerce(value: str) -> Any:
    if value.lower() in {"true", "false"}:
        return value.lower() == "true"
    try:
        if "." in value:
            return float(value)
        return int(value)
    except ValueError:
        return value


def _apply_env_overrides(cfg: Dict[str, Any]) -> Dict[str, Any]:
    """Apply environment variable overrides with prefix MESSAGE_BANK__."""
    for key, value in os.environ.items():
        if not key.startswith(ENV_PREFIX):
            continue
        # e.g., MESSAGE_BANK__BANK__GATHER_TIMEOUT -> cfg["bank"]["gather_timeout"]
        parts = key[len(ENV_PREFIX):].lower().split("__")
        sub = cfg
        for p in parts[:-1]:
            if p not in sub or not isinstance(sub[p], dict):
                sub[p] = {}
            sub = sub[p]
        sub[parts[-1]] = _coerce(value)
    return cfg


def _merge(base: Dict[str, Any], extra: Dict[str, Any]) -> Dict[str, Any]:
    out = copy.deepcopy(base)
    for k, v in extra.items():
        if isinstance(v, dict) and isinstance(out.get(k), dict):
            out[k] = _merge(out[k], v)
        else:
            out[k] = v
    return out


def load_config(path: str | None = None) -> Dict[str, Any]:
    """Load YAML configuration for the message bank.

    Parameters
    ----------
    path : str | None
        Optional path to a configuration file. If not provided, the
        environment variable ``MESSAGE_BANK_CONFIG`` is consulted. As a
        last resort ``config/default.yaml`` is used.

    Returns
    -------
    Dict[str, Any]
        Built-in defaults overlaid with the file contents and then with
        environment overrides.
    """
    if path is None:
        path = os.environ.get(ENV_PATH, "config/default.yaml")

    path_obj = Path(path)
    if not path_obj.exists():
        logger.warning("Config file not found at %s. Using defaults.", path_obj)
        return _apply_env_overrides(copy.deepcopy(DEFAULTS))

    with path_obj.open("r", encoding="utf-8") as f:
        try:
            cfg = yaml.safe_load(f) or {}
        except yaml.YAMLError as e:
            raise RuntimeError(f"Failed to parse config file {path_obj}: {e}")

    if not isinstance(cfg, dict):
        raise RuntimeError(f"Invalid config format in {path_obj}, expected dict.")

    return _apply_env_overrides(_merge(DEFAULTS, cfg))


def bank_options(cfg: Dict[str, Any]) -> Dict[str, float]:
    """Keyword arguments for :class:`message_bank.bank.MessageBank`."""
    bank_cfg = cfg.get("bank", {}) or {}
    return {
        "default_timeout": float(bank_cfg.get("default_timeout", DEFAULTS["bank"]["default_timeout"])),
        "gather_timeout": float(bank_cfg.get("gather_timeout", DEFAULTS["bank"]["gather_timeout"])),
    }


def configure_logging(cfg: Dict[str, Any]) -> None:
    level = str((cfg.get("logging", {}) or {}).get("level", "INFO")).upper()
    logging.basicConfig(
        level=getattr(logging, level, logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
