"""Configuration loading for runtime tunables.

Reads YAML or JSON from an explicit path, ``DEPSMITH_CONFIG`` or the default
locations, validates it and copies recognized keys onto ``Constants``.
Environment overrides take precedence over file values.
"""

from __future__ import annotations

import json
import logging
import os
from typing import Any, Dict, Optional

import yaml

from common.schema import validate_config
from constants import Constants

logger = logging.getLogger(__name__)

_TRUTHY = ("1", "true", "yes", "on")


def _candidate_paths(path: Optional[str]):
    if path:
        yield path
        return
    env_path = os.environ.get(Constants.CONFIG_ENV_VAR)
    if env_path:
        yield env_path
    for loc in Constants.CONFIG_LOCATIONS:
        yield os.path.expanduser(loc)


def _read_document(path: str) -> Dict[str, Any]:
    with open(path, "r", encoding="utf-8") as fh:
        if path.lower().endswith(".json"):
            data = json.load(fh)
        else:
            data = yaml.safe_load(fh)
    return data or {}


def load_config(path: Optional[str] = None) -> Dict[str, Any]:
    """Load the first configuration document found.

    An explicitly given path must exist; default locations are optional.

    Args:
        path: Optional explicit config path (YAML, YML, or JSON).

    Returns:
        Validated configuration dict (empty when nothing was found).

    Raises:
        FileNotFoundError: Explicit path does not exist.
        common.schema.SchemaError: Document does not match the schema.
    """
    if path and not os.path.isfile(path):
        raise FileNotFoundError(path)
    for candidate in _candidate_paths(path):
        if not os.path.isfile(candidate):
            continue
        data = _read_document(candidate)
        validate_config(data)
        logger.debug("Loaded configuration from %s", candidate)
        return data
    return {}


def apply_config(cfg: Dict[str, Any]) -> None:
    """Copy recognized configuration keys and environment overrides onto Constants."""
    resolver_cfg = cfg.get("resolver") or {}
    http_cfg = cfg.get("http") or {}

    if "max_steps" in resolver_cfg:
        Constants.MAX_RESOLUTION_STEPS = int(resolver_cfg["max_steps"])
    if "allow_prerelease" in resolver_cfg:
        Constants.ALLOW_PRERELEASE = bool(resolver_cfg["allow_prerelease"])
    if "tool_version" in resolver_cfg:
        Constants.TOOL_VERSION = str(resolver_cfg["tool_version"])
    if "timeout" in http_cfg:
        Constants.REQUEST_TIMEOUT = http_cfg["timeout"]
    if "retries" in http_cfg:
        Constants.HTTP_RETRY_MAX = int(http_cfg["retries"])
    if "cache_ttl" in http_cfg:
        Constants.HTTP_CACHE_TTL_SEC = int(http_cfg["cache_ttl"])
    if "max_concurrency" in http_cfg:
        Constants.FETCH_MAX_CONCURRENCY = int(http_cfg["max_concurrency"])
    if cfg.get("default_source"):
        Constants.DEFAULT_SOURCE = str(cfg["default_source"])

    _apply_env_overrides()


def _apply_env_overrides() -> None:
    steps = os.environ.get("DEPSMITH_MAX_STEPS")
    if steps:
        try:
            Constants.MAX_RESOLUTION_STEPS = int(steps)
        except ValueError:
            logger.warning("Ignoring non-integer DEPSMITH_MAX_STEPS=%r", steps)
    pre = os.environ.get("DEPSMITH_ALLOW_PRERELEASE")
    if pre is not None:
        Constants.ALLOW_PRERELEASE = pre.strip().lower() in _TRUTHY
    timeout = os.environ.get("DEPSMITH_REQUEST_TIMEOUT")
    if timeout:
        try:
            Constants.REQUEST_TIMEOUT = float(timeout)
        except ValueError:
            logger.warning("Ignoring non-numeric DEPSMITH_REQUEST_TIMEOUT=%r", timeout)
