"""Shared configuration loader for carbon-deploy."""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Mapping
from urllib.parse import urlparse

import yaml


class ConfigurationError(RuntimeError):
    """Raised when configuration is invalid."""


DEFAULT_CONFIG_PATH = Path.home() / ".carbon-deploy.yaml"
_CONFIG_PATH_OVERRIDE: Path | None = None

DEFAULT_RPC_URL = "http://localhost:5172/rpc"
DEFAULT_NEXUS = "testnet"
DEFAULT_TIMEOUT = 30.0

DEFAULT_MAX_ATTEMPTS = 30
DEFAULT_DELAY_MS = 1000
DEFAULT_FAILURE_DETAIL_ATTEMPTS = 6


@dataclass
class RPCConfig:
    """Connection details for a Phantasma JSON-RPC endpoint."""

    url: str = DEFAULT_RPC_URL
    nexus: str = DEFAULT_NEXUS
    timeout: float = DEFAULT_TIMEOUT


@dataclass
class ConfirmationConfig:
    """Polling budgets used while waiting for a transaction outcome."""

    max_attempts: int = DEFAULT_MAX_ATTEMPTS
    delay_ms: int = DEFAULT_DELAY_MS
    failure_detail_attempts: int = DEFAULT_FAILURE_DETAIL_ATTEMPTS


def set_default_config_path(path: str | Path | None) -> None:
    """Remember a user-supplied config path for future loads."""

    global _CONFIG_PATH_OVERRIDE
    _CONFIG_PATH_OVERRIDE = Path(path).expanduser() if path else None


def _resolve_path(config_path: str | Path | None) -> tuple[Path, bool]:
    explicit = config_path is not None or _CONFIG_PATH_OVERRIDE is not None
    if config_path is not None:
        return Path(config_path).expanduser(), explicit
    return _CONFIG_PATH_OVERRIDE or DEFAULT_CONFIG_PATH, explicit


def _load_config_file(path: Path, *, required: bool) -> dict[str, Any]:
    if not path.exists():
        if required:
            raise ConfigurationError(f"Config file not found: {path}")
        return {}

    try:
        loaded = yaml.safe_load(path.read_text()) or {}
    except yaml.YAMLError as exc:  # pragma: no cover - delegated to PyYAML
        raise ConfigurationError(f"Invalid YAML in config file {path}: {exc}") from exc

    if not isinstance(loaded, dict):
        raise ConfigurationError(f"Expected {path} to contain a YAML mapping")
    return loaded


def _section(file_config: Mapping[str, Any], name: str, path: Path) -> Mapping[str, Any]:
    section = file_config.get(name) or {}
    if not isinstance(section, dict):
        raise ConfigurationError(f"Expected '{name}' to be a mapping in {path}")
    return section


def _coerce_int(raw: Any, *, source: str) -> int | None:
    if raw is None:
        return None
    try:
        return int(raw)
    except (TypeError, ValueError) as exc:
        raise ConfigurationError(f"Invalid integer in {source}: {raw}") from exc


def _coerce_float(raw: Any, *, source: str) -> float | None:
    if raw is None:
        return None
    try:
        return float(raw)
    except (TypeError, ValueError) as exc:
        raise ConfigurationError(f"Invalid number in {source}: {raw}") from exc


def _first_value(*values: Any, default: Any = None) -> Any:
    for value in values:
        if value is not None:
            return value
    return default


def _validate_url(raw: str) -> str:
    parsed = urlparse(raw)
    if parsed.scheme.lower() not in {"http", "https"} or not parsed.hostname:
        raise ConfigurationError(f"Invalid RPC endpoint URL: {raw}")
    return raw


def load_rpc_config(
    *,
    config_path: str | Path | None = None,
    env: Mapping[str, str] | None = None,
    overrides: Mapping[str, Any] | None = None,
) -> RPCConfig:
    """Load RPC configuration from overrides, environment variables and optional YAML."""

    env_map = os.environ if env is None else env
    path, explicit_path = _resolve_path(config_path)
    file_config = _load_config_file(path, required=explicit_path)
    rpc_section = _section(file_config, "rpc", path)
    override_map = dict(overrides or {})

    env_url = env_map.get("PHANTASMA_RPC_URL") or env_map.get("CARBON_DEPLOY_RPC_URL")
    env_nexus = env_map.get("PHANTASMA_NEXUS") or env_map.get("CARBON_DEPLOY_NEXUS")
    env_timeout = _coerce_float(env_map.get("CARBON_DEPLOY_RPC_TIMEOUT"), source="environment")

    resolved_url = _first_value(
        override_map.get("url"), env_url, rpc_section.get("url"), DEFAULT_RPC_URL
    )
    resolved_nexus = _first_value(
        override_map.get("nexus"), env_nexus, rpc_section.get("nexus"), DEFAULT_NEXUS
    )
    resolved_timeout = _first_value(
        _coerce_float(override_map.get("timeout"), source="overrides"),
        env_timeout,
        _coerce_float(rpc_section.get("timeout"), source=f"{path} rpc.timeout"),
        DEFAULT_TIMEOUT,
    )
    if resolved_timeout <= 0:
        raise ConfigurationError(f"RPC timeout must be positive, got {resolved_timeout}")

    return RPCConfig(
        url=_validate_url(str(resolved_url)),
        nexus=str(resolved_nexus),
        timeout=resolved_timeout,
    )


def load_confirmation_config(
    *,
    config_path: str | Path | None = None,
    env: Mapping[str, str] | None = None,
    overrides: Mapping[str, Any] | None = None,
) -> ConfirmationConfig:
    """Load confirmation polling budgets; same precedence as :func:`load_rpc_config`."""

    env_map = os.environ if env is None else env
    path, explicit_path = _resolve_path(config_path)
    file_config = _load_config_file(path, required=explicit_path)
    section = _section(file_config, "confirmation", path)
    override_map = dict(overrides or {})

    values = {}
    for key, env_name, default in (
        ("max_attempts", "CARBON_DEPLOY_CONFIRM_MAX_ATTEMPTS", DEFAULT_MAX_ATTEMPTS),
        ("delay_ms", "CARBON_DEPLOY_CONFIRM_DELAY_MS", DEFAULT_DELAY_MS),
        (
            "failure_detail_attempts",
            "CARBON_DEPLOY_CONFIRM_FAILURE_DETAIL_ATTEMPTS",
            DEFAULT_FAILURE_DETAIL_ATTEMPTS,
        ),
    ):
        values[key] = _first_value(
            _coerce_int(override_map.get(key), source="overrides"),
            _coerce_int(env_map.get(env_name), source=env_name),
            _coerce_int(section.get(key), source=f"{path} confirmation.{key}"),
            default,
        )
    return ConfirmationConfig(**values)
