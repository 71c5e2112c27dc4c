"""
Pytron Client Configuration Management.

Handles loading and validating configuration from various sources:
- Default values
- Configuration files (TOML)
- Environment variables
"""

from __future__ import annotations

import json
import os
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, List, Optional

# Python 3.11+ ships tomllib, older interpreters use the tomli backport
try:
    import tomllib
except ImportError:
    import tomli as tomllib  # type: ignore

import yaml


# Configuration directory and file constants
DEFAULT_CONFIG_DIR = Path.home() / ".config" / "pytron"
DEFAULT_CONFIG_FILE = "client.toml"

_TRUE_VALUES = ("true", "1", "yes")


@dataclass
class ValidationError:
    """Validation error for configuration."""
    field: str
    message: str
    severity: str  # "error" or "warning"

    def __str__(self) -> str:
        return f"[{self.severity.upper()}] {self.field}: {self.message}"


@dataclass
class BridgeConfig:
    """Names under which the backend presents itself in the host globals."""

    # Prefix for namespaced global functions (pytron_<method>)
    global_prefix: str = "pytron"

    # Direct native call primitive: native(method, args)
    native_call_name: str = "__pytron_native_bridge"

    # Global marker object (the client also publishes itself here)
    marker_name: str = "pytron"

    # Entry point the backend invokes to push events
    dispatch_name: str = "__pytron_dispatch"

    # Globally bound functions whose presence means the backend is up
    ready_functions: list[str] = field(default_factory=lambda: [
        "pytron_close",
        "pytron_minimize",
        "pytron_drag",
        "pytron_sync_state",
    ])

    # Backend functions used for diagnostics
    log_method: str = "log"
    error_report_method: str = "report_error"


@dataclass
class WaitConfig:
    """Configuration for backend readiness waits."""

    poll_interval: float = 0.05

    # Explicit wait_for_backend() default
    default_timeout: float = 5.0

    # Per-call auto-wait before forwarding a method call
    auto_wait_timeout: float = 2.0

    # "resolve" returns quietly on timeout, "reject" raises WaitTimeoutError
    timeout_policy: str = "resolve"


@dataclass
class SyncConfig:
    """Configuration for the startup state pull."""

    enabled: bool = True
    method: str = "sync_state"
    attempts: int = 5
    backoff: float = 0.1

    # Reserved state key listing the active plugins
    plugins_key: str = "plugins"


@dataclass
class ResourceConfig:
    """Configuration for backend-served assets."""

    scheme: str = "pytron"
    intercept_fetch: bool = True
    watch_dom: bool = True
    binary_method: str = "get_binary_asset"
    legacy_method: str = "get_asset"


@dataclass
class PluginConfig:
    """Configuration for UI plugin mounting."""

    slot_attribute: str = "data-pytron-slot"
    element_suffix: str = "-widget"


@dataclass
class ConnectionConfig:
    """Configuration for the stream transport used by the CLI."""

    host: str = "127.0.0.1"
    port: int = 8765
    connect_timeout: float = 10.0
    request_timeout: float = 60.0


@dataclass
class LoggingConfig:
    """Configuration for logging."""

    level: str = "WARNING"
    format: str = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
    file: Optional[Path] = None


@dataclass
class ClientConfig:
    """Main configuration container for the Pytron client."""

    bridge: BridgeConfig = field(default_factory=BridgeConfig)
    wait: WaitConfig = field(default_factory=WaitConfig)
    sync: SyncConfig = field(default_factory=SyncConfig)
    resources: ResourceConfig = field(default_factory=ResourceConfig)
    plugins: PluginConfig = field(default_factory=PluginConfig)
    connection: ConnectionConfig = field(default_factory=ConnectionConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)


_SECTIONS = ("bridge", "wait", "sync", "resources", "plugins", "connection", "logging")


def load_config(
    config_path: Optional[Path] = None,
    env_prefix: str = "PYTRON_"
) -> ClientConfig:
    """
    Load configuration from file and environment variables.

    Priority (highest to lowest):
    1. Environment variables
    2. Config file
    3. Default values

    Args:
        config_path: Path to config file (default: ~/.config/pytron/client.toml)
        env_prefix: Prefix for environment variables

    Returns:
        Loaded configuration
    """
    config = ClientConfig()

    if config_path is None:
        env_config_dir = os.environ.get(f"{env_prefix}CONFIG_DIR")
        if env_config_dir:
            config_path = Path(env_config_dir) / DEFAULT_CONFIG_FILE
        else:
            config_path = DEFAULT_CONFIG_DIR / DEFAULT_CONFIG_FILE

    if config_path.exists():
        config = _load_from_file(config_path, config)

    return _load_from_env(config, env_prefix)


def _load_from_file(path: Path, config: ClientConfig) -> ClientConfig:
    """Load configuration from a TOML file."""
    try:
        with open(path, "rb") as f:
            data = tomllib.load(f)
    except (OSError, tomllib.TOMLDecodeError) as e:
        print(f"Warning: Failed to load config from {path}: {e}")
        return config

    for section in _SECTIONS:
        values = data.get(section)
        if not isinstance(values, dict):
            continue
        target = getattr(config, section)
        for key, value in values.items():
            if hasattr(target, key):
                setattr(target, key, value)

    if config.logging.file is not None:
        config.logging.file = Path(config.logging.file)

    return config


def _load_from_env(config: ClientConfig, prefix: str) -> ClientConfig:
    """Load configuration from environment variables."""

    # Bridge naming
    if env_val := os.environ.get(f"{prefix}GLOBAL_PREFIX"):
        config.bridge.global_prefix = env_val
    if env_val := os.environ.get(f"{prefix}NATIVE_CALL_NAME"):
        config.bridge.native_call_name = env_val

    # Wait settings
    if env_val := os.environ.get(f"{prefix}WAIT_TIMEOUT"):
        config.wait.default_timeout = float(env_val)
    if env_val := os.environ.get(f"{prefix}AUTO_WAIT_TIMEOUT"):
        config.wait.auto_wait_timeout = float(env_val)
    if env_val := os.environ.get(f"{prefix}POLL_INTERVAL"):
        config.wait.poll_interval = float(env_val)
    if env_val := os.environ.get(f"{prefix}TIMEOUT_POLICY"):
        config.wait.timeout_policy = env_val.lower()

    # State sync
    if env_val := os.environ.get(f"{prefix}SYNC_ENABLED"):
        config.sync.enabled = env_val.lower() in _TRUE_VALUES
    if env_val := os.environ.get(f"{prefix}SYNC_ATTEMPTS"):
        config.sync.attempts = int(env_val)

    # Resources
    if env_val := os.environ.get(f"{prefix}RESOURCE_SCHEME"):
        config.resources.scheme = env_val
    if env_val := os.environ.get(f"{prefix}WATCH_DOM"):
        config.resources.watch_dom = env_val.lower() in _TRUE_VALUES
    if env_val := os.environ.get(f"{prefix}INTERCEPT_FETCH"):
        config.resources.intercept_fetch = env_val.lower() in _TRUE_VALUES

    # Connection
    if env_val := os.environ.get(f"{prefix}HOST"):
        config.connection.host = env_val
    if env_val := os.environ.get(f"{prefix}PORT"):
        config.connection.port = int(env_val)

    # Logging
    if env_val := os.environ.get(f"{prefix}LOG_LEVEL"):
        config.logging.level = env_val.upper()
    if env_val := os.environ.get(f"{prefix}LOG_FILE"):
        config.logging.file = Path(env_val)

    return config


# Global configuration instance (lazy-loaded)
_global_config: Optional[ClientConfig] = None


def get_config() -> ClientConfig:
    """Get the global configuration instance."""
    global _global_config
    if _global_config is None:
        _global_config = load_config()
    return _global_config


def set_config(config: ClientConfig) -> None:
    """Set the global configuration instance."""
    global _global_config
    _global_config = config


def clear_config_cache() -> None:
    """Clear the global configuration cache."""
    global _global_config
    _global_config = None


def _validate_name(name: str) -> bool:
    """Validate a host global / method identifier."""
    return bool(re.match(r"^[A-Za-z_$][A-Za-z0-9_$]*$", name))


def _validate_scheme(scheme: str) -> bool:
    """Validate a URL scheme (RFC 3986)."""
    return bool(re.match(r"^[A-Za-z][A-Za-z0-9+.-]*$", scheme))


def validate_config(config: Optional[ClientConfig] = None) -> List[ValidationError]:
    """
    Validate configuration and return list of errors.

    Args:
        config: Configuration to validate (default: loaded from file)

    Returns:
        List of validation errors (empty if valid)
    """
    if config is None:
        config = load_config()

    errors: List[ValidationError] = []

    for field_name in ("global_prefix", "native_call_name", "marker_name", "dispatch_name"):
        value = getattr(config.bridge, field_name)
        if not _validate_name(value):
            errors.append(ValidationError(
                field=f"bridge.{field_name}",
                message=f"Invalid identifier: {value!r}",
                severity="error"
            ))

    if not config.bridge.ready_functions:
        errors.append(ValidationError(
            field="bridge.ready_functions",
            message="No readiness functions configured; only the native bridge and marker will be detected.",
            severity="warning"
        ))

    # Wait validation
    if config.wait.poll_interval <= 0:
        errors.append(ValidationError(
            field="wait.poll_interval",
            message="Poll interval must be positive.",
            severity="error"
        ))
    elif config.wait.poll_interval > 1.0:
        errors.append(ValidationError(
            field="wait.poll_interval",
            message=f"Poll interval of {config.wait.poll_interval}s will make readiness detection sluggish.",
            severity="warning"
        ))

    if config.wait.timeout_policy not in ("resolve", "reject"):
        errors.append(ValidationError(
            field="wait.timeout_policy",
            message=f"Unknown timeout policy: {config.wait.timeout_policy}",
            severity="error"
        ))

    if config.wait.auto_wait_timeout > config.wait.default_timeout:
        errors.append(ValidationError(
            field="wait.auto_wait_timeout",
            message="Per-call auto-wait is longer than the explicit wait default.",
            severity="warning"
        ))

    # Sync validation
    if config.sync.attempts < 1:
        errors.append(ValidationError(
            field="sync.attempts",
            message="At least one sync attempt is required.",
            severity="error"
        ))

    # Resource validation
    if not _validate_scheme(config.resources.scheme):
        errors.append(ValidationError(
            field="resources.scheme",
            message=f"Invalid URL scheme: {config.resources.scheme}",
            severity="error"
        ))
    elif config.resources.scheme.lower() in ("http", "https", "data", "blob", "file"):
        errors.append(ValidationError(
            field="resources.scheme",
            message=f"Scheme '{config.resources.scheme}' is reserved by the host.",
            severity="error"
        ))

    # Connection validation
    if not 0 < config.connection.port < 65536:
        errors.append(ValidationError(
            field="connection.port",
            message=f"Invalid port: {config.connection.port}",
            severity="error"
        ))

    return errors


def _config_to_dict(config: ClientConfig) -> dict[str, Any]:
    """
    Convert configuration to dictionary.

    Args:
        config: Configuration to convert

    Returns:
        Dictionary representation of config
    """
    result: dict[str, Any] = {}
    for section in _SECTIONS:
        values = dict(vars(getattr(config, section)))
        for key, value in values.items():
            if isinstance(value, Path):
                values[key] = str(value)
            elif isinstance(value, list):
                values[key] = list(value)
        result[section] = values
    return result


def export_config_yaml(config: ClientConfig) -> str:
    """Export configuration as YAML string."""
    config_dict = _config_to_dict(config)
    return yaml.dump(config_dict, default_flow_style=False, sort_keys=False, allow_unicode=True)


def export_config_json(config: ClientConfig) -> str:
    """Export configuration as JSON string."""
    config_dict = _config_to_dict(config)
    return json.dumps(config_dict, indent=2)
