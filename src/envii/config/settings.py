"""
Configuration settings management for Envii.

This module handles loading, validating, and saving configuration settings
from YAML files with support for environment variable overrides.

Configuration is loaded from ~/.envii/config.yaml by default, with the
path overridable via the ENVII_CONFIG environment variable. The file never
contains the recovery phrase or any key material, only the vault
identifier and device settings.
"""

import os
import platform
import uuid
from collections.abc import Callable
from dataclasses import dataclass
from pathlib import Path
from typing import Any

import yaml

from envii.errors import ConfigurationError

# Default configuration directory
DEFAULT_CONFIG_DIR = Path.home() / ".envii"
DEFAULT_CONFIG_FILE = DEFAULT_CONFIG_DIR / "config.yaml"

DEFAULT_API_URL = "https://api.envii.dev"
DEFAULT_DEV_API_URL = "http://localhost:4400"
DEFAULT_REQUEST_TIMEOUT = 30.0


def default_device_id() -> str:
    """Build a device identifier from the hostname and a random suffix."""
    hostname = platform.node().split(".")[0] or "device"
    return f"{hostname}-{uuid.uuid4().hex[:8]}"


@dataclass
class Settings:
    """
    Complete Envii configuration settings.

    Attributes:
        api_url: Vault store URL.
        dev_api_url: Vault store URL used with --dev.
        device_id: Identifier of this machine, stored in every backup.
        vault_id: Vault identifier derived from the recovery phrase.
                  Empty until `envii init` has run.
        log_level: Logging verbosity (DEBUG, INFO, WARNING, ERROR).
        request_timeout: HTTP timeout in seconds.
    """

    api_url: str = DEFAULT_API_URL
    dev_api_url: str = DEFAULT_DEV_API_URL
    device_id: str = ""
    vault_id: str = ""
    log_level: str = "WARNING"
    request_timeout: float = DEFAULT_REQUEST_TIMEOUT

    def is_initialized(self) -> bool:
        """Check whether a vault has been configured."""
        return bool(self.vault_id)

    def resolve_api_url(self, dev: bool = False) -> str:
        """Return the store URL for normal or development use."""
        return self.dev_api_url if dev else self.api_url


def get_config_path() -> Path:
    """
    Get the configuration file path.

    Returns the path from ENVII_CONFIG environment variable if set,
    otherwise returns the default path (~/.envii/config.yaml).
    """
    env_path = os.environ.get("ENVII_CONFIG")
    if env_path:
        return Path(env_path)
    return DEFAULT_CONFIG_FILE


def load_config(config_path: Path | None = None) -> Settings:
    """
    Load configuration from YAML file.

    Reads configuration from the specified path (or default if not provided),
    applies environment variable overrides, and validates the configuration.

    Args:
        config_path: Optional path to configuration file. If not provided,
                    uses ENVII_CONFIG environment variable or default path.

    Returns:
        Validated Settings instance.

    Raises:
        ConfigurationError: If the configuration file cannot be read or
                          contains invalid settings.
    """
    if config_path is None:
        config_path = get_config_path()

    settings = Settings()

    if config_path.exists():
        try:
            with open(config_path) as f:
                config_data = yaml.safe_load(f) or {}
        except yaml.YAMLError as e:
            raise ConfigurationError(f"Invalid YAML in config file: {e}") from e
        except OSError as e:
            raise ConfigurationError(f"Cannot read config file: {e}") from e

        if not isinstance(config_data, dict):
            raise ConfigurationError("Config file must contain a mapping")

        settings = _apply_config_data(settings, config_data)

    settings = _apply_environment_overrides(settings)

    _validate_config(settings)

    return settings


def save_config(settings: Settings, config_path: Path | None = None) -> None:
    """
    Save configuration to YAML file with owner-only permissions.

    Args:
        settings: Settings instance to save.
        config_path: Optional path to configuration file.

    Raises:
        ConfigurationError: If the configuration cannot be written.
    """
    if config_path is None:
        config_path = get_config_path()

    config_data = _settings_to_dict(settings)

    try:
        config_path.parent.mkdir(parents=True, exist_ok=True)
        with open(config_path, "w") as f:
            yaml.safe_dump(config_data, f, default_flow_style=False, sort_keys=False)
    except OSError as e:
        raise ConfigurationError(f"Cannot write config file: {e}") from e

    try:
        os.chmod(config_path, 0o600)
    except OSError:
        # Windows or permission error - continue anyway
        pass


def _apply_config_data(settings: Settings, data: dict[str, Any]) -> Settings:
    """Apply configuration data from parsed YAML to settings."""
    envii_data = data.get("envii", {}) or {}

    if "log_level" in envii_data:
        settings.log_level = str(envii_data["log_level"]).upper()
    if "device_id" in envii_data:
        settings.device_id = str(envii_data["device_id"] or "")
    if "vault_id" in envii_data:
        settings.vault_id = str(envii_data["vault_id"] or "")

    api = data.get("api", {}) or {}
    if "url" in api:
        settings.api_url = str(api["url"])
    if "dev_url" in api:
        settings.dev_api_url = str(api["dev_url"])
    if "timeout" in api:
        try:
            settings.request_timeout = float(api["timeout"])
        except (TypeError, ValueError) as e:
            raise ConfigurationError(f"Invalid api.timeout: {api['timeout']!r}") from e

    return settings


def _apply_environment_overrides(settings: Settings) -> Settings:
    """Apply environment variable overrides to settings."""
    env_map: dict[str, tuple[str, Callable[[str], Any]]] = {
        "ENVII_API_URL": ("api_url", str),
        "ENVII_DEV_API_URL": ("dev_api_url", str),
        "ENVII_DEVICE_ID": ("device_id", str),
        "ENVII_LOG_LEVEL": ("log_level", lambda x: x.upper()),
        "ENVII_REQUEST_TIMEOUT": ("request_timeout", float),
    }

    for env_var, (attr, converter) in env_map.items():
        value = os.environ.get(env_var)
        if value is not None:
            try:
                setattr(settings, attr, converter(value))
            except ValueError as e:
                raise ConfigurationError(f"Invalid value for {env_var}: {value!r}") from e

    return settings


def _validate_config(settings: Settings) -> None:
    """
    Validate configuration settings.

    Raises:
        ConfigurationError: If configuration is invalid.
    """
    valid_log_levels = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}
    if settings.log_level not in valid_log_levels:
        raise ConfigurationError(
            f"Invalid log_level: {settings.log_level}. "
            f"Must be one of: {', '.join(sorted(valid_log_levels))}"
        )

    if settings.request_timeout <= 0:
        raise ConfigurationError("api.timeout must be greater than 0")

    for name, url in (("api.url", settings.api_url), ("api.dev_url", settings.dev_api_url)):
        if not url.startswith(("http://", "https://")):
            raise ConfigurationError(f"{name} must be an http(s) URL, got: {url}")


def _settings_to_dict(settings: Settings) -> dict[str, Any]:
    """Convert Settings instance to dictionary for YAML serialization."""
    return {
        "envii": {
            "device_id": settings.device_id,
            "vault_id": settings.vault_id,
            "log_level": settings.log_level,
        },
        "api": {
            "url": settings.api_url,
            "dev_url": settings.dev_api_url,
            "timeout": settings.request_timeout,
        },
    }
