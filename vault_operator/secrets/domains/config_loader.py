"""Configuration loader for vault-operator."""
import os
import copy
import logging
from pathlib import Path
from typing import Any, Dict, Optional

import yaml

from .models import JWT_AUTH_METHOD

logger = logging.getLogger(__name__)

CONFIG_ENV_VAR = "VAULT_OPERATOR_CONFIG"
DEFAULT_CONFIG_PATH = Path("/etc/vault-operator/config.yml")

FAIL_OPEN = "fail-open"
FAIL_CLOSED = "fail-closed"
FETCH_FAILURE_POLICIES = (FAIL_OPEN, FAIL_CLOSED)

DEFAULTS: Dict[str, Dict[str, Any]] = {
    "vault": {
        "auth_method": JWT_AUTH_METHOD,
        "skip_verify": False,
    },
    "reconcile": {
        "fetch_failure_policy": FAIL_OPEN,
        "max_retries": 5,
        "backoff_base": 1.0,
        "backoff_max": 60.0,
    },
    "resource": {
        "group": "apps.vault.op",
        "version": "v1",
        "plural": "vaultsecrets",
    },
}


class ConfigError(Exception):
    """Configuration error exception."""
    pass


def _get_config_path(path: Optional[str] = None) -> Optional[Path]:
    """
    Resolve the config file location.

    Priority order:
    1. Explicit path (CLI --config)
    2. VAULT_OPERATOR_CONFIG environment variable
    3. Default location: /etc/vault-operator/config.yml

    Returns:
        Path to the config file, or None when only built-in defaults apply

    Raises:
        ConfigError: If an explicitly requested file doesn't exist
    """
    explicit = path or os.getenv(CONFIG_ENV_VAR)
    if explicit:
        config_path = Path(explicit)
        if not config_path.is_file():
            raise ConfigError(f"Configuration file not found at: {config_path}")
        logger.debug(f"Using config file: {config_path}")
        return config_path

    if DEFAULT_CONFIG_PATH.is_file():
        logger.debug(f"Using default config location: {DEFAULT_CONFIG_PATH}")
        return DEFAULT_CONFIG_PATH

    logger.debug("No config file found, using built-in defaults")
    return None


def _parse_bool(value: str) -> bool:
    return value.strip().lower() in ("1", "true", "yes", "on")


def _apply_env_overrides(config: Dict[str, Any]) -> None:
    skip_verify = os.getenv("VAULT_SKIP_VERIFY")
    if skip_verify:
        config["vault"]["skip_verify"] = _parse_bool(skip_verify)

    policy = os.getenv("VAULT_OPERATOR_FETCH_POLICY")
    if policy:
        config["reconcile"]["fetch_failure_policy"] = policy


def _validate(config: Dict[str, Any], source: str) -> None:
    vault = config["vault"]
    if not isinstance(vault["skip_verify"], bool):
        raise ConfigError(f"'vault.skip_verify' must be true or false in {source}")
    if not isinstance(vault["auth_method"], str) or not vault["auth_method"]:
        raise ConfigError(f"'vault.auth_method' must be a non-empty string in {source}")

    reconcile = config["reconcile"]
    if reconcile["fetch_failure_policy"] not in FETCH_FAILURE_POLICIES:
        raise ConfigError(
            f"Unsupported 'reconcile.fetch_failure_policy': {reconcile['fetch_failure_policy']}\n"
            f"Expected one of: {', '.join(FETCH_FAILURE_POLICIES)}"
        )

    for key in ("max_retries", "backoff_base", "backoff_max"):
        value = reconcile[key]
        if isinstance(value, bool) or not isinstance(value, (int, float)) or value <= 0:
            raise ConfigError(f"'reconcile.{key}' must be a positive number in {source}")

    for key, value in config["resource"].items():
        if not isinstance(value, str) or not value:
            raise ConfigError(f"'resource.{key}' must be a non-empty string in {source}")


def load_config(path: Optional[str] = None) -> Dict[str, Any]:
    """
    Load and validate operator configuration.

    Args:
        path: Optional explicit config file path

    Returns:
        Dict with 'vault', 'reconcile' and 'resource' sections, with
        defaults filled in and environment overrides applied

    Raises:
        ConfigError: If the config file is missing, unparsable or invalid
    """
    config = copy.deepcopy(DEFAULTS)
    config_path = _get_config_path(path)
    source = str(config_path) if config_path else "built-in defaults"

    if config_path:
        try:
            with open(config_path, 'r') as f:
                loaded = yaml.safe_load(f)
        except yaml.YAMLError as e:
            raise ConfigError(f"Failed to parse YAML config at {config_path}: {e}")
        except OSError as e:
            raise ConfigError(f"Failed to read config file at {config_path}: {e}")

        if loaded is None:
            loaded = {}
        if not isinstance(loaded, dict):
            raise ConfigError(f"Config file at {config_path} must contain a mapping")

        for section, values in loaded.items():
            if section not in config:
                raise ConfigError(f"Unknown section '{section}' in config at {config_path}")
            if not isinstance(values, dict):
                raise ConfigError(f"Section '{section}' in config at {config_path} must be a mapping")
            config[section].update(values)

    _apply_env_overrides(config)
    _validate(config, source)

    logger.info(f"Configuration loaded from {source}")
    logger.debug(f"Fetch failure policy: {config['reconcile']['fetch_failure_policy']}")
    return config
