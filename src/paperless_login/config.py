"""
Configuration dataclasses for the login negotiator.

This module defines the configuration structures used throughout the
system (probe timing, persistence locations, logging) together with helpers
to create defaults, read and write JSON configuration files, and read
overrides from ``PAPERLESS_LOGIN_*`` environment variables (a ``.env`` file
is honoured through python-dotenv).
"""

import json
import os
import secrets
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

from dotenv import find_dotenv, load_dotenv


DEFAULT_CONFIG_DIR = Path.home() / ".paperless_login"
ENV_PREFIX = "PAPERLESS_LOGIN_"


@dataclass
class ProbeConfig:
    """Timing and protocol settings for network calls."""

    debounce_seconds: float = 1.0
    timeout_seconds: float = 15.0
    minimum_api_version: int = 3


@dataclass
class PersistenceConfig:
    """Locations of the connection records and the secret store."""

    connections_file: Path = field(default_factory=lambda: DEFAULT_CONFIG_DIR / "connections.json")
    secrets_file: Path = field(default_factory=lambda: DEFAULT_CONFIG_DIR / "secrets.json")
    hmac_secret: Optional[str] = None  # required before any store is opened


@dataclass
class LoggingConfig:
    """Logging configuration."""

    level: str = "info"
    output_format: str = "text"  # 'json', 'text', 'both'


@dataclass
class LoginConfig:
    """Main configuration combining all sub-configurations."""

    probe: ProbeConfig = field(default_factory=ProbeConfig)
    persistence: PersistenceConfig = field(default_factory=PersistenceConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)
    language: str = "en"  # 'de' or 'en'
    verify_tls: bool = True


def generate_secret() -> str:
    """Create a random secret for a new configuration."""
    return secrets.token_urlsafe(32)


def create_default_config(
    config_dir: Optional[Path] = None,
    language: str = "en",
    hmac_secret: Optional[str] = None,
) -> LoginConfig:
    """
    Create a configuration with default values.

    Args:
        config_dir: Directory for the persistence files
        language: Output language
        hmac_secret: Secret protecting the persistence files (see
            generate_secret)

    Returns:
        LoginConfig with defaults applied
    """
    base_dir = config_dir or DEFAULT_CONFIG_DIR
    return LoginConfig(
        persistence=PersistenceConfig(
            connections_file=base_dir / "connections.json",
            secrets_file=base_dir / "secrets.json",
            hmac_secret=hmac_secret,
        ),
        language=language,
    )


def config_from_dict(data: dict) -> LoginConfig:
    """
    Build a configuration from a decoded JSON document.

    Missing sections and keys fall back to defaults.

    Raises:
        TypeError, ValueError: If a value has the wrong type
    """
    defaults = create_default_config()

    probe_data = data.get("probe", {})
    probe = ProbeConfig(
        debounce_seconds=float(probe_data.get("debounce_seconds", defaults.probe.debounce_seconds)),
        timeout_seconds=float(probe_data.get("timeout_seconds", defaults.probe.timeout_seconds)),
        minimum_api_version=int(probe_data.get("minimum_api_version", defaults.probe.minimum_api_version)),
    )

    persistence_data = data.get("persistence", {})
    connections_file = persistence_data.get("connections_file")
    secrets_file = persistence_data.get("secrets_file")
    persistence = PersistenceConfig(
        connections_file=Path(connections_file) if connections_file else defaults.persistence.connections_file,
        secrets_file=Path(secrets_file) if secrets_file else defaults.persistence.secrets_file,
        hmac_secret=persistence_data.get("hmac_secret", defaults.persistence.hmac_secret),
    )

    logging_data = data.get("logging", {})
    logging_config = LoggingConfig(
        level=logging_data.get("level", defaults.logging.level),
        output_format=logging_data.get("output_format", defaults.logging.output_format),
    )

    return LoginConfig(
        probe=probe,
        persistence=persistence,
        logging=logging_config,
        language=data.get("language", defaults.language),
        verify_tls=bool(data.get("verify_tls", defaults.verify_tls)),
    )


def config_to_dict(config: LoginConfig) -> dict:
    return {
        "probe": {
            "debounce_seconds": config.probe.debounce_seconds,
            "timeout_seconds": config.probe.timeout_seconds,
            "minimum_api_version": config.probe.minimum_api_version,
        },
        "persistence": {
            "connections_file": str(config.persistence.connections_file),
            "secrets_file": str(config.persistence.secrets_file),
            "hmac_secret": config.persistence.hmac_secret,
        },
        "logging": {
            "level": config.logging.level,
            "output_format": config.logging.output_format,
        },
        "language": config.language,
        "verify_tls": config.verify_tls,
    }


def load_config_from_file(config_path: Path) -> Optional[LoginConfig]:
    """
    Load configuration from a JSON file.

    Args:
        config_path: Path to the configuration file

    Returns:
        LoginConfig if successful, None if the file is missing or invalid
    """
    try:
        with open(config_path, "r", encoding="utf-8") as f:
            data = json.load(f)
        if not isinstance(data, dict):
            return None
        return config_from_dict(data)
    except FileNotFoundError:
        return None
    except (json.JSONDecodeError, AttributeError, TypeError, ValueError, OSError):
        return None


def save_config_to_file(config: LoginConfig, config_path: Path) -> bool:
    """
    Save configuration to a JSON file.

    Args:
        config: LoginConfig to save
        config_path: Path to save the configuration

    Returns:
        True on success
    """
    try:
        config_path.parent.mkdir(parents=True, exist_ok=True)
        with open(config_path, "w", encoding="utf-8") as f:
            json.dump(config_to_dict(config), f, indent=2, ensure_ascii=False)
        # The file carries the store secret
        os.chmod(config_path, 0o600)
        return True
    except (OSError, TypeError):
        return False


def _float_env(name: str, default: float) -> float:
    try:
        return float(os.getenv(name, str(default)))
    except ValueError:
        return default


def _int_env(name: str, default: int) -> int:
    try:
        return int(os.getenv(name, str(default)))
    except ValueError:
        return default


def load_config_from_env(
    base: Optional[LoginConfig] = None,
    dotenv: bool = True,
) -> LoginConfig:
    """
    Apply ``PAPERLESS_LOGIN_*`` environment overrides to a configuration.

    Args:
        base: Configuration to start from (defaults if None)
        dotenv: Load a ``.env`` file into the environment first

    Returns:
        A new LoginConfig
    """
    if dotenv:
        load_dotenv(find_dotenv(usecwd=True))

    config = base or create_default_config()
    config_dir = os.getenv(f"{ENV_PREFIX}CONFIG_DIR")
    persistence = config.persistence
    if config_dir:
        persistence = PersistenceConfig(
            connections_file=Path(config_dir) / "connections.json",
            secrets_file=Path(config_dir) / "secrets.json",
            hmac_secret=persistence.hmac_secret,
        )

    return LoginConfig(
        probe=ProbeConfig(
            debounce_seconds=_float_env(f"{ENV_PREFIX}DEBOUNCE_SECONDS", config.probe.debounce_seconds),
            timeout_seconds=_float_env(f"{ENV_PREFIX}TIMEOUT_SECONDS", config.probe.timeout_seconds),
            minimum_api_version=_int_env(f"{ENV_PREFIX}MINIMUM_API_VERSION", config.probe.minimum_api_version),
        ),
        persistence=PersistenceConfig(
            connections_file=persistence.connections_file,
            secrets_file=persistence.secrets_file,
            hmac_secret=os.getenv(f"{ENV_PREFIX}HMAC_SECRET", persistence.hmac_secret),
        ),
        logging=LoggingConfig(
            level=os.getenv(f"{ENV_PREFIX}LOG_LEVEL", config.logging.level).lower(),
            output_format=os.getenv(f"{ENV_PREFIX}LOG_FORMAT", config.logging.output_format),
        ),
        language=os.getenv(f"{ENV_PREFIX}LANGUAGE", config.language),
        verify_tls=os.getenv(f"{ENV_PREFIX}VERIFY_TLS", "1" if config.verify_tls else "0") != "0",
    )
