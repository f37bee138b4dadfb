"""
Configuration dataclasses for the TLS stack comparison tool.

This module defines the run configuration (parallelism, per-domain
deadline, input and output locations, transport timeouts), logging
configuration, and the loaders that layer a JSON file and environment
variables over the defaults.
"""

import json
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Mapping, Optional

from dotenv import load_dotenv

from .exceptions import ConfigError


DEFAULT_DOMAINS_FILE = Path("citizenlab-domains.txt")
DEFAULT_SELF_TEST_URLS = ["https://www.example.com/"]

ENV_PREFIX = "TLS_COMPARE_"

VALID_LOG_LEVELS = ("debug", "info", "warn", "error")
VALID_OUTPUT_FORMATS = ("json", "text", "both")


@dataclass
class LoggingConfig:
    """Logging configuration."""

    level: str = "info"
    output_format: str = "text"  # 'json', 'text', 'both'


@dataclass
class ProbeConfig:
    """Configuration for one comparison run."""

    parallelism: int = 100
    timeout: float = 20.0
    domains: Path = DEFAULT_DOMAINS_FILE
    output_dir: Path = Path(".")
    connect_timeout: float = 2.0
    handshake_timeout: Optional[float] = None
    request_timeout: Optional[float] = None
    probe_request: bool = True
    startup_self_test: bool = False
    self_test_urls: list[str] = field(default_factory=lambda: list(DEFAULT_SELF_TEST_URLS))
    logging: LoggingConfig = field(default_factory=LoggingConfig)

    def validate(self) -> None:
        """
        Check value ranges.

        Raises:
            ConfigError: If any setting is out of range
        """
        errors: list[str] = []

        if self.parallelism < 1:
            errors.append(f"parallelism must be >= 1, got {self.parallelism}")
        if self.timeout <= 0:
            errors.append(f"timeout must be > 0, got {self.timeout}")
        if self.connect_timeout <= 0:
            errors.append(f"connect_timeout must be > 0, got {self.connect_timeout}")
        for name in ("handshake_timeout", "request_timeout"):
            value = getattr(self, name)
            if value is not None and value <= 0:
                errors.append(f"{name} must be > 0 when set, got {value}")
        if self.logging.level not in VALID_LOG_LEVELS:
            errors.append(f"Unsupported log level: {self.logging.level}")
        if self.logging.output_format not in VALID_OUTPUT_FORMATS:
            errors.append(f"Unsupported log format: {self.logging.output_format}")

        if errors:
            raise ConfigError(
                code="invalid_config",
                message="; ".join(errors),
                details={"errors": errors},
            )

    def to_dict(self) -> dict:
        """Serialize to the JSON file layout."""
        return {
            "parallelism": self.parallelism,
            "timeout": self.timeout,
            "domains": str(self.domains),
            "output_dir": str(self.output_dir),
            "connect_timeout": self.connect_timeout,
            "handshake_timeout": self.handshake_timeout,
            "request_timeout": self.request_timeout,
            "probe_request": self.probe_request,
            "startup_self_test": self.startup_self_test,
            "self_test_urls": list(self.self_test_urls),
            "logging": {
                "level": self.logging.level,
                "output_format": self.logging.output_format,
            },
        }


def config_from_dict(data: dict, base: Optional[ProbeConfig] = None) -> ProbeConfig:
    """
    Build a ProbeConfig from a dictionary, starting from ``base``.

    Keys missing from ``data`` keep the value from ``base`` (or the default).

    Raises:
        ConfigError: If a value has the wrong type
    """
    config = base or ProbeConfig()

    try:
        logging_data = data.get("logging", {})
        logging_config = LoggingConfig(
            level=logging_data.get("level", config.logging.level),
            output_format=logging_data.get("output_format", config.logging.output_format),
        )

        return ProbeConfig(
            parallelism=int(data.get("parallelism", config.parallelism)),
            timeout=float(data.get("timeout", config.timeout)),
            domains=Path(data.get("domains", config.domains)),
            output_dir=Path(data.get("output_dir", config.output_dir)),
            connect_timeout=float(data.get("connect_timeout", config.connect_timeout)),
            handshake_timeout=_optional_float(
                data.get("handshake_timeout", config.handshake_timeout)
            ),
            request_timeout=_optional_float(
                data.get("request_timeout", config.request_timeout)
            ),
            probe_request=bool(data.get("probe_request", config.probe_request)),
            startup_self_test=bool(data.get("startup_self_test", config.startup_self_test)),
            self_test_urls=list(data.get("self_test_urls", config.self_test_urls)),
            logging=logging_config,
        )
    except (TypeError, ValueError, AttributeError) as e:
        raise ConfigError(
            code="invalid_config",
            message=f"Invalid configuration value: {e}",
        ) from e


def load_config_from_file(config_path: Path, base: Optional[ProbeConfig] = None) -> ProbeConfig:
    """
    Load configuration from a JSON file.

    Args:
        config_path: Path to the configuration file
        base: Configuration the file is layered over

    Returns:
        ProbeConfig with the file's values applied

    Raises:
        ConfigError: If the file is missing or malformed
    """
    try:
        with open(config_path, "r", encoding="utf-8") as f:
            data = json.load(f)
    except FileNotFoundError as e:
        raise ConfigError(
            code="config_not_found",
            message=f"Configuration file not found: {config_path}",
        ) from e
    except (OSError, json.JSONDecodeError) as e:
        raise ConfigError(
            code="config_unreadable",
            message=f"Error loading config {config_path}: {e}",
        ) from e

    if not isinstance(data, dict):
        raise ConfigError(
            code="invalid_config",
            message=f"Configuration root must be an object: {config_path}",
        )

    return config_from_dict(data, base)


def save_config_to_file(config: ProbeConfig, config_path: Path) -> None:
    """
    Save configuration to a JSON file.

    Raises:
        ConfigError: If the file cannot be written
    """
    try:
        config_path.parent.mkdir(parents=True, exist_ok=True)
        with open(config_path, "w", encoding="utf-8") as f:
            json.dump(config.to_dict(), f, indent=2, ensure_ascii=False)
    except OSError as e:
        raise ConfigError(
            code="config_unwritable",
            message=f"Error saving config {config_path}: {e}",
        ) from e


def apply_environment(
    config: ProbeConfig,
    environ: Optional[Mapping[str, str]] = None,
    dotenv_path: Optional[Path] = None,
) -> ProbeConfig:
    """
    Overlay ``TLS_COMPARE_*`` environment variables onto ``config``.

    When ``environ`` is not given, a ``.env`` file is loaded first (without
    overriding variables already set) and ``os.environ`` is used.
    """
    if environ is None:
        load_dotenv(dotenv_path=dotenv_path, override=False)
        environ = os.environ

    overrides: dict = {}
    mapping = {
        "PARALLELISM": "parallelism",
        "TIMEOUT": "timeout",
        "DOMAINS": "domains",
        "OUTPUT_DIR": "output_dir",
        "CONNECT_TIMEOUT": "connect_timeout",
    }
    for suffix, key in mapping.items():
        value = environ.get(ENV_PREFIX + suffix)
        if value:
            overrides[key] = value

    log_level = environ.get(ENV_PREFIX + "LOG_LEVEL")
    log_format = environ.get(ENV_PREFIX + "LOG_FORMAT")
    if log_level or log_format:
        overrides["logging"] = {
            "level": log_level or config.logging.level,
            "output_format": log_format or config.logging.output_format,
        }

    if not overrides:
        return config
    return config_from_dict(overrides, config)


def _optional_float(value) -> Optional[float]:
    if value is None:
        return None
    return float(value)
