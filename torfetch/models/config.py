"""Configuration management for the Tor page capture pipeline."""

import os
from pathlib import Path
from typing import Dict, Optional, Tuple

import yaml
from pydantic import BaseModel, Field, ValidationError, field_validator

from torfetch.errors import ConfigurationError


def split_address(address: str) -> Tuple[str, int]:
    """
    Split a ``host:port`` address.

    Raises:
        ValueError: If the address has no port or the port is not a number
    """
    host, sep, port = address.rpartition(":")
    if not sep or not host or not port.isdigit():
        raise ValueError(f"address must look like host:port, got: {address!r}")
    port_number = int(port)
    if not 0 < port_number < 65536:
        raise ValueError(f"port out of range in address: {address!r}")
    return host, port_number


class ScraperConfig(BaseModel):
    """Main scraper configuration. Defaults reproduce the reference behaviour."""

    # Inputs and Tor endpoints (overridable by positional CLI arguments)
    targets_file: str = Field(default="targets.yaml", description="YAML list of target URLs")
    proxy_address: str = Field(default="127.0.0.1:9150", description="Tor SOCKS proxy host:port")
    control_address: str = Field(
        default="127.0.0.1:9151",
        description="Tor control port host:port, empty disables circuit rotation"
    )
    control_password: str = Field(default="", description="Password sent with AUTHENTICATE")
    control_timeout: float = Field(default=10.0, description="Deadline for control port connect and reads")

    # Retry/rotation policy
    max_attempts: int = Field(default=3, description="Attempt budget per target")
    settle_delay: float = Field(default=5.0, description="Wait after rotation before the next attempt")
    navigation_wait: float = Field(default=10.0, description="Wait after navigation for the page to settle")
    attempt_timeout: float = Field(default=120.0, description="Hard deadline for one render attempt")
    inter_target_delay: float = Field(default=2.0, description="Pause between targets")

    # Verification client
    verify_tor: bool = Field(default=True, description="Check Tor routing before scraping")
    verification_url: str = Field(
        default="https://check.torproject.org/api/ip",
        description="Introspection endpoint for the Tor check"
    )
    verification_marker: str = Field(default='"IsTor":true', description="Body marker for Tor routing")
    request_timeout: float = Field(default=120.0, description="Overall HTTP request timeout")
    max_idle_connections: int = Field(default=10, description="Idle keep-alive connection cap")
    idle_connection_timeout: float = Field(default=30.0, description="Idle keep-alive expiry in seconds")
    tls_handshake_timeout: float = Field(default=60.0, description="Connect plus TLS handshake timeout")

    # Browser
    viewport_width: int = Field(default=1920, description="Browser viewport width")
    viewport_height: int = Field(default=1080, description="Browser viewport height")
    headless: bool = Field(default=True, description="Run Chromium headless")

    # Logging configuration
    log_level: str = Field(default="INFO", description="Logging level")
    log_file: str = Field(default="scrape_report.log", description="Append-only durable log")

    # Output configuration
    output_directory: str = Field(default=".", description="Root directory for artifacts")
    html_collection: str = Field(default="scraped_data", description="Directory name for HTML artifacts")
    screenshot_collection: str = Field(default="screenshots", description="Directory name for screenshots")
    report_filename: str = Field(default="report.json", description="JSON run report filename")
    write_report: bool = Field(default=True, description="Write the JSON run report")

    @field_validator('proxy_address')
    @classmethod
    def validate_proxy_address(cls, v: str) -> str:
        """Proxy address is mandatory; there is no direct path."""
        split_address(v)
        return v

    @field_validator('control_address')
    @classmethod
    def validate_control_address(cls, v: str) -> str:
        """Control address is optional; empty disables rotation."""
        v = v.strip()
        if v:
            split_address(v)
        return v

    @field_validator('max_attempts', 'max_idle_connections', 'viewport_width', 'viewport_height')
    @classmethod
    def validate_positive_int(cls, v: int) -> int:
        if v <= 0:
            raise ValueError(f"must be positive, got: {v}")
        return v

    @field_validator('control_timeout', 'attempt_timeout', 'request_timeout',
                     'idle_connection_timeout', 'tls_handshake_timeout')
    @classmethod
    def validate_timeout(cls, v: float) -> float:
        """Validate timeout is positive."""
        if v <= 0:
            raise ValueError(f"timeout must be positive, got: {v}")
        return v

    @field_validator('settle_delay', 'navigation_wait', 'inter_target_delay')
    @classmethod
    def validate_delay(cls, v: float) -> float:
        if v < 0:
            raise ValueError(f"delay must not be negative, got: {v}")
        return v

    @field_validator('log_level')
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        level = v.upper()
        if level not in {"DEBUG", "INFO", "SUCCESS", "WARNING", "ERROR"}:
            raise ValueError(f"unknown log level: {v}")
        return level

    @property
    def report_path(self) -> Path:
        """Get full report file path."""
        return Path(self.output_directory) / self.report_filename

    # Environment variable overrides
    @classmethod
    def env_overrides(cls) -> Dict[str, str]:
        """Collect TORFETCH_* environment variables as raw field values."""
        env_mappings = {
            "TORFETCH_TARGETS_FILE": "targets_file",
            "TORFETCH_PROXY_ADDRESS": "proxy_address",
            "TORFETCH_CONTROL_ADDRESS": "control_address",
            "TORFETCH_CONTROL_PASSWORD": "control_password",
            "TORFETCH_MAX_ATTEMPTS": "max_attempts",
            "TORFETCH_SETTLE_DELAY": "settle_delay",
            "TORFETCH_NAVIGATION_WAIT": "navigation_wait",
            "TORFETCH_ATTEMPT_TIMEOUT": "attempt_timeout",
            "TORFETCH_INTER_TARGET_DELAY": "inter_target_delay",
            "TORFETCH_LOG_LEVEL": "log_level",
            "TORFETCH_LOG_FILE": "log_file",
            "TORFETCH_OUTPUT_DIR": "output_directory",
        }
        return {
            field_name: os.environ[env_var]
            for env_var, field_name in env_mappings.items()
            if env_var in os.environ
        }


class ConfigManager:
    """Manages configuration loading with override precedence."""

    def __init__(self, config_file: Optional[Path] = None):
        self.config_file = config_file or Path("config/config.yaml")
        self._config: Optional[ScraperConfig] = None

    def load_config(self, cli_overrides: Optional[Dict] = None) -> ScraperConfig:
        """
        Load configuration with override precedence: CLI > ENV > YAML > defaults.

        Args:
            cli_overrides: Optional dictionary of CLI overrides; None values are ignored

        Returns:
            Fully merged ScraperConfig instance

        Raises:
            ConfigurationError: If the settings file is unreadable or validation fails
        """
        config_dict = {}

        if self.config_file.exists():
            try:
                with open(self.config_file, 'r', encoding='utf-8') as f:
                    yaml_config = yaml.safe_load(f)
            except (OSError, UnicodeDecodeError, yaml.YAMLError) as e:
                raise ConfigurationError(f"cannot read settings file {self.config_file}: {e}") from e
            if yaml_config:
                if not isinstance(yaml_config, dict):
                    raise ConfigurationError(
                        f"settings file {self.config_file} must contain a mapping"
                    )
                config_dict.update(yaml_config)

        config_dict.update(ScraperConfig.env_overrides())

        if cli_overrides:
            config_dict.update({k: v for k, v in cli_overrides.items() if v is not None})

        try:
            self._config = ScraperConfig(**config_dict)
        except ValidationError as e:
            raise ConfigurationError(f"invalid settings: {e}") from e
        return self._config

    @property
    def config(self) -> ScraperConfig:
        """Get the loaded configuration."""
        if self._config is None:
            self._config = self.load_config()
        return self._config
