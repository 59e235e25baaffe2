"""Application configuration management.

Loads configuration from config.yaml files and environment variables.
Environment variables take precedence over config file settings.
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml

from adfsfed.core.errors import ConfigurationError

logger = logging.getLogger(__name__)

# Default config locations
DEFAULT_CONFIG_DIR = Path.home() / ".adfsfed"
DEFAULT_CONFIG_FILE = DEFAULT_CONFIG_DIR / "config.yaml"

# Environment variable prefix
ENV_PREFIX = "ADFSFED_"

DEFAULT_GRAPH_URL = "https://graph.microsoft.com/v1.0"
DEFAULT_AUTHORITY_HOST = "login.microsoftonline.com"
DEFAULT_SCOPE = "https://graph.microsoft.com/.default"
# Microsoft Azure PowerShell public client, usable for username/password sign-in
DEFAULT_CLIENT_ID = "1950a258-227b-4e31-a9cf-717495945fc2"
DEFAULT_DOMAIN_PATTERN = "*.onmicrosoft.com"


@dataclass
class DirectorySettings:
    """Cloud directory (Microsoft Graph) connection settings."""

    graph_url: str = DEFAULT_GRAPH_URL
    authority_host: str = DEFAULT_AUTHORITY_HOST
    client_id: str = DEFAULT_CLIENT_ID
    scope: str = DEFAULT_SCOPE
    timeout: float | None = None

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> DirectorySettings:
        """Create DirectorySettings from a dictionary."""
        timeout = data.get("timeout")
        return cls(
            graph_url=data.get("graph_url", DEFAULT_GRAPH_URL),
            authority_host=data.get("authority_host", DEFAULT_AUTHORITY_HOST),
            client_id=data.get("client_id", DEFAULT_CLIENT_ID),
            scope=data.get("scope", DEFAULT_SCOPE),
            timeout=float(timeout) if timeout is not None else None,
        )

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for serialization."""
        return {
            "graph_url": self.graph_url,
            "authority_host": self.authority_host,
            "client_id": self.client_id,
            "scope": self.scope,
            "timeout": self.timeout,
        }


@dataclass
class DNSSettings:
    """DNS resolution settings."""

    nameservers: list[str] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> DNSSettings:
        """Create DNSSettings from a dictionary."""
        return cls(nameservers=list(data.get("nameservers") or []))

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for serialization."""
        return {"nameservers": list(self.nameservers)}


@dataclass
class FederationSettings:
    """Federation trust settings."""

    default_domain_pattern: str | None = DEFAULT_DOMAIN_PATTERN
    preferred_protocol: str = "wsFed"
    display_name: str = "{domain}"
    powershell: str = "powershell"

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> FederationSettings:
        """Create FederationSettings from a dictionary."""
        return cls(
            # An explicit null disables default-domain selection
            default_domain_pattern=data.get("default_domain_pattern", DEFAULT_DOMAIN_PATTERN),
            preferred_protocol=data.get("preferred_protocol", "wsFed"),
            display_name=data.get("display_name", "{domain}"),
            powershell=data.get("powershell", "powershell"),
        )

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for serialization."""
        return {
            "default_domain_pattern": self.default_domain_pattern,
            "preferred_protocol": self.preferred_protocol,
            "display_name": self.display_name,
            "powershell": self.powershell,
        }

    def display_name_for(self, domain: str) -> str:
        """Fill the display name template for a domain.

        Raises:
            ConfigurationError: If the template uses anything but {domain}.
        """
        try:
            return self.display_name.format(domain=domain)
        except (AttributeError, KeyError, IndexError, ValueError) as e:
            raise ConfigurationError(
                f"Invalid federation display_name '{self.display_name}': only {{domain}} can be substituted ({e!r})"
            ) from None


@dataclass
class LoggingSettings:
    """Logging settings."""

    level: str = "INFO"
    file: str | None = None

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> LoggingSettings:
        """Create LoggingSettings from a dictionary."""
        return cls(
            level=str(data.get("level", "INFO")).upper(),
            file=data.get("file"),
        )

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for serialization."""
        return {"level": self.level, "file": self.file}


@dataclass
class AppConfig:
    """Main application configuration."""

    directory: DirectorySettings = field(default_factory=DirectorySettings)
    dns: DNSSettings = field(default_factory=DNSSettings)
    federation: FederationSettings = field(default_factory=FederationSettings)
    logging: LoggingSettings = field(default_factory=LoggingSettings)
    config_path: Path | None = None

    @classmethod
    def from_dict(cls, data: dict[str, Any], config_path: Path | None = None) -> AppConfig:
        """Create AppConfig from a dictionary."""
        return cls(
            directory=DirectorySettings.from_dict(data.get("directory") or {}),
            dns=DNSSettings.from_dict(data.get("dns") or {}),
            federation=FederationSettings.from_dict(data.get("federation") or {}),
            logging=LoggingSettings.from_dict(data.get("logging") or {}),
            config_path=config_path,
        )

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for serialization."""
        return {
            "directory": self.directory.to_dict(),
            "dns": self.dns.to_dict(),
            "federation": self.federation.to_dict(),
            "logging": self.logging.to_dict(),
        }

def _get_env_float(key: str, default: float | None) -> float | None:
    """Get a float from environment variable."""
    value = os.environ.get(key)
    if value is None:
        return default
    try:
        return float(value)
    except ValueError:
        return default


def load_config(config_path: Path | None = None) -> AppConfig:
    """Load application configuration.

    Configuration is loaded in this order (later values override earlier):
    1. Default values
    2. config.yaml file (if exists)
    3. Environment variables

    Args:
        config_path: Path to config file. Uses default if not specified.

    Returns:
        AppConfig with merged settings.
    """
    config = AppConfig()

    file_path = config_path or DEFAULT_CONFIG_FILE
    if file_path.exists():
        try:
            with open(file_path) as f:
                data = yaml.safe_load(f) or {}
            config = AppConfig.from_dict(data, config_path=file_path)
        except (OSError, yaml.YAMLError, AttributeError, TypeError, ValueError) as e:
            logger.warning(f"Ignoring invalid config file {file_path}: {e}")

    # Directory settings
    directory = config.directory

    if os.environ.get(f"{ENV_PREFIX}GRAPH_URL"):
        directory.graph_url = os.environ[f"{ENV_PREFIX}GRAPH_URL"]

    if os.environ.get(f"{ENV_PREFIX}AUTHORITY_HOST"):
        directory.authority_host = os.environ[f"{ENV_PREFIX}AUTHORITY_HOST"]

    if os.environ.get(f"{ENV_PREFIX}CLIENT_ID"):
        directory.client_id = os.environ[f"{ENV_PREFIX}CLIENT_ID"]

    directory.timeout = _get_env_float(f"{ENV_PREFIX}TIMEOUT", directory.timeout)

    # DNS settings
    if os.environ.get(f"{ENV_PREFIX}NAMESERVERS"):
        config.dns.nameservers = [
            ns.strip() for ns in os.environ[f"{ENV_PREFIX}NAMESERVERS"].split(",") if ns.strip()
        ]

    # Federation settings
    federation = config.federation

    if f"{ENV_PREFIX}DEFAULT_DOMAIN_PATTERN" in os.environ:
        federation.default_domain_pattern = os.environ[f"{ENV_PREFIX}DEFAULT_DOMAIN_PATTERN"] or None

    if os.environ.get(f"{ENV_PREFIX}POWERSHELL"):
        federation.powershell = os.environ[f"{ENV_PREFIX}POWERSHELL"]

    try:
        federation.display_name_for("example.org")
    except ConfigurationError as e:
        logger.warning(f"{e}; using the domain name")
        federation.display_name = "{domain}"

    # Logging settings
    if os.environ.get(f"{ENV_PREFIX}LOG_LEVEL"):
        config.logging.level = os.environ[f"{ENV_PREFIX}LOG_LEVEL"].upper()

    if os.environ.get(f"{ENV_PREFIX}LOG_FILE"):
        config.logging.file = os.environ[f"{ENV_PREFIX}LOG_FILE"]

    return config


def get_default_config_yaml() -> str:
    """Get the default config.yaml content as a string.

    Useful for generating example configuration files.
    """
    return f"""\
# adfsfed Configuration File
# Environment variables override these settings (prefix: {ENV_PREFIX})

directory:
  # Microsoft Graph endpoint
  graph_url: "{DEFAULT_GRAPH_URL}"

  # Entra ID authority used for sign-in
  authority_host: "{DEFAULT_AUTHORITY_HOST}"

  # Public client used for username/password sign-in
  client_id: "{DEFAULT_CLIENT_ID}"

  # Token scope requested for Graph
  scope: "{DEFAULT_SCOPE}"

  # HTTP timeout in seconds (omit to use the HTTP client default)
  # timeout: 30

dns:
  # Nameservers used to check the TXT verification record
  # (empty list uses the system resolver)
  nameservers: []

federation:
  # Make the federated domain the tenant default when the current default
  # matches this pattern. Set to null to never change the default domain.
  default_domain_pattern: "{DEFAULT_DOMAIN_PATTERN}"

  # Protocol the directory uses with the federation server
  preferred_protocol: "wsFed"

  # Display name of the federation configuration ({{domain}} is the only placeholder)
  display_name: "{{domain}}"

  # PowerShell executable used to export the token-signing certificate
  powershell: "powershell"

logging:
  # ERROR, INFO, DEBUG or TRACE
  level: "INFO"

  # Optional log file
  # file: ~/.adfsfed/adfsfed.log
"""
