"""
Configuration management for hexlists

Handles loading, validation, and storage of configuration in a single
file in the user's config directory. The Hexagon token can also be
supplied through the environment or a .env file.
"""

import base64
import os
import yaml
from pathlib import Path
from typing import Dict, Optional
from dataclasses import dataclass
import logging

import platformdirs
from dotenv import load_dotenv

from .hexagon_client import DEFAULT_BASE_URL

logger = logging.getLogger(__name__)

ENV_TOKEN = "HEXLISTS_TOKEN"
ENV_BASE_URL = "HEXLISTS_BASE_URL"


@dataclass
class HexListsConfig:
    """Main hexlists configuration"""
    # Account
    account_email: str = ""
    hexagon_token: str = ""
    base_url: str = DEFAULT_BASE_URL

    # Hardcoded paths (relative to user config directory)
    database_path: str = "hexlists.db"
    settings_file: str = "sync_settings.json"
    log_file: str = "hexlists.log"

    # Hardcoded technical settings
    logging_level: str = "INFO"
    request_timeout_seconds: int = 30
    batch_size: int = 100

    # Log rotation settings (hardcoded)
    log_max_bytes: int = 10 * 1024 * 1024  # 10MB
    log_backup_count: int = 3


class ConfigManager:
    """Manages hexlists configuration loading, validation, and storage in user config directory"""

    CONFIG_FILE_NAME = "config.yaml"
    APP_NAME = "hexlists"

    def __init__(self, config_dir: Optional[Path] = None):
        """
        Initialize ConfigManager

        Args:
            config_dir: Custom config directory (defaults to user config directory)
        """
        if config_dir:
            self.config_dir = Path(config_dir)
        else:
            self.config_dir = Path(platformdirs.user_config_dir(self.APP_NAME))

        self.config_file = self.config_dir / self.CONFIG_FILE_NAME

    def get_config_location(self) -> Path:
        """Get the configuration file location"""
        return self.config_file

    def get_resource_path(self, filename: str) -> Path:
        """Get path for a resource file in the config directory"""
        return self.config_dir / filename

    def load_config(self) -> HexListsConfig:
        """
        Load hexlists configuration from user config directory

        Values from the environment (or a .env file in the working
        directory) take precedence over the config file.

        Returns:
            HexListsConfig instance with all settings loaded

        Raises:
            FileNotFoundError: If configuration file is missing
            ValueError: If configuration is invalid
        """
        if not self.config_file.exists():
            raise FileNotFoundError(
                f"Configuration file not found: {self.config_file}\n"
                f"Run 'hexlists setup' to create initial configuration."
            )

        try:
            with open(self.config_file, 'r') as f:
                yaml_data = yaml.safe_load(f) or {}
        except yaml.YAMLError as e:
            raise ValueError(f"Invalid YAML in {self.config_file}: {e}")

        credentials = self._decode_credentials(yaml_data.get('credentials', {}))

        config = HexListsConfig(
            account_email=yaml_data.get('account_email', ''),
            base_url=yaml_data.get('base_url', DEFAULT_BASE_URL),
            logging_level=yaml_data.get('logging_level', 'INFO'),
            request_timeout_seconds=yaml_data.get('request_timeout_seconds', 30),
            batch_size=yaml_data.get('batch_size', 100),
            **credentials
        )

        load_dotenv()
        if os.getenv(ENV_TOKEN):
            config.hexagon_token = os.getenv(ENV_TOKEN)
            logger.debug(f"Using Hexagon token from {ENV_TOKEN}")
        if os.getenv(ENV_BASE_URL):
            config.base_url = os.getenv(ENV_BASE_URL)

        self._validate_config(config)

        return config

    def save_config(self, config: HexListsConfig) -> None:
        """
        Save configuration to user config directory

        Args:
            config: HexListsConfig instance to save
        """
        self.config_dir.mkdir(parents=True, exist_ok=True)

        yaml_data = {
            'account_email': config.account_email,
            'base_url': config.base_url,
            'logging_level': config.logging_level,
            'request_timeout_seconds': config.request_timeout_seconds,
            'batch_size': config.batch_size,
            'credentials': self._encode_credentials(config),
        }

        with open(self.config_file, 'w') as f:
            f.write("# hexlists Configuration\n")
            f.write(f"# Stored in: {self.config_file}\n")
            f.write("# This file contains an encoded access token - keep it secure!\n")
            f.write("# Run 'hexlists setup' to reconfigure\n\n")

            yaml.dump(yaml_data, f, default_flow_style=False, sort_keys=False)

        os.chmod(self.config_file, 0o600)

        logger.info(f"Configuration saved to {self.config_file}")

    def _encode_credentials(self, config: HexListsConfig) -> Dict[str, str]:
        """Encode credentials with base64 for basic obfuscation"""
        return {
            'hexagon_token': base64.b64encode(config.hexagon_token.encode()).decode(),
        }

    def _decode_credentials(self, encoded_creds: Dict[str, str]) -> Dict[str, str]:
        """Decode base64 encoded credentials"""
        try:
            return {
                'hexagon_token': base64.b64decode(encoded_creds.get('hexagon_token', '')).decode(),
            }
        except Exception as e:
            raise ValueError(f"Failed to decode credentials: {e}")

    def _validate_config(self, config: HexListsConfig) -> None:
        """Validate configuration for common issues"""
        errors = []

        if not config.base_url.startswith(("http://", "https://")):
            errors.append("base_url must be an http(s) URL")

        if config.logging_level.upper() not in ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"):
            errors.append(f"Unknown logging_level: {config.logging_level}")

        if not isinstance(config.request_timeout_seconds, int) or config.request_timeout_seconds < 1:
            errors.append("request_timeout_seconds must be a positive integer")

        if not isinstance(config.batch_size, int) or config.batch_size < 1:
            errors.append("batch_size must be a positive integer")

        if errors:
            raise ValueError(
                "Configuration validation failed:\n" +
                "\n".join(f"  - {error}" for error in errors) +
                "\n\nRun 'hexlists setup' to fix configuration issues."
            )

    def config_exists(self) -> bool:
        """Check if configuration file exists"""
        return self.config_file.exists()
