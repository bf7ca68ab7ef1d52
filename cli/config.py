"""
Configuration Management Module for Bitcoin Drive CLI

Handles hierarchical configuration loading (defaults, profile, config file,
environment variables) and builds the storage, wallet and explorer settings
used by the commands.
"""

import copy
import json
import logging
import os
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

import yaml

from network.explorer import ExplorerConfig
from network.wallet import WalletConfig
from storage.config import StorageConfig
from storage.exceptions import ConfigError

# Configuration file locations in order of precedence (highest to lowest)
CONFIG_SEARCH_PATHS = [
    Path.cwd() / '.bdrive.yml',
    Path.cwd() / '.bdrive.json',
    Path.home() / '.bdrive' / 'config.yml',
    Path.home() / '.bdrive' / 'config.json',
    Path('/etc/bdrive/config.yml'),
    Path('/etc/bdrive/config.json'),
]

# Environment variable prefix; a double underscore separates nesting levels,
# e.g. BDRIVE_STORAGE__CHUNK_THRESHOLD -> storage.chunk_threshold
ENV_PREFIX = 'BDRIVE_'
ENV_NESTING = '__'

OUTPUT_FORMATS = ['table', 'json', 'yaml']

DEFAULT_CONFIG = {
    'storage': StorageConfig().to_dict(),

    'wallet': {
        'base_url': 'https://cloud.handcash.io',
        'timeout': 30,
        'max_retries': 3,
        'currency_code': 'BSV'
    },

    'explorer': {
        'api_url': 'https://api.whatsonchain.com/v1/bsv/main',
        'timeout': 30,
        'max_retries': 3
    },

    'cli': {
        'output_format': 'table',
        'dry_run': False,
        'dry_run_balance': 100_000_000
    }
}

PROFILES = {
    'legacy': {
        'storage': {'framing': 'legacy'}
    },
    'offline': {
        'cli': {'dry_run': True}
    }
}


class ConfigurationManager:
    """Manages hierarchical configuration with environment variable support."""

    def __init__(self, config_file: Optional[str] = None, profile: Optional[str] = None):
        """
        Initialize configuration manager.

        Args:
            config_file: Explicit configuration file path
            profile: Configuration profile to load (legacy, offline)
        """
        self.logger = logging.getLogger('bdrive-cli.config')
        self.config_file = config_file
        self.profile = profile
        self._config_cache = None
        self._config_sources = []

    def load(self) -> Dict[str, Any]:
        """
        Load configuration from all sources in hierarchical order.

        Returns:
            Merged configuration dictionary
        """
        if self._config_cache is not None:
            return self._config_cache

        configs = [copy.deepcopy(DEFAULT_CONFIG)]
        self._config_sources = ["defaults"]

        if self.profile:
            if self.profile not in PROFILES:
                raise ConfigError(f"Unknown profile: {self.profile}")
            configs.append(PROFILES[self.profile])
            self._config_sources.append(f"profile:{self.profile}")
            self.logger.debug(f"Applied profile: {self.profile}")

        if self.config_file:
            path = Path(self.config_file)
            if not path.exists():
                raise ConfigError(f"Config file not found: {path}")
            configs.append(self._load_config_file(path))
            self._config_sources.append(f"file:{path}")
        else:
            for config_path in CONFIG_SEARCH_PATHS:
                if config_path.exists():
                    configs.append(self._load_config_file(config_path))
                    self._config_sources.append(f"file:{config_path}")
                    self.logger.debug(f"Loaded config from {config_path}")
                    break  # Use first found config file

        env_config = self._load_environment_variables()
        if env_config:
            configs.append(env_config)
            self._config_sources.append("environment")

        self._config_cache = self._deep_merge(*configs)
        return self._config_cache

    def _load_config_file(self, path: Path) -> Dict[str, Any]:
        """Load configuration from a YAML or JSON file."""
        try:
            with open(path, 'r') as f:
                if path.suffix in ['.yml', '.yaml']:
                    data = yaml.safe_load(f)
                elif path.suffix == '.json':
                    data = json.load(f)
                else:
                    raise ConfigError(f"Unknown config file format: {path}")
        except (OSError, ValueError, yaml.YAMLError) as e:
            raise ConfigError(f"Failed to load config from {path}: {e}")

        if data is None:
            return {}
        if not isinstance(data, dict):
            raise ConfigError(f"Config file must contain a mapping: {path}")
        return data

    def _load_environment_variables(self) -> Dict[str, Any]:
        """Load configuration from environment variables."""
        env_config = {}

        for key, value in os.environ.items():
            if not key.startswith(ENV_PREFIX):
                continue

            parts = key[len(ENV_PREFIX):].lower().split(ENV_NESTING)
            if len(parts) < 2:
                # Flat variables name storage settings, e.g. BDRIVE_FRAMING
                if parts[0] not in StorageConfig.__dataclass_fields__:
                    continue
                parts = ['storage', parts[0]]

            current = env_config
            for part in parts[:-1]:
                current = current.setdefault(part, {})
            current[parts[-1]] = self._parse_env_value(value)

        return env_config

    def _parse_env_value(self, value: str) -> Union[str, int, float, bool, None]:
        """Parse environment variable value to appropriate type."""
        if value.lower() in ['true', 'yes']:
            return True
        elif value.lower() in ['false', 'no']:
            return False

        try:
            return json.loads(value)
        except ValueError:
            return value

    def _deep_merge(self, *dicts: Dict[str, Any]) -> Dict[str, Any]:
        """Deep merge multiple dictionaries."""
        result = {}

        for dictionary in dicts:
            for key, value in dictionary.items():
                if key in result and isinstance(result[key], dict) and isinstance(value, dict):
                    result[key] = self._deep_merge(result[key], value)
                else:
                    result[key] = value

        return result

    def get(self, key_path: str, default: Any = None) -> Any:
        """
        Get configuration value by dot-notation path.

        Args:
            key_path: Dot-separated path (e.g., 'storage.chunk_threshold')
            default: Default value if key not found
        """
        current = self.load()

        for key in key_path.split('.'):
            if isinstance(current, dict) and key in current:
                current = current[key]
            else:
                return default

        return current

    def set(self, key_path: str, value: Any):
        """Set configuration value by dot-notation path."""
        config = self.load()

        keys = key_path.split('.')
        current = config
        for key in keys[:-1]:
            current = current.setdefault(key, {})

        current[keys[-1]] = value
        self._config_cache = config

    def storage_config(self) -> StorageConfig:
        """Build validated storage settings from the storage section."""
        return StorageConfig.from_dict(self.get('storage', {}))

    def wallet_config(self) -> WalletConfig:
        """
        Build wallet settings; credentials fall back to HANDCASH_* variables.
        """
        section = dict(self.get('wallet', {}))
        section.setdefault('auth_token', os.getenv('HANDCASH_AUTH_TOKEN'))
        section.setdefault('app_id', os.getenv('HANDCASH_APP_ID'))
        section.setdefault('app_secret', os.getenv('HANDCASH_APP_SECRET'))

        known = set(WalletConfig.__dataclass_fields__)
        return WalletConfig(**{k: v for k, v in section.items() if k in known})

    def explorer_config(self) -> ExplorerConfig:
        section = self.get('explorer', {})
        known = set(ExplorerConfig.__dataclass_fields__)
        return ExplorerConfig(**{k: v for k, v in section.items() if k in known})

    def validate(self) -> List[str]:
        """
        Validate current configuration.

        Returns:
            List of validation errors (empty if valid)
        """
        errors = []

        try:
            self.storage_config()
        except (ConfigError, TypeError) as e:
            errors.append(f"storage: {e}")

        output_format = self.get('cli.output_format')
        if output_format not in OUTPUT_FORMATS:
            errors.append(f"Invalid output format: {output_format}")

        balance = self.get('cli.dry_run_balance')
        if not isinstance(balance, int) or balance < 0:
            errors.append("cli.dry_run_balance must be a non-negative integer")

        return errors

    def get_sources(self) -> List[str]:
        """Get list of configuration sources that were loaded."""
        self.load()
        return self._config_sources

    def reset(self):
        """Reset configuration cache."""
        self._config_cache = None
        self._config_sources = []
