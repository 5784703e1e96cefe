"""
Configuration Management Module for the Diploma Registry CLI

Handles hierarchical configuration loading, environment variable mapping,
validation, and management of settings across different environments.
"""

import copy
import json
import logging
import os
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

import yaml

from registry.keys import is_valid_identity

# Environment variable prefix
ENV_PREFIX = 'DIPREG_'

CONFIG_FILE_NAMES = ['.dipreg.yml', '.dipreg.json']

OUTPUT_FORMATS = ['table', 'json', 'yaml']

# Default configuration values
DEFAULT_CONFIG = {
    # Registry storage
    'registry': {
        'data_dir': '~/.dipreg/data',
        'compressed': False,
        'backup_count': 5,
        'lock_timeout': 30.0,
        'backup_on_commit': False
    },

    # Caller identity used when --as is not given
    'identity': {
        'default_caller': None
    },

    # Operational activity trail
    'activity': {
        'enabled': True,
        'log_directory': None,
        'max_memory_events': 10000
    },

    # CLI behavior
    'cli': {
        'output_format': 'table',
        'confirm_destructive': True
    }
}

# Configuration profiles
PROFILES = {
    'production': {
        'registry': {'backup_count': 10, 'lock_timeout': 60.0, 'backup_on_commit': True},
        'activity': {'enabled': True, 'log_directory': '~/.dipreg/activity'},
        'cli': {'confirm_destructive': True}
    },
    'development': {
        'registry': {'data_dir': './registry_data', 'backup_count': 2},
        'activity': {'enabled': True, 'log_directory': None},
        'cli': {'confirm_destructive': False}
    }
}


def config_search_paths() -> List[Path]:
    """Configuration file locations in order of precedence (highest to lowest)."""
    paths = [Path.cwd() / name for name in CONFIG_FILE_NAMES]
    paths += [Path.home() / '.dipreg' / name.lstrip('.') for name in CONFIG_FILE_NAMES]
    paths += [Path('/etc/dipreg') / name.lstrip('.') for name in CONFIG_FILE_NAMES]
    return paths


class ConfigurationManager:
    """Manages hierarchical configuration with environment variable support."""

    def __init__(self, config_file: Optional[str] = None, profile: Optional[str] = None):
        """
        Initialize configuration manager.

        Args:
            config_file: Explicit configuration file path
            profile: Configuration profile to load (production, development)
        """
        self.logger = logging.getLogger('dipreg-cli.config')
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

        configs = []
        self._config_sources = []

        # 1. Start with default configuration
        configs.append(copy.deepcopy(DEFAULT_CONFIG))
        self._config_sources.append("defaults")

        # 2. Apply profile if specified
        if self.profile:
            if self.profile not in PROFILES:
                self.logger.warning(f"Unknown profile: {self.profile}")
            else:
                configs.append(copy.deepcopy(PROFILES[self.profile]))
                self._config_sources.append(f"profile:{self.profile}")
                self.logger.debug(f"Applied profile: {self.profile}")

        # 3. Load configuration files
        if self.config_file:
            config_data = self._load_config_file(Path(self.config_file))
            if config_data:
                configs.append(config_data)
                self._config_sources.append(f"file:{self.config_file}")
        else:
            for config_path in config_search_paths():
                if config_path.exists():
                    config_data = self._load_config_file(config_path)
                    if config_data:
                        configs.append(config_data)
                        self._config_sources.append(f"file:{config_path}")
                        self.logger.debug(f"Loaded config from {config_path}")
                        break  # Use first found config file

        # 4. Apply environment variables
        env_config = self._load_environment_variables()
        if env_config:
            configs.append(env_config)
            self._config_sources.append("environment")

        # Merge all configurations (later ones override earlier ones)
        self._config_cache = self._deep_merge(*configs)

        self._coerce_identities(self._config_cache)
        self._expand_paths(self._config_cache)

        return self._config_cache

    def _load_config_file(self, path: Path) -> Optional[Dict[str, Any]]:
        """Load configuration from file."""
        try:
            with open(path, 'r') as f:
                if path.suffix in ['.yml', '.yaml']:
                    return yaml.safe_load(f)
                elif path.suffix == '.json':
                    return json.load(f)
                else:
                    self.logger.warning(f"Unknown config file format: {path}")
                    return None
        except (OSError, yaml.YAMLError, json.JSONDecodeError) as e:
            self.logger.error(f"Failed to load config from {path}: {e}")
            return None

    def _load_environment_variables(self) -> Dict[str, Any]:
        """
        Load configuration from environment variables.

        The first segment after the prefix names the section and the remainder the
        key, e.g. DIPREG_REGISTRY_DATA_DIR -> {'registry': {'data_dir': value}}.
        """
        env_config = {}

        for key, value in os.environ.items():
            if not key.startswith(ENV_PREFIX):
                continue

            section, _, option = key[len(ENV_PREFIX):].lower().partition('_')
            if not option:
                continue

            env_config.setdefault(section, {})[option] = self._parse_env_value(value)

        return env_config

    def _parse_env_value(self, value: str) -> Union[str, int, float, bool, None]:
        """Parse environment variable value to appropriate type."""
        if value.lower() in ['true', 'yes']:
            return True
        elif value.lower() in ['false', 'no']:
            return False
        elif value.lower() in ['null', 'none']:
            return None

        try:
            if '.' in value:
                return float(value)
            return int(value)
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

    def _coerce_identities(self, config: Dict[str, Any]):
        """Restore identities that YAML resolved to integers from unquoted 0x literals."""
        identity_config = config.get('identity')
        if not isinstance(identity_config, dict):
            return

        caller = identity_config.get('default_caller')
        if isinstance(caller, int) and not isinstance(caller, bool) and 0 <= caller < 2 ** 160:
            identity_config['default_caller'] = f"0x{caller:040x}"

    def _expand_paths(self, config: Dict[str, Any]):
        """Expand ~ and environment variables in path values."""
        for key, value in config.items():
            if isinstance(value, dict):
                self._expand_paths(value)
            elif isinstance(value, str):
                if '~' in value or '$' in value:
                    config[key] = os.path.expanduser(os.path.expandvars(value))

    def get(self, key_path: str, default: Any = None) -> Any:
        """
        Get configuration value by dot-notation path.

        Args:
            key_path: Dot-separated path (e.g., 'registry.data_dir')
            default: Default value if key not found

        Returns:
            Configuration value or default
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

    def save(self, path: Optional[str] = None, format: str = 'yaml') -> Path:
        """
        Save current configuration to file.

        Args:
            path: File path to save to (default: project config file)
            format: Output format ('yaml' or 'json')

        Returns:
            Path written
        """
        config = self.load()

        if not path:
            path = Path.cwd() / ('.dipreg.yml' if format == 'yaml' else '.dipreg.json')

        path = Path(path)
        path.parent.mkdir(parents=True, exist_ok=True)

        with open(path, 'w') as f:
            if format == 'yaml':
                yaml.safe_dump(config, f, default_flow_style=False, sort_keys=False)
            else:
                json.dump(config, f, indent=2)

        self.logger.info(f"Configuration saved to {path}")
        return path

    def validate(self) -> List[str]:
        """
        Validate current configuration.

        Returns:
            List of validation errors (empty if valid)
        """
        config = self.load()
        errors = []

        registry_config = config.get('registry', {})
        if not registry_config.get('data_dir'):
            errors.append("Registry data directory is required")

        backup_count = registry_config.get('backup_count')
        if not isinstance(backup_count, int) or isinstance(backup_count, bool) or backup_count < 0:
            errors.append("Registry backup_count must be a non-negative integer")

        lock_timeout = registry_config.get('lock_timeout')
        if not isinstance(lock_timeout, (int, float)) or isinstance(lock_timeout, bool) or lock_timeout <= 0:
            errors.append("Registry lock_timeout must be a positive number")

        if not isinstance(registry_config.get('backup_on_commit', False), bool):
            errors.append("Registry backup_on_commit must be true or false")

        default_caller = config.get('identity', {}).get('default_caller')
        if default_caller is not None:
            if not is_valid_identity(default_caller):
                errors.append(f"Invalid default caller identity: {default_caller}")

        max_events = config.get('activity', {}).get('max_memory_events')
        if not isinstance(max_events, int) or isinstance(max_events, bool) or max_events <= 0:
            errors.append("Activity max_memory_events must be a positive integer")

        output_format = config.get('cli', {}).get('output_format')
        if output_format not in OUTPUT_FORMATS:
            errors.append(f"Invalid output format: {output_format}")

        return errors

    def get_sources(self) -> List[str]:
        """Get list of configuration sources that were loaded."""
        self.load()
        return self._config_sources

    def export_environment(self) -> Dict[str, str]:
        """
        Export configuration as environment variables.

        Returns:
            Dictionary of environment variable names and values
        """
        config = self.load()
        env_vars = {}

        for section, options in config.items():
            if not isinstance(options, dict):
                continue
            for key, value in options.items():
                env_name = f"{ENV_PREFIX}{section}_{key}".upper()
                if isinstance(value, bool):
                    env_vars[env_name] = 'true' if value else 'false'
                elif value is None:
                    env_vars[env_name] = 'null'
                else:
                    env_vars[env_name] = str(value)

        return env_vars

    def reset(self):
        """Reset configuration cache."""
        self._config_cache = None
        self._config_sources = []
