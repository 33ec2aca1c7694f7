"""
MechScholar Configuration Manager
Version: 2.0
Configuration loading and management with validated environment overrides
"""

import os
import re
import yaml
import logging
import threading
from pathlib import Path
from typing import Dict, Any, Optional, Set
from dataclasses import dataclass, asdict
from enum import Enum

logger = logging.getLogger(__name__)


class ConfigType(Enum):
    """Configuration sections"""
    STORAGE = "storage"
    EVENTS = "events"
    DIFFICULTY = "difficulty"
    LOGGING = "logging"


@dataclass
class StorageConfig:
    """Persistence settings"""
    save_path: str = "saves"
    save_key: str = "mechscholar_save"
    encrypt_saves: bool = False
    cookie_jar_name: str = "cookies.json"
    cookie_max_bytes: int = 4096
    cookie_expiry_days: int = 365
    auto_save_interval_ms: int = 30000


@dataclass
class EventConfig:
    """Event engine settings"""
    trigger_cooldown_ms: int = 30000
    base_drop_rate: float = 0.1
    history_limit: int = 100


@dataclass
class DifficultyConfig:
    """Adaptive difficulty thresholds"""
    response_time_target_ms: int = 15000
    rolling_window: int = 5


@dataclass
class LoggingConfig:
    """Logging settings"""
    level: str = "INFO"
    log_path: str = "logs"
    console: bool = True


_SECTION_TYPES = {
    ConfigType.STORAGE: StorageConfig,
    ConfigType.EVENTS: EventConfig,
    ConfigType.DIFFICULTY: DifficultyConfig,
    ConfigType.LOGGING: LoggingConfig,
}


class ConfigManager:
    """
    Central configuration management system
    Reads config/engine.yaml, then applies whitelisted .env and process overrides
    """

    ALLOWED_ENV_KEYS: Set[str] = {
        'MECHSCHOLAR_SAVE_PATH', 'MECHSCHOLAR_SAVE_KEY', 'MECHSCHOLAR_ENCRYPT_SAVES',
        'MECHSCHOLAR_AUTOSAVE_INTERVAL_MS', 'MECHSCHOLAR_COOKIE_MAX_BYTES',
        'MECHSCHOLAR_EVENT_COOLDOWN_MS',
        'MECHSCHOLAR_LOG_LEVEL', 'MECHSCHOLAR_LOG_PATH',
    }

    MAX_ENV_VALUE_LENGTH: int = 1000

    ENV_VALUE_PATTERNS: Dict[str, str] = {
        'MECHSCHOLAR_SAVE_KEY': r'^[A-Za-z0-9_\-]{1,64}$',
        'MECHSCHOLAR_ENCRYPT_SAVES': r'^(?i:true|false|1|0|yes|no)$',
        'MECHSCHOLAR_AUTOSAVE_INTERVAL_MS': r'^\d{1,8}$',
        'MECHSCHOLAR_COOKIE_MAX_BYTES': r'^\d{1,7}$',
        'MECHSCHOLAR_EVENT_COOLDOWN_MS': r'^\d{1,8}$',
        'MECHSCHOLAR_LOG_LEVEL': r'^(?i:debug|info|warning|error|critical)$',
    }

    DANGEROUS_PATTERNS = [
        '../', '..\\',  # Path traversal
        '$(', '${',     # Shell expansion
        '`',            # Command substitution
        '&&', '||',     # Command chaining
        '|',            # Pipe
        ';',            # Command separator
        '\x00',         # Null byte
        '<', '>',       # Redirection
    ]

    def __init__(self, base_path: Optional[Path] = None):
        """Initialize configuration manager"""
        self.base_path = Path(base_path) if base_path else Path.cwd()
        self.config_path = self.base_path / 'config'
        self.config_file = self.config_path / 'engine.yaml'

        self._lock = threading.RLock()

        self._configs: Dict[ConfigType, Any] = {}
        self._env_vars: Dict[str, str] = {}

        self._load_configurations()

        logger.info(f"Configuration manager initialized from {self.base_path}")

    def _load_configurations(self):
        """Load all configurations"""
        with self._lock:
            self._load_env_file()
            self._load_engine_config()
            self._apply_env_overrides()

    def _load_env_file(self):
        """Load environment variables from file with validation"""
        env_file = self.base_path / '.env'

        if not env_file.exists():
            return

        try:
            with open(env_file, 'r', encoding='utf-8') as f:
                for line_number, line in enumerate(f, start=1):
                    line = line.strip()

                    if not line or line.startswith('#'):
                        continue

                    if '=' not in line:
                        logger.warning(f"Invalid line {line_number} in .env file: missing '='")
                        continue

                    key, value = line.split('=', 1)
                    key = key.strip()

                    if key not in self.ALLOWED_ENV_KEYS:
                        logger.warning(f"Ignoring unknown environment key '{key}' on line {line_number}")
                        continue

                    value = self._validate_env_value(key, value.strip())
                    if value is None:
                        continue

                    self._env_vars[key] = value
                    logger.debug(f"Loaded environment variable: {key}")

            logger.info(f"Loaded {len(self._env_vars)} validated environment variables")

        except OSError as e:
            logger.error(f"Failed to load environment file: {e}")

    def _validate_env_value(self, key: str, value: str) -> Optional[str]:
        """Strip quotes, bound length, check format and sanitize one value"""
        if len(value) >= 2 and value[0] == value[-1] and value[0] in ('"', "'"):
            value = value[1:-1]

        if len(value) > self.MAX_ENV_VALUE_LENGTH:
            logger.warning(f"Environment value for '{key}' exceeds maximum length, truncating")
            value = value[:self.MAX_ENV_VALUE_LENGTH]

        pattern = self.ENV_VALUE_PATTERNS.get(key)
        if pattern and not re.match(pattern, value):
            logger.error(f"Invalid format for '{key}': '{value}' does not match pattern {pattern}")
            return None

        sanitized = ''.join(char for char in value if ord(char) >= 32 or char == '\t')

        if any(p in sanitized for p in self.DANGEROUS_PATTERNS):
            logger.error(f"Potentially dangerous pattern detected in value for '{key}'")
            return None

        return sanitized

    def _load_engine_config(self):
        """Load config/engine.yaml into typed sections, falling back to defaults"""
        self._load_default_config()

        if not self.config_file.exists():
            return

        try:
            with open(self.config_file, 'r', encoding='utf-8') as f:
                data = yaml.safe_load(f) or {}
        except (OSError, yaml.YAMLError) as e:
            logger.error(f"Failed to load engine config: {e}")
            return

        if not isinstance(data, dict):
            logger.error(f"Engine config {self.config_file} is not a mapping, using defaults")
            return

        for config_type, section_cls in _SECTION_TYPES.items():
            section = data.get(config_type.value)
            if section is None:
                continue
            if not isinstance(section, dict):
                logger.warning(f"Ignoring malformed '{config_type.value}' section")
                continue
            known = {k: v for k, v in section.items() if k in section_cls.__dataclass_fields__}
            unknown = set(section) - set(known)
            if unknown:
                logger.warning(f"Ignoring unknown {config_type.value} settings: {sorted(unknown)}")
            try:
                self._configs[config_type] = section_cls(**known)
            except TypeError as e:
                logger.error(f"Invalid {config_type.value} config: {e}")

        logger.info(f"Loaded engine config: {self.config_file}")

    def _load_default_config(self):
        """Load default configuration sections"""
        for config_type, section_cls in _SECTION_TYPES.items():
            self._configs[config_type] = section_cls()

    def _apply_env_overrides(self):
        """Environment values win over the YAML file"""
        storage: StorageConfig = self._configs[ConfigType.STORAGE]
        events: EventConfig = self._configs[ConfigType.EVENTS]
        logging_config: LoggingConfig = self._configs[ConfigType.LOGGING]

        value = self.get_env('MECHSCHOLAR_SAVE_PATH')
        if value:
            storage.save_path = value
        value = self.get_env('MECHSCHOLAR_SAVE_KEY')
        if value:
            storage.save_key = value
        value = self.get_env('MECHSCHOLAR_ENCRYPT_SAVES')
        if value:
            storage.encrypt_saves = value.lower() in ('true', '1', 'yes')
        value = self.get_env('MECHSCHOLAR_AUTOSAVE_INTERVAL_MS')
        if value:
            storage.auto_save_interval_ms = int(value)
        value = self.get_env('MECHSCHOLAR_COOKIE_MAX_BYTES')
        if value:
            storage.cookie_max_bytes = int(value)
        value = self.get_env('MECHSCHOLAR_EVENT_COOLDOWN_MS')
        if value:
            events.trigger_cooldown_ms = int(value)
        value = self.get_env('MECHSCHOLAR_LOG_LEVEL')
        if value:
            logging_config.level = value.upper()
        value = self.get_env('MECHSCHOLAR_LOG_PATH')
        if value:
            logging_config.log_path = value

    def get_env(self, key: str, default: Optional[str] = None) -> Optional[str]:
        """
        Get environment variable value
        Only returns values for whitelisted keys
        """
        if key not in self.ALLOWED_ENV_KEYS:
            logger.warning(f"Attempted to access non-whitelisted environment key: {key}")
            return default

        if key in self._env_vars:
            return self._env_vars[key]

        value = os.environ.get(key)
        if value is not None:
            validated = self._validate_env_value(key, value)
            if validated is not None:
                return validated

        return default

    def get_config(self, config_type: ConfigType) -> Any:
        """Get configuration by type"""
        with self._lock:
            return self._configs.get(config_type)

    def get_storage_config(self) -> StorageConfig:
        return self.get_config(ConfigType.STORAGE)

    def get_event_config(self) -> EventConfig:
        return self.get_config(ConfigType.EVENTS)

    def get_difficulty_config(self) -> DifficultyConfig:
        return self.get_config(ConfigType.DIFFICULTY)

    def get_logging_config(self) -> LoggingConfig:
        return self.get_config(ConfigType.LOGGING)

    def resolve_path(self, value: str) -> Path:
        """Relative paths in config are relative to the base path"""
        path = Path(value)
        return path if path.is_absolute() else self.base_path / path

    def update_config(self, config_type: ConfigType, updates: Dict[str, Any]):
        """Update configuration with validation"""
        with self._lock:
            config = self._configs.get(config_type)
            if config is None:
                return
            for key, value in updates.items():
                if hasattr(config, key):
                    setattr(config, key, value)
                else:
                    logger.warning(f"Ignoring unknown {config_type.value} setting '{key}'")

            logger.info(f"Updated {config_type.value} configuration")

    def save_config(self) -> bool:
        """Save all configuration sections to config/engine.yaml"""
        with self._lock:
            data = {config_type.value: asdict(config) for config_type, config in self._configs.items()}
            try:
                self.config_path.mkdir(parents=True, exist_ok=True)
                with open(self.config_file, 'w', encoding='utf-8') as f:
                    yaml.safe_dump(data, f, default_flow_style=False, sort_keys=True)
            except OSError as e:
                logger.error(f"Failed to save engine config: {e}")
                return False

            logger.info(f"Saved engine configuration to {self.config_file}")
            return True

    def get_status(self) -> Dict[str, Any]:
        """Get configuration system status"""
        with self._lock:
            return {
                'base_path': str(self.base_path),
                'config_file': str(self.config_file),
                'config_file_present': self.config_file.exists(),
                'configs_loaded': [config_type.value for config_type in self._configs],
                'env_vars_loaded': len(self._env_vars),
                'encrypt_saves': self._configs[ConfigType.STORAGE].encrypt_saves,
            }


# Singleton instance
_config_manager: Optional[ConfigManager] = None
_lock = threading.Lock()


def get_config_manager(base_path: Optional[Path] = None) -> ConfigManager:
    """Get singleton configuration manager instance"""
    global _config_manager

    if _config_manager is None:
        with _lock:
            if _config_manager is None:
                _config_manager = ConfigManager(base_path)

    return _config_manager


def reset_config_manager():
    """Drop the singleton so the next call re-reads configuration"""
    global _config_manager
    with _lock:
        _config_manager = None
