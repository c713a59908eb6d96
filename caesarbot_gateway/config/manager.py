"""
Configuration loading: YAML or JSON file, environment overrides, pydantic
validation and optional hot reload through watchdog.
"""

import hashlib
import json
import logging
import os
import threading
import time
from typing import Any, Callable, Dict, List, Mapping, Optional, Tuple

import yaml
from watchdog.events import FileSystemEvent, FileSystemEventHandler
from watchdog.observers import Observer

from caesarbot_gateway.config.models import GatewayConfig
from caesarbot_gateway.config.validation import get_env_var_mappings, validate_config_dict


logger = logging.getLogger(__name__)

INT_ENV_VARS = {
    'CAESAR_HTTP_TIMEOUT', 'CAESAR_RETRY_MAX_ATTEMPTS',
    'CAESAR_RETRY_BASE_DELAY_MS', 'CAESAR_DEFAULT_SLIPPAGE_BPS',
}
BOOL_ENV_VARS = {'CAESAR_LOG_STRUCTURED'}
TRUE_VALUES = ('true', '1', 'yes', 'on')

# Written by init-config; credentials stay in the environment
DEFAULT_CONFIG: Dict[str, Any] = {
    'http': {'timeout': 30},
    'retry': {'max_attempts': 3, 'base_delay_ms': 1000},
    'helius': {'base_url': 'https://api.helius.xyz/v0'},
    'birdeye': {'base_url': 'https://public-api.birdeye.so', 'chain': 'solana'},
    'jupiter': {'base_url': 'https://quote-api.jup.ag/v6', 'default_slippage_bps': 50},
    'supabase': {'schema': 'public', 'heartbeat_interval': 30.0},
    'pumpportal': {'base_url': 'https://pumpportal.fun/api'},
    'openai': {'base_url': 'https://api.openai.com/v1', 'model': 'gpt-4-turbo-preview'},
    'rugcheck': {'base_url': 'https://api.rugcheck.xyz'},
    'dexscreener': {'base_url': 'https://api.dexscreener.com', 'chain': 'solana'},
    'logging': {'level': 'INFO', 'structured': False},
}

ConfigCallback = Callable[[GatewayConfig], None]


def read_config_file(path: str) -> Dict[str, Any]:
    """Parse a ``.yaml``/``.yml`` or ``.json`` file into a dict."""
    with open(path, 'r', encoding='utf-8') as f:
        if path.endswith(('.yaml', '.yml')):
            return yaml.safe_load(f) or {}
        if path.endswith('.json'):
            return json.load(f)
    raise ValueError(f"Unsupported config file format: {path}")


def write_config_file(path: str, data: Mapping[str, Any]) -> None:
    directory = os.path.dirname(path)
    if directory:
        os.makedirs(directory, exist_ok=True)
    with open(path, 'w', encoding='utf-8') as f:
        if path.endswith('.json'):
            json.dump(data, f, indent=2)
        else:
            yaml.safe_dump(dict(data), f, default_flow_style=False, sort_keys=False)


def convert_env_value(name: str, value: str) -> Any:
    if name in INT_ENV_VARS:
        return int(value)
    if name in BOOL_ENV_VARS:
        return value.strip().lower() in TRUE_VALUES
    return value


def apply_env_overrides(config_data: Dict[str, Any],
                        environ: Optional[Mapping[str, str]] = None) -> Dict[str, Any]:
    """
    Overlay environment variables onto raw config data.

    Empty variables are ignored. ``config_data`` is modified in place and
    returned.
    """
    environ = os.environ if environ is None else environ

    for name, dotted_path in get_env_var_mappings().items():
        value = environ.get(name)
        if not value:
            continue

        *sections, key = dotted_path.split('.')
        target = config_data
        for section in sections:
            if not isinstance(target.get(section), dict):
                target[section] = {}
            target = target[section]
        target[key] = convert_env_value(name, value)

    return config_data


class ConfigFileHandler(FileSystemEventHandler):
    """Reloads the manager when its file is written or atomically replaced."""

    def __init__(self, manager: 'ConfigManager', debounce_seconds: float = 1.0):
        self.manager = manager
        self.debounce_seconds = debounce_seconds
        self._last_event = 0.0

    def on_modified(self, event: FileSystemEvent) -> None:
        self._handle(event, event.src_path)

    def on_moved(self, event: FileSystemEvent) -> None:
        self._handle(event, event.dest_path)

    def on_created(self, event: FileSystemEvent) -> None:
        self._handle(event, event.src_path)

    def _handle(self, event: FileSystemEvent, path: str) -> None:
        if event.is_directory or os.path.abspath(path) != self.manager.config_file_path:
            return
        now = time.monotonic()
        if now - self._last_event < self.debounce_seconds:
            return
        self._last_event = now
        # Let the writer finish before reading
        threading.Timer(0.1, self.manager.reload).start()


class ConfigManager:
    """
    Loads and validates the gateway configuration.

    A missing file means defaults plus environment. When a later load
    fails validation the last good configuration is kept and the errors
    are available from ``get_validation_errors``.
    """

    def __init__(self, config_file_path: str = "config.yaml"):
        self.config_file_path = os.path.abspath(config_file_path)
        self._config: Optional[GatewayConfig] = None
        self._fingerprint: Optional[str] = None
        self._errors: List[str] = []
        self._callbacks: List[ConfigCallback] = []
        self._lock = threading.Lock()
        self._observer: Optional[Observer] = None

    def _read_raw(self) -> Dict[str, Any]:
        data = read_config_file(self.config_file_path) if os.path.exists(self.config_file_path) else {}
        return apply_env_overrides(data)

    def _current_fingerprint(self) -> str:
        """Hash of the file content and the mapped environment variables."""
        digest = hashlib.sha256()
        if os.path.exists(self.config_file_path):
            with open(self.config_file_path, 'rb') as f:
                digest.update(f.read())
        for name in sorted(get_env_var_mappings()):
            digest.update(f"|{name}={os.environ.get(name, '')}".encode())
        return digest.hexdigest()

    def load_config(self) -> GatewayConfig:
        """
        Load, override and validate the configuration.

        Raises:
            ValueError: If it is invalid and nothing valid was loaded before
        """
        with self._lock:
            fingerprint = self._current_fingerprint()
            if self._config is not None and fingerprint == self._fingerprint:
                return self._config

            try:
                config = validate_config_dict(self._read_raw()).to_config()
                errors = config.validate()
                if errors:
                    raise ValueError("; ".join(errors))
            except Exception as e:
                self._errors = [str(e)]
                if self._config is not None:
                    logger.warning(f"Invalid configuration in {self.config_file_path}, keeping previous: {e}")
                    return self._config
                raise ValueError(f"Configuration validation failed: {e}") from e

            self._config = config
            self._fingerprint = fingerprint
            self._errors = []
            return config

    def get_config(self) -> GatewayConfig:
        return self._config if self._config is not None else self.load_config()

    def get_validation_errors(self) -> List[str]:
        return list(self._errors)

    def validate_config_file(self) -> Tuple[bool, List[str]]:
        """
        Check the file without replacing the loaded configuration.

        Returns:
            Tuple of (is_valid, error_messages)
        """
        if not os.path.exists(self.config_file_path):
            return False, ["Configuration file does not exist"]
        try:
            errors = validate_config_dict(self._read_raw()).to_config().validate()
        except Exception as e:
            return False, [str(e)]
        return not errors, errors

    def create_default_config(self, overwrite: bool = False) -> bool:
        """Write ``DEFAULT_CONFIG``; returns False if the file exists and ``overwrite`` is off."""
        if os.path.exists(self.config_file_path) and not overwrite:
            return False
        write_config_file(self.config_file_path, DEFAULT_CONFIG)
        logger.info(f"Wrote default configuration to {self.config_file_path}")
        return True

    def add_change_callback(self, callback: ConfigCallback) -> None:
        """Call ``callback`` with the new configuration after each effective reload."""
        self._callbacks.append(callback)

    def remove_change_callback(self, callback: ConfigCallback) -> None:
        if callback in self._callbacks:
            self._callbacks.remove(callback)

    def reload(self) -> None:
        """Reload from disk and notify callbacks when the result changed."""
        previous = self._config
        try:
            config = self.load_config()
        except ValueError as e:
            logger.error(f"Error reloading configuration: {e}")
            return

        if config is previous or config == previous:
            return

        logger.info(f"Configuration reloaded from {self.config_file_path}")
        for callback in list(self._callbacks):
            try:
                callback(config)
            except Exception as e:
                logger.error(f"Error in config change callback: {e}")

    def start_hot_reload(self) -> None:
        if self._observer is not None:
            return
        directory = os.path.dirname(self.config_file_path)
        os.makedirs(directory, exist_ok=True)

        self._observer = Observer()
        self._observer.schedule(ConfigFileHandler(self), directory, recursive=False)
        self._observer.start()
        logger.info(f"Watching {self.config_file_path} for changes")

    def stop_hot_reload(self) -> None:
        if self._observer is None:
            return
        self._observer.stop()
        self._observer.join()
        self._observer = None

    def is_hot_reload_active(self) -> bool:
        return self._observer is not None and self._observer.is_alive()
