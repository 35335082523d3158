"""
Configuration management for the profile view counter.

Settings are resolved in priority order:
1. JSON config file (highest priority)
2. Environment variables
3. Default values (lowest priority)

Command-line flags are applied on top by the CLI via ``ConfigManager.override``.
"""

import os
import json
import logging
from dataclasses import dataclass, asdict
from typing import Optional, Dict, Any, List, Mapping

from viewcounter.constants import (
    HOST_LOCAL, PORT_DEFAULT, STORE_TIMEOUT_DEFAULT, MAX_VIEWS_DEFAULT,
    RESOURCES_DIR, TEMPLATE_FILENAME, PALETTE_FILENAME,
)
from viewcounter.exceptions import ConfigurationError

logger = logging.getLogger(__name__)

CONFIG_ENV_VAR = 'VIEWCOUNTER_CONFIG'


@dataclass
class ServerSettings:
    """HTTP server settings.

    Attributes:
        host: Interface to bind (127.0.0.1 by default, 0.0.0.0 for all interfaces)
        port: TCP port to listen on
        log_level: Logging level ('DEBUG', 'INFO', 'WARNING', 'ERROR')
    """
    host: str = HOST_LOCAL
    port: int = PORT_DEFAULT
    log_level: str = 'INFO'

    def validate(self) -> List[str]:
        """Validate settings and return list of error messages (empty if valid)."""
        errors = []
        if not self.host or not isinstance(self.host, str):
            errors.append("Host must be a non-empty string")
        if not isinstance(self.port, int) or not (0 < self.port < 65536):
            errors.append("Port must be an integer between 1 and 65535")
        valid_levels = {'DEBUG', 'INFO', 'WARNING', 'ERROR', 'CRITICAL'}
        if str(self.log_level).upper() not in valid_levels:
            errors.append(f"Log level must be one of {sorted(valid_levels)}")
        return errors


@dataclass
class StoreSettings:
    """Counter store settings.

    Attributes:
        data_dir: Directory holding persisted counts (defaults to <repo_root>/data)
        timeout: Seconds to wait for a per-key lock before failing the request
    """
    data_dir: Optional[str] = None
    timeout: float = STORE_TIMEOUT_DEFAULT

    def validate(self) -> List[str]:
        errors = []
        if not isinstance(self.timeout, (int, float)) or self.timeout <= 0:
            errors.append("Store timeout must be a positive number")
        return errors

    def get_data_dir(self) -> str:
        """Get the data directory, using default if not set."""
        if self.data_dir:
            return os.path.abspath(self.data_dir)
        repo_root = os.path.abspath(os.path.join(os.path.dirname(__file__), '..'))
        return os.path.join(repo_root, 'data')


@dataclass
class BadgeSettings:
    """Badge rendering settings.

    Attributes:
        template_path: SVG template file (defaults to the bundled template)
        palette_path: Line-delimited color file (defaults to the bundled palette)
        max_views: Count at which the milestone color reaches the end of the palette
    """
    template_path: Optional[str] = None
    palette_path: Optional[str] = None
    max_views: int = MAX_VIEWS_DEFAULT

    def validate(self) -> List[str]:
        errors = []
        if not isinstance(self.max_views, int) or self.max_views <= 0:
            errors.append("Max views must be a positive integer")
        return errors

    def get_template_path(self) -> str:
        return self.template_path or os.path.join(RESOURCES_DIR, TEMPLATE_FILENAME)

    def get_palette_path(self) -> str:
        return self.palette_path or os.path.join(RESOURCES_DIR, PALETTE_FILENAME)


class ConfigManager:
    """Single source of truth for view counter configuration.

    Attributes:
        server: HTTP server settings
        store: Counter store settings
        badge: Badge rendering settings
        config_file: Path of the JSON file that was loaded, if any
    """

    def __init__(self, config_file: Optional[str] = None, environ: Optional[Mapping[str, str]] = None):
        """Initialize ConfigManager.

        Args:
            config_file: Optional path to a JSON config file. Falls back to
                         $VIEWCOUNTER_CONFIG when not given.
            environ: Environment mapping (defaults to os.environ)
        """
        self.server = ServerSettings()
        self.store = StoreSettings()
        self.badge = BadgeSettings()
        self.config_file: Optional[str] = None

        env = os.environ if environ is None else environ
        self._load_from_environment(env)
        config_file = config_file or env.get(CONFIG_ENV_VAR)
        if config_file:
            self._load_from_file(config_file)

    def _load_from_environment(self, env: Mapping[str, str]) -> None:
        """Load configuration from environment variables."""
        if env.get('VIEWCOUNTER_HOST'):
            self.server.host = env['VIEWCOUNTER_HOST']
        if env.get('VIEWCOUNTER_PORT'):
            self.server.port = self._parse(int, 'VIEWCOUNTER_PORT', env['VIEWCOUNTER_PORT'])
        if env.get('LOG_LEVEL'):
            self.server.log_level = env['LOG_LEVEL'].upper()
        if env.get('VIEWCOUNTER_DATA_DIR'):
            self.store.data_dir = env['VIEWCOUNTER_DATA_DIR']
        if env.get('VIEWCOUNTER_STORE_TIMEOUT'):
            self.store.timeout = self._parse(float, 'VIEWCOUNTER_STORE_TIMEOUT', env['VIEWCOUNTER_STORE_TIMEOUT'])
        if env.get('VIEWCOUNTER_TEMPLATE'):
            self.badge.template_path = env['VIEWCOUNTER_TEMPLATE']
        if env.get('VIEWCOUNTER_PALETTE'):
            self.badge.palette_path = env['VIEWCOUNTER_PALETTE']
        if env.get('VIEWCOUNTER_MAX_VIEWS'):
            self.badge.max_views = self._parse(int, 'VIEWCOUNTER_MAX_VIEWS', env['VIEWCOUNTER_MAX_VIEWS'])

    @staticmethod
    def _parse(kind, name: str, raw: Any) -> Any:
        try:
            return kind(raw)
        except (ValueError, TypeError) as e:
            raise ConfigurationError(
                f"Invalid value for {name}: {raw!r}", setting_name=name, setting_value=raw
            ) from e

    def _load_from_file(self, file_path: str) -> None:
        """Load configuration from a JSON file.

        Raises:
            ConfigurationError: the file is missing, unreadable or not valid JSON
        """
        try:
            with open(file_path, 'r', encoding='utf-8') as f:
                data = json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            raise ConfigurationError(f"Failed to load config file {file_path}: {e}",
                                     setting_name='config_file', setting_value=file_path) from e
        if not isinstance(data, dict):
            raise ConfigurationError(f"Config file {file_path} must contain a JSON object",
                                     setting_name='config_file', setting_value=file_path)

        sections = {'server': self.server, 'store': self.store, 'badge': self.badge}
        for section_name, target in sections.items():
            section = data.get(section_name) or {}
            if not isinstance(section, dict):
                raise ConfigurationError(f"Section '{section_name}' in {file_path} must be a JSON object",
                                         setting_name=section_name, setting_value=section)
            for key, value in section.items():
                if not hasattr(target, key):
                    logger.warning(f"Ignoring unknown setting {section_name}.{key} in {file_path}")
                    continue
                setattr(target, key, value)

        self.config_file = file_path
        logger.info(f"Loaded configuration from {file_path}")

    def override(self, **values: Any) -> None:
        """Apply non-None overrides given as ``section__field=value``."""
        for name, value in values.items():
            if value is None:
                continue
            section_name, _, field_name = name.partition('__')
            target = getattr(self, section_name)
            setattr(target, field_name, value)

    def validate(self) -> List[str]:
        """Validate all configuration settings.

        Returns:
            List of error messages (empty if all valid)
        """
        errors = []
        errors.extend(self.server.validate())
        errors.extend(self.store.validate())
        errors.extend(self.badge.validate())
        return errors

    def require_valid(self) -> None:
        """Raise ConfigurationError if any setting is invalid."""
        errors = self.validate()
        if errors:
            raise ConfigurationError(f"Invalid configuration: {'; '.join(errors)}", errors=errors)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'server': asdict(self.server),
            'store': asdict(self.store),
            'badge': asdict(self.badge),
        }
