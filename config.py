"""
Configuration for the forum keyword crawler.

``config.json`` holds run settings (store, fetch backend, pool sizes,
dashboard, logging); ``targets.json`` holds the forums to crawl. Both are
validated with JSON Schema before use. Database settings can be overridden
from the environment.
"""

import json
import logging
import os
import threading
from dataclasses import asdict, dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional

from jsonschema import ValidationError as SchemaValidationError
from jsonschema import validate

from forum_crawler.utils.errors import ConfigurationError


logger = logging.getLogger(__name__)


@dataclass
class DatabaseConfig:
    """Where relevant threads are stored."""
    db_type: str = "sqlite"  # "sqlite" or "postgresql"
    sqlite_path: str = "data/forum_crawler.db"

    # Only used for postgresql
    host: str = "localhost"
    port: int = 5432
    database: str = "forum_crawler"
    username: str = "postgres"
    password: str = ""
    pool_size: int = 10


@dataclass
class CrawlerConfig:
    """Fetch session settings."""
    backend: str = "playwright"  # "playwright" or "http"
    headless: bool = True
    wait_until: str = "networkidle"
    user_agents: List[str] = field(default_factory=list)
    retry_attempts: int = 2
    backoff_factor: float = 0.5

    def session_options(self) -> Dict[str, Any]:
        """Options passed to the fetcher registry for the selected backend."""
        options: Dict[str, Any] = {}
        if self.user_agents:
            options['user_agents'] = list(self.user_agents)
        if self.backend == "playwright":
            options['headless'] = self.headless
            options['wait_until'] = self.wait_until
        else:
            options['retry_attempts'] = self.retry_attempts
            options['backoff_factor'] = self.backoff_factor
        return options


@dataclass
class ConcurrencyConfig:
    """Worker pool settings."""
    max_workers: int = 4
    fanout_limit: int = 3
    page_timeout_ms: int = 60000
    thread_timeout_ms: int = 45000
    max_pages: int = 0
    debug_dir: str = "debug"


@dataclass
class DashboardConfig:
    """Live dashboard settings."""
    enabled: bool = True
    refresh_interval_ms: int = 250
    use_color: bool = True


@dataclass
class SystemConfig:
    database: DatabaseConfig = field(default_factory=DatabaseConfig)
    crawler: CrawlerConfig = field(default_factory=CrawlerConfig)
    concurrency: ConcurrencyConfig = field(default_factory=ConcurrencyConfig)
    dashboard: DashboardConfig = field(default_factory=DashboardConfig)
    targets_file: str = "targets.json"
    log_level: str = "INFO"
    log_file: Optional[str] = "logs/forum_crawler.log"
    log_retention_days: int = 7

    def to_concurrent_config(self):
        """Build the engine's ConcurrentConfig from the file settings."""
        from forum_crawler.concurrent.models import ConcurrentConfig

        return ConcurrentConfig(
            max_workers=self.concurrency.max_workers,
            fanout_limit=self.concurrency.fanout_limit,
            page_timeout_ms=self.concurrency.page_timeout_ms,
            thread_timeout_ms=self.concurrency.thread_timeout_ms,
            refresh_interval=self.dashboard.refresh_interval_ms / 1000.0,
            max_pages=self.concurrency.max_pages,
            debug_dir=self.concurrency.debug_dir
        )


def _section(properties: Dict[str, Any], required: Optional[List[str]] = None) -> Dict[str, Any]:
    schema = {"type": "object", "properties": properties, "additionalProperties": False}
    if required:
        schema["required"] = required
    return schema


def _text(min_length: int = 1) -> Dict[str, Any]:
    return {"type": "string", "minLength": min_length}


def _int(minimum: int, maximum: Optional[int] = None) -> Dict[str, Any]:
    schema = {"type": "integer", "minimum": minimum}
    if maximum is not None:
        schema["maximum"] = maximum
    return schema


def _choice(*values: str) -> Dict[str, Any]:
    return {"type": "string", "enum": list(values)}


CONFIG_SCHEMA = _section({
    "database": _section({
        "db_type": _choice("sqlite", "postgresql"),
        "sqlite_path": _text(),
        "host": _text(),
        "port": _int(1, 65535),
        "database": _text(),
        "username": _text(),
        "password": _text(0),
        "pool_size": _int(1, 1000),
    }, required=["db_type"]),
    "crawler": _section({
        "backend": _choice("playwright", "http"),
        "headless": {"type": "boolean"},
        "wait_until": _choice("load", "domcontentloaded", "networkidle", "commit"),
        "user_agents": {"type": "array", "items": _text(10)},
        "retry_attempts": _int(0, 10),
        "backoff_factor": {"type": "number", "minimum": 0.0, "maximum": 60.0},
    }),
    "concurrency": _section({
        "max_workers": _int(1, 50),
        "fanout_limit": _int(1, 20),
        "page_timeout_ms": _int(1000, 300000),
        "thread_timeout_ms": _int(1000, 300000),
        "max_pages": _int(0),
        "debug_dir": _text(),
    }),
    "dashboard": _section({
        "enabled": {"type": "boolean"},
        "refresh_interval_ms": _int(10, 10000),
        "use_color": {"type": "boolean"},
    }),
    "targets_file": _text(),
    "log_level": _choice("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"),
    "log_file": {"type": ["string", "null"]},
    "log_retention_days": _int(1, 365),
})

# targets.json: a non-empty array of forum targets (camelCase keys)
TARGETS_SCHEMA = {
    "type": "array",
    "minItems": 1,
    "items": {
        "type": "object",
        "properties": {
            "sourceName": _text(),
            "startUrl": _text(),
            "threadLinkSelector": _text(),
            "nextPageSelector": _text(0),
            "postContentSelector": _text(),
            "postContentSelectors": {"type": "array", "items": _text(), "minItems": 1},
            "keywords": {"type": "array", "items": _text(), "minItems": 1},
        },
        "required": ["sourceName", "startUrl", "threadLinkSelector", "keywords"],
        "anyOf": [
            {"required": ["postContentSelectors"]},
            {"required": ["postContentSelector"]}
        ]
    }
}

# environment variable -> (DatabaseConfig attribute, parser)
ENV_OVERRIDES = {
    "DB_TYPE": ("db_type", str),
    "DB_HOST": ("host", str),
    "DB_PORT": ("port", int),
    "DB_NAME": ("database", str),
    "DB_USER": ("username", str),
    "DB_PASSWORD": ("password", str),
    "SQLITE_PATH": ("sqlite_path", str),
}

_SECTIONS = {
    "database": DatabaseConfig,
    "crawler": CrawlerConfig,
    "concurrency": ConcurrencyConfig,
    "dashboard": DashboardConfig,
}

_TOP_LEVEL_KEYS = ("targets_file", "log_level", "log_file", "log_retention_days")


def _read_json(path: Path) -> Any:
    try:
        with open(path, 'r', encoding='utf-8') as f:
            return json.load(f)
    except json.JSONDecodeError as e:
        raise ConfigurationError(f"Invalid JSON in {path}: {e}")
    except OSError as e:
        raise ConfigurationError(f"Cannot read {path}: {e}")


class ConfigManager:
    """Loads, validates and saves ``config.json``."""

    def __init__(self, config_path: str = "config.json"):
        self.config_path = Path(config_path)
        self._config: Optional[SystemConfig] = None
        self._lock = threading.RLock()

    def validate_config(self, config_data: Dict[str, Any]) -> None:
        """
        Raises:
            ConfigurationError: ``config_data`` does not match CONFIG_SCHEMA
        """
        try:
            validate(instance=config_data, schema=CONFIG_SCHEMA)
        except SchemaValidationError as e:
            where = ".".join(str(p) for p in e.absolute_path) or "<root>"
            raise ConfigurationError(f"Invalid configuration at {where}: {e.message}")

    def load_config(self) -> SystemConfig:
        """Read the file if it exists (defaults otherwise), then apply environment overrides."""
        with self._lock:
            if self.config_path.exists():
                data = _read_json(self.config_path)
                self.validate_config(data)
                config = self._dict_to_config(data)
                logger.info(f"Loaded configuration from {self.config_path}")
            else:
                config = SystemConfig()
                logger.info(f"{self.config_path} not found, using default configuration")

            self._apply_env_overrides(config.database)
            self._config = config
            return config

    @staticmethod
    def _apply_env_overrides(database: DatabaseConfig) -> None:
        for env_name, (attr, parse) in ENV_OVERRIDES.items():
            raw = os.getenv(env_name)
            if not raw:
                continue
            try:
                setattr(database, attr, parse(raw))
            except ValueError:
                raise ConfigurationError(f"Invalid value for {env_name}: {raw!r}")

        if database.db_type not in ("sqlite", "postgresql"):
            raise ConfigurationError(f"Unsupported database type: {database.db_type}")

    @staticmethod
    def _dict_to_config(data: Dict[str, Any]) -> SystemConfig:
        config = SystemConfig()
        for name, section_class in _SECTIONS.items():
            if name in data:
                setattr(config, name, section_class(**data[name]))
        for key in _TOP_LEVEL_KEYS:
            if key in data:
                setattr(config, key, data[key])
        return config

    def export_config(self) -> Dict[str, Any]:
        with self._lock:
            return asdict(self._config) if self._config else {}

    def save_config(self, config_path: Optional[str] = None) -> None:
        """Validate the loaded configuration and write it as JSON."""
        with self._lock:
            if not self._config:
                raise ConfigurationError("No configuration loaded to save")

            data = self.export_config()
            self.validate_config(data)

            target = Path(config_path) if config_path else self.config_path
            with open(target, 'w', encoding='utf-8') as f:
                json.dump(data, f, indent=2, ensure_ascii=False)
            logger.info(f"Configuration saved to {target}")


def load_targets(path: str = "targets.json") -> list:
    """
    Load and validate the targets file.

    Returns:
        List of Target objects, in file order

    Raises:
        ConfigurationError: Missing file, invalid JSON, schema violation or empty list
    """
    from forum_crawler.concurrent.models import Target

    targets_path = Path(path)
    if not targets_path.exists():
        raise ConfigurationError(f"Targets file not found: {targets_path}")

    data = _read_json(targets_path)
    if isinstance(data, list) and not data:
        raise ConfigurationError(f"No targets defined in {targets_path}")

    try:
        validate(instance=data, schema=TARGETS_SCHEMA)
    except SchemaValidationError as e:
        location = "/".join(str(p) for p in e.absolute_path) or "<root>"
        raise ConfigurationError(
            f"Invalid targets file {targets_path} at {location}: {e.message}"
        )

    return [Target.from_dict(entry) for entry in data]


config_manager = ConfigManager()


def get_config() -> SystemConfig:
    """Load the configuration from ``config.json`` in the working directory."""
    return config_manager.load_config()
