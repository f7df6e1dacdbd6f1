import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Optional

import yaml

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_PATH = Path.home() / '.config' / 'reelist' / 'config.yml'
DEFAULT_DB_PATH = Path.home() / '.local' / 'share' / 'reelist' / 'collections.db'


@dataclass
class Config:
    db_path: Path = DEFAULT_DB_PATH
    api_base_url: Optional[str] = None
    api_token: Optional[str] = None
    page_size: int = 24
    persist_timeout: float = 10.0  # seconds
    max_resync_attempts: int = 3
    resync_delay: float = 0.5  # seconds
    log_file: Optional[Path] = None

    @classmethod
    def load_config(cls, config_path: Path) -> 'Config':
        """Load configuration from YAML file."""
        if not config_path.exists():
            raise FileNotFoundError(f"Config file not found at {config_path}")

        with open(config_path) as f:
            config_data = yaml.safe_load(f) or {}

        if not isinstance(config_data, dict):
            raise ValueError(f"Config file {config_path} must contain a mapping")

        # Handle both flat and nested structures
        if 'store' in config_data or 'session' in config_data:
            store = config_data.get('store') or {}
            session = config_data.get('session') or {}
        else:
            store = config_data
            session = config_data

        return cls._from_sections(store, session, config_data.get('log_file'))

    @classmethod
    def _from_sections(cls, store: Dict[str, Any], session: Dict[str, Any],
                       log_file: Optional[str]) -> 'Config':
        defaults = cls()
        page_size = int(session.get('page_size', defaults.page_size))
        if page_size < 1:
            raise ValueError("page_size must be at least 1")
        return cls(
            db_path=Path(store['db_path']).expanduser() if store.get('db_path') else defaults.db_path,
            api_base_url=store.get('api_base_url'),
            api_token=store.get('api_token'),
            page_size=page_size,
            persist_timeout=float(session.get('persist_timeout', defaults.persist_timeout)),
            max_resync_attempts=int(session.get('max_resync_attempts', defaults.max_resync_attempts)),
            resync_delay=float(session.get('resync_delay', defaults.resync_delay)),
            log_file=Path(log_file).expanduser() if log_file else None
        )

    def save_config(self, config_path: Path):
        """Save configuration to YAML file."""
        config_data = {
            'store': {
                'db_path': str(self.db_path),
                'api_base_url': self.api_base_url,
                'api_token': self.api_token,
            },
            'session': {
                'page_size': self.page_size,
                'persist_timeout': self.persist_timeout,
                'max_resync_attempts': self.max_resync_attempts,
                'resync_delay': self.resync_delay,
            },
            'log_file': str(self.log_file) if self.log_file else None
        }

        config_path.parent.mkdir(parents=True, exist_ok=True)
        with open(config_path, 'w') as f:
            yaml.dump(config_data, f, default_flow_style=False)


def load_config(config_path: Optional[Path] = None) -> Config:
    """Load configuration from the given path or the standard locations.

    Falls back to defaults when no configuration file exists. A file that
    exists but cannot be parsed is an error.
    """
    env_path = os.environ.get('REELIST_CONFIG')
    config_locations = [
        config_path,
        Path(env_path).expanduser() if env_path else None,
        DEFAULT_CONFIG_PATH
    ]

    if config_path and not config_path.exists():
        raise FileNotFoundError(f"Config file not found at {config_path}")

    for path in config_locations:
        if path and path.exists():
            config = Config.load_config(path)
            logger.info(f"Loaded configuration from {path}")
            return config

    logger.debug("No configuration file found, using defaults")
    return Config()
