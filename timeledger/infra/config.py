"""
Configuration management using Pydantic Settings.

Architecture Decision: Why pydantic-settings?
- Type-safe configuration with validation
- Supports multiple sources (YAML, env vars, defaults)
- Easy to test with different configurations
"""

import logging
import os
from pathlib import Path
from typing import Optional
import yaml

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict
from timeledger.domain.models import StoreDefaults


class AppConfig(BaseSettings):
    """
    Application settings with multiple sources:
    1. Default values (hardcoded)
    2. YAML config file
    3. Environment variables and constructor arguments (highest priority)
    """
    model_config = SettingsConfigDict(
        env_prefix='TIMELEDGER_',
        env_file='.env',
        env_file_encoding='utf-8',
        extra='ignore'
    )

    # Application paths
    app_name: str = "timeledger"
    config_dir: Optional[Path] = None
    data_dir: Optional[Path] = None
    config_file: Optional[Path] = None

    # Database
    database_url: Optional[str] = None
    echo_sql: bool = False

    # Behaviour
    log_level: str = "INFO"
    enforce_single_timer: bool = True

    # Initial values for the Settings singleton
    defaults: StoreDefaults = Field(default_factory=StoreDefaults)

    def __init__(self, **kwargs):
        super().__init__(**kwargs)
        self._init_paths()
        self._load_yaml_config()

    def _init_paths(self):
        """Initialize default paths based on OS"""
        if self.config_dir is None:
            if os.name == 'nt':  # Windows
                base = Path(os.getenv('APPDATA'))
            else:  # Linux/Mac
                base = Path.home() / '.config'
            self.config_dir = base / self.app_name.lower()

        if self.data_dir is None:
            if os.name == 'nt':  # Windows
                base = Path(os.getenv('APPDATA'))
            else:  # Linux/Mac
                base = Path.home() / '.local' / 'share'
            self.data_dir = base / self.app_name.lower()

        # Create directories if they don't exist
        self.config_dir.mkdir(parents=True, exist_ok=True)
        self.data_dir.mkdir(parents=True, exist_ok=True)

    def _find_config_file(self) -> Optional[Path]:
        if self.config_file is not None:
            return self.config_file if self.config_file.exists() else None

        # First check in workspace config folder
        config_file = Path("config/settings.yaml")
        if not config_file.exists():
            # Then check in user's config directory
            config_file = self.config_dir / "settings.yaml"
        return config_file if config_file.exists() else None

    def _load_yaml_config(self):
        """Load configuration from YAML file. Explicitly passed values win."""
        config_file = self._find_config_file()
        if config_file is None:
            return

        with open(config_file, 'r', encoding='utf-8') as f:
            config_data = yaml.safe_load(f) or {}

        explicit = self.model_fields_set
        for key, value in config_data.items():
            if key in explicit or key not in type(self).model_fields:
                continue
            if key == "defaults":
                self.defaults = StoreDefaults(**(value or {}))
            else:
                setattr(self, key, value)

    def save_defaults(self):
        """Save the current store defaults to the user's YAML file"""
        config_file = self.config_dir / "settings.yaml"
        with open(config_file, 'w', encoding='utf-8') as f:
            yaml.dump(
                {"defaults": self.defaults.model_dump(mode="json")},
                f,
                default_flow_style=False
            )
        return config_file

    def get_db_url(self) -> str:
        """Get database URL, creating default if not set"""
        if self.database_url:
            return self.database_url

        db_path = self.data_dir / 'timeledger.db'
        return f"sqlite+aiosqlite:///{db_path}"


def configure_logging(level: Optional[str] = None):
    """Apply the configured log level to the root logger"""
    level = (level or get_config().log_level).upper()
    logging.basicConfig(
        level=getattr(logging, level, logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s"
    )


# Global config instance
_config: Optional[AppConfig] = None


def get_config() -> AppConfig:
    """Get the global config instance"""
    global _config
    if _config is None:
        _config = AppConfig()
    return _config


def reload_config():
    """Reload config from file"""
    global _config
    _config = AppConfig()
    return _config
