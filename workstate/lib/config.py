"""
Configuration loader for the state store.

Loads store.yaml from the application directory. If no config file exists,
returns defaults. The application directory defaults to ~/.workstate and can
be moved with the WORKSTATE_HOME environment variable.

Example store.yaml:

    lock_timeout: 10
    summary_filename: CLAUDE.md
    mirror_to_kv: false
"""

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

import yaml

from . import validate

logger = logging.getLogger(__name__)

APP_DIR_ENV = "WORKSTATE_HOME"
DEFAULT_APP_DIRNAME = ".workstate"
CONFIG_FILENAME = "store.yaml"


def default_app_dir() -> Path:
    """Resolve the application directory from the environment or the home dir."""
    override = os.environ.get(APP_DIR_ENV)
    if override:
        return Path(override).expanduser()
    return Path.home() / DEFAULT_APP_DIRNAME


@dataclass
class StoreConfig:
    """Store configuration from store.yaml."""
    app_dir: Path = field(default_factory=default_app_dir)
    docs_dirname: str = "docs"
    summary_filename: str = "PROJECT.md"
    lock_timeout: float = 30.0
    mirror_to_kv: bool = True
    export_scopes: bool = True

    @property
    def state_dir(self) -> Path:
        return self.app_dir / "state"

    @property
    def projects_dir(self) -> Path:
        return self.app_dir / "projects"

    @property
    def scopes_dir(self) -> Path:
        return self.app_dir / "scopes"

    @property
    def settings_file(self) -> Path:
        return self.app_dir / "settings.json"

    def docs_dir(self, project_path: str | Path) -> Path:
        """Directory holding the human-facing documents of a project."""
        return Path(project_path) / self.docs_dirname


def load_store_config(app_dir: Optional[Path] = None) -> StoreConfig:
    """Load store.yaml and return StoreConfig.

    If the file doesn't exist, or is malformed, returns defaults rooted at app_dir.
    """
    app_dir = Path(app_dir) if app_dir is not None else default_app_dir()
    config_path = app_dir / CONFIG_FILENAME
    if not config_path.exists():
        return StoreConfig(app_dir=app_dir)

    try:
        data = yaml.safe_load(config_path.read_text(encoding="utf-8")) or {}
        validate.validate(data, "store_config")
    except (yaml.YAMLError, validate.ValidationError) as e:
        logger.warning(f"Failed to parse {config_path}: {e}")
        return StoreConfig(app_dir=app_dir)

    return StoreConfig(app_dir=app_dir, **data)
