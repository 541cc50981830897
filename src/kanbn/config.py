"""Board layout settings, fallback option values and config file loading."""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field, replace
from datetime import datetime
from pathlib import Path
from types import MappingProxyType
from typing import Any, Mapping

import yaml

from kanbn.dates import format_iso
from kanbn.errors import StructuralParseError
from kanbn.parser import dump_yaml

logger = logging.getLogger(__name__)

CONFIG_YAML = "kanbn.yml"
CONFIG_JSON = "kanbn.json"

# Config file keys that describe the on-disk layout rather than board options
LAYOUT_KEYS = {
    "mainFolder": "main_folder",
    "indexFile": "index_file",
    "taskFolder": "task_folder",
    "archiveFolder": "archive_folder",
}


@dataclass(frozen=True)
class Defaults:
    """Fallback values used when the index options don't set them."""

    task_workload: int = 2
    task_workload_tags: Mapping[str, int] = field(
        default_factory=lambda: MappingProxyType(
            {
                "Nothing": 0,
                "Tiny": 1,
                "Small": 2,
                "Medium": 3,
                "Large": 5,
                "Huge": 8,
            }
        )
    )
    date_format: str = "D MMM YY, H:mm"
    task_template: str = "{name}\n{created}"
    started_columns: tuple[str, ...] = ("In Progress",)
    completed_columns: tuple[str, ...] = ("Done",)
    columns: tuple[str, ...] = ("Backlog", "Todo", "In Progress", "Done")
    name: str = "Project Name"


DEFAULTS = Defaults()


@dataclass(frozen=True)
class Settings:
    """Where the board lives relative to its root directory."""

    root: Path = Path(".")
    main_folder: str = ".kanbn"
    index_file: str = "index.md"
    task_folder: str = "tasks"
    archive_folder: str = "archive"

    @property
    def main_path(self) -> Path:
        return self.root / self.main_folder

    @property
    def index_path(self) -> Path:
        return self.main_path / self.index_file

    @property
    def task_path(self) -> Path:
        return self.main_path / self.task_folder

    @property
    def archive_path(self) -> Path:
        return self.main_path / self.archive_folder


def config_path(root: Path) -> Path | None:
    """Return the config file in root, preferring YAML, or None."""
    for name in (CONFIG_YAML, CONFIG_JSON):
        path = root / name
        if path.is_file():
            return path
    return None


def load_config(root: Path) -> dict[str, Any] | None:
    """Read kanbn.yml or kanbn.json from root. None if neither exists."""
    path = config_path(root)
    if path is None:
        return None
    text = path.read_text(encoding="utf-8")
    try:
        data = yaml.safe_load(text) if path.name == CONFIG_YAML else json.loads(text)
    except (yaml.YAMLError, json.JSONDecodeError) as e:
        raise StructuralParseError(f"Couldn't load config file: {e}") from e
    if data is None:
        data = {}
    if not isinstance(data, dict):
        raise StructuralParseError(f"Couldn't load config file: {path.name} must contain a mapping")
    logger.debug("loaded config from %s", path)
    return data


def _json_default(value: Any) -> str:
    if isinstance(value, datetime):
        return format_iso(value)
    return str(value)


def save_config(root: Path, config: Mapping[str, Any]) -> None:
    """Write config back to whichever config file exists (JSON if none)."""
    path = config_path(root) or root / CONFIG_JSON
    if path.name == CONFIG_YAML:
        path.write_text(dump_yaml(dict(config)), encoding="utf-8")
    else:
        path.write_text(json.dumps(dict(config), indent=4, default=_json_default) + "\n", encoding="utf-8")


def settings_for(root: Path, config: Mapping[str, Any] | None) -> Settings:
    """Build Settings for root, applying any layout keys from config."""
    settings = Settings(root=root)
    if not config:
        return settings
    overrides = {attr: str(config[key]) for key, attr in LAYOUT_KEYS.items() if key in config}
    return replace(settings, **overrides)
