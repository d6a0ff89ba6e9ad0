"""Configuration loading for daybook.

Supports three tiers:
1. Simple config via .toml or .json - most users
2. Python config via .py - power users with hooks
3. Building a DaybookConfig directly - embedding applications
"""

from __future__ import annotations

import importlib.util
import json
import sys
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Callable, Optional

# Python 3.11+ has tomllib in stdlib; fall back to tomli for older versions
try:
    import tomllib  # Python 3.11+
except ImportError:
    try:
        import tomli as tomllib  # Python <3.11
    except ImportError:  # pragma: no cover
        tomllib = None


@dataclass
class DaybookConfig:
    """Configuration for one journal document."""

    project_root: Path = field(default_factory=Path.cwd)

    # Journal document (relative to project_root unless absolute)
    journal_file: str = "journal.md"

    # "#1" .. "#9", "#0" shortcuts -> tag names (without '#')
    favorite_tags: dict[str, str] = field(default_factory=dict)

    # Query used when a filter view is opened with no query
    default_filter: str = "!tasks"

    # $name -> query
    saved_filters: dict[str, str] = field(default_factory=dict)

    hide_completed: bool = False

    # Hooks (populated from Python config)
    hooks: dict[str, Callable] = field(default_factory=dict)

    def get_journal_path(self) -> Path:
        path = Path(self.journal_file).expanduser()
        if path.is_absolute():
            return path
        return self.project_root / path

    def get_favorite_tag(self, key: str) -> Optional[str]:
        return self.favorite_tags.get(key)


def load_toml_config(path: Path) -> dict[str, Any]:
    """Load configuration from TOML file."""
    if tomllib is None:
        raise ImportError("tomli required for TOML config: pip install tomli")
    with open(path, "rb") as f:
        return tomllib.load(f)


def load_json_config(path: Path) -> dict[str, Any]:
    """Load configuration from JSON file."""
    with open(path, "r", encoding="utf-8") as f:
        return json.load(f)


def load_python_config(path: Path) -> tuple[dict[str, Any], dict[str, Callable]]:
    """Load configuration from Python file.

    Returns:
        Tuple of (config_dict, hooks_dict)

    Convention:
        - CONFIG dict or config dict for static configuration
        - Functions named hook_* become hooks (``hook_after_action`` is
          called after every executed, undone or redone action)
    """
    spec = importlib.util.spec_from_file_location("daybook_config", path)
    if spec is None or spec.loader is None:
        raise ImportError(f"Cannot load Python config from {path}")

    module = importlib.util.module_from_spec(spec)
    sys.modules["daybook_config"] = module
    spec.loader.exec_module(module)

    config_dict = {}
    if hasattr(module, "CONFIG"):
        config_dict = module.CONFIG
    elif hasattr(module, "config"):
        config_dict = module.config

    hooks = {}
    for name in dir(module):
        if name.startswith("hook_"):
            hooks[name[5:]] = getattr(module, name)

    return config_dict, hooks


def dict_to_config(data: dict[str, Any], project_root: Path) -> DaybookConfig:
    """Convert dictionary to DaybookConfig."""
    config = DaybookConfig(project_root=project_root)

    if "journal" in data:
        journal = data["journal"]
        if "file" in journal:
            config.journal_file = journal["file"]

    if "tags" in data:
        favorites = data["tags"].get("favorites", {})
        # Keys may come back as ints from JSON-ish sources
        config.favorite_tags = {str(k): v.lstrip("#") for k, v in favorites.items()}

    if "filters" in data:
        filters = data["filters"]
        if "default" in filters:
            config.default_filter = filters["default"]
        if "saved" in filters:
            config.saved_filters = dict(filters["saved"])

    if "display" in data:
        display = data["display"]
        if "hide_completed" in display:
            config.hide_completed = bool(display["hide_completed"])

    return config


def find_config_file(project_root: Path) -> Optional[Path]:
    """Find configuration file in project root.

    Search order:
    1. daybook_config.py (most flexible)
    2. daybook_config.toml
    3. daybook_config.json
    4. .daybook.toml
    5. .daybook.json
    """
    candidates = [
        "daybook_config.py",
        "daybook_config.toml",
        "daybook_config.json",
        ".daybook.toml",
        ".daybook.json",
    ]

    for name in candidates:
        path = project_root / name
        if path.exists():
            return path

    return None


def load_config(project_root: Path, config_path: Optional[Path] = None) -> DaybookConfig:
    """Load daybook configuration.

    Args:
        project_root: Directory the journal path is resolved against
        config_path: Optional explicit path to config file

    Returns:
        DaybookConfig instance
    """
    if config_path is None:
        config_path = find_config_file(project_root)

    if config_path is None:
        return DaybookConfig(project_root=project_root)

    suffix = config_path.suffix.lower()

    if suffix == ".py":
        config_dict, hooks = load_python_config(config_path)
        config = dict_to_config(config_dict, project_root)
        config.hooks = hooks
        return config

    elif suffix == ".toml":
        return dict_to_config(load_toml_config(config_path), project_root)

    elif suffix == ".json":
        return dict_to_config(load_json_config(config_path), project_root)

    else:
        raise ValueError(f"Unsupported config file type: {suffix}")
