"""Where codemap looks for ``config.yaml``.

Two levels exist: the user's config directory and the observed project's
``.codemap/`` directory. The project file wins.
"""

from __future__ import annotations

import os
from pathlib import Path

CONFIG_FILENAME = "config.yaml"
CONFIG_DIRNAME = ".codemap"


def get_user_config_path() -> Path:
    """``$XDG_CONFIG_HOME/codemap/config.yaml``, else ``~/.codemap/config.yaml``.

    On Windows ``%APPDATA%`` stands in for ``XDG_CONFIG_HOME``.
    """
    base = os.environ.get("XDG_CONFIG_HOME") or os.environ.get("APPDATA")
    if base:
        return Path(base) / "codemap" / CONFIG_FILENAME
    return Path.home() / CONFIG_DIRNAME / CONFIG_FILENAME


def get_project_config_path(project_root: str) -> Path:
    return Path(project_root) / CONFIG_DIRNAME / CONFIG_FILENAME


def get_config_paths(project_root: str | None = None) -> list[Path]:
    """Config files in merge order, lowest priority first."""
    paths = [get_user_config_path()]
    if project_root:
        paths.append(get_project_config_path(project_root))
    return paths
