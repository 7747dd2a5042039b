"""Configuration management for codemap.

Provides hierarchical YAML-based configuration with:
- User-level config ($XDG_CONFIG_HOME/codemap/, %APPDATA%/codemap/ or ~/.codemap/)
- Project-level config ($project_root/.codemap/)
- Environment variable overrides (highest priority)

Example usage:
    from codemap.config import load_config

    config = load_config(project_root="/path/to/project")
    print(config.registry.max_agents)
"""

from codemap.config.loader import (
    deep_merge,
    get_config,
    load_config,
    merge_configs,
    reset_config,
)
from codemap.config.paths import (
    get_config_paths,
    get_project_config_path,
    get_user_config_path,
)
from codemap.config.schema import (
    BroadcastConfig,
    Config,
    GitConfig,
    GraphConfig,
    LoggingConfig,
    PersistenceConfig,
    RegistryConfig,
    ServerConfig,
)

__all__ = [
    # Main API
    "Config",
    "load_config",
    "get_config",
    "reset_config",
    "deep_merge",
    "merge_configs",
    # Schema types
    "ServerConfig",
    "RegistryConfig",
    "GraphConfig",
    "BroadcastConfig",
    "GitConfig",
    "PersistenceConfig",
    "LoggingConfig",
    # Path utilities
    "get_config_paths",
    "get_user_config_path",
    "get_project_config_path",
]
