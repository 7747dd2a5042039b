"""Configuration schema dataclasses for codemap.

Defines the structure of configuration at both levels (user, project).
All fields have defaults so partial configs merge together cleanly.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

DEFAULT_IGNORE_DIRS = ["node_modules", ".git", "dist", ".playwright-mcp", ".claude"]


@dataclass
class ServerConfig:
    """HTTP/WebSocket server configuration."""

    host: str = "127.0.0.1"
    port: int = 5174
    project_root: str | None = None  # Default: detected from cwd
    debug_buffer_size: int = 50  # Ring buffer of recent activity for /api/debug


@dataclass
class RegistryConfig:
    """Agent session roster limits and timers.

    Example config.yaml:
        registry:
          max_agents: 10
          agent_timeout_ms: 300000
          creation_cooldown_ms: 500
    """

    max_agents: int = 10  # Hard cap on live sessions
    creation_cooldown_ms: int = 500  # Minimum gap between two new sessions
    agent_timeout_ms: int = 5 * 60 * 1000  # Eviction grace period
    waiting_threshold_ms: int = 60_000  # Idle-after-tool before "waiting for input"
    active_window_ms: int = 30_000  # Recency window for the summary's activeAgents
    sweep_interval: float = 60.0  # Seconds between stale sweeps
    sync_interval: float = 2.0  # Seconds between roster sync broadcasts


@dataclass
class GraphConfig:
    """Activity graph configuration."""

    scan_on_start: bool = True  # Seed the graph from the project tree
    ignore_dirs: list[str] = field(default_factory=lambda: list(DEFAULT_IGNORE_DIRS))
    recent_window_ms: int = 10 * 60 * 1000  # Live window merged into hot folders
    watch: bool = True  # Poll the project tree for new files and folders
    watch_interval: float = 5.0  # Seconds between tree polls


@dataclass
class BroadcastConfig:
    """Observer fan-out configuration."""

    heartbeat_interval: float = 30.0  # Seconds between ping rounds
    send_timeout: float = 5.0  # Per-observer send timeout in seconds


@dataclass
class GitConfig:
    """Git hot-folder scoring configuration."""

    cache_ttl: float = 30.0  # Seconds a computed score list stays fresh
    max_commits: int = 500
    max_files: int = 2000
    command_timeout: float = 10.0
    hot_folder_limit: int = 50


@dataclass
class PersistenceConfig:
    """Roster persistence configuration."""

    enabled: bool = True
    file: str = ".codemap-state.json"  # Relative paths resolve against project root
    interval: float = 30.0  # Seconds between saves


@dataclass
class LoggingConfig:
    """Logging configuration."""

    level: str | None = None  # DEBUG, INFO, WARNING, ERROR
    verbose: int | None = None  # 0-4, overrides level
    file: str | None = None  # Log file path


@dataclass
class Config:
    """Root configuration object."""

    server: ServerConfig = field(default_factory=ServerConfig)
    registry: RegistryConfig = field(default_factory=RegistryConfig)
    graph: GraphConfig = field(default_factory=GraphConfig)
    broadcast: BroadcastConfig = field(default_factory=BroadcastConfig)
    git: GitConfig = field(default_factory=GitConfig)
    persistence: PersistenceConfig = field(default_factory=PersistenceConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)

    # Unknown top-level sections are kept for forward compatibility
    extra: dict[str, Any] = field(default_factory=dict)
