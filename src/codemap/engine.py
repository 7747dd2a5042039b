"""Single-writer coordinator between ingest, state and broadcast.

Every mutation of the activity graph or the session roster happens here,
under one asyncio lock. Snapshots are published before the lock is
released, so observers receive them in the order the events were applied.
A slow observer holds ingestion up for at most the broadcaster's send
timeout.
"""

from __future__ import annotations

import asyncio
import contextlib
import os
import time
from collections import deque
from collections.abc import Awaitable, Callable
from pathlib import Path
from typing import TYPE_CHECKING, Any

from codemap.git import GitScoreCache, merge_live_activity
from codemap.graph import (
    ActivityGraph,
    TreeWatcher,
    nearest_ancestor_folder,
    resolve_with_fallback,
    to_canonical_key,
)
from codemap.logging import get_logger
from codemap.server.websocket import Broadcaster
from codemap.sessions import SessionDelta, SessionRegistry, SessionStateFile, ToolCategory

if TYPE_CHECKING:
    from codemap.config import Config
    from codemap.events import ActivityEvent, ThinkingEvent

log = get_logger("engine")

_ACTIVITY_COMMANDS = {"read": "Read", "write": "Write", "search": "Grep"}


def _now_ms() -> int:
    return int(time.time() * 1000)


def _mask(agent_id: str | None) -> str | None:
    return f"{agent_id[:8]}..." if agent_id else None


class CodeMapEngine:
    """Owns all shared state for one project root.

    Args:
        config: Loaded configuration.
        project_root: Overrides ``config.server.project_root``; defaults to cwd.
        clock: Returns the current time in epoch milliseconds.
    """

    def __init__(
        self,
        config: Config,
        project_root: str | None = None,
        clock: Callable[[], int] | None = None,
    ) -> None:
        self.config = config
        root = project_root or config.server.project_root or os.getcwd()
        self.project_root = Path(os.path.abspath(os.path.expanduser(root))).as_posix()
        self._clock = clock or _now_ms

        registry_cfg = config.registry
        self.graph = ActivityGraph(self.project_root)
        self.registry = SessionRegistry(
            max_agents=registry_cfg.max_agents,
            creation_cooldown_ms=registry_cfg.creation_cooldown_ms,
        )
        self.broadcaster = Broadcaster(send_timeout=config.broadcast.send_timeout)
        self.git = GitScoreCache(
            self.project_root,
            ttl=config.git.cache_ttl,
            max_commits=config.git.max_commits,
            max_files=config.git.max_files,
            command_timeout=config.git.command_timeout,
        )

        state_path = Path(os.path.expanduser(config.persistence.file))
        if not state_path.is_absolute():
            state_path = Path(self.project_root) / state_path
        self.state_file = SessionStateFile(state_path)
        # the state file and its lock/temp siblings never show up as project files
        state_names = [state_path.name + suffix for suffix in ("", ".lock", ".tmp")]
        self.watcher = TreeWatcher(
            self.project_root, [*config.graph.ignore_dirs, *state_names]
        )

        self._recent: deque[dict[str, Any]] = deque(maxlen=config.server.debug_buffer_size)
        self._lock = asyncio.Lock()
        self._tasks: list[asyncio.Task[None]] = []
        self._started_at = self._clock()

    def now(self) -> int:
        return self._clock()

    # -- ingest -------------------------------------------------------------

    async def handle_activity(self, event: ActivityEvent) -> dict[str, Any]:
        """Apply a file activity event and broadcast the result."""
        roster: list[dict[str, Any]] | None = None

        async with self._lock:
            now = self._clock()
            relative = to_canonical_key(event.file_path, self.project_root)
            self._recent.append(
                {
                    "type": event.type,
                    "filePath": relative,
                    "agentId": event.agent_id,
                    "timestamp": now,
                    "skillName": event.skill_name,
                    "mcpServer": event.mcp_server,
                }
            )

            log.debug(
                "%s: %s%s",
                event.type.upper(),
                relative,
                f" ({event.agent_id[:8]})" if event.agent_id else "",
            )

            if event.agent_id:
                session = self.registry.register(
                    event.agent_id, now, event.source, origin="activity"
                )
                if session is not None:
                    self.registry.touch(event.agent_id, now, self._activity_delta(event))
                    roster = self.registry.snapshot()

            graph = self.graph.record_activity(event, now)

            client_event = event.model_dump(by_alias=True, exclude_none=True, mode="json")
            client_event["filePath"] = relative
            # hooks may report paths from another checkout root; point at the known node
            node_id = resolve_with_fallback(relative, self.graph.keys())
            if node_id is not None:
                client_event["nodeId"] = node_id
            folder_id = nearest_ancestor_folder(node_id or relative, self.graph.folder_keys())
            if folder_id is not None:
                client_event["folderId"] = folder_id

            if roster is not None:
                await self.broadcaster.publish("thinking", roster)
            await self.broadcaster.publish("activity", client_event)
            await self.broadcaster.publish("graph", graph)
        return {"success": True}

    @staticmethod
    def _activity_delta(event: ActivityEvent) -> SessionDelta:
        delta = SessionDelta(
            is_thinking=event.is_start,
            skill_name=event.skill_name,
            count_skill_invocation=False,
            mcp_server=event.mcp_server,
        )
        if event.is_start:
            delta.tool_name = _ACTIVITY_COMMANDS[event.operation]
            delta.tool_category = ToolCategory.SEARCH if event.is_search else ToolCategory.FILE
            delta.file_read = event.operation == "read"
            delta.file_write = event.operation == "write"
        return delta

    async def handle_thinking(self, event: ThinkingEvent) -> dict[str, Any]:
        """Apply a session event (thinking start/end or agent stop)."""
        async with self._lock:
            now = self._clock()
            session = self.registry.register(
                event.agent_id,
                now,
                event.source,
                agent_name=event.agent_name,
                agent_type=event.agent_type,
                parent_agent_id=event.parent_agent_id,
                origin="thinking",
            )
            if session is None:
                return {"success": True, "rejected": True}

            if event.type == "agent-stop":
                if event.status is not None:
                    self.registry.mark_stopped(event.agent_id, event.status, now)
            else:
                starting = event.type == "thinking-start"
                delta = SessionDelta(
                    is_thinking=starting,
                    tool_phase="start" if starting else "end",
                    tool_name=event.tool_name,
                    tool_input=event.tool_input,
                    agent_name=event.agent_name,
                    agent_type=event.agent_type,
                    model=event.model,
                    duration=event.duration,
                    skill_name=event.skill_name,
                    skill_command=event.skill_command,
                    mcp_server=event.mcp_server,
                    mcp_tool=event.mcp_tool,
                    rule_context=event.rule_context,
                )
                self.registry.touch(event.agent_id, now, delta)
                log.debug(
                    "%s: %s%s%s",
                    event.type.upper(),
                    session.display_name,
                    f" ({event.tool_name})" if event.tool_name else "",
                    f" [{event.tool_input}]" if event.tool_input else "",
                )

            await self.broadcaster.publish("thinking", self.registry.snapshot())
        return {"success": True}

    # -- graph & layout -----------------------------------------------------

    async def clear_graph(self) -> dict[str, Any]:
        async with self._lock:
            self.graph.reset()
            log.info("Activity graph cleared")
            await self.broadcaster.publish("graph", self.graph.snapshot())
        return {"success": True}

    async def notify_git_commit(self) -> dict[str, Any]:
        """Drop cached git scores and push a fresh layout to observers."""
        log.info("Git commit detected, refreshing layout")
        self.git.invalidate()
        hot = await self.git.get_hot_folders(self.config.git.hot_folder_limit)
        payload = [score.to_dict() for score in hot]
        await self.broadcaster.publish(
            "layout-update", {"hotFolders": payload, "timestamp": self._clock()}
        )
        return {"success": True, "foldersUpdated": len(payload)}

    async def hot_folders(self, limit: int | None = None) -> list[dict[str, Any]]:
        """Git folder scores blended with the last few minutes of live activity."""
        limit = limit or self.config.git.hot_folder_limit
        # git runs outside the lock; only the live merge reads shared state
        hot = await self.git.get_hot_folders(limit)
        async with self._lock:
            recent = self.graph.recently_active(self.config.graph.recent_window_ms, self._clock())
        return [score.to_dict() for score in merge_live_activity(hot, recent, limit)]

    # -- read-only views ----------------------------------------------------

    def graph_snapshot(self) -> dict[str, Any]:
        return self.graph.snapshot()

    def roster(self) -> list[dict[str, Any]]:
        return self.registry.snapshot()

    def summary(self) -> dict[str, Any]:
        return self.registry.summary(self._clock(), self.config.registry.active_window_ms)

    def health(self) -> dict[str, Any]:
        return {
            "status": "ok",
            "clients": self.broadcaster.get_connection_count(),
            "projectRoot": self.project_root,
            "agents": len(self.registry),
            "activeSkills": len(self.registry.active_skills),
            "activeMcpServers": len(self.registry.active_mcp_servers),
        }

    def debug(self) -> dict[str, Any]:
        """Diagnostic view with masked agent ids and recent activity."""
        now = self._clock()
        timeout_ms = self.config.registry.agent_timeout_ms
        uptime_ms = now - self._started_at

        agents = []
        for session in self.registry.sessions():
            entry = session.to_dict()
            idle = now - session.last_activity
            entry["agentId"] = _mask(session.agent_id)
            entry["lastActivityAgo"] = f"{idle // 1000}s ago"
            entry["lastSeenAgo"] = f"{(now - session.last_seen) // 1000}s ago"
            entry["willTimeoutIn"] = f"{(timeout_ms - idle) // 1000}s"
            agents.append(entry)

        recent = []
        for item in list(self._recent)[-20:]:
            entry = {k: v for k, v in item.items() if v is not None}
            if item["agentId"]:
                entry["agentId"] = _mask(item["agentId"])
            entry["ago"] = f"{(now - item['timestamp']) // 1000}s ago"
            recent.append(entry)

        return {
            "server": {
                "uptime": uptime_ms // 1000,
                "uptimeFormatted": f"{uptime_ms // 60000}m {(uptime_ms % 60000) // 1000}s",
                "projectRoot": self.project_root,
                "wsClients": self.broadcaster.get_connection_count(),
            },
            "agents": agents,
            "summary": self.summary(),
            "agentCount": len(self.registry),
            "maxAgents": self.registry.max_agents,
            "activeSkills": sorted(self.registry.active_skills),
            "activeMcpServers": sorted(self.registry.active_mcp_servers),
            "recentActivity": recent,
            "config": {
                "agentTimeoutMs": timeout_ms,
                "agentCreationCooldownMs": self.registry.creation_cooldown_ms,
                "waitingThresholdMs": self.config.registry.waiting_threshold_ms,
            },
        }

    # -- periodic maintenance ----------------------------------------------

    async def sweep(self) -> int:
        """Evict stale sessions; broadcast the roster if anything left."""
        async with self._lock:
            evicted = self.registry.sweep_stale(
                self._clock(), self.config.registry.agent_timeout_ms
            )
            if evicted:
                await self.broadcaster.publish("thinking", self.registry.snapshot())
        return len(evicted)

    async def sync(self) -> None:
        """Infer waiting-for-input flags and rebroadcast a non-empty roster."""
        async with self._lock:
            self.registry.infer_waiting(self._clock(), self.config.registry.waiting_threshold_ms)
            if len(self.registry):
                await self.broadcaster.publish("thinking", self.registry.snapshot())

    async def scan_tree(self) -> int:
        """Add files and folders created on disk since the last poll."""
        entries = await asyncio.to_thread(self.watcher.check_changes)
        if not entries:
            return 0
        async with self._lock:
            added = self.graph.add_paths(entries)
            if added:
                await self.broadcaster.publish("graph", self.graph.snapshot())
        return added

    async def persist(self) -> bool:
        if not self.config.persistence.enabled:
            return False
        async with self._lock:
            state = self.registry.to_state(self._clock())
        return await asyncio.to_thread(self.state_file.save, state)

    async def restore(self) -> int:
        """Load sessions persisted by a previous run."""
        if not self.config.persistence.enabled:
            return 0
        data = await asyncio.to_thread(self.state_file.load)
        if not data:
            return 0
        async with self._lock:
            restored = self.registry.restore_state(
                data, self._clock(), self.config.registry.agent_timeout_ms
            )
        log.info("Restored %d agents from %s", restored, self.state_file.path)
        return restored

    # -- lifecycle ----------------------------------------------------------

    async def start(self) -> None:
        """Restore state, optionally seed the graph, and start periodic tasks."""
        await self.restore()
        graph_cfg = self.config.graph
        if graph_cfg.scan_on_start or graph_cfg.watch:
            entries = await asyncio.to_thread(self.watcher.prime)
            if graph_cfg.scan_on_start:
                async with self._lock:
                    added = self.graph.add_paths(entries)
                log.info("Seeded activity graph with %d nodes", added)
        if graph_cfg.watch:
            self._spawn("watch", graph_cfg.watch_interval, self.scan_tree)

        registry_cfg = self.config.registry
        self._spawn("sweep", registry_cfg.sweep_interval, self.sweep)
        self._spawn("sync", registry_cfg.sync_interval, self.sync)
        if self.config.persistence.enabled:
            self._spawn("persist", self.config.persistence.interval, self.persist)
        self.broadcaster.start_heartbeat(self.config.broadcast.heartbeat_interval)

        log.info(
            "Engine started for %s (%d agents restored)", self.project_root, len(self.registry)
        )

    def _spawn(self, name: str, interval: float, func: Callable[[], Awaitable[Any]]) -> None:
        async def _loop() -> None:
            while True:
                await asyncio.sleep(interval)
                try:
                    await func()
                except Exception:
                    log.exception("Periodic %s failed", name)

        self._tasks.append(asyncio.create_task(_loop(), name=f"codemap-{name}"))

    async def stop(self) -> None:
        """Cancel periodic tasks, save the roster and close observers."""
        for task in self._tasks:
            task.cancel()
        for task in self._tasks:
            with contextlib.suppress(asyncio.CancelledError):
                await task
        self._tasks.clear()

        await self.broadcaster.stop_heartbeat()
        await self.persist()
        await self.broadcaster.close_all()
        log.info("Engine stopped")
