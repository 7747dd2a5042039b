"""Roster of live agent sessions.

The registry owns every tracked session plus the process-wide sets of skills
and MCP servers currently in use. It never raises on bad input: operations
that cannot apply return None (or an empty result) and log why.
"""

from __future__ import annotations

from typing import Any

from codemap.logging import get_logger
from codemap.sessions.schema import (
    AgentRole,
    AgentSession,
    AgentSource,
    AgentStatus,
    SessionDelta,
    build_display_name,
    categorize_tool,
    determine_role,
    is_valid_agent_id,
)

log = get_logger("registry")

ASK_USER_TOOL = "AskUserQuestion"


def _short(agent_id: str) -> str:
    return agent_id[:8] if isinstance(agent_id, str) else repr(agent_id)


class SessionRegistry:
    """Tracks agent sessions with capacity, rate-limit and eviction rules.

    Example:
        registry = SessionRegistry(max_agents=10, creation_cooldown_ms=500)
        session = registry.register("a1111111-...", now_ms, AgentSource.CLAUDE)
        if session is None:
            ...  # rejected; ignore the event
    """

    def __init__(self, max_agents: int = 10, creation_cooldown_ms: int = 500) -> None:
        self.max_agents = max_agents
        self.creation_cooldown_ms = creation_cooldown_ms
        self._sessions: dict[str, AgentSession] = {}
        self._last_creation: int | None = None
        self.active_skills: set[str] = set()
        self.active_mcp_servers: set[str] = set()

    def __len__(self) -> int:
        return len(self._sessions)

    def __contains__(self, agent_id: object) -> bool:
        return agent_id in self._sessions

    def get(self, agent_id: str) -> AgentSession | None:
        return self._sessions.get(agent_id)

    def sessions(self) -> list[AgentSession]:
        return list(self._sessions.values())

    def snapshot(self) -> list[dict[str, Any]]:
        """Point-in-time copy of the roster as JSON-ready dicts."""
        return [s.to_dict() for s in self._sessions.values()]

    # -- registration -----------------------------------------------------

    def next_ordinal(self, source: AgentSource) -> int:
        """Smallest positive ordinal not used by a live session of ``source``."""
        used = {s.ordinal for s in self._sessions.values() if s.source is source}
        ordinal = 1
        while ordinal in used:
            ordinal += 1
        return ordinal

    def register(
        self,
        agent_id: str,
        now: int,
        source: AgentSource = AgentSource.UNKNOWN,
        *,
        agent_name: str | None = None,
        agent_type: str | None = None,
        parent_agent_id: str | None = None,
        origin: str = "",
    ) -> AgentSession | None:
        """Return the session for ``agent_id``, creating it when allowed.

        Returns None when the id is malformed, the roster is full, or another
        session was created less than ``creation_cooldown_ms`` ago.
        """
        if not is_valid_agent_id(agent_id):
            log.info("Rejected invalid agent id %r (%s)", agent_id, origin)
            return None

        existing = self._sessions.get(agent_id)
        if existing is not None:
            existing.last_seen = max(existing.last_seen, now)
            return existing

        if len(self._sessions) >= self.max_agents:
            log.info(
                "Rejected new agent %s: at max capacity (%d)", _short(agent_id), self.max_agents
            )
            return None

        if (
            self._last_creation is not None
            and now - self._last_creation < self.creation_cooldown_ms
        ):
            log.info("Rejected new agent %s: rate limited", _short(agent_id))
            return None

        self._last_creation = now
        ordinal = self.next_ordinal(source)
        role = determine_role(agent_type, parent_agent_id, agent_name)
        session = AgentSession(
            agent_id=agent_id,
            source=source,
            ordinal=ordinal,
            display_name=build_display_name(source, ordinal, agent_name, agent_type, role),
            role=role,
            last_activity=now,
            last_seen=now,
            agent_type=agent_type,
            agent_name=agent_name,
            parent_agent_id=parent_agent_id,
        )
        self._sessions[agent_id] = session

        parent = self._sessions.get(parent_agent_id) if parent_agent_id else None
        if parent is not None and agent_id not in parent.child_agent_ids:
            parent.child_agent_ids.append(agent_id)

        log.info(
            "New agent registered: %s (%s) [%s] role=%s",
            session.display_name,
            _short(agent_id),
            origin or "direct",
            role.value,
        )
        return session

    # -- updates ----------------------------------------------------------

    def touch(self, agent_id: str, now: int, delta: SessionDelta) -> AgentSession | None:
        """Apply ``delta`` to an existing session. Unknown ids are a no-op."""
        session = self._sessions.get(agent_id)
        if session is None:
            return None

        session.last_activity = now
        session.last_seen = now
        session.operation_count += 1

        if delta.is_thinking is not None:
            session.is_thinking = delta.is_thinking

        if delta.tool_name:
            session.current_command = delta.tool_name
            session.tool_category = delta.tool_category or categorize_tool(
                delta.tool_name, delta.mcp_server
            )
        elif delta.tool_category is not None:
            session.tool_category = delta.tool_category

        if delta.tool_input:
            session.tool_input = delta.tool_input
        elif delta.tool_phase == "start":
            session.tool_input = None

        self._apply_identity(session, delta)

        if delta.model and not session.model:
            session.model = delta.model
            log.info("Agent %s using model: %s", session.display_name, delta.model)
        if delta.duration is not None:
            session.last_duration = delta.duration

        if delta.file_read:
            session.file_reads += 1
        if delta.file_write:
            session.file_writes += 1

        if delta.skill_name:
            session.skill_name = delta.skill_name
            if delta.count_skill_invocation:
                session.skill_invocations += 1
            self.active_skills.add(delta.skill_name)
        if delta.skill_command:
            session.skill_command = delta.skill_command

        if delta.mcp_server:
            session.mcp_server = delta.mcp_server
            session.mcp_calls += 1
            self.active_mcp_servers.add(delta.mcp_server)
        if delta.mcp_tool:
            session.mcp_tool = delta.mcp_tool

        if delta.rule_context is not None:
            session.active_rules = list(delta.rule_context)

        if delta.tool_phase == "end":
            if session.status is not None:
                session.status = None
                session.status_timestamp = None
            session.pending_tool_start = now
            if delta.tool_name == ASK_USER_TOOL:
                session.waiting_for_input = True
                log.info("Agent %s waiting for user input (%s)", session.display_name, ASK_USER_TOOL)
        elif delta.tool_phase == "start":
            session.pending_tool_start = None
            session.waiting_for_input = False

        return session

    def _apply_identity(self, session: AgentSession, delta: SessionDelta) -> None:
        """Adopt richer naming metadata and re-derive role/display name."""
        changed = False
        if delta.agent_name and not session.agent_name:
            session.agent_name = delta.agent_name
            changed = True
        if delta.agent_type and delta.agent_type != session.agent_type:
            session.agent_type = delta.agent_type
            changed = True
        if changed:
            session.role = determine_role(
                session.agent_type, session.parent_agent_id, session.agent_name
            )
            session.refresh_display_name()

    def mark_stopped(self, agent_id: str, status: AgentStatus, now: int) -> AgentSession | None:
        """Record a stop status. The session stays registered."""
        session = self._sessions.get(agent_id)
        if session is None:
            return None
        session.status = status
        session.status_timestamp = now
        session.is_thinking = False
        session.last_seen = max(session.last_seen, now)
        log.info("Agent stopped: %s status=%s", session.display_name, status.value)
        return session

    # -- periodic maintenance --------------------------------------------

    def sweep_stale(self, now: int, timeout_ms: int) -> list[AgentSession]:
        """Evict sessions idle for longer than ``timeout_ms``.

        A session idle for exactly ``timeout_ms`` survives.
        """
        stale = [s for s in self._sessions.values() if now - s.last_activity > timeout_ms]
        for session in stale:
            self._evict(session)
        return stale

    def _evict(self, session: AgentSession) -> None:
        log.info("Removing stale agent: %s (%s)", session.display_name, _short(session.agent_id))
        del self._sessions[session.agent_id]

        parent = self._sessions.get(session.parent_agent_id) if session.parent_agent_id else None
        if parent is not None:
            parent.child_agent_ids = [c for c in parent.child_agent_ids if c != session.agent_id]

        if session.skill_name and not any(
            s.skill_name == session.skill_name for s in self._sessions.values()
        ):
            self.active_skills.discard(session.skill_name)
        if session.mcp_server and not any(
            s.mcp_server == session.mcp_server for s in self._sessions.values()
        ):
            self.active_mcp_servers.discard(session.mcp_server)

    def infer_waiting(self, now: int, threshold_ms: int) -> list[AgentSession]:
        """Flag idle-after-tool sessions as waiting for input.

        Returns the sessions whose flag flipped on this pass.
        """
        flipped: list[AgentSession] = []
        for session in self._sessions.values():
            if session.is_thinking or session.waiting_for_input:
                continue
            if session.pending_tool_start is None:
                continue
            waited = now - session.pending_tool_start
            if waited > threshold_ms:
                session.waiting_for_input = True
                flipped.append(session)
                log.info(
                    "Agent %s appears to be waiting for input (%dms)", session.display_name, waited
                )
        return flipped

    # -- summary & persistence -------------------------------------------

    def summary(self, now: int, active_window_ms: int = 30_000) -> dict[str, Any]:
        """Aggregate roster statistics for dashboards."""
        sessions = list(self._sessions.values())
        return {
            "totalAgents": len(sessions),
            "activeAgents": sum(
                1 for s in sessions if s.is_thinking or now - s.last_activity < active_window_ms
            ),
            "mainAgents": sum(1 for s in sessions if s.role is AgentRole.MAIN),
            "subAgents": sum(1 for s in sessions if s.role is AgentRole.SUB_AGENT),
            "specialists": sum(1 for s in sessions if s.role is AgentRole.SPECIALIST),
            "totalOperations": sum(s.operation_count for s in sessions),
            "activeSkills": sorted(self.active_skills),
            "activeMcpServers": sorted(self.active_mcp_servers),
            "fileActivity": {
                "reads": sum(s.file_reads for s in sessions),
                "writes": sum(s.file_writes for s in sessions),
                "searches": 0,
            },
        }

    def to_state(self, now: int) -> dict[str, Any]:
        """Serialize the roster and active sets for persistence."""
        return {
            "savedAt": now,
            "sessions": self.snapshot(),
            "activeSkills": sorted(self.active_skills),
            "activeMcpServers": sorted(self.active_mcp_servers),
        }

    def restore_state(self, data: dict[str, Any], now: int, timeout_ms: int) -> int:
        """Load sessions saved by :meth:`to_state`.

        Only sessions still inside the eviction window are restored; older
        entries, malformed entries and anything beyond capacity are dropped.

        Returns:
            Number of sessions restored.
        """
        restored = 0
        for raw in data.get("sessions") or []:
            if len(self._sessions) >= self.max_agents:
                break
            try:
                session = AgentSession.from_dict(raw)
            except (KeyError, TypeError, ValueError) as e:
                log.warning("Skipping unreadable saved session: %s", e)
                continue
            if not is_valid_agent_id(session.agent_id) or session.agent_id in self._sessions:
                continue
            if now - session.last_activity > timeout_ms:
                continue
            self._sessions[session.agent_id] = session
            restored += 1

        for session in self._sessions.values():
            session.child_agent_ids = [c for c in session.child_agent_ids if c in self._sessions]

        self.active_skills.update(s for s in data.get("activeSkills") or [] if isinstance(s, str))
        self.active_mcp_servers.update(
            m for m in data.get("activeMcpServers") or [] if isinstance(m, str)
        )
        return restored
