"""codemap: live file activity and agent session state for coding agents.

A long-running server ingests hook events from coding agents, keeps a
file/folder activity graph and a roster of live agent sessions, and
broadcasts both to WebSocket observers.
"""

__version__ = "0.1.0"

from codemap.engine import CodeMapEngine  # noqa: E402
from codemap.events import ActivityEvent, ThinkingEvent  # noqa: E402
from codemap.graph import ActivityGraph  # noqa: E402
from codemap.sessions import SessionRegistry  # noqa: E402

__all__ = [
    "__version__",
    "ActivityEvent",
    "ActivityGraph",
    "CodeMapEngine",
    "SessionRegistry",
    "ThinkingEvent",
]
