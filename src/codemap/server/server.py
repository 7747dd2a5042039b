"""Server lifecycle: build the engine and app, then run uvicorn."""

from __future__ import annotations

from typing import TYPE_CHECKING

from codemap.logging import get_logger

if TYPE_CHECKING:
    from codemap.config import Config

log = get_logger("server")


async def serve(config: Config, project_root: str | None = None) -> None:
    """Run the codemap server until cancelled or interrupted.

    Args:
        config: Loaded configuration.
        project_root: Project directory to observe; overrides config.
    """
    # Import here to avoid startup overhead for config-only callers
    import uvicorn

    from codemap.engine import CodeMapEngine
    from codemap.server.routes import create_app

    engine = CodeMapEngine(config, project_root)
    app = create_app(engine)

    uv_config = uvicorn.Config(
        app,
        host=config.server.host,
        port=config.server.port,
        log_level="warning",
        access_log=False,
        log_config=None,
        ws_ping_interval=config.broadcast.heartbeat_interval,
        ws_ping_timeout=config.broadcast.heartbeat_interval,
    )
    server = uvicorn.Server(uv_config)

    log.info(
        "CodeMap server on http://%s:%d (ws://%s:%d/ws), project %s",
        config.server.host,
        config.server.port,
        config.server.host,
        config.server.port,
        engine.project_root,
    )
    await server.serve()
