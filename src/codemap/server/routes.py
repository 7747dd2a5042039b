"""FastAPI routes for event ingestion, state queries and the observer socket."""

from __future__ import annotations

import contextlib
import json
from collections.abc import AsyncIterator
from typing import TYPE_CHECKING, Any

from fastapi import FastAPI, Request, WebSocket, WebSocketDisconnect
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import BaseModel, ValidationError

from codemap import __version__
from codemap.events import ActivityEvent, ThinkingEvent
from codemap.logging import get_logger

if TYPE_CHECKING:
    from codemap.engine import CodeMapEngine

log = get_logger("api")


def _bad_request(error: str) -> JSONResponse:
    return JSONResponse(status_code=400, content={"success": False, "error": error})


async def _parse(request: Request, model: type[BaseModel]) -> BaseModel | JSONResponse:
    """Validate a JSON body, or build the 400 response describing why not."""
    try:
        body = await request.json()
    except (json.JSONDecodeError, UnicodeDecodeError) as e:
        log.info("Rejected malformed JSON on %s: %s", request.url.path, e)
        return _bad_request("Malformed JSON body")
    try:
        return model.model_validate(body)
    except ValidationError as e:
        log.info("Rejected invalid payload on %s: %d errors", request.url.path, e.error_count())
        return _bad_request(str(e))


def _parse_limit(raw: str | None, default: int) -> int:
    try:
        value = int(raw) if raw is not None else default
    except ValueError:
        return default
    return value if value > 0 else default


def create_app(engine: CodeMapEngine) -> FastAPI:
    """Create the FastAPI application bound to ``engine``.

    The app's lifespan starts and stops the engine's periodic tasks.
    """

    @contextlib.asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        await engine.start()
        try:
            yield
        finally:
            await engine.stop()

    app = FastAPI(
        title="CodeMap",
        description="Live file activity and agent session state for coding agents",
        version=__version__,
        lifespan=lifespan,
    )
    app.add_middleware(CORSMiddleware, allow_origins=["*"], allow_methods=["*"], allow_headers=["*"])
    app.state.engine = engine

    _register_routes(app, engine)
    return app


def _register_routes(app: FastAPI, engine: CodeMapEngine) -> None:
    """Register all API routes."""

    @app.post("/api/activity", response_model=None)
    async def api_activity(request: Request) -> dict[str, Any] | JSONResponse:
        """Ingest a file activity event."""
        event = await _parse(request, ActivityEvent)
        if isinstance(event, JSONResponse):
            return event
        return await engine.handle_activity(event)  # type: ignore[arg-type]

    @app.post("/api/thinking", response_model=None)
    async def api_thinking_post(request: Request) -> dict[str, Any] | JSONResponse:
        """Ingest an agent thinking/tool/stop event."""
        event = await _parse(request, ThinkingEvent)
        if isinstance(event, JSONResponse):
            return event
        return await engine.handle_thinking(event)  # type: ignore[arg-type]

    @app.get("/api/thinking")
    async def api_thinking_get() -> list[dict[str, Any]]:
        return engine.roster()

    @app.get("/api/summary")
    async def api_summary() -> dict[str, Any]:
        return engine.summary()

    @app.get("/api/graph")
    async def api_graph() -> dict[str, Any]:
        return engine.graph_snapshot()

    @app.get("/api/hot-folders", response_model=None)
    async def api_hot_folders(limit: str | None = None) -> list[dict[str, Any]] | JSONResponse:
        """Git hot folders merged with recent live activity."""
        try:
            return await engine.hot_folders(_parse_limit(limit, engine.config.git.hot_folder_limit))
        except Exception:
            log.exception("Error getting hot folders")
            return JSONResponse(status_code=500, content={"error": "Failed to get hot folders"})

    @app.get("/api/health")
    async def api_health() -> dict[str, Any]:
        return engine.health()

    @app.get("/api/debug")
    async def api_debug() -> dict[str, Any]:
        return engine.debug()

    @app.post("/api/clear")
    async def api_clear() -> dict[str, Any]:
        return await engine.clear_graph()

    @app.post("/api/git-commit", response_model=None)
    async def api_git_commit() -> dict[str, Any] | JSONResponse:
        """Post-commit hook notification: refresh the layout."""
        try:
            return await engine.notify_git_commit()
        except Exception:
            log.exception("Failed to refresh layout after git commit")
            return JSONResponse(status_code=500, content={"error": "Failed to refresh layout"})

    @app.websocket("/ws")
    async def websocket_endpoint(websocket: WebSocket) -> None:
        """Observer channel: initial state, then broadcasts until disconnect."""
        broadcaster = engine.broadcaster
        await broadcaster.connect(websocket)
        try:
            await websocket.send_json({"type": "graph", "data": engine.graph_snapshot()})
            await websocket.send_json({"type": "thinking", "data": engine.roster()})

            # Any inbound message counts as a heartbeat answer
            while True:
                data = await websocket.receive_text()
                broadcaster.mark_alive(websocket)
                if data == "ping":
                    await websocket.send_text("pong")
        except WebSocketDisconnect:
            pass
        finally:
            await broadcaster.disconnect(websocket)
