"""Tabbed terminal service - FastAPI server exposing sessions to a UI panel."""

from __future__ import annotations

import asyncio
import json
from contextlib import asynccontextmanager
from typing import Dict, Optional
from uuid import uuid4

from fastapi import FastAPI, HTTPException, WebSocket, WebSocketDisconnect
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import PlainTextResponse
from starlette.concurrency import run_in_threadpool

from ..config import TabTermConfig
from ..diagnostics import DiagnosticsManager
from ..log_manager import LogManager
from ..multiplexer.scheduler import Scheduler
from ..multiplexer.session_manager import SessionManager
from ..multiplexer.terminal_runner import ProcessAdapter
from .protocol import Message
from .router import MessageRouter
from .settings import validate_settings


class TabTermService:
    """Serves terminal sessions over a WebSocket, one panel per connection."""

    def __init__(
        self,
        config: Optional[TabTermConfig] = None,
        adapter: Optional[ProcessAdapter] = None,
        scheduler: Optional[Scheduler] = None,
        log_manager: Optional[LogManager] = None,
    ):
        self.config = config or TabTermConfig()
        self.adapter = adapter
        self.scheduler = scheduler
        self.log_manager = log_manager or LogManager(max_lines=self.config.log_lines)
        self.routers: Dict[str, MessageRouter] = {}  # panel_id -> router
        self.diagnostics = DiagnosticsManager(
            config=self.config,
            log_manager=self.log_manager,
            get_managers=self._managers,
        )

        self.app = FastAPI(
            title="Tabbed Terminal Service",
            description="WebSocket relay for multiplexed pty sessions with menu detection",
            version="0.1.0",
            lifespan=self._lifespan,
        )

        # Setup CORS
        self.app.add_middleware(
            CORSMiddleware,
            allow_origins=["*"],
            allow_credentials=True,
            allow_methods=["*"],
            allow_headers=["*"],
        )

        # Register routes
        self._register_routes()

    @asynccontextmanager
    async def _lifespan(self, app: FastAPI):
        yield
        # Shutdown: nothing may outlive the service
        for router in list(self.routers.values()):
            router.dispose()
        self.routers.clear()

    def _managers(self) -> Dict[str, SessionManager]:
        return {panel_id: router.manager for panel_id, router in list(self.routers.items())}

    def _register_routes(self):
        """Register FastAPI routes."""

        @self.app.get("/health")
        async def health():
            return {"status": "ok", "panels": len(self.routers)}

        @self.app.get("/terminals")
        async def list_terminals():
            """List live sessions across all open panels."""
            return {
                "terminals": [
                    {
                        "id": session.id,
                        "name": session.name,
                        "panel": panel_id,
                        "alive": session.process.is_alive(),
                        "bufferedLines": session.buffered_lines(),
                    }
                    for panel_id, manager in self._managers().items()
                    for session in manager.list_sessions()
                ]
            }

        @self.app.post("/settings/validate")
        async def validate(payload: dict):
            """Check a settings payload without storing it."""
            _, errors = validate_settings(payload)
            return {"valid": not errors, "errors": errors}

        @self.app.get("/logs/{category}")
        async def get_logs(category: str, limit: int = 200):
            if category not in self.log_manager.buffers:
                raise HTTPException(status_code=404, detail="Unknown log category")
            return {"category": category, "lines": self.log_manager.tail(category, limit)}

        @self.app.get("/diagnostics", response_class=PlainTextResponse)
        async def diagnostics():
            return self.diagnostics.update_troubleshooting_log()

        @self.app.websocket("/ws")
        async def panel_endpoint(websocket: WebSocket):
            """WebSocket endpoint for one UI panel."""
            await websocket.accept()

            loop = asyncio.get_running_loop()
            outbox: asyncio.Queue = asyncio.Queue()

            def emit(message: Message) -> None:
                # Called from pty reader / timer threads as well as the loop
                loop.call_soon_threadsafe(outbox.put_nowait, message)

            panel_id = f"panel_{uuid4().hex[:8]}"
            router = MessageRouter(
                emit=emit,
                config=self.config,
                adapter=self.adapter,
                scheduler=self.scheduler,
                log_manager=self.log_manager,
            )
            self.routers[panel_id] = router
            self.log_manager.add("events", f"Panel {panel_id} connected")
            sender = asyncio.create_task(self._pump(websocket, outbox))

            try:
                # A freshly opened panel always starts with one session
                await run_in_threadpool(router.start)
                while True:
                    raw = await websocket.receive_text()
                    try:
                        payload = json.loads(raw)
                    except json.JSONDecodeError:
                        self.log_manager.add("errors", f"[{panel_id}] non-JSON frame dropped")
                        continue
                    await run_in_threadpool(router.handle, payload)
            except WebSocketDisconnect:
                pass
            finally:
                self.routers.pop(panel_id, None)
                sender.cancel()
                await run_in_threadpool(router.dispose)
                self.log_manager.add("events", f"Panel {panel_id} disconnected")

    async def _pump(self, websocket: WebSocket, outbox: asyncio.Queue) -> None:
        """Forward queued outbound messages to the socket in order."""
        while True:
            message: Message = await outbox.get()
            try:
                await websocket.send_json(message.to_wire())
            except Exception as e:
                self.log_manager.add("errors", f"Send failed, stopping pump: {e!r}")
                return


def create_app(
    config: Optional[TabTermConfig] = None,
    adapter: Optional[ProcessAdapter] = None,
    scheduler: Optional[Scheduler] = None,
) -> FastAPI:
    """Create and return the FastAPI app."""
    service = TabTermService(config=config, adapter=adapter, scheduler=scheduler)
    return service.app
