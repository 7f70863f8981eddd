"""HTTP and WebSocket surface of the chat announcer.

Routes:
  POST /start   start (or restart) monitoring a token's chat
  POST /stop    stop monitoring
  GET  /status  queue, processor, speech and source status
  GET  /health  liveness probe
  WS   /ws      pushes every announced reply to connected clients
  GET  /        minimal browser client
"""

from __future__ import annotations

import asyncio
from contextlib import asynccontextmanager
from pathlib import Path

from fastapi import FastAPI, HTTPException, WebSocket, WebSocketDisconnect
from fastapi.responses import HTMLResponse
from pydantic import BaseModel

from chatannouncer.chat.event import ChatEvent
from chatannouncer.exceptions import ChatSourceError
from chatannouncer.monitor import ChatMonitor
from chatannouncer.utils.logging import get_logger

log = get_logger("server")

_STATIC_DIR = Path(__file__).parent / "static"


class StartRequest(BaseModel):
    token_address: str
    username: str | None = None


class ConnectionHub:
    """Set of connected WebSocket clients receiving announcements."""

    def __init__(self):
        self._clients: set[WebSocket] = set()

    def __len__(self) -> int:
        return len(self._clients)

    async def connect(self, websocket: WebSocket) -> None:
        await websocket.accept()
        self._clients.add(websocket)
        log.info("Client connected (%d total)", len(self._clients))

    def disconnect(self, websocket: WebSocket) -> None:
        self._clients.discard(websocket)
        log.info("Client disconnected (%d total)", len(self._clients))

    async def broadcast(self, message: dict) -> None:
        """Send *message* to every client, dropping clients that fail."""
        clients = list(self._clients)
        results = await asyncio.gather(
            *(client.send_json(message) for client in clients), return_exceptions=True
        )
        for client, result in zip(clients, results):
            if isinstance(result, Exception):
                log.debug("Dropping client after send failure: %s", result)
                self._clients.discard(client)

    async def announce(self, text: str, event: ChatEvent | None = None) -> None:
        """Announcer observer: push a ``speak`` message."""
        await self.broadcast({"type": "speak", "text": text, "user": event.user if event else None})


def create_app(
    monitor: ChatMonitor,
    hub: ConnectionHub | None = None,
    autostart: tuple[str, str | None] | None = None,
) -> FastAPI:
    """Build the FastAPI application around *monitor*.

    Args:
        monitor: Chat monitor serving the routes.
        hub: WebSocket hub (created if None).
        autostart: Optional ``(token_address, username)`` to start
            monitoring as soon as the server is up.
    """
    hub = hub or ConnectionHub()
    monitor.add_observer(hub.announce)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        if autostart is not None:
            log.info(await monitor.start(*autostart))
        yield
        await monitor.stop()

    app = FastAPI(
        title="chatannouncer",
        description="Reads live chat comments aloud with generated replies.",
        version="0.1.0",
        lifespan=lifespan,
    )
    app.state.monitor = monitor
    app.state.hub = hub

    @app.post("/start")
    async def start(body: StartRequest):
        if not body.token_address.strip():
            raise HTTPException(status_code=400, detail="Token address required")
        try:
            message = await monitor.start(body.token_address, body.username)
        except ChatSourceError as exc:
            raise HTTPException(status_code=400, detail=str(exc)) from exc
        return {"status": "started", "message": message}

    @app.post("/stop")
    async def stop():
        await monitor.stop()
        return {"status": "stopped"}

    @app.get("/status")
    async def status():
        return monitor.status()

    @app.get("/health")
    async def health():
        return {"status": "ok", "service": "chatannouncer"}

    @app.websocket("/ws")
    async def websocket_endpoint(websocket: WebSocket):
        await hub.connect(websocket)
        try:
            await websocket.send_json({"type": "status", "status": monitor.status()})
            while True:
                await websocket.receive_text()
        except WebSocketDisconnect:
            pass
        finally:
            hub.disconnect(websocket)

    @app.get("/", response_class=HTMLResponse)
    async def index():
        return (_STATIC_DIR / "index.html").read_text(encoding="utf-8")

    return app
