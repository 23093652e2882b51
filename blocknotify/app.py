from __future__ import annotations

import asyncio
import logging
from typing import Optional

from fastapi import FastAPI, WebSocket, WebSocketDisconnect
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from .config import Settings
from .events import EventBus
from .listener import Listener, TransportFactory
from .logging_config import setup_logging

log = logging.getLogger("blocknotify.app")


async def _wait_disconnect(ws: WebSocket) -> None:
    while True:
        msg = await ws.receive()
        if msg["type"] == "websocket.disconnect":
            return


def create_app(settings: Settings | None = None, transport_factory: Optional[TransportFactory] = None) -> FastAPI:
    settings = settings or Settings()
    app = FastAPI(title="Block Notify", version="0.1.0")
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.state.settings = settings

    @app.on_event("startup")
    async def on_startup() -> None:
        setup_logging(settings)
        loop = asyncio.get_running_loop()
        bus = EventBus(loop=loop, client_queue_size=settings.client_queue_size)
        listener = Listener(settings=settings, bus=bus, transport_factory=transport_factory)
        app.state.bus = bus
        app.state.listener = listener
        listener.start()
        log.info("Listening for %s on %s", settings.topics, settings.endpoint)

    @app.on_event("shutdown")
    async def on_shutdown() -> None:
        listener: Listener = app.state.listener
        listener.stop()

    @app.get("/healthz")
    async def healthz() -> JSONResponse:
        listener: Listener = app.state.listener
        return JSONResponse(listener.health())

    @app.websocket("/ws/notifications")
    async def ws_notifications(ws: WebSocket) -> None:
        bus: EventBus = app.state.bus
        q = await bus.subscribe()
        closed: asyncio.Task | None = None
        try:
            await ws.accept()
            # notice a client that goes away while no events are flowing
            closed = asyncio.create_task(_wait_disconnect(ws))
            while not closed.done():
                getter = asyncio.create_task(q.get())
                done, _ = await asyncio.wait({getter, closed}, return_when=asyncio.FIRST_COMPLETED)
                if getter in done:
                    await ws.send_json(getter.result())
                else:
                    getter.cancel()
        except WebSocketDisconnect:
            pass
        finally:
            if closed is not None:
                closed.cancel()
            await bus.unsubscribe(q)

    return app
