'''
Decode the Number: game server

Realtime:
WS   /ws                  -> JSON frames {"type": <command>, ...} in, {"type": <event>, ...} out

Read-only HTTP:
GET  /api/stats/{name}    -> one player's record (zeros if unknown)
GET  /api/leaderboard     -> top players by wins, then win rate
GET  /api/online          -> open connections and live rooms
GET  /health              -> liveness + counters
'''

import json
import logging
import time
from contextlib import asynccontextmanager
from typing import List
from uuid import uuid4

import anyio
from fastapi import Depends, FastAPI, Request, WebSocket, status
from fastapi.middleware.cors import CORSMiddleware

from .config import Config
from .coordinator import Coordinator
from .schemas import HealthOut, LeaderboardEntryOut, OnlineOut, StatsOut
from .stats import JSONFileStatsStore, MemoryStatsStore, StatsStore
from .store import RoomRegistry
from .transport import ConnectionHub, pump_outbox

log = logging.getLogger(__name__)

SECURITY_HEADERS = {
    "X-Content-Type-Options": "nosniff",
    "X-Frame-Options": "DENY",
    "X-XSS-Protection": "1; mode=block",
}


def build_stats_store(config) -> StatsStore:
    backend = getattr(config, "STATS_BACKEND", "file")
    if backend == "memory":
        return MemoryStatsStore()
    if backend == "db":
        # Imported lazily so the file backend never needs a database driver
        from .bootstrap_db import create_all
        from .db import make_engine, make_session_factory
        from .repository import DBStatsStore

        engine = make_engine(config.DATABASE_URL)
        if getattr(config, "APP_ENV", "local") == "local":
            create_all(engine)
        return DBStatsStore(make_session_factory(engine), engine=engine)
    return JSONFileStatsStore(config.STATS_FILE)


async def sweep_forever(registry: RoomRegistry, interval: float) -> None:
    while True:
        await anyio.sleep(interval)
        registry.sweep_empty_rooms()


def create_app(config_class=Config, stats_store: StatsStore = None) -> FastAPI:
    logging.basicConfig(
        level=getattr(config_class, "LOG_LEVEL", "INFO"),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    registry = RoomRegistry()
    stats = stats_store if stats_store is not None else build_stats_store(config_class)
    hub = ConnectionHub(getattr(config_class, "OUTBOX_SIZE", 256))
    coordinator = Coordinator(registry, stats, config_class.DEFAULT_NUMBER_LENGTH)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        interval = getattr(config_class, "CLEANUP_INTERVAL_SEC", 60)
        async with anyio.create_task_group() as task_group:
            if interval > 0:
                task_group.start_soon(sweep_forever, registry, interval)
            log.info("Decode the Number server ready (stats backend: %s)", type(stats).__name__)
            yield
            task_group.cancel_scope.cancel()
        registry.clear()
        await anyio.to_thread.run_sync(stats.close)
        log.info("shutting down")

    app = FastAPI(title="Decode the Number", version="1.0.0", lifespan=lifespan)
    app.state.config = config_class
    app.state.registry = registry
    app.state.stats = stats
    app.state.hub = hub
    app.state.coordinator = coordinator
    app.state.started_at = time.monotonic()

    # Allow everything in dev so a locally served front-end can connect
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.middleware("http")
    async def add_security_headers(request: Request, call_next):
        response = await call_next(request)
        for header, value in SECURITY_HEADERS.items():
            response.headers[header] = value
        return response

    # Small factories so routes read the app-scoped state
    def get_stats(request: Request) -> StatsStore:
        return request.app.state.stats

    def get_registry(request: Request) -> RoomRegistry:
        return request.app.state.registry

    def get_hub(request: Request) -> ConnectionHub:
        return request.app.state.hub

    # ---------------- Routes ----------------

    @app.get("/health", response_model=HealthOut, summary="Liveness and counters")
    def health(
        request: Request,
        registry: RoomRegistry = Depends(get_registry),
        hub: ConnectionHub = Depends(get_hub),
    ) -> HealthOut:
        return HealthOut(
            status="ok",
            uptime=time.monotonic() - request.app.state.started_at,
            rooms=registry.room_count,
            players=len(hub),
        )

    @app.get("/api/stats/{name}", response_model=StatsOut, summary="One player's stats")
    def get_player_stats(name: str, stats: StatsStore = Depends(get_stats)) -> StatsOut:
        return StatsOut.from_stats(stats.get(name))

    @app.get("/api/leaderboard", response_model=List[LeaderboardEntryOut], summary="Top players")
    def get_leaderboard(stats: StatsStore = Depends(get_stats)) -> List[LeaderboardEntryOut]:
        limit = getattr(config_class, "LEADERBOARD_SIZE", 20)
        return [LeaderboardEntryOut.from_entry(name, entry) for name, entry in stats.leaderboard(limit)]

    @app.get("/api/online", response_model=OnlineOut, summary="Open connections and live rooms")
    def get_online(
        registry: RoomRegistry = Depends(get_registry),
        hub: ConnectionHub = Depends(get_hub),
    ) -> OnlineOut:
        return OnlineOut(online=len(hub), rooms=registry.room_count)

    @app.websocket("/ws")
    async def game_socket(websocket: WebSocket) -> None:
        await websocket.accept()
        connection_id = uuid4().hex
        outbox = hub.register(connection_id)
        hub.deliver(coordinator.connect(connection_id))
        log.info("Player connected: %s", connection_id)

        async def receive_frames() -> None:
            # iter_text stops quietly when the client disconnects
            async for text in websocket.iter_text():
                try:
                    message = json.loads(text)
                except ValueError:
                    # answered with an "Invalid message format" error
                    message = None
                hub.deliver(coordinator.dispatch(connection_id, message))
                if stats.dirty:
                    # file or database write, off the event loop
                    await anyio.to_thread.run_sync(stats.flush)

        try:
            async with anyio.create_task_group() as task_group:

                async def run_receiver() -> None:
                    try:
                        await receive_frames()
                    finally:
                        task_group.cancel_scope.cancel()

                task_group.start_soon(run_receiver)
                if await pump_outbox(websocket, outbox, connection_id):
                    # the hub dropped a client that stopped reading
                    await websocket.close(code=status.WS_1008_POLICY_VIOLATION)
                task_group.cancel_scope.cancel()
        finally:
            hub.unregister(connection_id)
            hub.deliver(coordinator.disconnect(connection_id))

    return app


app = create_app()
