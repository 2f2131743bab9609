from __future__ import annotations

import os
import random

from flask import Flask
from flask_cors import CORS
from flask_socketio import SocketIO
from werkzeug.middleware.proxy_fix import ProxyFix

from .ai.provider import build_provider
from .config import Config
from .game.clock import SystemClock
from .game.service import GameService
from .game.store import InMemoryRoomStore
from .routes.health import bp as health_bp
from .routes.rooms import bp as rooms_bp
from .realtime.handlers import register_socketio_handlers


def build_service() -> GameService:
    rng = random.Random()
    return GameService(
        store=InMemoryRoomStore(),
        provider=build_provider(Config, rng=rng),
        clock=SystemClock(),
        rng=rng,
        answering_time=Config.ANSWERING_TIME_SEC,
        voting_time=Config.VOTING_TIME_SEC,
        max_write_retries=Config.MAX_WRITE_RETRIES,
    )


def create_app(
    game_service: GameService | None = None,
    start_pollers: bool = True,
) -> tuple[Flask, SocketIO]:
    app = Flask(__name__)
    app.config.from_object(Config)

    if app.config.get("TRUST_PROXY_HEADERS", False):
        app.wsgi_app = ProxyFix(app.wsgi_app, x_for=1, x_proto=1, x_host=1, x_port=1)

    cors_origins = app.config.get("CORS_ORIGINS", "*")
    CORS(app, resources={r"/api/*": {"origins": cors_origins}})

    # The game core is asyncio based, so the default is plain threads.
    async_mode = os.environ.get("SOCKETIO_ASYNC_MODE", "").strip() or "threading"

    socketio = SocketIO(
        app,
        cors_allowed_origins=cors_origins,
        async_mode=async_mode,
    )

    service = game_service or build_service()
    app.extensions["game_service"] = service

    app.register_blueprint(health_bp, url_prefix="/api")
    app.register_blueprint(rooms_bp, url_prefix="/api")

    register_socketio_handlers(socketio, service, start_pollers=start_pollers)

    return app, socketio
