"""Building and serving the web application."""

from __future__ import annotations

import logging
from typing import Any

from flask import Flask, Response, request

from .routes import ENGINE_KEY, get_ani, get_anis, health_check, login

log = logging.getLogger(__name__)


def _log_request(response: Response) -> Response:
    log.info("%s %s -> %d", request.method, request.path, response.status_code)
    return response


def create_app(engine: Any) -> Flask:
    """The application with its routes, bound to ``engine``."""
    app = Flask("aniupdater")
    app.extensions[ENGINE_KEY] = engine
    app.after_request(_log_request)
    app.add_url_rule("/health_check", "health_check", health_check, methods=["GET"])
    app.add_url_rule("/anis/<int(signed=True):ani_id>", "get_ani", get_ani, methods=["GET"])
    app.add_url_rule("/anis", "get_anis", get_anis, methods=["GET"])
    app.add_url_rule("/login", "login", login, methods=["POST"])
    return app


def run(host: str, port: int, engine: Any) -> None:
    """Serve the application on ``host``:``port`` until interrupted."""
    create_app(engine).run(host=host, port=port)