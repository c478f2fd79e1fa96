"""HTTP handlers: health check, anime updates and login."""

from __future__ import annotations

import logging
import os
import time
from dataclasses import asdict, dataclass, fields
from typing import Any, Type, TypeVar

import bcrypt
import jwt
from flask import Response, current_app, jsonify, request

from .dao import get_ani_info_by_id, list_all_ani_info, get_user_by_username

ENGINE_KEY = "aniupdater.engine"
JWT_SECRET_ENV = "JWT_SECRET"
DEFAULT_JWT_SECRET = "secret"
JWT_ALGORITHM = "HS256"
TOKEN_LIFETIME = 3600

log = logging.getLogger(__name__)

R = TypeVar("R")


@dataclass
class LoginRequest:
    """Credentials posted to ``/login``."""

    username: str
    password: str


@dataclass
class RegisterRequest:
    """A registration form: a name, the password twice and an e-mail address."""

    username: str
    password1: str
    password2: str
    email: str


@dataclass
class Claims:
    """Token claims: the user id and the expiry as a Unix timestamp."""

    sub: int
    exp: int


def _engine() -> Any:
    return current_app.extensions[ENGINE_KEY]


def _load_body(cls: Type[R]) -> R:
    """Read the JSON body into ``cls``; every field must be present as a string."""
    payload = request.get_json(silent=True)
    if not isinstance(payload, dict):
        raise ValueError("request body must be a JSON object")
    values = {}
    for f in fields(cls):
        if f.name not in payload:
            raise ValueError(f"missing field `{f.name}`")
        value = payload[f.name]
        if not isinstance(value, str):
            raise ValueError(f"field `{f.name}` must be a string")
        values[f.name] = value
    return cls(**values)


def _password_matches(candidate: str, hashed: str) -> bool:
    try:
        return bcrypt.checkpw(candidate.encode("utf-8"), hashed.encode("utf-8"))
    except (ValueError, TypeError):
        return False


def health_check() -> Response:
    """An empty 200 response."""
    return Response(status=200)


def get_ani(ani_id: int) -> Any:
    """One update as JSON; 404 when absent, 500 on a database failure."""
    try:
        ani = get_ani_info_by_id(ani_id, _engine())
    except Exception as exc:
        log.error("database query failed: %r", exc)
        return Response(status=500)
    if ani is None:
        return Response(status=404)
    return jsonify(ani.to_dict())


def get_anis() -> Any:
    """Today's updates as a JSON list; 500 on a database failure."""
    try:
        anis = list_all_ani_info("ani_id", _engine())
    except Exception as exc:
        log.error("database query failed: %r", exc)
        return Response(status=500)
    return jsonify([ani.to_dict() for ani in anis])


def login() -> Any:
    """Check the posted credentials and answer with a signed token valid for an hour."""
    try:
        credentials = _load_body(LoginRequest)
    except ValueError as exc:
        return Response(str(exc), status=400)

    try:
        user = get_user_by_username(credentials.username, _engine())
    except Exception as exc:
        log.error("user lookup failed: %r", exc)
        user = None
    if user is None or not _password_matches(credentials.password, user.password):
        return Response(status=401)

    claims = Claims(sub=user.id, exp=int(time.time()) + TOKEN_LIFETIME)
    secret = os.environ.get(JWT_SECRET_ENV, DEFAULT_JWT_SECRET)
    try:
        token = jwt.encode(asdict(claims), secret, algorithm=JWT_ALGORITHM)
    except (jwt.PyJWTError, TypeError, ValueError) as exc:
        log.error("token encoding failed: %r", exc)
        return Response(status=500)
    return jsonify({"token": token})


def register() -> Any:
    """Accept a registration form; nothing is stored yet."""
    try:
        _load_body(RegisterRequest)
    except ValueError as exc:
        return Response(str(exc), status=400)
    return jsonify({"res": ""})