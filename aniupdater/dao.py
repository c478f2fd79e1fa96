"""Database access for anime updates and users."""

from __future__ import annotations

import logging
from dataclasses import asdict, is_dataclass
from datetime import datetime
from typing import Any, Dict, List, Mapping, Optional, Sequence, Union

from sqlalchemy import text
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.sql.elements import TextClause

from .api import AniItem
from .domain import AniInfo, AniInfoDto, NewUser, User, UserDto

log = logging.getLogger(__name__)

_ANI_COLUMNS = "id, title, update_count, update_info, image_url, detail_url, update_time, platform"
_USER_COLUMNS = "id, email, username, password, display_name, avatar_url, created_at, updated_at"
_NEW_USER_FIELDS = ("email", "username", "password", "display_name", "avatar_url")

_UPSERT_ANI_INFO = text(
    """
    INSERT INTO ani_info (
        title,
        update_count,
        update_info,
        image_url,
        detail_url,
        platform
    ) VALUES (:title, :update_count, :update_info, :image_url, :detail_url, :platform)
    ON CONFLICT (title, platform, update_count) DO UPDATE SET
        update_info = EXCLUDED.update_info,
        image_url = EXCLUDED.image_url,
        detail_url = EXCLUDED.detail_url
    """
)
_ANI_INFO_BY_ID = text(f"SELECT {_ANI_COLUMNS} FROM ani_info WHERE id = :id")
_ANI_INFO_TODAY = (
    f"SELECT {_ANI_COLUMNS} FROM ani_info "
    "WHERE update_time >= current_date ORDER BY update_time DESC"
)
_USER_BY_USERNAME = text(f"SELECT {_USER_COLUMNS} FROM users WHERE username = :username")


def _to_datetime(value: Any) -> datetime:
    if isinstance(value, datetime):
        return value
    if isinstance(value, str):
        return datetime.fromisoformat(value.strip().replace("Z", "+00:00"))
    raise ValueError(f"not a timestamp: {value!r}")


def _ani_info(row: Mapping[str, Any]) -> AniInfo:
    return AniInfo(
        id=row["id"],
        title=row["title"],
        update_count=row["update_count"],
        update_info=row["update_info"],
        image_url=row["image_url"],
        detail_url=row["detail_url"],
        update_time=_to_datetime(row["update_time"]),
        platform=row["platform"],
    )


def _user(row: Mapping[str, Any]) -> User:
    updated = row["updated_at"]
    return User(
        id=row["id"],
        email=row["email"],
        username=row["username"],
        password=row["password"],
        display_name=row["display_name"],
        avatar_url=row["avatar_url"],
        created_at=_to_datetime(row["created_at"]),
        updated_at=None if updated is None else _to_datetime(updated),
    )


def upsert_ani_info(item: AniItem, engine: Engine) -> None:
    """Insert an update, or refresh the one with the same title, platform and count."""
    params = {
        "title": item.title,
        "update_count": item.update_count,
        "update_info": item.update_info,
        "image_url": item.image_url,
        "detail_url": item.detail_url,
        "platform": item.platform,
    }
    try:
        with engine.begin() as conn:
            conn.execute(_UPSERT_ANI_INFO, params)
    except SQLAlchemyError as exc:
        log.error("upsert of ani_info %r failed: %s", item, exc)
        raise


def get_ani_info_by_id(ani_id: int, engine: Engine) -> Optional[AniInfoDto]:
    """The update with this id, its time in Shanghai time; None if absent."""
    with engine.connect() as conn:
        row = conn.execute(_ANI_INFO_BY_ID, {"id": ani_id}).mappings().first()
    return None if row is None else _ani_info(row).to_dto()


def list_all_ani_info(title: str, engine: Engine) -> List[AniInfoDto]:
    """Today's updates, newest first. ``title`` is accepted but not used."""
    return [_ani_info(row).to_dto() for row in run_query(engine, _ANI_INFO_TODAY)]


def _condition_values(conditions: Any) -> Dict[str, Any]:
    if is_dataclass(conditions) and not isinstance(conditions, type):
        return asdict(conditions)
    if isinstance(conditions, Mapping):
        return dict(conditions)
    return {}


def query_with_condition(engine: Engine, table: str, conditions: Any) -> List[Dict[str, Any]]:
    """Select rows of ``table`` whose columns equal the given scalar values.

    ``conditions`` is a mapping or a dataclass; None and non-scalar values are ignored.
    """
    clauses: List[str] = []
    params: Dict[str, Any] = {}
    for field, value in _condition_values(conditions).items():
        if value is None or not isinstance(value, (str, int, float, bool)):
            continue
        key = f"p{len(params)}"
        clauses.append(f"{field} = :{key}")
        params[key] = value
    sql = f"SELECT * FROM {table}"
    if clauses:
        sql += " WHERE " + " AND ".join(clauses)
    with engine.connect() as conn:
        return [dict(row) for row in conn.execute(text(sql), params).mappings()]


def run_query(
    engine: Engine,
    query: Union[str, TextClause],
    params: Optional[Mapping[str, Any]] = None,
) -> List[Dict[str, Any]]:
    """Run a query and return its rows as dicts; failures raise RuntimeError."""
    statement = text(query) if isinstance(query, str) else query
    try:
        with engine.connect() as conn:
            result = conn.execute(statement, dict(params or {}))
            return [dict(row) for row in result.mappings()]
    except SQLAlchemyError as exc:
        raise RuntimeError(f"query error: {exc!r}") from exc


def get_user_by_username(username: str, engine: Engine) -> Optional[UserDto]:
    """The user with this name, timestamps in Shanghai time; None if absent."""
    with engine.connect() as conn:
        row = conn.execute(_USER_BY_USERNAME, {"username": username}).mappings().first()
    return None if row is None else _user(row).to_dto()


def insert_users(users: Sequence[NewUser], engine: Engine) -> None:
    """Insert all users in one statement; an empty sequence does nothing."""
    if not users:
        return
    groups: List[str] = []
    params: Dict[str, Any] = {}
    for index, user in enumerate(users):
        names = [f"{field}_{index}" for field in _NEW_USER_FIELDS]
        groups.append("(" + ", ".join(f":{name}" for name in names) + ")")
        for field, name in zip(_NEW_USER_FIELDS, names):
            params[name] = getattr(user, field)
    sql = (
        "INSERT INTO users (email, username, password, display_name, avatar_url) VALUES "
        + ", ".join(groups)
    )
    with engine.begin() as conn:
        conn.execute(text(sql), params)