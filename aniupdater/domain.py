"""Stored records, transfer objects and validated names of the web service."""

from __future__ import annotations

import unicodedata
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Dict, Optional
from zoneinfo import ZoneInfo

_SHANGHAI = ZoneInfo("Asia/Shanghai")


def _as_utc(dt: datetime) -> datetime:
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt


def _fraction(dt: datetime) -> str:
    micro = dt.microsecond
    if micro == 0:
        return ""
    if micro % 1000 == 0:
        return f".{micro // 1000:03d}"
    return f".{micro:06d}"


def _rfc3339(dt: datetime, use_z: bool = False) -> str:
    """RFC 3339 text with fractional seconds shown only when present."""
    iso = dt.isoformat(timespec="seconds")
    offset = iso[19:]
    if use_z and offset == "+00:00":
        offset = "Z"
    return iso[:19] + _fraction(dt) + offset


def _shanghai_rfc3339(dt: datetime) -> str:
    return _rfc3339(_as_utc(dt).astimezone(_SHANGHAI))


@dataclass
class AniInfoDto:
    id: int
    title: str
    update_count: str
    update_info: str
    image_url: str
    detail_url: str
    update_time: str
    platform: str

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "title": self.title,
            "update_count": self.update_count,
            "update_info": self.update_info,
            "image_url": self.image_url,
            "detail_url": self.detail_url,
            "update_time": self.update_time,
            "platform": self.platform,
        }


@dataclass
class UserDto:
    id: int
    email: str
    username: str
    password: str
    display_name: str
    avatar_url: str
    created_at: str
    updated_at: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "email": self.email,
            "username": self.username,
            "password": self.password,
            "displayName": self.display_name,
            "avatarUrl": self.avatar_url,
            "createdAt": self.created_at,
            "updatedAt": self.updated_at,
        }


@dataclass
class NewUser:
    email: str
    username: str
    password: str
    display_name: str
    avatar_url: str


@dataclass
class AniInfo:
    id: int
    title: str
    update_count: str
    update_info: str
    image_url: str
    detail_url: str
    update_time: datetime
    platform: str

    def to_dto(self) -> AniInfoDto:
        """Convert with ``update_time`` rendered in Shanghai time."""
        return AniInfoDto(
            id=self.id,
            title=self.title,
            update_count=self.update_count,
            update_info=self.update_info,
            image_url=self.image_url,
            detail_url=self.detail_url,
            update_time=_shanghai_rfc3339(self.update_time),
            platform=self.platform,
        )


@dataclass
class AniCollect:
    id: int
    user_id: str
    ani_item_id: int
    ani_title: str
    collect_time: datetime
    is_watched: bool


@dataclass
class AniWatchHistory:
    id: int
    user_id: str
    ani_item_id: int
    watched_time: datetime


@dataclass
class AniColl:
    user_id: str
    ani_item_id: int
    ani_title: str
    collect_time: datetime
    is_watched: bool


@dataclass
class AniWatch:
    user_id: str
    ani_item_id: int
    watched_time: datetime


@dataclass
class AniHistoryInfo:
    id: int
    title: str
    update_count: str
    update_info: str
    image_url: str
    detail_url: str
    is_watched: bool
    user_id: str
    update_time: datetime
    watched_time: Optional[datetime]
    platform: str
    total_count: int

    def to_dict(self) -> Dict[str, Any]:
        watched = self.watched_time
        return {
            "id": self.id,
            "title": self.title,
            "updateCount": self.update_count,
            "updateInfo": self.update_info,
            "imageUrl": self.image_url,
            "detailUrl": self.detail_url,
            "isWatched": self.is_watched,
            "userId": self.user_id,
            "updateTime": _rfc3339(_as_utc(self.update_time), use_z=True),
            "watchedTime": None if watched is None else _rfc3339(_as_utc(watched), use_z=True),
            "platform": self.platform,
            "totalCount": self.total_count,
        }


@dataclass
class User:
    id: int
    email: str
    username: str
    password: str
    display_name: str
    avatar_url: str
    created_at: datetime
    updated_at: Optional[datetime] = None

    def to_dto(self) -> UserDto:
        """Convert with timestamps rendered in Shanghai time."""
        return UserDto(
            id=self.id,
            email=self.email,
            username=self.username,
            password=self.password,
            display_name=self.display_name,
            avatar_url=self.avatar_url,
            created_at=_shanghai_rfc3339(self.created_at),
            updated_at=None if self.updated_at is None else _shanghai_rfc3339(self.updated_at),
        )


_FORBIDDEN_CHARACTERS = frozenset('/()"<>\\{}')
_MAX_GRAPHEMES = 256
_ZWJ = "\u200d"


def _extends_cluster(ch: str) -> bool:
    code = ord(ch)
    return (
        unicodedata.category(ch) in ("Mn", "Me", "Mc")
        or ch == _ZWJ
        or 0xFE00 <= code <= 0xFE0F
        or 0x1F3FB <= code <= 0x1F3FF
    )


def _grapheme_count(s: str) -> int:
    count = 0
    prev: Optional[str] = None
    for ch in s:
        joined = prev is not None and (
            _extends_cluster(ch) or prev == _ZWJ or (prev == "\r" and ch == "\n")
        )
        if not joined:
            count += 1
        prev = ch
    return count


@dataclass(frozen=True)
class SubscriberName:
    """A non-blank name of at most 256 graphemes without forbidden characters."""

    value: str

    @classmethod
    def parse(cls, s: str) -> "SubscriberName":
        is_blank = not s.strip()
        is_too_long = _grapheme_count(s) > _MAX_GRAPHEMES
        has_forbidden = any(ch in _FORBIDDEN_CHARACTERS for ch in s)
        if is_blank or is_too_long or has_forbidden:
            raise ValueError(f"{s} is not a valid subscriber name.")
        return cls(s)

    def __str__(self) -> str:
        return self.value