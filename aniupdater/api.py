"""Response envelopes and the anime update item shared across the package."""

from __future__ import annotations

from dataclasses import dataclass, fields
from typing import Any, Dict, Generic, List, Optional, TypeVar

T = TypeVar("T")


def _plain(value: Any) -> Any:
    """Turn nested records, dicts and lists into JSON-ready values."""
    if hasattr(value, "to_dict") and not isinstance(value, type):
        return value.to_dict()
    if isinstance(value, dict):
        return {key: _plain(item) for key, item in value.items()}
    if isinstance(value, (list, tuple)):
        return [_plain(item) for item in value]
    return value


@dataclass
class ApiResponse(Generic[T]):
    """A uniform result envelope: ``status`` plus either ``data`` or ``message``."""

    status: str
    message: Optional[str] = None
    data: Optional[T] = None

    @classmethod
    def ok(cls, data: T) -> "ApiResponse[T]":
        return cls(status="ok", data=data)

    @classmethod
    def err(cls, msg: Any) -> "ApiResponse[T]":
        return cls(status="error", message=str(msg))

    def to_dict(self) -> Dict[str, Any]:
        """Serialise, leaving out ``message`` and ``data`` when they are unset."""
        result: Dict[str, Any] = {"status": self.status}
        if self.message is not None:
            result["message"] = self.message
        if self.data is not None:
            result["data"] = _plain(self.data)
        return result


@dataclass
class PageData(Generic[T]):
    """One page of a paginated listing; ``page`` starts at 1."""

    items: List[T]
    total: int
    page: int
    page_size: int

    def to_dict(self) -> Dict[str, Any]:
        return {
            "items": _plain(self.items),
            "total": self.total,
            "page": self.page,
            "page_size": self.page_size,
        }


@dataclass
class AniItem:
    """A single anime update scraped from one platform."""

    title: str
    update_count: str
    update_info: str
    image_url: str
    detail_url: str
    update_time: str
    platform: str

    def to_dict(self) -> Dict[str, str]:
        return {f.name: getattr(self, f.name) for f in fields(self)}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "AniItem":
        values = {}
        for f in fields(cls):
            if f.name not in data:
                raise ValueError(f"missing field `{f.name}`")
            value = data[f.name]
            if not isinstance(value, str):
                raise ValueError(f"field `{f.name}` must be a string")
            values[f.name] = value
        return cls(**values)


AniItemResult = Dict[str, List[AniItem]]