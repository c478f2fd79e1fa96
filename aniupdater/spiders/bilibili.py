"""Today's anime updates from the bilibili timeline API."""

from __future__ import annotations

import logging
from typing import Any, List, Optional

import httpx

from ..api import AniItem, AniItemResult, ApiResponse
from ..date_utils import get_today_slash, get_today_weekday
from ..http_client import FetchError, fetch_image_data_url
from ..utils import clean_text, extract_number

REFERER = "https://www.bilibili.com/"
PLATFORM = "bilibili"

_I64_MIN = -(2**63)
_I64_MAX = 2**63 - 1

log = logging.getLogger(__name__)


def _get(obj: Any, key: str) -> Any:
    return obj.get(key) if isinstance(obj, dict) else None


def _as_i64(value: Any) -> Optional[int]:
    if isinstance(value, int) and not isinstance(value, bool) and _I64_MIN <= value <= _I64_MAX:
        return value
    return None


def _as_str(value: Any) -> Optional[str]:
    return value if isinstance(value, str) else None


async def fetch_bilibili_image(url: str) -> str:
    """Download a cover image as a base64 data URL."""
    return await fetch_image_data_url(url, REFERER)


async def fetch_bilibili_ani_data(url: str) -> ApiResponse[AniItemResult]:
    """Fetch the timeline JSON and extract today's published episodes."""
    try:
        async with httpx.AsyncClient(follow_redirects=True) as client:
            response = await client.get(url, headers={"Referer": REFERER})
            payload = response.json()
    except (httpx.HTTPError, httpx.InvalidURL, ValueError) as exc:
        raise FetchError(str(exc)) from exc
    return ApiResponse.ok(process_json_value(payload))


def process_json_value(json_value: Any) -> AniItemResult:
    """Turn the timeline payload into today's updates.

    A bad payload gives an empty dict; a day without updates gives an empty list.
    """
    code = _as_i64(_get(json_value, "code"))
    days = _get(json_value, "result")
    if (code if code is not None else -1) != 0 or not isinstance(days, list):
        log.error("unexpected timeline payload: %s", json_value)
        return {}
    log.info("fetched the bilibili timeline")

    weekday = get_today_weekday().name_cn
    today = next((day for day in days if _as_i64(_get(day, "is_today")) == 1), None)
    if today is None:
        log.info("no updates today")
        return {weekday: []}

    comics: List[AniItem] = []
    episodes = _get(today, "episodes")
    if isinstance(episodes, list):
        for episode in episodes:
            if _as_i64(_get(episode, "published")) != 1:
                continue
            item = parse_item(episode)
            log.info("found update: %s %s", item.title, item.update_info)
            comics.append(item)

    log.info("extracted %d anime updated today", len(comics))
    return {weekday: comics}


def parse_item(ep: Any) -> AniItem:
    """Build an item from one episode object of the timeline."""
    pub_index = (_as_str(_get(ep, "pub_index")) or "").strip()
    number = extract_number(pub_index)

    image_url = _as_str(_get(ep, "square_cover"))
    if image_url is None:
        image_url = _as_str(_get(ep, "cover")) or ""

    episode_id = _as_i64(_get(ep, "episode_id")) or 0

    return AniItem(
        platform=PLATFORM,
        title=clean_text(_as_str(_get(ep, "title")) or ""),
        update_count=str(number) if number is not None else "",
        update_info=f"更新至{pub_index}",
        image_url=image_url,
        detail_url=f"https://www.bilibili.com/bangumi/play/ep{episode_id}",
        update_time=get_today_slash(),
    )