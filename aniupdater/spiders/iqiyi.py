"""Today's anime updates from the iQIYI schedule API."""

from __future__ import annotations

import logging
from typing import Any, Optional

import httpx

from ..api import AniItem, AniItemResult, ApiResponse
from ..date_utils import get_today_slash, get_today_weekday
from ..http_client import FetchError, fetch_image_data_url
from ..utils import clean_text, extract_number

REFERER = "https://www.iqiyi.com/"
PLATFORM = "iqiyi"
SCHEDULE_TITLE = "追番表"

log = logging.getLogger(__name__)


def _get(obj: Any, key: str) -> Any:
    return obj.get(key) if isinstance(obj, dict) else None


def _as_str(value: Any) -> Optional[str]:
    return value if isinstance(value, str) else None


async def fetch_iqiyi_image(url: str) -> str:
    """Download a cover image as a base64 data URL."""
    return await fetch_image_data_url(url, REFERER)


async def fetch_iqiyi_ani_data(url: str) -> ApiResponse[AniItemResult]:
    """Fetch the schedule JSON and extract today's updates."""
    try:
        async with httpx.AsyncClient(follow_redirects=True) as client:
            response = await client.get(url, headers={"Referer": REFERER})
            payload = response.json()
    except (httpx.HTTPError, httpx.InvalidURL, ValueError) as exc:
        raise FetchError(str(exc)) from exc
    return ApiResponse.ok(process_json_value(payload))


def _today_data(items: list, weekday_index: int) -> Optional[list]:
    block = next((item for item in items if _get(item, "title") == SCHEDULE_TITLE), None)
    video = _get(block, "video")
    if not isinstance(video, list) or weekday_index >= len(video):
        return None
    data = _get(video[weekday_index], "data")
    return data if isinstance(data, list) else None


def process_json_value(json_value: Any) -> AniItemResult:
    """Turn the schedule payload into today's updates.

    A bad payload or a missing schedule gives an empty dict.
    """
    code = _get(json_value, "code")
    if not (isinstance(code, int) and not isinstance(code, bool) and code == 0):
        log.error("error status in schedule payload: %s", json_value)
        return {}

    items = _get(json_value, "items")
    if not isinstance(items, list) or not items:
        log.error("schedule payload has no items: %s", json_value)
        return {}
    log.info("fetched the iQIYI schedule")

    weekday = get_today_weekday()
    data = _today_data(items, weekday.num_from_mon)
    if data is None:
        log.error("no schedule data for weekday index %d", weekday.num_from_mon)
        return {}
    if not data:
        log.info("no updates today")
        return {weekday.name_cn: []}

    comics = []
    for entry in data:
        item = parse_item(entry)
        if item is not None:
            log.info("found update: %s %s", item.title, item.update_info)
            comics.append(item)
    log.info("extracted %d anime updated today", len(comics))
    return {weekday.name_cn: comics}


def parse_item(ep: Any) -> Optional[AniItem]:
    """Build an item from one schedule entry, or None when it lacks a name or episode number."""
    if not isinstance(ep, dict) or "display_name" not in ep or "dq_updatestatus" not in ep:
        return None
    title = _as_str(ep["display_name"]) or ""
    update_info = (_as_str(ep["dq_updatestatus"]) or "").strip()
    number = extract_number(update_info)
    if number is None:
        return None

    cover = ep["image_cover"] if "image_cover" in ep else ep.get("image_url_normal")

    return AniItem(
        platform=PLATFORM,
        title=clean_text(title),
        update_count=str(number),
        update_info=update_info,
        image_url=_as_str(cover) or "",
        detail_url=_as_str(ep.get("page_url")) or "",
        update_time=get_today_slash(),
    )