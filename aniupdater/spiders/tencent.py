"""Today's anime updates scraped from the Tencent Video cartoon channel."""

from __future__ import annotations

import json
import logging
from typing import Any, Dict, Iterator, List, Optional

import httpx
from bs4 import BeautifulSoup, NavigableString

from ..api import AniItem, AniItemResult, ApiResponse
from ..date_utils import get_today_slash, get_today_weekday
from ..http_client import FetchError, fetch_image_data_url, http_client
from ..utils import extract_number

REFERER = "https://v.qq.com/"
PLATFORM = "tencent"
DAILY_TITLE = "每日更新"

_CONTEXT_MARKER = "window.__vikor__context__"
_CONTEXT_PREFIX = "window.__vikor__context__="
_CHANNEL_ID = "100119"

log = logging.getLogger(__name__)


def _get(obj: Any, key: str) -> Any:
    return obj.get(key) if isinstance(obj, dict) else None


def _as_str(value: Any) -> Optional[str]:
    return value if isinstance(value, str) else None


def _script_texts(html: str) -> Iterator[str]:
    """The first text node of every <script> element, in document order."""
    document = BeautifulSoup(html, "html.parser")
    for script in document.find_all("script"):
        text = next((c for c in script.contents if isinstance(c, NavigableString)), None)
        if text is not None:
            yield str(text)


async def fetch_qq_image(url: str) -> str:
    """Download a cover image as a base64 data URL."""
    async with http_client() as client:
        return await fetch_image_data_url(url, REFERER, client=client)


async def fetch_qq_ani_data(url: str) -> ApiResponse[AniItemResult]:
    """Fetch the channel page and extract today's updates from its embedded state."""
    try:
        async with httpx.AsyncClient(follow_redirects=True) as client:
            response = await client.get(url, headers={"Referer": REFERER})
            text = response.text
    except (httpx.HTTPError, httpx.InvalidURL) as exc:
        raise FetchError(str(exc)) from exc

    log.debug("Tencent page, first 200 characters:\n%s", text[:200])
    try:
        data = extract_vikor_json(text)
    except ValueError as exc:
        raise FetchError(str(exc)) from exc
    return ApiResponse.ok(parse_qq_data(data))


def extract_vikor_json(html: str) -> Any:
    """Parse the JSON assigned to ``window.__vikor__context__`` in the page.

    ``undefined`` is read as null. Raises ValueError when the script is
    missing or its JSON cannot be parsed.
    """
    script = next((text for text in _script_texts(html) if _CONTEXT_MARKER in text), None)
    if script is None:
        log.warning("no <script> containing window.__vikor__context__ found")
        raise ValueError("未找到包含 window.__vikor__context__ 的 <script> 标签。")

    _, sep, rest = script.partition(_CONTEXT_PREFIX)
    if not sep:
        raise ValueError("脚本内容格式不正确，无法提取 JSON。")
    raw_json = rest.rstrip(";")
    return json.loads(raw_json.replace("undefined", "null"))


def _find_daily_card(pinia: Dict[str, Any]) -> Optional[Any]:
    modules = _get(_get(pinia, "channelPageData"), "channelsModulesMap")
    cards = _get(_get(modules, _CHANNEL_ID), "cardListData")
    if not isinstance(cards, list):
        return None
    return next((card for card in cards if _get(card, "moduleTitle") == DAILY_TITLE), None)


def parse_qq_data(data: Any) -> AniItemResult:
    """Extract today's updates from the page state; an empty dict when the daily module is absent."""
    pinia = _get(data, "_piniaState")
    if not isinstance(pinia, dict):
        pinia = {}

    daily = _find_daily_card(pinia)
    if daily is None:
        log.warning("daily update module not found, returning an empty result")
        return {}
    log.info("fetched the Tencent Video cartoon schedule")

    tab_id = _as_str(_get(daily, "selectedTabId")) or ""
    videos = _get(_get(_get(daily, "videoBannerMap"), tab_id), "videoList")
    if not isinstance(videos, list):
        videos = []

    comics: List[AniItem] = []
    for video in videos:
        item = build_aniitem(video)
        if item is not None:
            log.info("found update: %s, %s", item.title, item.update_info)
            comics.append(item)

    log.info("extracted %d anime updated today", len(comics))
    return {get_today_weekday().name_cn: comics}


def build_aniitem(item: Any) -> Optional[AniItem]:
    """Build an item from one video entry, or None when it carries no episode number."""
    title = (_as_str(_get(item, "title")) or "").strip()

    uni_img = _as_str(_get(item, "uniImgTag")) or ""
    try:
        tags = json.loads(uni_img)
    except ValueError:
        return None
    count_text = _as_str(_get(_get(tags, "tag_4"), "text")) or ""
    number = extract_number(count_text)
    if number is None:
        return None
    update_count = str(number)

    topic = (_as_str(_get(item, "topicLabel")) or "").strip()
    cid = _as_str(_get(item, "cid")) or ""

    return AniItem(
        platform=PLATFORM,
        title=title,
        update_count=update_count,
        update_info=f"更新至{update_count}集 {topic}",
        image_url=(_as_str(_get(item, "coverPic")) or "").strip(),
        detail_url=get_qq_video_url(cid),
        update_time=get_today_slash(),
    )


def get_qq_video_url(cid: str) -> str:
    """The play page of a Tencent Video cover id."""
    return f"https://v.qq.com/x/cover/{cid}.html"