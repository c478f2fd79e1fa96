"""Today's anime updates scraped from the Youku cartoon page."""

from __future__ import annotations

import json
import logging
import re
from typing import Any, Dict, Iterator, List, Optional

import httpx
from bs4 import BeautifulSoup, NavigableString

from ..api import AniItem, AniItemResult, ApiResponse
from ..date_utils import get_today_slash, get_today_weekday
from ..http_client import FetchError, fetch_image_data_url, http_client
from ..utils import extract_number

REFERER = "https://www.youku.com/"
PLATFORM = "youku"
DETAIL_URL = "https://www.youku.com/ku/webcomic"
DAILY_TITLE = "每日更新"
UPDATED_TIP = "有更新"

_DATA_MARKER = "__INITIAL_DATA__"
_DATA_PREFIX = "window.__INITIAL_DATA__ ="
_U32_TEXT = re.compile(r"\+?[0-9]+")
_U32_MAX = 2**32 - 1
_U64_MAX = 2**64 - 1

log = logging.getLogger(__name__)


def _get(obj: Any, key: str) -> Any:
    return obj.get(key) if isinstance(obj, dict) else None


def _as_str(value: Any) -> Optional[str]:
    return value if isinstance(value, str) else None


def _script_texts(html: str) -> Iterator[str]:
    document = BeautifulSoup(html, "html.parser")
    for script in document.find_all("script"):
        text = next((c for c in script.contents if isinstance(c, NavigableString)), None)
        if text is not None:
            yield str(text)


async def fetch_youku_image(url: str) -> str:
    """Download a cover image as a base64 data URL."""
    async with http_client() as client:
        return await fetch_image_data_url(
            url, REFERER, default_type="application/octet-stream", client=client
        )


async def fetch_youku_ani_data(url: str) -> ApiResponse[AniItemResult]:
    """Fetch the page and extract today's updates.

    A page whose embedded data cannot be read gives an error response.
    """
    try:
        async with http_client() as client:
            response = await client.get(url, headers={"Referer": REFERER})
            html = response.text
    except (httpx.HTTPError, httpx.InvalidURL) as exc:
        raise FetchError(str(exc)) from exc
    log.debug("Youku page, first 200 characters: %s", html[:200])

    try:
        data = extract_initial_data(html)
    except ValueError as exc:
        return ApiResponse.err(f"解析初始数据失败：{exc}")

    modules = _get(data, "moduleList")
    if not isinstance(modules, list):
        return ApiResponse.ok({})

    comics = process_module_list(modules)
    log.info("extracted %d anime updated today", len(comics))
    return ApiResponse.ok({get_today_weekday().name_cn: comics})


def extract_initial_data(html: str) -> Any:
    """Parse the JSON assigned to ``window.__INITIAL_DATA__`` in the page.

    The assignment must end with a semicolon; ``undefined`` is read as null.
    """
    content = next((text for text in _script_texts(html) if _DATA_MARKER in text), None)
    if content is None:
        raise ValueError("未找到 __INITIAL_DATA__ 脚本块")

    _, sep, rest = content.partition(_DATA_PREFIX)
    if not sep or not rest.endswith(";"):
        raise ValueError("提取 JSON 部分失败")
    json_part = rest[:-1].replace("undefined", "null")
    try:
        return json.loads(json_part)
    except ValueError as exc:
        raise ValueError("解析 JSON 失败") from exc


def _daily_entries(modules: List[Any]) -> Iterator[Any]:
    for module in modules:
        components = _get(module, "components")
        if not isinstance(components, list):
            continue
        for component in components:
            if _get(component, "title") != DAILY_TITLE:
                continue
            items = _get(component, "itemList")
            if not isinstance(items, list):
                continue
            for entry in items:
                if isinstance(entry, list):
                    yield from entry
                else:
                    yield entry


def process_module_list(modules: List[Any]) -> List[AniItem]:
    """Collect the updated entries of the daily-update components, one per title."""
    found: List[AniItem] = []
    seen = set()
    for entry in _daily_entries(modules):
        if not isinstance(entry, dict) or entry.get("updateTips") != UPDATED_TIP:
            continue
        item = build_aniitem(entry)
        if item.title in seen:
            continue
        seen.add(item.title)
        log.info("found update: %s %s", item.title, item.update_info)
        found.append(item)
    return found


def _update_info(value: Any) -> str:
    if isinstance(value, str):
        return value.strip()
    if isinstance(value, list):
        return " ".join(text.strip() for text in value if isinstance(text, str))
    return ""


def _update_count(value: Any) -> Optional[int]:
    if isinstance(value, str):
        if _U32_TEXT.fullmatch(value):
            number = int(value)
            if number <= _U32_MAX:
                return number
        return None
    if isinstance(value, int) and not isinstance(value, bool) and 0 <= value <= _U64_MAX:
        return value & _U32_MAX
    return None


def build_aniitem(item: Dict[str, Any]) -> AniItem:
    """Build an item from one daily-update entry.

    The episode count falls back to the first number in the label text, then to 1.
    """
    update_info = _update_info(item.get("lbTexts"))
    count = _update_count(item.get("updateCount"))
    if count is None:
        number = extract_number(update_info)
        count = number if number is not None else 1

    return AniItem(
        platform=PLATFORM,
        title=(_as_str(item.get("title")) or "").strip(),
        update_count=str(count),
        update_info=update_info,
        image_url=(_as_str(item.get("img")) or "").strip(),
        detail_url=DETAIL_URL,
        update_time=get_today_slash(),
    )