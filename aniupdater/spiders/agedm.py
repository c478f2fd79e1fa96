"""Today's anime updates scraped from the AGE anime site."""

from __future__ import annotations

import logging
from typing import List, Tuple

import httpx
from bs4 import BeautifulSoup, Tag

from ..api import AniItem, AniItemResult, ApiResponse
from ..date_utils import get_today_slash, get_today_weekday
from ..http_client import FetchError, fetch_image_data_url, http_client
from ..utils import extract_number

REFERER = "https://www.agedm.vip/"
PLATFORM = "agedm"

log = logging.getLogger(__name__)


async def fetch_agedm_image(url: str) -> str:
    """Download a cover image as a base64 data URL."""
    return await fetch_image_data_url(url, REFERER)


async def fetch_agedm_ani_data(url: str) -> ApiResponse[AniItemResult]:
    """Fetch the update page and extract today's updates."""
    try:
        async with http_client() as client:
            response = await client.get(url, headers={"Referer": REFERER})
            body = response.text
    except (httpx.HTTPError, httpx.InvalidURL) as exc:
        raise FetchError(str(exc)) from exc

    log.debug("AGE page, first 200 characters:\n%s", body[:200])
    log.info("fetched today's AGE update page")
    return ApiResponse.ok(parse_agedm_html(body))


def _is_today_box(box: Tag) -> bool:
    return any(
        text.strip().startswith("今天")
        for button in box.select("button.btn-danger")
        for text in button.strings
    )


def _title_and_link(col: Tag, update_count: str) -> Tuple[str, str]:
    anchor = col.select_one("div.video_item-title a")
    if anchor is None:
        return "", ""
    href = (
        (anchor.get("href") or "")
        .replace("http://", "https://", 1)
        .replace("/detail/", "/play/", 1)
        .rstrip("/")
    )
    return anchor.get_text().strip(), f"{href}/1/{update_count}"


def _build_item(col: Tag, today: str) -> AniItem:
    img = col.select_one("img.video_thumbs")
    image_url = ""
    if img is not None:
        source = img.get("data-original")
        if source is None:
            source = img.get("src")
        image_url = source or ""

    span = col.select_one("span.video_item--info")
    update_info = span.get_text().strip() if span is not None else ""

    number = extract_number(update_info)
    update_count = str(number) if number is not None else ""

    title, detail_url = _title_and_link(col, update_count)
    return AniItem(
        title=title,
        update_count=update_count,
        update_info=update_info,
        image_url=image_url,
        detail_url=detail_url,
        update_time=today,
        platform=PLATFORM,
    )


def parse_agedm_html(body: str) -> AniItemResult:
    """Extract the items of the "today" block; an empty dict when there is none."""
    document = BeautifulSoup(body, "html.parser")
    today_box = next(
        (box for box in document.select("div.video_list_box.recent_update") if _is_today_box(box)),
        None,
    )
    if today_box is None:
        return {}

    today = get_today_slash()
    comics: List[AniItem] = []
    for col in today_box.select("div.row > div.col"):
        item = _build_item(col, today)
        log.info("found update: %s %s", item.title, item.update_info)
        comics.append(item)

    log.info("extracted %d anime updated today", len(comics))
    return {get_today_weekday().name_cn: comics}