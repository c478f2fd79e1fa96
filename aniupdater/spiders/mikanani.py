"""Today's anime updates scraped from the Mikan Project page."""

from __future__ import annotations

import logging
from typing import List, Optional
from urllib.parse import urljoin, urlsplit, urlunsplit

import httpx
from bs4 import BeautifulSoup, Tag

from ..api import AniItem, AniItemResult, ApiResponse
from ..date_utils import get_today_slash, get_today_weekday
from ..http_client import FetchError, fetch_image_data_url

REFERER = "https://mikanani.me/"
PLATFORM = "mikanani"

log = logging.getLogger(__name__)


async def fetch_mikanani_image(url: str) -> str:
    """Download a cover image as a base64 data URL."""
    return await fetch_image_data_url(url, REFERER)


async def fetch_mikanani_ani_data(url: str) -> ApiResponse[AniItemResult]:
    """Fetch the page and extract the entries dated today."""
    try:
        async with httpx.AsyncClient(follow_redirects=True) as client:
            response = await client.get(url, headers={"Referer": REFERER})
            body = response.text
    except (httpx.HTTPError, httpx.InvalidURL) as exc:
        raise FetchError(str(exc)) from exc

    log.debug("Mikan page, first 200 characters:\n%s", body[:200])
    log.info("fetched the Mikan schedule page")
    try:
        result = parse_mikanani_html(body, url)
    except ValueError as exc:
        raise FetchError(str(exc)) from exc
    return ApiResponse.ok(result)


def _base_url(url: str) -> str:
    parts = urlsplit(url)
    if not parts.scheme or (parts.scheme in ("http", "https") and not parts.netloc):
        raise ValueError(f"invalid base URL: {url!r}")
    path = parts.path or ("/" if parts.netloc else "")
    return urlunsplit((parts.scheme, parts.netloc, path, parts.query, ""))


def _is_today_entry(li: Tag, today: str) -> bool:
    if li.select_one("div.num-node.text-center") is None:
        return False
    date_div = li.select_one("div.date-text")
    return date_div is not None and today in date_div.get_text()


def _build_item(base: str, li: Tag) -> Optional[AniItem]:
    anchor = li.select_one("a.an-text")
    if anchor is None:
        return None
    title = (anchor.get("title") or "").strip()

    date_div = li.select_one("div.date-text")
    update_info = date_div.get_text().strip() if date_div is not None else ""
    tokens = update_info.split()
    update_time = tokens[0] if tokens else ""

    span = li.select_one("span.js-expand_bangumi")
    data_src = span.get("data-src") if span is not None else None
    if data_src is None:
        return None

    return AniItem(
        platform=PLATFORM,
        title=title,
        update_count="",
        update_info=update_info,
        image_url=urljoin(base, data_src),
        detail_url=urljoin(base, anchor.get("href") or ""),
        update_time=update_time,
    )


def parse_mikanani_html(body: str, url: str) -> AniItemResult:
    """Extract the entries dated today; relative links are resolved against ``url``.

    Raises ValueError when ``url`` is not an absolute URL.
    """
    base = _base_url(url)
    document = BeautifulSoup(body, "html.parser")
    today = get_today_slash()

    comics: List[AniItem] = []
    for li in document.select("li"):
        if not _is_today_entry(li, today):
            continue
        item = _build_item(base, li)
        if item is not None:
            log.info("found update: %s %s", item.title, item.update_info)
            comics.append(item)

    log.info("extracted %d anime updated today", len(comics))
    return {get_today_weekday().name_cn: comics}