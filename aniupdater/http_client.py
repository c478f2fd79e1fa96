"""HTTP client setup and image download as data URLs."""

from __future__ import annotations

import base64
from typing import Optional

import httpx

DEFAULT_HEADERS = {
    "Accept": (
        "text/html,application/xhtml+xml,application/xml;q=0.9,image/avif,"
        "image/webp,image/apng,*/*;q=0.8,application/signed-exchange;v=b3;q=0.7"
    ),
    "Accept-Language": "zh-CN,zh;q=0.9,en;q=0.8",
    "Cache-Control": "no-cache",
    "Cookie": "cleanMode=0",
    "DNT": "1",
    "Pragma": "no-cache",
    "priority": "u=0, i",
    "Sec-Ch-Ua": 'Not)A;Brand";v="8", "Chromium";v="138", "Google Chrome";v="138"',
    "sec-ch-ua-platform": '"Windows"',
    "Sec-Fetch-Dest": "document",
    "Sec-Fetch-Mode": "navigate",
    "Sec-Fetch-Site": "none",
    "Sec-Fetch-User": "?1",
    "Upgrade-Insecure-Requests": "1",
    "User-Agent": (
        "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
        "(KHTML, like Gecko) Chrome/138.0.0.0 Safari/537.36"
    ),
}


class FetchError(Exception):
    """A request could not be sent or its body could not be read."""


def http_client() -> httpx.AsyncClient:
    """An async client that sends browser-like default headers."""
    return httpx.AsyncClient(headers=DEFAULT_HEADERS, follow_redirects=True)


async def fetch_image_data_url(
    url: str,
    referer: str,
    default_type: str = "image/jpeg",
    client: Optional[httpx.AsyncClient] = None,
) -> str:
    """Download an image and return it as a base64 ``data:`` URL.

    ``default_type`` is used when the response carries no Content-Type.
    A client passed in is left open; otherwise a plain one is used and closed.
    """
    owned = client is None
    session = httpx.AsyncClient(follow_redirects=True) if owned else client
    try:
        response = await session.get(url, headers={"Referer": referer})
    except (httpx.HTTPError, httpx.InvalidURL) as exc:
        raise FetchError(str(exc)) from exc
    finally:
        if owned:
            await session.aclose()

    content_type = response.headers.get("content-type", default_type)
    encoded = base64.b64encode(response.content).decode("ascii")
    return f"data:{content_type};base64,{encoded}"