import base64

import httpx
import pytest
import respx

from aniupdater.date_utils import get_today_slash, get_today_weekday
from aniupdater.http_client import FetchError
from aniupdater.spiders.agedm import (
    fetch_agedm_ani_data,
    fetch_agedm_image,
    parse_agedm_html,
)

PAGE = """
<html><body>
<div class="video_list_box recent_update">
  <button class="btn btn-danger">昨天 (金曜日)</button>
  <div class="row">
    <div class="col">
      <span class="video_item--info">第3集</span>
      <div class="video_item-title"><a href="https://www.agedm.vip/detail/9/">Old Show</a></div>
    </div>
  </div>
</div>
<div class="video_list_box recent_update">
  <button class="btn btn-danger"> 今天 (土曜日)</button>
  <div class="row">
    <div class="col g-2 position-relative">
      <img class="video_thumbs" data-original="https://img.example.com/a.jpg" src="https://img.example.com/lazy.jpg">
      <span class="video_item--info"> 第12集 </span>
      <div class="video_item-title"><a href="http://www.agedm.vip/detail/20250001/"> Show A </a></div>
    </div>
    <div class="col">
      <img class="video_thumbs" src="https://img.example.com/b.jpg">
      <span class="video_item--info">更新中</span>
      <div class="video_item-title"><a href="https://www.agedm.vip/detail/2/">Show B</a></div>
    </div>
  </div>
</div>
</body></html>
"""


def _today_items(result):
    assert list(result) == [get_today_weekday().name_cn]
    return result[get_today_weekday().name_cn]


def test_parse_picks_only_today_block():
    items = _today_items(parse_agedm_html(PAGE))
    assert [item.title for item in items] == ["Show A", "Show B"]


def test_parse_first_item_fields():
    first = _today_items(parse_agedm_html(PAGE))[0]
    assert first.image_url == "https://img.example.com/a.jpg"
    assert first.update_info == "第12集"
    assert first.update_count == "12"
    assert first.detail_url == "https://www.agedm.vip/play/20250001/1/12"
    assert first.platform == "agedm"
    assert first.update_time == get_today_slash()


def test_parse_falls_back_to_src_and_empty_count():
    second = _today_items(parse_agedm_html(PAGE))[1]
    assert second.image_url == "https://img.example.com/b.jpg"
    assert second.update_count == ""
    assert second.detail_url.endswith("/play/2/1/")


def test_parse_without_today_block_is_empty():
    html = PAGE.replace("今天", "明天")
    assert parse_agedm_html(html) == {}


@pytest.mark.asyncio
async def test_fetch_sends_referer_and_parses():
    url = "https://www.agedm.vip/update"
    with respx.mock:
        route = respx.get(url).mock(return_value=httpx.Response(200, text=PAGE))
        response = await fetch_agedm_ani_data(url)
        request = route.calls.last.request
    assert request.headers["Referer"] == "https://www.agedm.vip/"
    assert "Chrome/138" in request.headers["User-Agent"]
    assert response.status == "ok"
    assert len(_today_items(response.data)) == 2


@pytest.mark.asyncio
async def test_fetch_connection_error_raises():
    url = "https://www.agedm.vip/update"
    with respx.mock:
        respx.get(url).mock(side_effect=httpx.ConnectError("boom"))
        with pytest.raises(FetchError):
            await fetch_agedm_ani_data(url)


@pytest.mark.asyncio
async def test_fetch_image_defaults_to_jpeg():
    url = "https://img.example.com/a.jpg"
    with respx.mock:
        route = respx.get(url).mock(return_value=httpx.Response(200, content=b"\x89img"))
        data_url = await fetch_agedm_image(url)
        assert route.calls.last.request.headers["Referer"] == "https://www.agedm.vip/"
    header, payload = data_url.split(",", 1)
    assert header == "data:image/jpeg;base64"
    assert base64.b64decode(payload) == b"\x89img"