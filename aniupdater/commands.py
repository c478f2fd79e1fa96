"""The table of fetch commands that scheduled tasks can name."""

from __future__ import annotations

from typing import Awaitable, Callable, Dict

from .api import AniItemResult, ApiResponse
from .spiders.agedm import fetch_agedm_ani_data
from .spiders.bilibili import fetch_bilibili_ani_data
from .spiders.iqiyi import fetch_iqiyi_ani_data
from .spiders.mikanani import fetch_mikanani_ani_data
from .spiders.tencent import fetch_qq_ani_data
from .spiders.youku import fetch_youku_ani_data

CmdFn = Callable[[str], Awaitable[ApiResponse[AniItemResult]]]


def build_cmd_map() -> Dict[str, CmdFn]:
    """Map each command name to the coroutine function that runs it with a URL."""
    return {
        "fetch_bilibili_ani_data": fetch_bilibili_ani_data,
        "fetch_iqiyi_ani_data": fetch_iqiyi_ani_data,
        "fetch_mikanani_ani_data": fetch_mikanani_ani_data,
        "fetch_qq_ani_data": fetch_qq_ani_data,
        "fetch_youku_ani_data": fetch_youku_ani_data,
        "fetch_agedm_ani_data": fetch_agedm_ani_data,
    }