import asyncio
import re
from typing import Dict, List, Optional

import httpx
from pydantic import BaseModel

from .. import models
from ..config import settings
from ..normalizer import BOTTOM, TOP, PlatformRules
from .base import BaseScraper, EpisodeResolutionError, parse_numeric_id
from .proto.dm_dynamic import DmSegMobileReply

DEFAULT_COOKIE = "enable_web_push=DISABLE; header_theme_version=CLOSE; enable_feed_channel=ENABLE; home_feed_column=5;"

# --- Pydantic Models for Bilibili API ---

class BiliSearchEpisode(BaseModel):
    id: int
    title: str = ""
    index_title: str = ""
    long_title: str = ""

class BiliSearchMedia(BaseModel):
    title: str
    cover: Optional[str] = None
    season_id: Optional[int] = None
    media_id: Optional[int] = None
    eps: Optional[List[BiliSearchEpisode]] = None

class BiliSearchData(BaseModel):
    result: Optional[List[BiliSearchMedia]] = None

class BiliSearchResult(BaseModel):
    code: int = 0
    data: Optional[BiliSearchData] = None

class BiliSeasonEpisode(BaseModel):
    id: int
    cid: Optional[int] = None
    # 毫秒
    duration: Optional[int] = None

class BiliSeasonData(BaseModel):
    episodes: Optional[List[BiliSeasonEpisode]] = None

class BiliSeasonResult(BaseModel):
    result: Optional[BiliSeasonData] = None


# --- Protobuf 分段的解码 ---

def parse_danmaku_segment(data: bytes) -> List[models.RawComment]:
    """
    解析一个 seg.so 分段 (DmSegMobileReply)，丢弃内容为空的弹幕。
    数据损坏时抛出 google.protobuf.message.DecodeError。
    """
    reply = DmSegMobileReply.FromString(data)
    return [
        models.RawComment(
            content=elem.content,
            time=elem.progress,
            color=elem.color,
            position=elem.mode,
            user=str(elem.id),
        )
        for elem in reply.elems
        if elem.content
    ]


_HTML_TAG_RE = re.compile(r"<[^>]+>")


# --- Main Scraper Class ---

class BilibiliScraper(BaseScraper):
    provider_name = "bilibili"
    categories = ("anime",)
    concurrency = 3
    rules = PlatformRules(
        name="bilibili",
        window_seconds=360,
        positions={4: TOP, 5: BOTTOM},
        color_encoding="decimal",
        time_unit="milliseconds",
    )

    def build_headers(self) -> Dict[str, str]:
        headers = super().build_headers()
        headers["Cookie"] = settings.bilibili.cookie or DEFAULT_COOKIE
        return headers

    async def _search(self, keyword: str) -> List[models.UnifiedMedia]:
        response_json = await self._get_json(
            "https://api.bilibili.com/x/web-interface/search/type",
            params={"search_type": "media_bangumi", "keyword": keyword},
        )
        api_result = BiliSearchResult.model_validate(response_json)
        if api_result.code != 0:
            self.logger.warning(f"Bilibili: 搜索接口返回错误 Code={api_result.code}")
        if not api_result.data or not api_result.data.result:
            return []

        return [
            models.UnifiedMedia(
                provider=self.provider_name,
                title=_HTML_TAG_RE.sub("", item.title),
                cover=item.cover,
                episodes=[
                    models.Episode(
                        id=str(ep.id),
                        title=ep.long_title or ep.title,
                        ordinal=ep.index_title,
                    ) for ep in item.eps or []
                ],
            )
            for item in api_result.data.result
        ]

    async def _get_episode_info(self, episode_id: str) -> BiliSeasonEpisode:
        """通过番剧季度接口查询分集的 cid 和时长。"""
        ep_id = parse_numeric_id(episode_id, "[Bilibili] ep_id")
        try:
            response_json = await self._get_json(
                "https://api.bilibili.com/pgc/view/web/season", params={"ep_id": ep_id}
            )
            data = BiliSeasonResult.model_validate(response_json)
        except (httpx.HTTPError, ValueError) as e:
            raise EpisodeResolutionError(f"[Bilibili] Failed to fetch series details for ep_id={episode_id}: {e}") from e

        episodes = data.result.episodes if data.result and data.result.episodes else []
        episode = next((e for e in episodes if e.id == ep_id), None)
        if not episode or not episode.cid or not episode.duration:
            raise EpisodeResolutionError(f"[Bilibili] Failed to fetch series details for ep_id={episode_id}")
        return episode

    async def _fetch_segment(self, episode_id: str, cid: int, segment_index: int) -> List[models.RawComment]:
        response = await self.client.get(
            "https://api.bilibili.com/x/v2/dm/web/seg.so",
            params={"type": 1, "oid": cid, "segment_index": segment_index},
            headers={"Referer": f"https://www.bilibili.com/bangumi/play/ep{episode_id}"},
        )
        response.raise_for_status()
        # Protobuf 解析大分段时是 CPU 密集的，放到线程里避免阻塞事件循环
        return await asyncio.to_thread(parse_danmaku_segment, response.content)

    async def _fetch_raw_comments(self, episode_id: str) -> List[models.RawComment]:
        episode = await self._get_episode_info(episode_id)
        return await self._fetch_segmented(
            episode.duration / 1000,
            lambda index: self._fetch_segment(episode_id, episode.cid, index),
        )
