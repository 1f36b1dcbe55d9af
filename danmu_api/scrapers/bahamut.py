import logging
from typing import Any, Dict, List, Optional, Union

import httpx
from pydantic import BaseModel, Field, ValidationInfo, field_validator

from .. import models
from ..normalizer import BOTTOM, TOP, PlatformRules
from ..segments import fetch_all
from .base import BaseScraper, EpisodeResolutionError, parse_numeric_id

logger = logging.getLogger(__name__)

# --- Pydantic Models for Bahamut (巴哈姆特動畫瘋) API ---

class BahamutSearchItem(BaseModel):
    anime_sn: Optional[int] = None
    video_sn: int
    title: str = ""
    cover: Optional[str] = None

class BahamutSearchResult(BaseModel):
    anime: Optional[List[BahamutSearchItem]] = None

class BahamutSeriesEpisode(BaseModel):
    episode: Union[int, float, str]
    video_sn: int = Field(alias="videoSn")

class BahamutSeriesVideo(BaseModel):
    type: Optional[int] = None

class BahamutSeriesAnime(BaseModel):
    title: str = ""
    episode_index: Optional[int] = Field(None, alias="episodeIndex")
    episodes: Dict[str, List[BahamutSeriesEpisode]] = {}

class BahamutSeriesData(BaseModel):
    video: Optional[BahamutSeriesVideo] = None
    anime: Optional[BahamutSeriesAnime] = None

class BahamutSeriesResult(BaseModel):
    data: Optional[BahamutSeriesData] = None

    def episode_list(self) -> List[BahamutSeriesEpisode]:
        """当前视频所属类型 (本篇、特别篇等) 下的分集。"""
        if not self.data or not self.data.anime:
            return []
        key = self.data.video.type if self.data.video and self.data.video.type is not None else self.data.anime.episode_index
        return self.data.anime.episodes.get(str(key), [])

class BahamutDanmaku(BaseModel):
    """
    单条弹幕。接口偶尔返回 null 或数字类型的字段，
    这些字段回退为默认值 (或转成字符串)，弹幕本身保留。
    """
    text: str = ""
    color: Union[int, str, None] = None
    position: Union[int, str] = 0
    # 0.1 秒
    time: Union[int, float, str] = 0
    userid: str = ""

    @field_validator("*", mode="before")
    @classmethod
    def _default_malformed(cls, value: Any, info: ValidationInfo) -> Any:
        default = cls.model_fields[info.field_name].default
        if value is None or isinstance(value, (bool, dict, list)):
            return default
        if isinstance(default, str):
            return str(value)
        if isinstance(value, float) and info.field_name != "time":
            return int(value) if value.is_integer() else str(value)
        return value

class BahamutDanmakuData(BaseModel):
    danmu: List[Any] = []

class BahamutDanmakuResult(BaseModel):
    data: Optional[BahamutDanmakuData] = None


def parse_danmaku_json(payload: Any) -> List[models.RawComment]:
    """
    解析 danmu.php 的 JSON 响应。空内容的弹幕会被保留。
    只有外层结构不对时才抛出 ValidationError；逐条校验弹幕，
    不是对象的条目会被跳过，不影响其他弹幕。
    """
    result = BahamutDanmakuResult.model_validate(payload)
    if not result.data:
        return []

    comments = []
    for item in result.data.danmu:
        if not isinstance(item, dict):
            logger.warning(f"Bahamut: 跳过一条格式错误的弹幕: {item!r}")
            continue
        d = BahamutDanmaku.model_validate(item)
        comments.append(models.RawComment(
            content=d.text,
            time=d.time,
            color=d.color,
            position=d.position,
            user=d.userid,
        ))
    return comments


# --- Main Scraper Class ---

class BahamutScraper(BaseScraper):
    provider_name = "bahamut"
    categories = ("anime",)
    concurrency = 3
    rules = PlatformRules(
        name="bahamut",
        positions={1: BOTTOM, 2: TOP},
        color_encoding="hex",
        time_unit="deciseconds",
    )

    def build_headers(self) -> Dict[str, str]:
        return {"User-Agent": "Anime/2.29.2 (tw.com.gamer.anime; build:999; iOS 26.0.0)"}

    async def _get_series(self, video_sn: int) -> BahamutSeriesResult:
        response_json = await self._get_json(
            "https://api.gamer.com.tw/anime/v1/video.php", params={"videoSn": video_sn}
        )
        return BahamutSeriesResult.model_validate(response_json)

    async def _search(self, keyword: str) -> List[models.UnifiedMedia]:
        response_json = await self._get_json(
            "https://api.gamer.com.tw/mobile_app/anime/v1/search.php", params={"kw": keyword}
        )
        items = BahamutSearchResult.model_validate(response_json).anime or []
        if not items:
            return []

        # 搜索结果不含分集，需要逐个查询作品详情；查询失败的作品没有分集
        details = await fetch_all(
            list(range(len(items))),
            self.concurrency,
            lambda i: self._get_series(items[i].video_sn),
            label="Bahamut 作品详情",
        )

        results = []
        for item, (_, detail) in zip(items, details):
            episodes = detail.episode_list() if detail else []
            results.append(models.UnifiedMedia(
                provider=self.provider_name,
                title=item.title,
                cover=item.cover,
                episodes=[
                    models.Episode(id=str(ep.video_sn), title=f"第 {ep.episode} 集", ordinal=str(ep.episode))
                    for ep in episodes
                ],
            ))
        return results

    async def _fetch_raw_comments(self, episode_id: str) -> List[models.RawComment]:
        # 巴哈姆特的弹幕一次性返回，没有分段
        video_sn = parse_numeric_id(episode_id, "[Bahamut] videoSn")
        try:
            response_json = await self._get_json(
                "https://api.gamer.com.tw/anime/v1/danmu.php",
                params={"geo": "TW,HK", "videoSn": video_sn},
            )
            return parse_danmaku_json(response_json)
        except (httpx.HTTPError, ValueError) as e:
            raise EpisodeResolutionError(f"[Bahamut] Failed to fetch danmaku for videoSn={episode_id}: {e}") from e
