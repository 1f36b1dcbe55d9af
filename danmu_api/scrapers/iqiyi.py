import asyncio
import re
import zlib
from typing import ClassVar, List, Optional

import httpx
from pydantic import BaseModel, Field

from .. import models
from ..normalizer import BOTTOM, SCROLL, TOP, WHITE, PlatformRules
from .base import BaseScraper, EpisodeResolutionError

# --- Pydantic Models for iQiyi API ---

class IqiyiSearchVideoInfo(BaseModel):
    tv_id: int = Field(alias="tvId")
    item_number: Optional[int] = Field(None, alias="itemNumber")
    sub_title: Optional[str] = Field(None, alias="subTitle")

class IqiyiSearchAlbumInfo(BaseModel):
    album_title: str = Field("", alias="albumTitle")
    album_img: Optional[str] = Field(None, alias="albumImg")
    site_id: Optional[str] = Field(None, alias="siteId")
    channel: str = ""
    videoinfos: List[IqiyiSearchVideoInfo] = []

    @property
    def channel_name(self) -> str:
        return self.channel.split(',')[0]

class IqiyiAlbumDoc(BaseModel):
    album_doc_info: Optional[IqiyiSearchAlbumInfo] = Field(None, alias="albumDocInfo")

class IqiyiSearchDoc(BaseModel):
    docinfos: List[IqiyiAlbumDoc] = []

class IqiyiSearchResult(BaseModel):
    data: Optional[IqiyiSearchDoc] = None

class IqiyiBaseInfo(BaseModel):
    tv_id: Optional[int] = Field(None, alias="tvId")
    duration_sec: Optional[int] = Field(None, alias="durationSec")

class IqiyiBaseInfoResult(BaseModel):
    data: Optional[IqiyiBaseInfo] = None


# --- 压缩 XML 弹幕的解码 ---

_BULLET_RE = re.compile(r"<bulletInfo>([\s\S]*?)</bulletInfo>")
_TAG_RES = {
    tag: re.compile(rf"<{tag}>(.*?)</{tag}>")
    for tag in ("content", "name", "showTime", "color", "position")
}


def decompress_segment(data: bytes) -> str:
    """解压 .z 分段 (zlib 格式的 deflate 流)。损坏的数据会抛出 zlib.error。"""
    return zlib.decompress(data).decode("utf-8", errors="replace")


def _get_tag(bullet: str, tag: str) -> Optional[str]:
    match = _TAG_RES[tag].search(bullet)
    return match.group(1) if match else None


def parse_danmaku_xml(xml: str, default_user: str = "iqiyi") -> List[models.RawComment]:
    """
    从 XML 文本中逐个提取 <bulletInfo> 块。
    返回的数据并不总是合法的 XML，所以这里不用 XML 解析器，
    而是对每个字段单独做正则匹配，缺失的字段使用默认值。
    """
    comments = []
    for match in _BULLET_RE.finditer(xml):
        bullet = match.group(1)
        content = _get_tag(bullet, "content")
        name = _get_tag(bullet, "name")
        comments.append(models.RawComment(
            content=(content or "").strip(),
            user=(name or "").strip() or default_user,
            time=_get_tag(bullet, "showTime") or "0",
            color=_get_tag(bullet, "color") or WHITE,
            position=_get_tag(bullet, "position") or "0",
        ))
    return comments


# --- Main Scraper Class ---

class IqiyiScraper(BaseScraper):
    provider_name = "iqiyi"
    categories = ("media",)
    # 每个分段都很小，所以并发可以高一些
    concurrency = 9
    rules = PlatformRules(
        name="iqiyi",
        window_seconds=300,
        positions={0: SCROLL, 1: BOTTOM, 2: TOP},
        color_encoding="hex",
        time_unit="seconds",
    )
    SEARCH_CHANNELS: ClassVar[frozenset] = frozenset({"电视剧", "电影"})

    async def _search(self, keyword: str) -> List[models.UnifiedMedia]:
        response_json = await self._get_json(
            "https://search.video.iqiyi.com/o", params={"if": "html5", "key": keyword}
        )
        data = IqiyiSearchResult.model_validate(response_json)
        if not data.data:
            return []

        results = []
        for doc in data.data.docinfos:
            album = doc.album_doc_info
            if not album or album.site_id != "iqiyi" or album.channel_name not in self.SEARCH_CHANNELS:
                continue
            results.append(models.UnifiedMedia(
                provider=self.provider_name,
                title=album.album_title,
                cover=album.album_img,
                episodes=[
                    models.Episode(
                        id=str(video.tv_id),
                        title=video.sub_title or f"第{video.item_number}集",
                        ordinal=str(video.item_number),
                    ) for video in album.videoinfos
                ],
            ))
        return results

    async def _get_episode_info(self, episode_id: str) -> IqiyiBaseInfo:
        url = f"https://pcw-api.iqiyi.com/video/video/baseinfo/{episode_id}"
        try:
            data = IqiyiBaseInfoResult.model_validate(await self._get_json(url))
        except (httpx.HTTPError, ValueError) as e:
            raise EpisodeResolutionError(f"[iQIYI] Failed to fetch video info for tvid={episode_id}: {e}") from e
        if not data.data:
            raise EpisodeResolutionError(f"[iQIYI] Failed to fetch video info for tvid={episode_id}")
        return data.data

    async def _fetch_segment(self, vid: str, segment_index: int) -> List[models.RawComment]:
        url = f"https://cmts.iqiyi.com/bullet/{vid[-4:-2]}/{vid[-2:]}/{vid}_{self.rules.window_seconds}_{segment_index}.z"
        response = await self.client.get(url, headers={"Accept-Encoding": "gzip"})
        response.raise_for_status()

        try:
            xml = await asyncio.to_thread(decompress_segment, response.content)
        except zlib.error:
            self.logger.warning(f"爱奇艺: 解压 vid {vid} 的弹幕分段 {segment_index} 失败，文件可能为空或已损坏。")
            return []
        return parse_danmaku_xml(xml, default_user=self.provider_name)

    async def _fetch_raw_comments(self, episode_id: str) -> List[models.RawComment]:
        info = await self._get_episode_info(episode_id)
        vid = str(info.tv_id or episode_id)
        duration = info.duration_sec or 0
        return await self._fetch_segmented(duration, lambda index: self._fetch_segment(vid, index))
