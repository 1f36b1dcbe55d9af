import logging
import re
from abc import ABC, abstractmethod
from typing import Any, Awaitable, Callable, Dict, List, Optional, Tuple

import httpx

from .. import models
from ..config import settings
from ..normalizer import PlatformRules, normalize_all
from ..segments import fetch_all, plan_segments


class EpisodeResolutionError(Exception):
    """分集ID无效，或平台的分集信息接口没有返回可用数据。"""


_NUMERIC_ID_RE = re.compile(r"[0-9]+")


def parse_numeric_id(episode_id: str, label: str) -> int:
    """只接受 ASCII 数字组成的ID，其余一律视为分集解析失败。"""
    if not _NUMERIC_ID_RE.fullmatch(episode_id or ""):
        raise EpisodeResolutionError(f"Invalid {label} '{episode_id}'")
    return int(episode_id)


class BaseScraper(ABC):
    """
    所有弹幕源的抽象基类。
    每个弹幕源只对外提供两个操作: search 和 fetch_danmaku。
    平台之间的差异 (分段时长、位置表、颜色和时间单位) 由 rules 描述。
    """

    # 每个子类都必须覆盖这些类属性
    provider_name: str
    rules: PlatformRules
    categories: Tuple[str, ...] = ()
    # 获取分段时的最大并发数
    concurrency: int = 3

    def __init__(self, transport: Optional[httpx.AsyncBaseTransport] = None):
        self.logger = logging.getLogger(self.__class__.__name__)
        self.client = httpx.AsyncClient(
            headers=self.build_headers(),
            timeout=settings.http.timeout,
            follow_redirects=True,
            transport=transport,
        )

    def build_headers(self) -> Dict[str, str]:
        return {"User-Agent": settings.http.user_agent}

    async def close(self):
        """关闭 HTTP 客户端。"""
        await self.client.aclose()

    async def _get_json(self, url: str, **kwargs) -> Any:
        response = await self.client.get(url, **kwargs)
        response.raise_for_status()
        return response.json()

    async def search(self, keyword: str) -> List[models.UnifiedMedia]:
        """
        根据关键词搜索媒体。
        从不抛出异常: 关键词为空或请求失败时返回空列表。
        """
        if not keyword or not keyword.strip():
            return []
        try:
            results = await self._search(keyword.strip())
        except Exception as e:
            self.logger.error(f"{self.provider_name}: 搜索 '{keyword}' 失败: {e}", exc_info=True)
            return []
        self.logger.info(f"{self.provider_name}: 搜索 '{keyword}' 完成，找到 {len(results)} 个结果。")
        return results

    async def fetch_danmaku(self, episode_id: str) -> List[models.Danmaku]:
        """
        获取给定分集ID的全部弹幕。
        只有在分集信息解析失败时才会抛出 EpisodeResolutionError；
        解析成功后，分段的失败只会让结果变少，最坏情况为空列表。
        """
        records = await self._fetch_raw_comments(episode_id)
        danmaku = normalize_all(records, self.rules)
        self.logger.info(f"{self.provider_name}: 为 episode_id='{episode_id}' 获取了 {len(danmaku)} 条弹幕。")
        return danmaku

    async def _fetch_segmented(
        self,
        duration_seconds: float,
        fetch_segment: Callable[[int], Awaitable[List[models.RawComment]]],
    ) -> List[models.RawComment]:
        """计划分段、并发获取并按分段顺序拼接 (不按时间排序)。"""
        indices = plan_segments(duration_seconds, self.rules.window_seconds)
        self.logger.debug(f"{self.provider_name}: 时长 {duration_seconds}s，共 {len(indices)} 个分段。")
        results = await fetch_all(indices, self.concurrency, fetch_segment, label=f"{self.provider_name} 弹幕分段")

        failed = [index for index, records in results if records is None]
        if failed:
            self.logger.warning(f"{self.provider_name}: {len(failed)}/{len(indices)} 个分段获取失败: {failed}")
        return [record for _, records in results if records for record in records]

    @abstractmethod
    async def _search(self, keyword: str) -> List[models.UnifiedMedia]:
        raise NotImplementedError

    @abstractmethod
    async def _fetch_raw_comments(self, episode_id: str) -> List[models.RawComment]:
        """解析分集并返回解码后、归一化前的原始弹幕。"""
        raise NotImplementedError
