import asyncio
import logging
from types import MappingProxyType
from typing import Dict, List, Mapping, Optional, Tuple, Type

import httpx

from .models import UnifiedMedia
from .scrapers.bahamut import BahamutScraper
from .scrapers.base import BaseScraper
from .scrapers.bilibili import BilibiliScraper
from .scrapers.iqiyi import IqiyiScraper

logger = logging.getLogger(__name__)

# 所有可用的弹幕源，顺序即搜索结果的拼接顺序
PROVIDERS: Tuple[Type[BaseScraper], ...] = (
    BilibiliScraper,
    IqiyiScraper,
    BahamutScraper,
)


class ProviderNotFoundError(KeyError):
    """没有名称完全匹配的弹幕源。"""


class ScraperManager:
    """
    弹幕源注册表。每个弹幕源在启动时实例化一次，之后只读。
    """

    def __init__(
        self,
        providers: Tuple[Type[BaseScraper], ...] = PROVIDERS,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        scrapers: Dict[str, BaseScraper] = {}
        for scraper_class in providers:
            if scraper_class.provider_name in scrapers:
                logger.warning(f"发现重复的弹幕源 '{scraper_class.provider_name}'，将被覆盖。")
            scrapers[scraper_class.provider_name] = scraper_class(transport=transport)
            logger.info(f"已加载弹幕源 '{scraper_class.provider_name}' (分类: {', '.join(scraper_class.categories)})。")
        self.scrapers: Mapping[str, BaseScraper] = MappingProxyType(scrapers)

    @property
    def provider_names(self) -> List[str]:
        return list(self.scrapers)

    def get_scraper(self, provider: str) -> BaseScraper:
        """通过名称获取指定的弹幕源实例。"""
        scraper = self.scrapers.get(provider)
        if not scraper:
            raise ProviderNotFoundError(provider)
        return scraper

    async def search_all(self, keyword: str) -> List[UnifiedMedia]:
        """在所有弹幕源上并发搜索，单个弹幕源失败时贡献空列表。"""
        scrapers = list(self.scrapers.values())
        results = await asyncio.gather(*(s.search(keyword) for s in scrapers), return_exceptions=True)

        all_results: List[UnifiedMedia] = []
        for scraper, result in zip(scrapers, results):
            if isinstance(result, Exception):
                logger.error(f"[{scraper.provider_name}] 搜索任务中出现错误: {result}")
            elif result:
                all_results.extend(result)
        return all_results

    async def close_all(self):
        """关闭所有弹幕源的客户端。"""
        tasks = [scraper.close() for scraper in self.scrapers.values()]
        await asyncio.gather(*tasks, return_exceptions=True)
