import asyncio
import logging
from typing import List, Optional

from fastapi import APIRouter, Depends, Query, Request, status
from fastapi.responses import JSONResponse

from . import models
from .config import settings
from .log_manager import get_logs
from .scraper_manager import ProviderNotFoundError, ScraperManager
from .scrapers.base import EpisodeResolutionError

router = APIRouter()
logger = logging.getLogger(__name__)


async def get_scraper_manager(request: Request) -> ScraperManager:
    """依赖项：从应用状态获取 Scraper 管理器"""
    return request.app.state.scraper_manager


def _error(status_code: int, message: str) -> JSONResponse:
    body = models.ApiResponse(success=False, message=message)
    return JSONResponse(status_code=status_code, content=body.model_dump(exclude_none=True))


@router.get("/search", response_model=models.SearchResponse, summary="在所有弹幕源中搜索媒体")
async def search(
    keyword: Optional[str] = Query(None, description="搜索关键词"),
    manager: ScraperManager = Depends(get_scraper_manager),
):
    if not keyword or not keyword.strip():
        return _error(status.HTTP_400_BAD_REQUEST, 'Missing search query "keyword"')
    try:
        results = await asyncio.wait_for(manager.search_all(keyword), settings.api.request_timeout)
    except asyncio.TimeoutError:
        logger.error(f"搜索 '{keyword}' 超时 ({settings.api.request_timeout}s)")
        return _error(status.HTTP_504_GATEWAY_TIMEOUT, "Request timed out")
    return models.SearchResponse(data=results)


@router.get("/danmaku/{id}", response_model=models.DanmakuResponse, summary="获取分集弹幕")
async def get_danmaku(
    id: str,
    manager: ScraperManager = Depends(get_scraper_manager),
):
    """id 的格式为 '<provider>:<episodeId>'，例如 'bilibili:785548'。"""
    provider_name, _, episode_id = id.partition(":")
    if not provider_name or not episode_id:
        return _error(status.HTTP_400_BAD_REQUEST, "Invalid episode ID format")

    try:
        scraper = manager.get_scraper(provider_name)
    except ProviderNotFoundError:
        return _error(status.HTTP_404_NOT_FOUND, f'Provider "{provider_name}" not found')

    try:
        danmaku = await asyncio.wait_for(scraper.fetch_danmaku(episode_id), settings.api.request_timeout)
    except asyncio.TimeoutError:
        logger.error(f"[{provider_name}] 获取弹幕超时 (episode_id={episode_id})")
        return _error(status.HTTP_504_GATEWAY_TIMEOUT, "Request timed out")
    except EpisodeResolutionError as e:
        logger.error(f"[{provider_name}] failed: {e}")
        return _error(status.HTTP_500_INTERNAL_SERVER_ERROR, "Failed to get danmaku")
    return models.DanmakuResponse(data=danmaku)


@router.get("/logs", response_model=List[str], summary="最近的日志")
async def get_server_logs():
    return get_logs()
