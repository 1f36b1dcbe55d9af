import logging
import time

import uvicorn
from fastapi import FastAPI, Request

from .api import router
from .config import settings
from .log_manager import setup_logging
from .scraper_manager import ScraperManager

app = FastAPI(
    title="Danmaku API",
    description="聚合多个视频平台弹幕的统一接口",
    version="1.0.0",
)


@app.middleware("http")
async def log_requests(request: Request, call_next):
    """记录每个请求的方法、路径、状态码和耗时。"""
    start = time.perf_counter()
    response = await call_next(request)
    elapsed_ms = (time.perf_counter() - start) * 1000
    logging.getLogger(__name__).info(
        "%s %s -> %d (%.0fms)", request.method, request.url.path, response.status_code, elapsed_ms
    )
    return response


@app.on_event("startup")
async def startup_event():
    """应用启动时，初始化日志并创建 Scraper 管理器"""
    setup_logging()
    app.state.scraper_manager = ScraperManager()


@app.on_event("shutdown")
async def shutdown_event():
    """应用关闭时，关闭所有弹幕源的 HTTP 客户端"""
    if hasattr(app.state, "scraper_manager"):
        await app.state.scraper_manager.close_all()


app.include_router(router, prefix="/api", tags=["Danmaku"])


# 通过 `python -m danmu_api.main` 运行，使用配置中的端口和主机
if __name__ == "__main__":
    uvicorn.run(
        app,
        host=settings.server.host,
        port=settings.server.port
    )
