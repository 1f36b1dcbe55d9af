import asyncio
import zlib
from typing import Callable, Dict, Union

import httpx
import pytest

from danmu_api.scrapers.proto.dm_dynamic import DanmakuElem, DmSegMobileReply

Route = Union[httpx.Response, Callable[[httpx.Request], httpx.Response]]


def make_transport(routes: Dict[str, Route]) -> httpx.MockTransport:
    """按 host + path 匹配请求，未登记的地址返回 404。"""
    def handler(request: httpx.Request) -> httpx.Response:
        route = routes.get(f"{request.url.host}{request.url.path}")
        if route is None:
            return httpx.Response(404, json={})
        if callable(route):
            return route(request)
        return route
    return httpx.MockTransport(handler)


@pytest.fixture
def mock_transport():
    return make_transport


@pytest.fixture
def run():
    """在新的事件循环里执行协程，并在结束后关闭 scraper。"""
    def _run(coro, scraper=None):
        async def _wrapped():
            try:
                return await coro
            finally:
                if scraper is not None:
                    await scraper.close()
        return asyncio.run(_wrapped())
    return _run


@pytest.fixture
def iqiyi_segment():
    def _make(*bullets: str) -> bytes:
        xml = "<danmu><data><entry><list>" + "".join(bullets) + "</list></entry></data></danmu>"
        return zlib.compress(xml.encode("utf-8"))
    return _make


@pytest.fixture
def bilibili_segment():
    def _make(*elems: dict) -> bytes:
        return DmSegMobileReply(elems=[DanmakuElem(**e) for e in elems]).SerializeToString()
    return _make
