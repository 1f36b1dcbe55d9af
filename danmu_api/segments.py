"""
分段弹幕的计划与并发获取。

平台把一集的弹幕按固定时长切成若干分段 (segment)，每段单独请求。
这里负责两件事:
1. 根据视频时长计算需要请求的分段序号 (从 1 开始)。
2. 在固定并发上限内获取所有分段，单个分段失败只影响它自己。
"""
import asyncio
import logging
import math
from typing import Awaitable, Callable, List, Optional, Sequence, Tuple, TypeVar

T = TypeVar("T")

logger = logging.getLogger(__name__)


def plan_segments(duration_seconds: float, window_seconds: int) -> List[int]:
    """
    返回 [1, 2, ..., ceil(duration / window)]。
    时长为 0 时也至少返回 [1]，部分平台即使时长为 0 也有一个分段。
    """
    if window_seconds <= 0:
        raise ValueError(f"window_seconds 必须为正数，收到 {window_seconds}")
    count = max(1, math.ceil(max(0, duration_seconds) / window_seconds))
    return list(range(1, count + 1))


async def fetch_all(
    indices: Sequence[int],
    concurrency: int,
    fetch_one: Callable[[int], Awaitable[T]],
    label: str = "segment",
) -> List[Tuple[int, Optional[T]]]:
    """
    以最多 concurrency 个并发任务执行 fetch_one，结果按 indices 的原始顺序返回。

    任何一个任务抛出的异常都会被记录并转换为 (index, None)，
    不会中断其他任务，也不会向调用方抛出。
    每次调用都会创建新的信号量，不同调用之间不共享任何状态。
    """
    semaphore = asyncio.Semaphore(max(1, concurrency))

    async def _run(index: int) -> Tuple[int, Optional[T]]:
        async with semaphore:
            try:
                return index, await fetch_one(index)
            except Exception as e:
                logger.warning(f"获取 {label} {index} 失败: {e!r}")
                return index, None

    return list(await asyncio.gather(*(_run(i) for i in indices)))
