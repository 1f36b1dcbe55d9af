"""
把各平台的原始弹幕换算为统一的 {text, meta} 结构。

meta 固定为 4 个逗号分隔的字段: 时间(秒, 两位小数),位置,颜色(十进制RGB),用户
位置只会是 1 (滚动)、4 (顶部) 或 5 (底部)。
"""
import math
from typing import Dict, Iterable, List, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict

from .models import Danmaku, RawComment

SCROLL = 1
TOP = 4
BOTTOM = 5

WHITE = 16777215

_TIME_DIVISORS = {
    "seconds": 1,
    "deciseconds": 10,
    "milliseconds": 1000,
}


class PlatformRules(BaseModel):
    """单个平台的换算规则。新增平台时只需提供一份新的规则。"""
    model_config = ConfigDict(frozen=True)

    name: str
    # 分段时长，没有分段的平台为 None
    window_seconds: Optional[int] = None
    positions: Dict[int, int] = {}
    color_encoding: Literal["hex", "decimal"] = "decimal"
    time_unit: Literal["seconds", "deciseconds", "milliseconds"] = "seconds"


def _to_int(value: Union[int, str, None]) -> Optional[int]:
    if isinstance(value, int):
        return value
    try:
        return int(str(value).strip())
    except (TypeError, ValueError):
        return None


def normalize_position(code: Union[int, str, None], positions: Dict[int, int]) -> int:
    """按平台的位置表换算，未知的位置一律视为滚动弹幕。"""
    return positions.get(_to_int(code), SCROLL)


def normalize_color(value: Union[int, str, None], encoding: str) -> int:
    """
    把颜色转换为十进制 RGB 整数。
    整数原样返回；字符串按平台编码解析 ('hex' 允许带 '#' 前缀)；无法解析时为白色。
    """
    if value is None or isinstance(value, bool):
        return WHITE
    if isinstance(value, int):
        return value
    text = str(value).strip()
    try:
        if encoding == "hex":
            return int(text.lstrip("#"), 16)
        return int(text)
    except ValueError:
        return WHITE


def to_seconds(value: Union[int, float, str, None], time_unit: str) -> float:
    try:
        seconds = float(value) / _TIME_DIVISORS[time_unit]
    except (TypeError, ValueError):
        return 0.0
    # NaN、无穷大和负数都按 0 处理
    return seconds if math.isfinite(seconds) and seconds > 0 else 0.0


def format_meta(seconds: float, position: int, color: int, user: str) -> str:
    # 用户字段中的逗号会破坏 4 字段的结构
    user = str(user).replace(",", "")
    return f"{seconds:.2f},{position},{color},{user}"


def normalize(record: RawComment, rules: PlatformRules) -> Danmaku:
    return Danmaku(
        text=record.content,
        meta=format_meta(
            to_seconds(record.time, rules.time_unit),
            normalize_position(record.position, rules.positions),
            normalize_color(record.color, rules.color_encoding),
            record.user,
        ),
    )


def normalize_all(records: Iterable[RawComment], rules: PlatformRules) -> List[Danmaku]:
    return [normalize(r, rules) for r in records]
