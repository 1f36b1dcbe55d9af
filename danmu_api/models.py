from typing import Generic, List, Optional, TypeVar, Union
from pydantic import BaseModel, Field

T = TypeVar("T")


# --- 统一的弹幕与媒体模型 ---
class Danmaku(BaseModel):
    """一条归一化后的弹幕。"""
    text: str = Field(..., description="弹幕内容")
    meta: str = Field(..., description="弹幕参数: time,position,color,user")


class Episode(BaseModel):
    """代表来自外部数据源的单个分集。"""
    id: str = Field(..., description="该数据源中的分集ID，供 fetch_danmaku 使用")
    title: str = Field(..., description="分集标题")
    ordinal: str = Field(..., description="分集序号或短标签, e.g., '2', 'EP02'")


class UnifiedMedia(BaseModel):
    """代表来自外部数据源的单个搜索结果。"""
    provider: str = Field(..., description="数据源提供方, e.g., 'bilibili', 'iqiyi'")
    title: str = Field(..., description="节目名称")
    cover: Optional[str] = Field(None, description="封面图片URL")
    episodes: List[Episode] = Field([], description="分集列表")


class RawComment(BaseModel):
    """
    解码后、归一化前的平台原始弹幕。
    time/color/position 保持平台原生的单位与编码，由 normalizer 负责换算。
    """
    content: str = ""
    time: Union[int, float, str] = 0
    color: Union[int, str, None] = None
    position: Union[int, str] = 0
    user: str = ""


# --- API 响应模型 ---
class ApiResponse(BaseModel, Generic[T]):
    success: bool = Field(True, description="请求是否成功")
    data: Optional[T] = Field(None, description="响应数据")
    message: Optional[str] = Field(None, description="失败时的错误信息")


class SearchResponse(ApiResponse[List[UnifiedMedia]]):
    pass


class DanmakuResponse(ApiResponse[List[Danmaku]]):
    pass
