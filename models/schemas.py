"""
Data Models / Schemas
定义标注流水线的统一数据结构
"""
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, Field, field_validator

from utils.url_tools import is_http_url


SENTINEL_TAG = "AI要約"
SUMMARY_MAX_CHARS = 100
TAG_MAX_CHARS = 10
MIN_MACHINE_TAGS = 3
MAX_MACHINE_TAGS = 10
FORBIDDEN_TAG_CHARS = "?/%[]:"


class MarkdownSource(str, Enum):
    """Markdown 来源"""
    TWITTER_X_API = "twitter-x-api"
    TWITTER_GROK = "twitter-grok"
    TWITTER_OEMBED = "twitter-oembed"
    RENDER = "render"
    NONE = "none"


class PipelineInput(BaseModel):
    """流水线输入"""
    url: str = Field(..., description="书签 URL (http/https)")
    existing_tags: List[str] = Field(default_factory=list, description="用户已有标签")
    user_context: Optional[str] = Field(None, description="用户补充说明")

    @field_validator("url", mode="before")
    @classmethod
    def _absolute_http_url(cls, value) -> str:
        text = str(value or "").strip()
        if not is_http_url(text):
            raise ValueError("url must be an absolute http(s) URL")
        return text

    @field_validator("user_context", mode="before")
    @classmethod
    def _optional_text(cls, value) -> Optional[str]:
        text = str(value or "").strip()
        return text or None


class PageMetadata(BaseModel):
    """页面元数据 (规范化后)"""
    title: Optional[str] = None
    description: Optional[str] = None
    lang: Optional[str] = None
    og_type: Optional[str] = None
    site_name: Optional[str] = None
    keywords: Optional[str] = None
    author: Optional[str] = None
    canonical_url: Optional[str] = None

    def is_empty(self) -> bool:
        return not any(self.model_dump().values())


class MarkdownResult(BaseModel):
    """Markdown 抓取结果 (可能为空)"""
    markdown: str = ""
    source: MarkdownSource = MarkdownSource.NONE
    error: Optional[str] = None


class ContentBundle(BaseModel):
    """抓取阶段合并后的内容，供生成阶段消费"""
    url: str
    existing_tags: List[str] = Field(default_factory=list)
    markdown: str = ""
    metadata: PageMetadata = Field(default_factory=PageMetadata)
    web_context: Optional[str] = None
    user_context: Optional[str] = None


class JudgeVerdict(BaseModel):
    """评审结论 (原子的，不存在部分通过)"""
    passed: bool
    reason: str = ""


class SummaryResult(BaseModel):
    summary: str = ""
    web_context: Optional[str] = None
    canonical_url: Optional[str] = None


class TagsResult(BaseModel):
    tags: List[str] = Field(default_factory=lambda: [SENTINEL_TAG])


class Suggestion(BaseModel):
    """最终输出"""
    summary: str = Field(..., max_length=SUMMARY_MAX_CHARS)
    tags: List[str] = Field(..., min_length=1)
    web_context: Optional[str] = None
    canonical_url: Optional[str] = None
    formatted_comment: str = ""

    @field_validator("tags")
    @classmethod
    def _sentinel_first(cls, value: List[str]) -> List[str]:
        if not value or value[0] != SENTINEL_TAG:
            raise ValueError(f"tags must start with {SENTINEL_TAG}")
        if value.count(SENTINEL_TAG) != 1:
            raise ValueError("sentinel tag must appear exactly once")
        return value
