"""
Fetchers Module
抓取阶段的叶子组件：Markdown / 元数据 / 推文
"""
from .base import BaseFetcher
from .twitter import TwitterFetcher
from .markdown_fetcher import MarkdownFetcher, looks_like_interstitial, MAX_MARKDOWN_CHARS
from .metadata_fetcher import MetadataFetcher, parse_metadata

__all__ = [
    "BaseFetcher",
    "TwitterFetcher",
    "MarkdownFetcher",
    "MetadataFetcher",
    "looks_like_interstitial",
    "parse_metadata",
    "MAX_MARKDOWN_CHARS",
]
