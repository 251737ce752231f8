"""
Agents Module
抓取阶段的审核/上下文组件 + 生成阶段的生成器与评审
"""
from .moderator import ContextModerator
from .web_context import WebContextFetcher
from .judge import Judge
from .summary_agent import SummaryAgent, truncate_summary
from .tags_agent import TagsAgent, sanitize_tags, with_sentinel

__all__ = [
    "ContextModerator",
    "WebContextFetcher",
    "Judge",
    "SummaryAgent",
    "TagsAgent",
    "truncate_summary",
    "sanitize_tags",
    "with_sentinel",
]
