"""
Bookmarks Module
Hatena Bookmark 相关：已有标签获取、评论格式
"""
from .comment import (
    HATENA_BODY_LIMIT,
    calculate_body_size,
    format_comment,
    is_body_within_limit,
    parse_comment,
    remaining_comment_bytes,
)
from .tags_retriever import RequestSigner, TagsRetriever

__all__ = [
    "HATENA_BODY_LIMIT",
    "calculate_body_size",
    "format_comment",
    "is_body_within_limit",
    "parse_comment",
    "remaining_comment_bytes",
    "RequestSigner",
    "TagsRetriever",
]
