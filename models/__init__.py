"""
Data Models
"""
from .schemas import (
    FORBIDDEN_TAG_CHARS,
    MAX_MACHINE_TAGS,
    MIN_MACHINE_TAGS,
    SENTINEL_TAG,
    SUMMARY_MAX_CHARS,
    TAG_MAX_CHARS,
    ContentBundle,
    JudgeVerdict,
    MarkdownResult,
    MarkdownSource,
    PageMetadata,
    PipelineInput,
    Suggestion,
    SummaryResult,
    TagsResult,
)

__all__ = [
    "FORBIDDEN_TAG_CHARS",
    "MAX_MACHINE_TAGS",
    "MIN_MACHINE_TAGS",
    "SENTINEL_TAG",
    "SUMMARY_MAX_CHARS",
    "TAG_MAX_CHARS",
    "ContentBundle",
    "JudgeVerdict",
    "MarkdownResult",
    "MarkdownSource",
    "PageMetadata",
    "PipelineInput",
    "Suggestion",
    "SummaryResult",
    "TagsResult",
]
