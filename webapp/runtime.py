"""Shared pipeline instance for the web/CLI entrypoints."""

from __future__ import annotations

from functools import lru_cache

from intelligence.pipeline import AnnotationPipeline


@lru_cache()
def get_pipeline() -> AnnotationPipeline:
    return AnnotationPipeline.from_settings()
