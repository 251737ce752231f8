"""
Annotation Pipeline
PipelineInput → [4 个抓取组件并行] → ContentMerger → [摘要 ∥ 标签] → ResultMerger → Suggestion

调用方只会得到完整的 Suggestion，或者一个致命异常。
"""

from __future__ import annotations

import asyncio
import logging
from typing import Optional

from bookmarks.comment import format_comment
from bookmarks.tags_retriever import TagsRetriever
from config import Settings, get_settings
from fetchers import MarkdownFetcher, MetadataFetcher, TwitterFetcher
from intelligence.agents import (
    ContextModerator,
    Judge,
    SummaryAgent,
    TagsAgent,
    WebContextFetcher,
)
from intelligence.llm import OpenAILLM, get_llm, get_structured_llm, is_grok_configured
from models import (
    ContentBundle,
    MarkdownResult,
    PageMetadata,
    PipelineInput,
    Suggestion,
    SummaryResult,
    TagsResult,
)
from utils.url_tools import clean_url


logger = logging.getLogger(__name__)


def merge_content(
    pipeline_input: PipelineInput,
    markdown: MarkdownResult,
    metadata: PageMetadata,
    web_context: Optional[str],
) -> ContentBundle:
    """纯合并，无 I/O"""
    return ContentBundle(
        url=pipeline_input.url,
        existing_tags=list(pipeline_input.existing_tags),
        markdown=markdown.markdown,
        metadata=metadata,
        web_context=web_context or None,
        user_context=pipeline_input.user_context,
    )


def merge_results(summary: SummaryResult, tags: TagsResult) -> Suggestion:
    """纯合并，附带 "[tag1][tag2]summary" 格式的评论"""
    return Suggestion(
        summary=summary.summary,
        tags=list(tags.tags),
        web_context=summary.web_context,
        canonical_url=summary.canonical_url,
        formatted_comment=format_comment(tags.tags, summary.summary),
    )


class AnnotationPipeline:
    """
    书签标注流水线

    所有外部协作方都通过构造函数注入；from_settings() 按配置组装默认实现。
    """

    def __init__(
        self,
        *,
        markdown_fetcher: MarkdownFetcher,
        metadata_fetcher: MetadataFetcher,
        moderator: ContextModerator,
        web_context_fetcher: WebContextFetcher,
        summary_agent: SummaryAgent,
        tags_agent: TagsAgent,
        fetch_timeout_sec: Optional[float] = None,
    ):
        self.markdown_fetcher = markdown_fetcher
        self.metadata_fetcher = metadata_fetcher
        self.moderator = moderator
        self.web_context_fetcher = web_context_fetcher
        self.summary_agent = summary_agent
        self.tags_agent = tags_agent
        self.fetch_timeout_sec = fetch_timeout_sec
        self._owned_llms = []

    @classmethod
    def from_settings(cls, settings: Optional[Settings] = None) -> "AnnotationPipeline":
        settings = settings or get_settings()
        llm_settings = settings.llm
        pipeline_settings = settings.pipeline

        llm_config = dict(llm_settings=llm_settings, grok_settings=settings.grok)
        structured_config = dict(llm_config, pipeline_settings=pipeline_settings)

        openai_llm = get_llm(provider="openai", model=llm_settings.web_search_model, **llm_config)
        if not isinstance(openai_llm, OpenAILLM):
            raise TypeError("moderation and web search require an OpenAI client")
        grok = get_llm(provider="grok", **llm_config) if is_grok_configured(settings.grok) else None

        twitter = TwitterFetcher(settings=settings, grok=grok)
        judge = Judge(get_structured_llm(model=llm_settings.judge_model, **structured_config))
        rounds = dict(
            max_rounds=pipeline_settings.max_rounds,
            candidates_per_round=pipeline_settings.candidates_per_round,
        )

        summary_llm = get_structured_llm(model=llm_settings.summary_model, **structured_config)
        tags_llm = get_structured_llm(model=llm_settings.tags_model, **structured_config)

        pipeline = cls(
            markdown_fetcher=MarkdownFetcher(settings=settings, twitter=twitter),
            metadata_fetcher=MetadataFetcher(settings=settings, twitter=twitter),
            moderator=ContextModerator(
                openai_llm,
                model=llm_settings.moderation_model,
                max_chars=pipeline_settings.moderation_max_chars,
            ),
            web_context_fetcher=WebContextFetcher(
                openai_llm,
                grok,
                search_model=llm_settings.web_search_model,
                max_chars=pipeline_settings.web_context_max_chars,
            ),
            summary_agent=SummaryAgent(summary_llm, judge, **rounds),
            tags_agent=TagsAgent(tags_llm, judge, **rounds),
            fetch_timeout_sec=pipeline_settings.fetch_timeout_sec,
        )
        pipeline._owned_llms = [openai_llm, grok, judge.llm.llm, summary_llm.llm, tags_llm.llm]
        return pipeline

    async def run(self, pipeline_input: PipelineInput) -> Suggestion:
        url = clean_url(pipeline_input.url)
        if url != pipeline_input.url:
            pipeline_input = pipeline_input.model_copy(update={"url": url})
        logger.info(f"[Pipeline] Annotating {url}")

        bundle = await self._fetch_stage(pipeline_input)
        logger.info(
            f"[Pipeline] Content merged: markdown={len(bundle.markdown)} chars, "
            f"web_context={'yes' if bundle.web_context else 'no'}"
        )

        summary, tags = await self._generation_stage(bundle)
        return merge_results(summary, tags)

    async def run_for_user(
        self,
        url: str,
        retriever: TagsRetriever,
        user_context: Optional[str] = None,
    ) -> Suggestion:
        """先取用户已有标签再运行；标签获取失败时不会产生任何 Suggestion"""
        existing_tags = await retriever.fetch_tags()
        return await self.run(
            PipelineInput(url=url, existing_tags=existing_tags, user_context=user_context)
        )

    async def _fetch_stage(self, pipeline_input: PipelineInput) -> ContentBundle:
        url = pipeline_input.url
        moderation = asyncio.create_task(self.moderator.check(pipeline_input.user_context))
        fetches = asyncio.gather(
            self._bounded(self.markdown_fetcher.fetch(url), MarkdownResult(error="timeout"), "markdown"),
            self._bounded(self.metadata_fetcher.fetch(url), PageMetadata(), "metadata"),
            self._bounded(self.web_context_fetcher.fetch(url), None, "web context"),
        )

        try:
            # 审核失败时立即终止，不等待其余抓取
            await moderation
        except BaseException:
            fetches.cancel()
            await asyncio.gather(fetches, return_exceptions=True)
            raise

        markdown, metadata, web_context = await fetches
        return merge_content(pipeline_input, markdown, metadata, web_context)

    async def _bounded(self, coro, fallback, label: str):
        if self.fetch_timeout_sec is None:
            return await coro
        try:
            return await asyncio.wait_for(coro, timeout=self.fetch_timeout_sec)
        except asyncio.TimeoutError:
            logger.warning(f"[Pipeline] {label} fetch timed out after {self.fetch_timeout_sec:.0f}s")
            return fallback

    async def _generation_stage(self, bundle: ContentBundle):
        summary_task = asyncio.create_task(self.summary_agent.generate(bundle))
        tags_task = asyncio.create_task(self.tags_agent.generate(bundle))
        try:
            return await asyncio.gather(summary_task, tags_task)
        except BaseException:
            for task in (summary_task, tags_task):
                if not task.done():
                    task.cancel()
            await asyncio.gather(summary_task, tags_task, return_exceptions=True)
            raise

    async def aclose(self) -> None:
        await self.markdown_fetcher.close()
        await self.metadata_fetcher.close()
        for llm in self._owned_llms:
            if llm is not None:
                await llm.aclose()
