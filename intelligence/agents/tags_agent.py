"""
Tags Agent
标签生成：清洗 → 评审 → 多轮竞速；始终以固定标记标签开头
"""

from __future__ import annotations

import logging
from typing import Iterable, List, Optional

from pydantic import BaseModel, Field

from intelligence.llm import StructuredLLM
from intelligence.race import CancellationFlag, CandidateOutcome, RaceScheduler
from models import (
    FORBIDDEN_TAG_CHARS,
    MAX_MACHINE_TAGS,
    SENTINEL_TAG,
    TAG_MAX_CHARS,
    ContentBundle,
    TagsResult,
)
from utils.exceptions import FatalUpstreamError

from .judge import Judge
from .prompting import SAFETY_BLOCK, content_prompt


logger = logging.getLogger(__name__)


MAX_ROUNDS = 3
CANDIDATES_PER_ROUND = 3
TAGS_CONTENT_CHARS = 10000

_FORBIDDEN_TABLE = str.maketrans("", "", FORBIDDEN_TAG_CHARS)

TAGS_SYSTEM_PROMPT = """<role>
You are a bookmark curator for Hatena Bookmark. Generate relevant tags.
</role>

<rules>
- Generate 3-5 tags (maximum 10)
- Each tag must be 10 characters or less
- Forbidden characters: ? / % [ ] :
- Match content language: Japanese content → Japanese tags, English → English
- STRONGLY prefer reusing existing tags when they fit
- Include both topic tags (what) and type tags (tutorial, news, tool, etc.)
- If previous feedback is given, fix every point it raises
</rules>

<existing_tags>
{existing}
</existing_tags>

{safety}"""


class TagsDraft(BaseModel):
    tags: List[str] = Field(default_factory=list, description="Relevant tags, 3-10 items, each max 10 characters")


def sanitize_tags(raw_tags: Iterable[str]) -> List[str]:
    """
    清洗模型输出的标签

    去掉禁用字符和首尾空白，丢弃空标签、超长标签和保留标记，
    大小写不敏感去重 (保留首次出现)，最多保留 10 个。
    """
    cleaned: List[str] = []
    seen = set()
    for raw in raw_tags or []:
        tag = str(raw or "").translate(_FORBIDDEN_TABLE).strip()
        if not tag or len(tag) > TAG_MAX_CHARS or tag == SENTINEL_TAG:
            continue
        key = tag.casefold()
        if key in seen:
            continue
        seen.add(key)
        cleaned.append(tag)
        if len(cleaned) >= MAX_MACHINE_TAGS:
            break
    return cleaned


def with_sentinel(tags: Iterable[str]) -> List[str]:
    return [SENTINEL_TAG] + [t for t in tags if t != SENTINEL_TAG]


class TagsAgent:
    """
    标签生成器

    与摘要相同的轮次结构，但每轮使用新的取消标记。
    全部轮次耗尽时退化为只有标记标签的列表。
    """

    def __init__(
        self,
        llm: StructuredLLM,
        judge: Judge,
        *,
        max_rounds: int = MAX_ROUNDS,
        candidates_per_round: int = CANDIDATES_PER_ROUND,
        scheduler: Optional[RaceScheduler] = None,
    ):
        self.llm = llm
        self.judge = judge
        self.max_rounds = max(1, max_rounds)
        self.candidates_per_round = max(1, candidates_per_round)
        self.scheduler = scheduler or RaceScheduler("Tags")

    async def generate(self, bundle: ContentBundle) -> TagsResult:
        feedback = ""
        drafts = 0

        for round_index in range(self.max_rounds):
            final_round = round_index == self.max_rounds - 1
            factories = [
                self._candidate(bundle, feedback, judged=not final_round)
                for _ in range(self.candidates_per_round)
            ]
            outcome = await self.scheduler.race(factories, CancellationFlag())
            drafts += outcome.drafts

            if outcome.has_winner:
                logger.info(f"[Tags] Round {round_index + 1} produced {len(outcome.winner)} tags")
                return TagsResult(tags=with_sentinel(outcome.winner))

            feedback = outcome.feedback
            logger.info(f"[Tags] Round {round_index + 1} exhausted: {feedback[:120]}")

        if drafts == 0:
            raise FatalUpstreamError(
                "Tags generation failed in every round",
                {"rounds": self.max_rounds, "feedback": feedback},
            )

        logger.warning("[Tags] All rounds exhausted, falling back to sentinel only")
        return TagsResult(tags=[SENTINEL_TAG])

    def _candidate(self, bundle: ContentBundle, feedback: str, *, judged: bool):
        async def run(flag: CancellationFlag) -> CandidateOutcome[List[str]]:
            draft = await self._draft(bundle, feedback)
            flag.checkpoint()
            tags = sanitize_tags(draft.tags)
            if not tags:
                return CandidateOutcome(value=tags, passed=False, reason="No usable tags after sanitizing.")
            if not judged:
                return CandidateOutcome(value=tags, passed=True)

            verdict = await self.judge.judge_tags(tags, bundle)
            return CandidateOutcome(value=tags, passed=verdict.passed, reason=verdict.reason)

        return run

    async def _draft(self, bundle: ContentBundle, feedback: str) -> TagsDraft:
        existing = ", ".join(bundle.existing_tags) if bundle.existing_tags else "(none)"
        system = TAGS_SYSTEM_PROMPT.format(existing=existing, safety=SAFETY_BLOCK)
        prompt = content_prompt(
            "Analyze this page and generate tags.",
            bundle,
            fields=("title", "keywords", "og_type", "lang"),
            max_markdown_chars=TAGS_CONTENT_CHARS,
            feedback=feedback,
        )
        return await self.llm.generate(system, prompt, TagsDraft)
