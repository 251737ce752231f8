"""
Summary Agent
摘要生成：多轮 × 多候选竞速 + 评审反馈
"""

from __future__ import annotations

import logging
from datetime import datetime, timedelta, timezone
from typing import Optional

from pydantic import BaseModel, Field

from intelligence.llm import StructuredLLM
from intelligence.race import CancellationFlag, CandidateOutcome, RaceScheduler
from models import SUMMARY_MAX_CHARS, ContentBundle, SummaryResult
from utils.exceptions import FatalUpstreamError

from .judge import Judge
from .prompting import SAFETY_BLOCK, content_prompt


logger = logging.getLogger(__name__)


MAX_ROUNDS = 3
CANDIDATES_PER_ROUND = 3

_JST = timezone(timedelta(hours=9))

SUMMARY_SYSTEM_PROMPT = """<context>
Current date and time: {now} (JST)
</context>

<role>
You are a bookmark curator for Hatena Bookmark. Generate a concise summary in Japanese.
</role>

<rules>
- Write in Japanese only
- Maximum 100 characters (full-width counts as 1)
- Capture the core value/insight of the content
- Be specific, not generic (avoid "について解説" patterns)
- Focus on what makes this content worth bookmarking
- If previous feedback is given, fix every point it raises
</rules>

{safety}"""


class SummaryDraft(BaseModel):
    summary: str = Field(..., description="Concise summary in Japanese, maximum 100 characters")


def truncate_summary(summary: str, limit: int = SUMMARY_MAX_CHARS) -> str:
    """硬截断；对已满足长度的字符串是恒等操作"""
    summary = summary.strip()
    if len(summary) <= limit:
        return summary
    return summary[:limit]


class SummaryAgent:
    """
    摘要生成器

    状态: Attempting(round) → Passed | Exhausted
    - 每轮通过 RaceScheduler 并行 K 个 "生成 + 评审" 候选
    - 最后一轮跳过评审，第一个完成的草稿原样采用
    - 全部轮次都无胜者时，使用最近一份非空草稿
    - 取消标记作用于整个生成器
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
        self.scheduler = scheduler or RaceScheduler("Summary")

    async def generate(self, bundle: ContentBundle) -> SummaryResult:
        flag = CancellationFlag()
        feedback = ""
        summary = ""
        fallback = ""
        drafts = 0

        for round_index in range(self.max_rounds):
            final_round = round_index == self.max_rounds - 1
            factories = [
                self._candidate(bundle, feedback, judged=not final_round)
                for _ in range(self.candidates_per_round)
            ]
            outcome = await self.scheduler.race(factories, flag)
            drafts += outcome.drafts
            if outcome.last_draft:
                fallback = outcome.last_draft

            if outcome.has_winner:
                summary = outcome.winner
                logger.info(f"[Summary] Round {round_index + 1} produced a winner")
                break

            feedback = outcome.feedback
            logger.info(f"[Summary] Round {round_index + 1} exhausted: {feedback[:120]}")

        if not summary and fallback:
            # 最终轮没有可用草稿时，退回最近一份被拒绝的草稿
            logger.warning("[Summary] No winner, falling back to the latest rejected draft")
            summary = fallback
        if not summary:
            raise FatalUpstreamError(
                "Summary generation produced no usable draft in any round",
                {"rounds": self.max_rounds, "drafts": drafts, "feedback": feedback},
            )

        return SummaryResult(
            summary=truncate_summary(summary),
            web_context=bundle.web_context,
            canonical_url=bundle.metadata.canonical_url,
        )

    def _candidate(self, bundle: ContentBundle, feedback: str, *, judged: bool):
        async def run(flag: CancellationFlag) -> CandidateOutcome[str]:
            draft = await self._draft(bundle, feedback)
            flag.checkpoint()
            text = draft.summary.strip()
            if not text:
                return CandidateOutcome(value=text, passed=False, reason="Summary is empty.")
            if not judged:
                return CandidateOutcome(value=text, passed=True)

            verdict = await self.judge.judge_summary(text, bundle)
            return CandidateOutcome(value=text, passed=verdict.passed, reason=verdict.reason)

        return run

    async def _draft(self, bundle: ContentBundle, feedback: str) -> SummaryDraft:
        system = SUMMARY_SYSTEM_PROMPT.format(
            now=datetime.now(_JST).strftime("%Y-%m-%d %H:%M:%S"),
            safety=SAFETY_BLOCK,
        )
        prompt = content_prompt(
            "Analyze this page and generate a summary.",
            bundle,
            fields=("title", "description", "site_name", "author", "lang"),
            feedback=feedback,
        )
        return await self.llm.generate(system, prompt, SummaryDraft)
