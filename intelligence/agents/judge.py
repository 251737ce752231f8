"""
Judge
候选评审：确定性预检 + 一次结构化 LLM 评审

生成模型数不准字数，所以字数、每个标签长度等事实在这里先算好，
作为已知事实交给评审模型。
"""

from __future__ import annotations

import json
import logging
from typing import Any, Dict, List, Optional

from intelligence.llm import StructuredLLM
from models import (
    FORBIDDEN_TAG_CHARS,
    MAX_MACHINE_TAGS,
    MIN_MACHINE_TAGS,
    SENTINEL_TAG,
    SUMMARY_MAX_CHARS,
    TAG_MAX_CHARS,
    ContentBundle,
    JudgeVerdict,
)

from .prompting import SAFETY_BLOCK, content_prompt


logger = logging.getLogger(__name__)


SUMMARY_MIN_CHARS = 50
JUDGE_CONTENT_CHARS = 4000

_SUMMARY_JUDGE_SYSTEM_PROMPT = f"""<role>
You review a bookmark summary written for Hatena Bookmark. You do not rewrite it.
</role>

<criteria>
- Written in Japanese
- Between {SUMMARY_MIN_CHARS} and {SUMMARY_MAX_CHARS} characters (use the provided char_count, do not count yourself)
- Specific: names the concrete subject, claim, or finding of the page
- Generic phrasing such as "について解説" or "を紹介する記事" with no concrete content fails
- Faithful to the content; no invented facts
</criteria>

<output>
passed=true only if every criterion holds. Otherwise passed=false and reason is one or two
short sentences telling the writer exactly what to fix.
</output>

{SAFETY_BLOCK}"""

_TAGS_JUDGE_SYSTEM_PROMPT = f"""<role>
You review a tag list generated for a Hatena Bookmark entry. You do not rewrite it.
</role>

<criteria>
- {MIN_MACHINE_TAGS} to {MAX_MACHINE_TAGS} tags, each at most {TAG_MAX_CHARS} characters (use the provided facts)
- No tag contains any of: ? / % [ ] :
- No duplicates or near-duplicates (case or spelling variants of the same word)
- Tags match the content language (Japanese content -> Japanese tags, English -> English)
- Existing tags are reused where they fit
- Covers both topic (what it is about) and type (tutorial, news, tool, ...)
</criteria>

<output>
passed=true only if every criterion holds. Otherwise passed=false and reason is one or two
short sentences telling the writer exactly what to fix.
</output>

{SAFETY_BLOCK}"""


# ============ 预计算事实 ============

def summary_facts(summary: str) -> Dict[str, Any]:
    return {"char_count": len(summary)}


def tags_facts(tags: List[str]) -> Dict[str, Any]:
    seen = set()
    duplicates = []
    for tag in tags:
        key = tag.casefold()
        if key in seen:
            duplicates.append(tag)
        seen.add(key)
    return {
        "count": len(tags),
        "lengths": {tag: len(tag) for tag in tags},
        "forbidden_hits": [tag for tag in tags if any(c in tag for c in FORBIDDEN_TAG_CHARS)],
        "duplicates": duplicates,
    }


def precheck_summary(summary: str) -> Optional[str]:
    """硬性规则，不通过时无需调用 LLM"""
    count = len(summary.strip())
    if count == 0:
        return "Summary is empty."
    if count > SUMMARY_MAX_CHARS:
        return f"Summary is {count} characters; it must be at most {SUMMARY_MAX_CHARS}."
    if count < SUMMARY_MIN_CHARS:
        return f"Summary is only {count} characters; write at least {SUMMARY_MIN_CHARS} with concrete details."
    return None


def precheck_tags(tags: List[str]) -> Optional[str]:
    facts = tags_facts(tags)
    if facts["count"] < MIN_MACHINE_TAGS:
        return f"Only {facts['count']} usable tags; give {MIN_MACHINE_TAGS}-{MAX_MACHINE_TAGS}."
    if facts["count"] > MAX_MACHINE_TAGS:
        return f"{facts['count']} tags is too many; give at most {MAX_MACHINE_TAGS}."
    too_long = [t for t, n in facts["lengths"].items() if n > TAG_MAX_CHARS]
    if too_long:
        return f"Tags longer than {TAG_MAX_CHARS} characters: {', '.join(too_long)}."
    if facts["forbidden_hits"]:
        return f"Tags contain forbidden characters: {', '.join(facts['forbidden_hits'])}."
    if facts["duplicates"]:
        return f"Duplicate tags: {', '.join(facts['duplicates'])}."
    if any(t == SENTINEL_TAG for t in tags):
        return f"Do not output the reserved tag {SENTINEL_TAG}."
    return None


class Judge:
    """无状态评审器；每次评审最多一次 LLM 调用"""

    def __init__(self, llm: StructuredLLM):
        self.llm = llm

    async def judge_summary(self, summary: str, bundle: ContentBundle) -> JudgeVerdict:
        reason = precheck_summary(summary)
        if reason:
            return JudgeVerdict(passed=False, reason=reason)

        prompt = self._prompt(
            "Judge this summary.",
            bundle,
            candidate={"summary": summary},
            facts=summary_facts(summary),
            fields=("title", "description", "site_name", "lang"),
        )
        return await self._evaluate(_SUMMARY_JUDGE_SYSTEM_PROMPT, prompt)

    async def judge_tags(self, tags: List[str], bundle: ContentBundle) -> JudgeVerdict:
        reason = precheck_tags(tags)
        if reason:
            return JudgeVerdict(passed=False, reason=reason)

        existing = ", ".join(bundle.existing_tags) or "(none)"
        prompt = self._prompt(
            f"Judge this tag list.\nExisting tags: {existing}",
            bundle,
            candidate={"tags": tags},
            facts=tags_facts(tags),
            fields=("title", "keywords", "og_type", "lang"),
        )
        return await self._evaluate(_TAGS_JUDGE_SYSTEM_PROMPT, prompt)

    @staticmethod
    def _prompt(task, bundle, *, candidate, facts, fields) -> str:
        return (
            content_prompt(task, bundle, fields=fields, max_markdown_chars=JUDGE_CONTENT_CHARS)
            + "\n<candidate>\n"
            + json.dumps(candidate, ensure_ascii=False)
            + "\n</candidate>\n\n<facts>\n"
            + json.dumps(facts, ensure_ascii=False)
            + "\n</facts>"
        )

    async def _evaluate(self, system: str, prompt: str) -> JudgeVerdict:
        verdict = await self.llm.generate(system, prompt, JudgeVerdict)
        if not verdict.passed and not verdict.reason.strip():
            verdict = JudgeVerdict(passed=False, reason="Rejected without a reason; be more specific.")
        logger.debug(f"[Judge] passed={verdict.passed} reason={verdict.reason[:80]}")
        return verdict
