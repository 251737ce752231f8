"""Tests for StructuredLLM, ContextModerator and WebContextFetcher."""

from __future__ import annotations

import asyncio

import pytest

from intelligence.agents.moderator import ContextModerator
from intelligence.agents.web_context import WebContextFetcher
from intelligence.llm import BaseLLM, LLMResponse, StructuredLLM, extract_first_json_object
from models import JudgeVerdict
from utils.exceptions import FatalModerationError, FatalUpstreamError, LLMError, LLMSchemaError


class _SequenceLLM(BaseLLM):
    def __init__(self, replies, delay: float = 0.0):
        super().__init__(model="fake-model")
        self.replies = list(replies)
        self.delay = delay
        self.calls = []

    @property
    def provider(self) -> str:
        return "fake"

    async def acomplete(self, messages, *, json_mode=False, **kwargs):
        self.calls.append({"messages": messages, "json_mode": json_mode, **kwargs})
        if self.delay:
            await asyncio.sleep(self.delay)
        reply = self.replies.pop(0) if len(self.replies) > 1 else self.replies[0]
        if isinstance(reply, Exception):
            raise reply
        return LLMResponse(content=reply, model=self.model)


class _FakeClassifier:
    def __init__(self, flagged=False, error=None):
        self.flagged = flagged
        self.error = error
        self.inputs = []

    async def amoderate(self, text, *, model="omni-moderation-latest"):
        self.inputs.append(text)
        if self.error:
            raise self.error
        return self.flagged


class _FakeSearch:
    def __init__(self, text="", error=None):
        self.text = text
        self.error = error
        self.prompts = []

    async def aweb_search(self, prompt, *, instructions=None, model=None, max_output_tokens=1200):
        self.prompts.append(prompt)
        if self.error:
            raise self.error
        return self.text


# ============ StructuredLLM ============

def test_extract_first_json_object():
    assert extract_first_json_object('Sure! ```json\n{"a": {"b": 1}}\n```') == '{"a": {"b": 1}}'
    assert extract_first_json_object("no json here") is None


@pytest.mark.asyncio
async def test_structured_llm_retries_schema_failures_then_succeeds():
    llm = _SequenceLLM(["not json", '{"passed": "maybe"}', 'ok: {"passed": true, "reason": "fine"}'])
    verdict = await StructuredLLM(llm, schema_retries=2).generate("sys", "prompt", JudgeVerdict)

    assert verdict == JudgeVerdict(passed=True, reason="fine")
    assert len(llm.calls) == 3
    assert all(call["json_mode"] for call in llm.calls)
    assert "JSON schema" in llm.calls[0]["messages"][0].content


@pytest.mark.asyncio
async def test_structured_llm_raises_schema_error_after_retries():
    llm = _SequenceLLM(["nope"])
    with pytest.raises(LLMSchemaError):
        await StructuredLLM(llm, schema_retries=2).generate("sys", "prompt", JudgeVerdict)
    assert len(llm.calls) == 3


@pytest.mark.asyncio
async def test_structured_llm_does_not_retry_transport_errors():
    llm = _SequenceLLM([RuntimeError("connection reset")])
    with pytest.raises(LLMError) as exc_info:
        await StructuredLLM(llm, schema_retries=2).generate("sys", "prompt", JudgeVerdict)
    assert not isinstance(exc_info.value, LLMSchemaError)
    assert len(llm.calls) == 1


@pytest.mark.asyncio
async def test_structured_llm_enforces_timeout():
    llm = _SequenceLLM(['{"passed": true}'], delay=1.0)
    with pytest.raises(LLMError, match="timed out"):
        await StructuredLLM(llm, timeout_sec=0.01).generate("sys", "prompt", JudgeVerdict)


# ============ ContextModerator ============

@pytest.mark.asyncio
async def test_moderator_skips_absent_context():
    classifier = _FakeClassifier(flagged=True)
    await ContextModerator(classifier).check(None)
    await ContextModerator(classifier).check("   ")
    assert classifier.inputs == []


@pytest.mark.asyncio
async def test_moderator_raises_on_flagged_context_and_truncates_input():
    classifier = _FakeClassifier(flagged=True)
    with pytest.raises(FatalModerationError):
        await ContextModerator(classifier).check("x" * 6000)
    assert len(classifier.inputs[0]) == 5000


@pytest.mark.asyncio
async def test_moderator_treats_classifier_failure_as_upstream_error():
    classifier = _FakeClassifier(error=RuntimeError("503"))
    with pytest.raises(FatalUpstreamError):
        await ContextModerator(classifier).check("hello")


@pytest.mark.asyncio
async def test_moderator_passes_clean_context():
    classifier = _FakeClassifier(flagged=False)
    await ContextModerator(classifier).check("for my reading list")
    assert classifier.inputs == ["for my reading list"]


# ============ WebContextFetcher ============

@pytest.mark.asyncio
async def test_web_context_uses_search_for_regular_urls_and_caps_length():
    search = _FakeSearch(text="y" * 1500)
    grok = _SequenceLLM(['{"ok": true, "webContext": "grok"}'])
    text = await WebContextFetcher(search, grok).fetch("https://example.com/a")

    assert text == "y" * 1000
    assert grok.calls == []
    assert "https://example.com/a" in search.prompts[0]


@pytest.mark.asyncio
async def test_web_context_uses_grok_for_status_urls():
    search = _FakeSearch(text="search")
    grok = _SequenceLLM(['Here you go {"ok": true, "webContext": "Thread about Rust tooling"}'])
    text = await WebContextFetcher(search, grok).fetch("https://x.com/jack/status/20")

    assert text == "Thread about Rust tooling"
    assert search.prompts == []


@pytest.mark.asyncio
async def test_web_context_failures_yield_none():
    assert await WebContextFetcher(_FakeSearch(error=RuntimeError("boom"))).fetch("https://example.com") is None
    assert await WebContextFetcher(_FakeSearch(text="   ")).fetch("https://example.com") is None

    grok = _SequenceLLM(['{"ok": false, "reason": "not found"}'])
    assert await WebContextFetcher(None, grok).fetch("https://x.com/jack/status/20") is None
    assert await WebContextFetcher(None, None).fetch("https://example.com") is None
