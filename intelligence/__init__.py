"""
Intelligence Module
智能层 - LLM 抽象 + 竞速调度 + 生成/评审 Agent

流水线入口见 intelligence.pipeline (依赖 fetchers，不在此处导入)
"""
from .llm import (
    BaseLLM,
    OpenAILLM,
    GrokLLM,
    StructuredLLM,
    get_llm,
)
from .race import CancellationFlag, CandidateCancelled, RaceOutcome, RaceScheduler
from .agents import (
    ContextModerator,
    WebContextFetcher,
    Judge,
    SummaryAgent,
    TagsAgent,
)

__all__ = [
    # LLM
    "BaseLLM",
    "OpenAILLM",
    "GrokLLM",
    "StructuredLLM",
    "get_llm",
    # Race
    "CancellationFlag",
    "CandidateCancelled",
    "RaceOutcome",
    "RaceScheduler",
    # Agents
    "ContextModerator",
    "WebContextFetcher",
    "Judge",
    "SummaryAgent",
    "TagsAgent",
]
