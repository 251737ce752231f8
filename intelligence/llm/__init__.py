"""
LLM Module
多供应商 LLM 抽象层
"""
from .base import BaseLLM, LLMResponse, Message, MessageRole
from .openai_llm import OpenAILLM
from .grok_llm import GrokLLM
from .structured import StructuredLLM, extract_first_json_object
from .factory import get_llm, get_structured_llm, is_grok_configured

__all__ = [
    "BaseLLM",
    "LLMResponse",
    "Message",
    "MessageRole",
    "OpenAILLM",
    "GrokLLM",
    "StructuredLLM",
    "extract_first_json_object",
    "get_llm",
    "get_structured_llm",
    "is_grok_configured",
]
