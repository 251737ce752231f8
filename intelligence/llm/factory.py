"""
LLM Factory
工厂函数 - 根据配置自动创建 LLM 实例
"""
from typing import Optional
import logging

from config import get_grok_settings, get_llm_settings, get_pipeline_settings
from config.settings import GrokSettings, LLMSettings, PipelineSettings

from .base import BaseLLM
from .openai_llm import OpenAILLM
from .grok_llm import GrokLLM
from .structured import StructuredLLM


logger = logging.getLogger(__name__)


# 默认模型配置
DEFAULT_MODELS = {
    "openai": "gpt-5-mini",
    "grok": "grok-4-1-fast-reasoning",
}


def get_llm(
    provider: Optional[str] = None,
    model: Optional[str] = None,
    *,
    llm_settings: Optional[LLMSettings] = None,
    grok_settings: Optional[GrokSettings] = None,
    **kwargs,
) -> BaseLLM:
    """
    获取 LLM 实例

    自动从 .env 读取配置，也可手动指定

    Args:
        provider: LLM 供应商 (openai, grok)
        model: 模型名称 (不传则使用默认)
        llm_settings: LLM 配置 (不传则读取全局配置)
        grok_settings: Grok 配置 (不传则读取全局配置)
        **kwargs: 额外参数 (temperature, max_tokens 等)

    Returns:
        BaseLLM 实例

    Example:
        llm = get_llm()
        judge = get_llm(model="gpt-5-mini")
        grok = get_llm(provider="grok")
    """
    settings = llm_settings or get_llm_settings()
    provider = provider or settings.provider

    if provider == "openai":
        for key, value in (
            ("temperature", settings.temperature),
            ("max_tokens", settings.max_tokens),
            ("timeout", settings.timeout),
        ):
            kwargs.setdefault(key, value)
        return OpenAILLM(
            model=model or DEFAULT_MODELS["openai"],
            api_key=kwargs.pop("api_key", None) or settings.openai_api_key,
            base_url=kwargs.pop("base_url", None),
            **kwargs,
        )
    elif provider == "grok":
        grok_settings = grok_settings or get_grok_settings()
        kwargs.setdefault("timeout", grok_settings.timeout)
        return GrokLLM(
            model=model or grok_settings.model or DEFAULT_MODELS["grok"],
            api_key=kwargs.pop("api_key", None) or grok_settings.api_key,
            base_url=kwargs.pop("base_url", None) or grok_settings.base_url,
            **kwargs,
        )
    else:
        raise ValueError(f"Unsupported LLM provider: {provider}")


def is_grok_configured(grok_settings: Optional[GrokSettings] = None) -> bool:
    return bool((grok_settings or get_grok_settings()).api_key)


def get_structured_llm(
    model: Optional[str] = None,
    provider: Optional[str] = None,
    *,
    llm_settings: Optional[LLMSettings] = None,
    grok_settings: Optional[GrokSettings] = None,
    pipeline_settings: Optional[PipelineSettings] = None,
) -> StructuredLLM:
    """生成/评审使用的结构化输出客户端"""
    llm_settings = llm_settings or get_llm_settings()
    pipeline_settings = pipeline_settings or get_pipeline_settings()
    return StructuredLLM(
        get_llm(
            provider=provider,
            model=model,
            llm_settings=llm_settings,
            grok_settings=grok_settings,
        ),
        schema_retries=llm_settings.schema_retries,
        timeout_sec=pipeline_settings.generation_timeout_sec,
    )
