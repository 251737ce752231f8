"""
Grok LLM
xAI Grok，使用 OpenAI 兼容接口；用于 X/Twitter 线程与上下文检索
"""
from typing import List, Optional

from .base import Message
from .openai_llm import OpenAILLM


class GrokLLM(OpenAILLM):
    """
    xAI Grok LLM 实现

    支持模型:
    - grok-4-1-fast-reasoning (默认)
    """

    DEFAULT_BASE_URL = "https://api.x.ai/v1"

    def __init__(
        self,
        model: str = "grok-4-1-fast-reasoning",
        api_key: Optional[str] = None,
        base_url: Optional[str] = None,
        temperature: Optional[float] = 0.0,
        max_tokens: int = 1200,
        timeout: float = 30.0,
        **kwargs,
    ):
        super().__init__(
            model=model,
            api_key=api_key,
            base_url=base_url or self.DEFAULT_BASE_URL,
            temperature=temperature,
            max_tokens=max_tokens,
            timeout=timeout,
            **kwargs,
        )

    @property
    def provider(self) -> str:
        return "grok"

    def _request_params(self, messages: List[Message], json_mode: bool, **kwargs) -> dict:
        # xAI 仍使用 max_tokens 字段
        request_params = {
            "model": kwargs.get("model", self.model),
            "messages": [m.to_dict() for m in messages],
            "max_tokens": kwargs.get("max_tokens", self.max_tokens),
        }
        temperature = kwargs.get("temperature", self.temperature)
        if temperature is not None:
            request_params["temperature"] = temperature
        if json_mode:
            request_params["response_format"] = {"type": "json_object"}
        return request_params

    async def amoderate(self, text: str, *, model: str = "omni-moderation-latest") -> bool:
        raise NotImplementedError("Grok does not provide a moderation endpoint")

    async def aweb_search(self, prompt: str, **kwargs) -> str:
        raise NotImplementedError("Use acomplete for Grok context lookups")
