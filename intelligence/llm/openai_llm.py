"""
OpenAI LLM
Chat Completions + Moderations + Responses(web_search)
"""
from typing import List, Optional
import logging
import inspect

from .base import BaseLLM, Message, LLMResponse


logger = logging.getLogger(__name__)


class OpenAILLM(BaseLLM):
    """
    OpenAI LLM 实现

    除对话生成外，还承担两个外部协作接口：
    - amoderate: 安全分类 (omni-moderation-latest)
    - aweb_search: 带 web_search 工具的检索增强问答
    """

    def __init__(
        self,
        model: str = "gpt-5-mini",
        api_key: Optional[str] = None,
        base_url: Optional[str] = None,
        temperature: Optional[float] = None,
        max_tokens: int = 2048,
        timeout: float = 60.0,
        **kwargs,
    ):
        super().__init__(model, temperature, max_tokens, timeout, **kwargs)
        self.api_key = api_key
        self.base_url = base_url
        self._async_client = None

    @property
    def provider(self) -> str:
        return "openai"

    def _get_async_client(self):
        """获取异步客户端"""
        if self._async_client is None:
            from openai import AsyncOpenAI
            self._async_client = AsyncOpenAI(
                api_key=self.api_key,
                base_url=self.base_url,
                timeout=self.timeout,
            )
        return self._async_client

    def _request_params(self, messages: List[Message], json_mode: bool, **kwargs) -> dict:
        request_params = {
            "model": kwargs.get("model", self.model),
            "messages": [m.to_dict() for m in messages],
            "max_completion_tokens": kwargs.get("max_tokens", self.max_tokens),
        }
        temperature = kwargs.get("temperature", self.temperature)
        if temperature is not None:
            request_params["temperature"] = temperature
        if json_mode:
            request_params["response_format"] = {"type": "json_object"}
        return request_params

    async def acomplete(
        self,
        messages: List[Message],
        *,
        json_mode: bool = False,
        **kwargs,
    ) -> LLMResponse:
        """异步生成响应"""
        client = self._get_async_client()
        response = await client.chat.completions.create(
            **self._request_params(messages, json_mode, **kwargs)
        )

        choice = response.choices[0]
        usage = {}
        if response.usage is not None:
            usage = {
                "prompt_tokens": response.usage.prompt_tokens,
                "completion_tokens": response.usage.completion_tokens,
                "total_tokens": response.usage.total_tokens,
            }
        return LLMResponse(
            content=choice.message.content or "",
            model=response.model,
            usage=usage,
            finish_reason=choice.finish_reason,
            raw_response=response,
        )

    async def amoderate(self, text: str, *, model: str = "omni-moderation-latest") -> bool:
        """返回 True 表示内容被标记 (flagged)"""
        client = self._get_async_client()
        result = await client.moderations.create(model=model, input=text)
        return bool(result.results[0].flagged)

    async def aweb_search(
        self,
        prompt: str,
        *,
        instructions: Optional[str] = None,
        model: Optional[str] = None,
        max_output_tokens: int = 1200,
    ) -> str:
        """使用 Responses API 的 web_search 工具检索并返回纯文本"""
        client = self._get_async_client()
        params = {
            "model": model or self.model,
            "input": prompt,
            "tools": [{"type": "web_search"}],
            "max_output_tokens": max_output_tokens,
        }
        if instructions:
            params["instructions"] = instructions
        response = await client.responses.create(**params)
        return str(getattr(response, "output_text", "") or "")

    async def aclose(self) -> None:
        client = self._async_client
        if client is None:
            return
        close_fn = getattr(client, "close", None)
        if callable(close_fn):
            maybe_awaitable = close_fn()
            if inspect.isawaitable(maybe_awaitable):
                await maybe_awaitable
        self._async_client = None
