"""
Structured generation on top of any BaseLLM.

(system_instructions, prompt, output_schema) -> validated pydantic object.
Schema-validation failures are retried a fixed number of times before an
LLMSchemaError propagates; transport errors and timeouts surface as LLMError.
"""

from __future__ import annotations

import asyncio
import json
import logging
from typing import Optional, Type, TypeVar

from pydantic import BaseModel, ValidationError
from tenacity import AsyncRetrying, RetryError, retry_if_exception_type, stop_after_attempt

from utils.exceptions import LLMError, LLMSchemaError

from .base import BaseLLM, Message


logger = logging.getLogger(__name__)

SchemaT = TypeVar("SchemaT", bound=BaseModel)


class _SchemaMismatch(ValueError):
    pass


def extract_first_json_object(text: str) -> Optional[str]:
    """Slice from the first "{" to the last "}"; models like to wrap JSON in prose or fences."""
    start = text.find("{")
    end = text.rfind("}")
    if start == -1 or end == -1 or end <= start:
        return None
    return text[start : end + 1]


def _schema_hint(schema: Type[BaseModel]) -> str:
    return json.dumps(schema.model_json_schema(), ensure_ascii=False)


class StructuredLLM:
    """Schema-validated JSON generation with bounded schema retries."""

    def __init__(
        self,
        llm: BaseLLM,
        *,
        schema_retries: int = 2,
        timeout_sec: float = 45.0,
    ):
        self.llm = llm
        self.schema_retries = max(0, int(schema_retries))
        self.timeout_sec = float(timeout_sec)

    @property
    def provider(self) -> str:
        return self.llm.provider

    async def generate(
        self,
        system: str,
        prompt: str,
        schema: Type[SchemaT],
        **kwargs,
    ) -> SchemaT:
        system_prompt = (
            f"{system}\n\n<output_format>\nReturn ONLY one JSON object matching this JSON schema:\n"
            f"{_schema_hint(schema)}\n</output_format>"
        )
        messages = [Message.system(system_prompt), Message.user(prompt)]

        try:
            async for attempt in AsyncRetrying(
                stop=stop_after_attempt(self.schema_retries + 1),
                retry=retry_if_exception_type(_SchemaMismatch),
            ):
                with attempt:
                    return await self._generate_once(messages, schema, **kwargs)
        except RetryError as exc:
            last = exc.last_attempt.exception()
            raise LLMSchemaError(
                f"Structured output failed validation after {self.schema_retries + 1} attempts: {last}",
                provider=self.provider,
                schema=schema.__name__,
            ) from last
        raise LLMSchemaError("Structured output produced no attempt", provider=self.provider)

    async def _generate_once(self, messages, schema: Type[SchemaT], **kwargs) -> SchemaT:
        try:
            response = await asyncio.wait_for(
                self.llm.acomplete(messages, json_mode=True, **kwargs),
                timeout=self.timeout_sec,
            )
        except asyncio.TimeoutError as exc:
            raise LLMError(
                f"{self.provider} call timed out after {self.timeout_sec:.0f}s",
                provider=self.provider,
            ) from exc
        except LLMError:
            raise
        except Exception as exc:
            raise LLMError(f"{self.provider} call failed: {exc}", provider=self.provider) from exc

        raw = extract_first_json_object(response.content or "")
        if raw is None:
            logger.debug(f"[{self.provider}] response without JSON object for {schema.__name__}")
            raise _SchemaMismatch("response did not contain a JSON object")
        try:
            return schema.model_validate_json(raw)
        except ValidationError as exc:
            logger.debug(f"[{self.provider}] {schema.__name__} validation failed: {exc}")
            raise _SchemaMismatch(str(exc)) from exc
