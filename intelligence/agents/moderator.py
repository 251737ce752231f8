"""
Context Moderator
用户补充说明的安全审核闸门
"""
import logging
from typing import Optional

from intelligence.llm import OpenAILLM
from utils.exceptions import FatalModerationError, FatalUpstreamError


logger = logging.getLogger(__name__)


MODERATION_MAX_CHARS = 5000


class ContextModerator:
    """
    用户上下文审核

    - 没有用户上下文: 直接通过
    - 被标记: FatalModerationError，后续阶段一律不执行
    - 分类器本身失败: FatalUpstreamError (无法证明安全)
    """

    def __init__(
        self,
        classifier: OpenAILLM,
        *,
        model: str = "omni-moderation-latest",
        max_chars: int = MODERATION_MAX_CHARS,
    ):
        self.classifier = classifier
        self.model = model
        self.max_chars = max_chars

    async def check(self, user_context: Optional[str]) -> None:
        text = (user_context or "").strip()
        if not text:
            return

        try:
            flagged = await self.classifier.amoderate(text[: self.max_chars], model=self.model)
        except Exception as e:
            raise FatalUpstreamError(
                f"Moderation request failed: {e}",
                {"model": self.model},
            ) from e

        if flagged:
            # 不记录用户文本本身
            logger.warning(f"[Moderation] User context flagged ({len(text)} chars)")
            raise FatalModerationError("User context was flagged by moderation")
