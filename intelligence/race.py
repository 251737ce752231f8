"""
Race Scheduler
推测式并行生成：同一轮同时启动 N 个候选，第一个通过评审的候选胜出，
其余候选通过共享的取消标记协作式终止。
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Awaitable, Callable, Generic, List, Optional, Sequence, TypeVar

from utils.exceptions import LLMError


logger = logging.getLogger(__name__)

T = TypeVar("T")

MAX_FEEDBACK_REASONS = 3
MAX_FEEDBACK_CHARS = 600


class CandidateCancelled(Exception):
    """候选在检查点发现取消标记已被设置"""


class CancellationFlag:
    """
    只写一次的取消标记

    cancel() 只有第一个调用者返回 True（即胜出者），之后的写入全部无效。
    单事件循环内 check-and-set 之间没有挂起点，因此不需要锁。
    """

    def __init__(self):
        self._cancelled = False

    @property
    def is_cancelled(self) -> bool:
        return self._cancelled

    def cancel(self) -> bool:
        if self._cancelled:
            return False
        self._cancelled = True
        return True

    def checkpoint(self) -> None:
        if self._cancelled:
            raise CandidateCancelled()


@dataclass
class CandidateOutcome(Generic[T]):
    """单个候选的结果：草稿 + 是否通过 (未评审的最终轮直接视为通过)"""
    value: Optional[T]
    passed: bool
    reason: str = ""


@dataclass
class RaceOutcome(Generic[T]):
    winner: Optional[T] = None
    feedback: str = ""
    reasons: List[str] = field(default_factory=list)
    drafts: int = 0
    errors: int = 0
    # 最近一份非空草稿 (无胜者时的兜底)
    last_draft: Optional[T] = None

    @property
    def has_winner(self) -> bool:
        return self.winner is not None


CandidateFactory = Callable[[CancellationFlag], Awaitable[CandidateOutcome[T]]]


@dataclass
class RaceGroup:
    """一轮竞速中的候选任务 + 共享取消标记"""
    flag: CancellationFlag
    tasks: List[asyncio.Task] = field(default_factory=list)

    def cancel_pending(self) -> None:
        for task in self.tasks:
            if not task.done():
                task.cancel()

    async def drain(self) -> None:
        if self.tasks:
            await asyncio.gather(*self.tasks, return_exceptions=True)


def build_feedback(reasons: Sequence[str]) -> str:
    """汇总前几条拒绝理由，作为下一轮的反馈"""
    picked = [r.strip() for r in reasons if r and r.strip()][:MAX_FEEDBACK_REASONS]
    return "\n".join(f"- {r}" for r in picked)[:MAX_FEEDBACK_CHARS]


def is_candidate_failure(error: BaseException) -> bool:
    """只有 LLMError 属于单个候选的失败；其余异常 (含程序错误) 终止整条流水线"""
    return isinstance(error, LLMError)


class RaceScheduler:
    """
    竞速调度器

    - 同一轮的候选一起启动，每个候选拿到同一个 CancellationFlag
    - 第一个通过的候选调用 flag.cancel() 成功后即为唯一胜者，其余任务被取消
    - 标记已被他人设置后才返回的结果一律丢弃
    - 全部失败时返回 winner=None 和汇总后的反馈，不会自动开启下一轮
    """

    def __init__(self, name: str = "Race"):
        self.name = name

    async def race(
        self,
        factories: Sequence[CandidateFactory],
        flag: Optional[CancellationFlag] = None,
    ) -> RaceOutcome:
        flag = flag or CancellationFlag()
        outcome = RaceOutcome()
        if not factories:
            return outcome

        group = RaceGroup(flag=flag)
        group.tasks = [asyncio.create_task(self._run(factory, flag)) for factory in factories]
        pending = set(group.tasks)

        try:
            while pending and outcome.winner is None:
                done, pending = await asyncio.wait(pending, return_when=asyncio.FIRST_COMPLETED)
                for task in done:
                    self._collect(task, flag, outcome)
                    if outcome.winner is not None:
                        break
        finally:
            group.cancel_pending()
            await group.drain()

        outcome.feedback = build_feedback(outcome.reasons)
        if outcome.winner is None:
            logger.info(
                f"[{self.name}] No winner among {len(group.tasks)} candidates "
                f"({outcome.errors} errors)"
            )
        return outcome

    def _collect(self, task: asyncio.Task, flag: CancellationFlag, outcome: RaceOutcome) -> None:
        if task.cancelled():
            return
        error = task.exception()
        if isinstance(error, CandidateCancelled):
            return
        if error is not None:
            if not is_candidate_failure(error):
                raise error
            outcome.errors += 1
            outcome.reasons.append(f"generation failed: {error}")
            logger.warning(f"[{self.name}] Candidate failed: {error}")
            return

        result: CandidateOutcome = task.result()
        if result.value is not None:
            outcome.drafts += 1
        if result.value:
            outcome.last_draft = result.value
        if not result.passed:
            outcome.reasons.append(result.reason or "rejected")
            return
        if flag.cancel():
            outcome.winner = result.value
        else:
            logger.debug(f"[{self.name}] Late result discarded")

    @staticmethod
    async def _run(factory: CandidateFactory, flag: CancellationFlag) -> CandidateOutcome:
        flag.checkpoint()
        result = await factory(flag)
        flag.checkpoint()
        return result
