"""
Tags Retriever
获取用户在 Hatena Bookmark 上已有的标签

重试策略:
- 每次尝试都重新签名 (OAuth 1.0a 的 timestamp/nonce 不可复用)
- 不跟随重定向: 任何 3xx 直接失败 (跨重定向时认证头会被丢弃)
- 只有不带 oauth_problem 的 401 才重试，退避 0.5s 起指数增长，上限 2s
- 其他非 2xx 状态、带 problem code 的 401 均为终止错误
"""
import asyncio
import inspect
import logging
import re
from typing import Awaitable, Callable, Dict, List, Mapping, Optional, Union

import httpx
from tenacity import AsyncRetrying, RetryError, retry_if_exception_type, stop_after_attempt, wait_exponential

from config import Settings, get_settings
from utils.exceptions import FatalUpstreamError


logger = logging.getLogger(__name__)


_OAUTH_PROBLEM = re.compile(r'oauth_problem="([^"]+)"')

# (method, url) -> 已签名的请求头；签名由外部协作方实现
RequestSigner = Callable[[str, str], Union[Mapping[str, str], Awaitable[Mapping[str, str]]]]


class _UnauthorizedWithoutProblem(Exception):
    """可重试的 401"""

    def __init__(self, body: str):
        super().__init__(f"401 without oauth_problem: {body[:200]}")


def oauth_problem(response: httpx.Response) -> Optional[str]:
    match = _OAUTH_PROBLEM.search(response.headers.get("WWW-Authenticate", ""))
    return match.group(1) if match else None


class TagsRetriever:
    """已有标签获取 (带有界重试)"""

    def __init__(
        self,
        signer: RequestSigner,
        *,
        client: Optional[httpx.AsyncClient] = None,
        settings: Optional[Settings] = None,
        sleep: Optional[Callable[[float], Awaitable[None]]] = None,
    ):
        self.signer = signer
        self.settings = settings or get_settings()
        self._client = client
        self._owns_client = client is None
        self._sleep = sleep or asyncio.sleep

    @property
    def url(self) -> str:
        return self.settings.hatena.tags_api_url

    def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(
                timeout=httpx.Timeout(float(self.settings.general.request_timeout)),
                headers={"User-Agent": self.settings.general.user_agent},
                follow_redirects=False,
            )
            self._owns_client = True
        return self._client

    async def fetch_tags(self) -> List[str]:
        hatena = self.settings.hatena
        retrying = AsyncRetrying(
            stop=stop_after_attempt(hatena.max_attempts),
            wait=wait_exponential(
                multiplier=hatena.base_delay_sec,
                min=hatena.base_delay_sec,
                max=hatena.max_delay_sec,
            ),
            retry=retry_if_exception_type(_UnauthorizedWithoutProblem),
            sleep=self._sleep,
            before_sleep=self._log_retry,
        )
        try:
            async for attempt in retrying:
                with attempt:
                    return await self._attempt()
        except RetryError as exc:
            raise FatalUpstreamError(
                f"Hatena Tags API failed after {hatena.max_attempts} attempts",
                {"last_error": str(exc.last_attempt.exception())},
            ) from exc.last_attempt.exception()
        raise FatalUpstreamError("Hatena Tags API: no attempt was made")

    async def _attempt(self) -> List[str]:
        headers = await self._sign("GET", self.url)
        try:
            response = await self._get_client().get(self.url, headers=headers, follow_redirects=False)
        except httpx.HTTPError as e:
            raise FatalUpstreamError(f"Hatena Tags API request failed: {e}") from e

        if 300 <= response.status_code < 400:
            raise FatalUpstreamError(
                f"Hatena Tags API redirect detected: {response.status_code}",
                {"location": response.headers.get("Location")},
            )

        if response.is_success:
            try:
                data = response.json()
                return [str(item["tag"]) for item in data.get("tags", [])]
            except (ValueError, KeyError, TypeError, AttributeError) as e:
                raise FatalUpstreamError(f"Hatena Tags API returned malformed JSON: {e}") from e

        problem = oauth_problem(response)
        if response.status_code == 401 and problem is None:
            raise _UnauthorizedWithoutProblem(response.text)

        raise FatalUpstreamError(
            f"Hatena Tags API error: {response.status_code} - {response.text[:200]}",
            {"status": response.status_code, "oauth_problem": problem},
        )

    async def _sign(self, method: str, url: str) -> Dict[str, str]:
        headers = self.signer(method, url)
        if inspect.isawaitable(headers):
            headers = await headers
        return dict(headers or {})

    @staticmethod
    def _log_retry(retry_state) -> None:
        logger.warning(
            f"[Hatena] Attempt {retry_state.attempt_number} got 401 without problem code, "
            f"retrying in {retry_state.next_action.sleep:.1f}s"
        )

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.close()

    async def close(self):
        if self._client is not None and self._owns_client:
            await self._client.aclose()
            self._client = None
