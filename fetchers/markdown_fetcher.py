"""
Markdown Fetcher
通过页面渲染服务 (Cloudflare Browser Rendering) 获取页面 Markdown，
推文 URL 优先走专用链路。
"""
import logging
from typing import Optional

import httpx

from config import Settings
from models import MarkdownResult, MarkdownSource
from utils.exceptions import FetchError
from utils.url_tools import is_twitter_status_url

from .base import BaseFetcher
from .twitter import TwitterFetcher


logger = logging.getLogger(__name__)


MAX_MARKDOWN_CHARS = 800000

# X 在渲染失败时返回的错误页特征
INTERSTITIAL_SIGNATURES = (
    "Something went wrong",
    "Some privacy related extensions may cause issues on x.com",
)


def looks_like_interstitial(markdown: str) -> bool:
    """判断渲染结果是否为 X 的错误/拦截页"""
    if any(signature in markdown for signature in INTERSTITIAL_SIGNATURES):
        return True
    return "Try again" in markdown and "x.com" in markdown


class MarkdownFetcher(BaseFetcher[MarkdownResult]):
    """
    Markdown 抓取器

    - 推文 URL: 专用链路 → 通用渲染 → (错误页时) 再试一次专用链路
    - 其他 URL: 通用渲染
    - 任何失败都返回空 Markdown，从不抛出
    """

    def __init__(
        self,
        client: Optional[httpx.AsyncClient] = None,
        settings: Optional[Settings] = None,
        twitter: Optional[TwitterFetcher] = None,
    ):
        super().__init__(client=client, settings=settings)
        self.twitter = twitter or TwitterFetcher(client=self._client, settings=self.settings)
        self.max_chars = min(self.settings.render.max_chars, MAX_MARKDOWN_CHARS)

    @property
    def name(self) -> str:
        return "Markdown"

    async def fetch(self, url: str) -> MarkdownResult:
        social = is_twitter_status_url(url)

        if social:
            result = await self._fetch_social(url)
            if result is not None:
                return result

        try:
            markdown = await self._render(url)
        except FetchError as e:
            self._log_error("Render failed", e)
            return MarkdownResult(error=e.message)

        result = MarkdownResult(markdown=markdown, source=MarkdownSource.RENDER)
        if not social or not looks_like_interstitial(markdown):
            return result

        logger.info(f"[{self.name}] Interstitial page rendered for {url}, retrying tweet chain")
        retried = await self._fetch_social(url)
        if retried is not None:
            return retried
        return MarkdownResult(error="X returned an interstitial error page")

    async def _fetch_social(self, url: str) -> Optional[MarkdownResult]:
        try:
            fetched = await self.twitter.fetch(url)
        except Exception as e:
            self._log_error("Tweet chain failed", e)
            return None
        if not fetched:
            return None
        markdown, source = fetched
        if not markdown:
            return None
        return MarkdownResult(markdown=markdown[: self.max_chars], source=source)

    async def _render(self, url: str) -> str:
        """调用渲染服务；失败时抛出 FetchError"""
        render = self.settings.render
        if not render.account_id or not render.api_token:
            raise FetchError("Missing render credentials", source=self.name)

        endpoint = f"{render.base_url.rstrip('/')}/{render.account_id}/browser-rendering/markdown"
        try:
            response = await self._get_client().post(
                endpoint,
                json={"url": url},
                headers={"Authorization": f"Bearer {render.api_token}"},
            )
            if response.status_code != 200:
                raise FetchError(
                    f"HTTP {response.status_code}: {response.text[:200]}",
                    source=self.name,
                )
            data = response.json()
        except (httpx.HTTPError, ValueError) as e:
            raise FetchError(str(e) or type(e).__name__, source=self.name) from e

        if not isinstance(data, dict):
            raise FetchError(f"Unexpected response shape: {type(data).__name__}", source=self.name)
        if not data.get("success") or not data.get("result"):
            raise FetchError(f"API error: {data.get('errors')}", source=self.name)
        return str(data["result"])[: self.max_chars]

    async def close(self):
        await self.twitter.close()
        await super().close()
