"""
Metadata Fetcher
页面元数据抽取 (title / description / lang / canonical ...)
"""
import logging
from typing import Dict, Optional

import httpx
from bs4 import BeautifulSoup

from config import Settings
from models import PageMetadata
from utils.url_tools import is_twitter_status_url, is_youtube_url, resolve_canonical_url

from .base import BaseFetcher
from .twitter import TwitterFetcher


logger = logging.getLogger(__name__)


YOUTUBE_OEMBED_URL = "https://www.youtube.com/oembed"

# 视频站点抽不到真实标题时常见的"通用"标题
_GENERIC_YOUTUBE_TITLES = {"youtube", "- youtube"}


def _clean(value) -> Optional[str]:
    text = " ".join(str(value or "").split())
    return text or None


def parse_metadata(markup: str, requested_url: str) -> PageMetadata:
    """从 HTML 中抽取并规范化元数据"""
    soup = BeautifulSoup(markup, "lxml")

    by_name: Dict[str, str] = {}
    by_property: Dict[str, str] = {}
    for tag in soup.find_all("meta"):
        content = _clean(tag.get("content"))
        if not content:
            continue
        name = (tag.get("name") or "").strip().lower()
        prop = (tag.get("property") or "").strip().lower()
        if name and name not in by_name:
            by_name[name] = content
        if prop and prop not in by_property:
            by_property[prop] = content

    def og(key: str) -> Optional[str]:
        return by_property.get(f"og:{key}") or by_name.get(f"og:{key}")

    def twitter(key: str) -> Optional[str]:
        return by_name.get(f"twitter:{key}") or by_property.get(f"twitter:{key}")

    title = _clean(soup.title.get_text()) if soup.title else None

    html_tag = soup.find("html")
    lang = _clean(html_tag.get("lang")) if html_tag is not None else None

    canonical = None
    for link in soup.find_all("link"):
        rel = link.get("rel") or []
        if isinstance(rel, str):
            rel = rel.split()
        if "canonical" in [r.lower() for r in rel]:
            canonical = link.get("href")
            break

    return PageMetadata(
        title=title or og("title") or twitter("title"),
        description=og("description") or twitter("description") or by_name.get("description"),
        lang=lang,
        og_type=og("type"),
        site_name=og("site_name"),
        keywords=by_name.get("keywords"),
        author=by_name.get("author"),
        canonical_url=resolve_canonical_url(requested_url, canonical),
    )


def is_generic_video_title(metadata: PageMetadata) -> bool:
    title = (metadata.title or "").strip().lower()
    return not title or title in _GENERIC_YOUTUBE_TITLES


class MetadataFetcher(BaseFetcher[PageMetadata]):
    """
    元数据抓取器

    - 推文 URL 先走 oEmbed (X 页面几乎没有服务端渲染的 meta)
    - YouTube 抽取为空或只有站点名时回退 oEmbed
    - 从不抛出，失败返回空 PageMetadata
    """

    def __init__(
        self,
        client: Optional[httpx.AsyncClient] = None,
        settings: Optional[Settings] = None,
        twitter: Optional[TwitterFetcher] = None,
    ):
        super().__init__(client=client, settings=settings)
        self.twitter = twitter or TwitterFetcher(client=self._client, settings=self.settings)

    @property
    def name(self) -> str:
        return "Metadata"

    async def fetch(self, url: str) -> PageMetadata:
        if is_twitter_status_url(url):
            metadata = await self._from_twitter_oembed(url)
            if metadata is not None:
                return metadata

        metadata = await self._from_page(url)

        if is_youtube_url(url) and is_generic_video_title(metadata):
            fallback = await self._from_youtube_oembed(url)
            if fallback is not None:
                # 页面上能拿到的字段保留，只补齐标题等
                merged = metadata.model_dump()
                for key, value in fallback.model_dump().items():
                    if value and (key == "title" or not merged.get(key)):
                        merged[key] = value
                metadata = PageMetadata(**merged)

        return metadata

    async def _from_page(self, url: str) -> PageMetadata:
        try:
            response = await self._get_client().get(url, follow_redirects=True)
        except httpx.HTTPError as e:
            self._log_error("Page request failed", e)
            return PageMetadata()

        content_type = response.headers.get("content-type", "").lower()
        if "text/html" not in content_type:
            logger.info(f"[{self.name}] Non-HTML response ({content_type or 'unknown'}) for {url}")
            return PageMetadata()

        try:
            return parse_metadata(response.text, url)
        except Exception as e:
            self._log_error("HTML parse failed", e)
            return PageMetadata()

    async def _from_twitter_oembed(self, url: str) -> Optional[PageMetadata]:
        try:
            oembed = await self.twitter.fetch_oembed(url)
        except Exception as e:
            self._log_error("Tweet oEmbed failed", e)
            return None
        if oembed is None:
            return None

        title_base = oembed.text or url
        title = f"{title_base} ({oembed.author_handle})" if oembed.author_handle else title_base
        return PageMetadata(
            title=title,
            description=oembed.text,
            og_type="article",
            site_name=oembed.provider_name or "X",
            author=oembed.author_name,
            canonical_url=resolve_canonical_url(url, oembed.canonical_url),
        )

    async def _from_youtube_oembed(self, url: str) -> Optional[PageMetadata]:
        try:
            response = await self._get_client().get(
                YOUTUBE_OEMBED_URL,
                params={"url": url, "format": "json"},
                follow_redirects=True,
            )
            if response.status_code != 200:
                return None
            data = response.json() or {}
        except (httpx.HTTPError, ValueError) as e:
            self._log_error("YouTube oEmbed failed", e)
            return None

        if not isinstance(data, dict):
            return None

        title = _clean(data.get("title"))
        if not title:
            return None
        return PageMetadata(
            title=title,
            author=_clean(data.get("author_name")),
            site_name=_clean(data.get("provider_name")) or "YouTube",
            og_type=_clean(data.get("type")),
        )

    async def close(self):
        await self.twitter.close()
        await super().close()
