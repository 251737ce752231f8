"""
Twitter / X Fetcher
推文正文抓取：X API v2 / Grok 线程检索 / oEmbed

X 的页面几乎全部由 JS 渲染，通用渲染服务常常只拿到错误页，
因此状态 URL 优先走这里的专用链路。
"""
import html
import logging
import re
from dataclasses import dataclass
from typing import List, Optional, Tuple

import httpx
from pydantic import BaseModel, Field, ValidationError

from config import Settings
from intelligence.llm.base import BaseLLM, Message
from intelligence.llm.structured import extract_first_json_object
from models import MarkdownSource
from utils.url_tools import extract_twitter_handle, match_twitter_status_url

from .base import BaseFetcher


logger = logging.getLogger(__name__)


GROK_THREAD_SYSTEM_PROMPT = """<role>
You fetch primary-source Twitter/X thread content.
</role>

<strict_mode>
Return ok=false if you cannot retrieve the actual tweet/thread content.
Do NOT guess, paraphrase, or infer missing text.
Only include tweet text you can retrieve verbatim.
</strict_mode>

<output_format>
Return ONLY a single JSON object matching this schema:
{
  "ok": true,
  "canonicalUrl": "https://x.com/.../status/<id>" (optional),
  "thread": [
    {
      "id": "<tweet id>",
      "url": "<tweet url>",
      "authorName": "<display name>" (optional),
      "authorHandle": "@handle" (optional),
      "createdAt": "<ISO8601 or best-known string>" (optional),
      "text": "<verbatim tweet text>"
    }
  ],
  "relatedUrls": ["https://..."] (optional)
}
or
{ "ok": false, "reason": "..." }
</output_format>"""


_OEMBED_PARAGRAPH = re.compile(r"<p[^>]*>([\s\S]*?)</p>", re.I)
_BR_TAG = re.compile(r"<br\s*/?\s*>", re.I)
_ANY_TAG = re.compile(r"<[^>]*>")


# ============ 数据结构 ============

class ThreadTweet(BaseModel):
    id: str = Field(..., min_length=1)
    url: str = Field(..., min_length=1)
    author_name: Optional[str] = Field(None, alias="authorName")
    author_handle: Optional[str] = Field(None, alias="authorHandle")
    created_at: Optional[str] = Field(None, alias="createdAt")
    text: str = Field(..., min_length=1)


class GrokThreadResponse(BaseModel):
    ok: bool
    reason: Optional[str] = None
    canonical_url: Optional[str] = Field(None, alias="canonicalUrl")
    thread: List[ThreadTweet] = Field(default_factory=list)
    related_urls: List[str] = Field(default_factory=list, alias="relatedUrls")


@dataclass
class TweetContent:
    """X API v2 tweet lookup 结果"""
    id: str
    url: str
    text: str
    created_at: Optional[str] = None
    author_id: Optional[str] = None


@dataclass
class TwitterOEmbed:
    url: str
    canonical_url: Optional[str] = None
    author_name: Optional[str] = None
    author_url: Optional[str] = None
    author_handle: Optional[str] = None
    provider_name: Optional[str] = None
    text: Optional[str] = None


# ============ 纯函数 ============

def pick_tweet_text(data: Optional[dict]) -> Optional[str]:
    """长文优先: article.plain_text > note_tweet.text > text"""
    if not data:
        return None
    for candidate in (
        (data.get("article") or {}).get("plain_text"),
        (data.get("note_tweet") or {}).get("text"),
        data.get("text"),
    ):
        text = str(candidate or "").strip()
        if text:
            return text
    return None


def extract_oembed_text(markup: str) -> Optional[str]:
    """取 oEmbed HTML 中第一个 <p> 的纯文本"""
    match = _OEMBED_PARAGRAPH.search(markup or "")
    if not match or not match.group(1):
        return None
    text = _BR_TAG.sub("\n", match.group(1))
    text = _ANY_TAG.sub("", text)
    text = html.unescape(text)
    text = re.sub(r"\s+", " ", text).strip()
    return text or None


def _author_line(name: Optional[str], handle: Optional[str]) -> Optional[str]:
    if name and handle:
        return f"{name} ({handle})"
    return name or handle


def format_tweet_markdown(tweet: TweetContent) -> str:
    lines = [tweet.text.strip(), tweet.created_at or "", tweet.url]
    return "\n".join(line for line in lines if line)


def format_oembed_markdown(oembed: TwitterOEmbed) -> str:
    lines = []
    if oembed.text:
        lines.append(oembed.text)
    author = _author_line(oembed.author_name, oembed.author_handle)
    if author:
        lines.append(f"— {author}")
    lines.append(oembed.canonical_url or oembed.url)
    return "\n".join(lines)


def format_thread_markdown(thread: GrokThreadResponse) -> str:
    blocks = []
    for tweet in thread.thread:
        lines = [tweet.text.strip()]
        author = _author_line(tweet.author_name, tweet.author_handle)
        if author:
            lines.append(f"— {author}")
        if tweet.created_at:
            lines.append(tweet.created_at)
        lines.append(tweet.url)
        blocks.append("\n".join(line for line in lines if line))

    markdown = "\n\n".join(blocks)
    if thread.related_urls:
        unique = list(dict.fromkeys(thread.related_urls))
        markdown += "\n\nLinks:\n" + "\n".join(unique)
    return markdown.strip()


# ============ 抓取器 ============

class TwitterFetcher(BaseFetcher[Optional[Tuple[str, MarkdownSource]]]):
    """
    推文正文抓取器

    两级链路:
    1. 结构化主源: 配置了 Bearer Token 时走 X API v2，否则走 Grok 线程检索
    2. 次级: publish.twitter.com oEmbed

    任何失败都返回 None，由调用方决定是否回退到通用渲染。
    """

    def __init__(
        self,
        client: Optional[httpx.AsyncClient] = None,
        settings: Optional[Settings] = None,
        grok: Optional[BaseLLM] = None,
    ):
        super().__init__(client=client, settings=settings)
        self.grok = grok

    @property
    def name(self) -> str:
        return "Twitter"

    async def fetch(self, url: str) -> Optional[Tuple[str, MarkdownSource]]:
        if match_twitter_status_url(url) is None:
            return None

        markdown = await self._fetch_primary(url)
        if markdown:
            return markdown

        oembed = await self.fetch_oembed(url)
        if oembed is not None and oembed.text:
            return format_oembed_markdown(oembed), MarkdownSource.TWITTER_OEMBED

        logger.info(f"[{self.name}] No tweet content for {url}")
        return None

    async def _fetch_primary(self, url: str) -> Optional[Tuple[str, MarkdownSource]]:
        if self.settings.twitter.bearer_token:
            tweet = await self.fetch_via_x_api(url)
            if tweet is not None:
                return format_tweet_markdown(tweet), MarkdownSource.TWITTER_X_API
            return None

        if self.grok is not None:
            thread = await self.fetch_thread_via_grok(url)
            if thread is not None:
                markdown = format_thread_markdown(thread)
                if markdown:
                    return markdown, MarkdownSource.TWITTER_GROK
        return None

    async def fetch_via_x_api(self, url: str) -> Optional[TweetContent]:
        matched = match_twitter_status_url(url)
        token = self.settings.twitter.bearer_token
        if matched is None or not token:
            return None
        status_id = matched[1]

        api_url = f"{self.settings.twitter.api_base_url.rstrip('/')}/tweets/{status_id}"
        try:
            response = await self._get_client().get(
                api_url,
                params={"tweet.fields": "note_tweet,article,created_at,author_id,text"},
                headers={"Authorization": f"Bearer {token}"},
            )
            if response.status_code != 200:
                logger.warning(
                    f"[{self.name}] Tweet lookup failed: {response.status_code} {response.text[:300]}"
                )
                return None
            payload = response.json()
        except (httpx.HTTPError, ValueError) as e:
            self._log_error("Tweet lookup exception", e)
            return None

        data = payload.get("data") if isinstance(payload, dict) else None
        if not isinstance(data, dict):
            return None
        text = pick_tweet_text(data)
        if not text:
            return None
        return TweetContent(
            id=str(data.get("id") or status_id),
            url=url,
            text=text,
            created_at=data.get("created_at"),
            author_id=data.get("author_id"),
        )

    async def fetch_thread_via_grok(self, url: str) -> Optional[GrokThreadResponse]:
        matched = match_twitter_status_url(url)
        if matched is None or self.grok is None:
            return None

        messages = [
            Message.system(GROK_THREAD_SYSTEM_PROMPT),
            Message.user(
                f"Fetch the full thread for tweet id {matched[1]}. Include the root tweet and all "
                "tweets in the same thread (author's thread), ordered oldest->newest. Also extract "
                "any URLs mentioned in the thread into relatedUrls."
            ),
        ]
        try:
            response = await self.grok.acomplete(messages, json_mode=True, max_tokens=2000)
        except Exception as e:
            self._log_error("Grok thread lookup failed", e)
            return None

        raw = extract_first_json_object(response.content or "")
        if raw is None:
            return None
        try:
            parsed = GrokThreadResponse.model_validate_json(raw)
        except ValidationError as e:
            self._log_error("Failed to parse thread JSON", e)
            return None
        if not parsed.ok or not parsed.thread:
            return None
        return parsed

    async def fetch_oembed(self, url: str) -> Optional[TwitterOEmbed]:
        if match_twitter_status_url(url) is None:
            return None
        try:
            response = await self._get_client().get(
                self.settings.twitter.oembed_url,
                params={"url": url, "omit_script": "1", "dnt": "1"},
                headers={"Accept": "application/json"},
                follow_redirects=True,
            )
            if response.status_code != 200:
                return None
            data = response.json()
        except (httpx.HTTPError, ValueError) as e:
            self._log_error("oEmbed request failed", e)
            return None

        if not isinstance(data, dict):
            return None
        return TwitterOEmbed(
            url=url,
            canonical_url=data.get("url") or None,
            author_name=data.get("author_name"),
            author_url=data.get("author_url"),
            author_handle=extract_twitter_handle(data.get("author_url")),
            provider_name=data.get("provider_name"),
            text=extract_oembed_text(data.get("html") or ""),
        )
