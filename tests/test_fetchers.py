"""Fetcher tests: tweet chain, rendered markdown, page metadata."""

from __future__ import annotations

import json

import httpx
import pytest

from config import Settings
from config.settings import RenderSettings, TwitterSettings
from fetchers import MarkdownFetcher, MetadataFetcher, TwitterFetcher, looks_like_interstitial, parse_metadata
from fetchers.twitter import (
    GrokThreadResponse,
    TweetContent,
    TwitterOEmbed,
    extract_oembed_text,
    format_oembed_markdown,
    format_thread_markdown,
    format_tweet_markdown,
    pick_tweet_text,
)
from intelligence.llm import BaseLLM, LLMResponse
from models import MarkdownSource


TWEET_URL = "https://x.com/jack/status/20"

OEMBED_HTML = (
    '<blockquote class="twitter-tweet"><p lang="en" dir="ltr">just setting up my twttr<br>'
    "second &amp; line</p>&mdash; jack (@jack) "
    '<a href="https://twitter.com/jack/status/20">March 21, 2006</a></blockquote>'
)

OEMBED_PAYLOAD = {
    "url": "https://twitter.com/jack/status/20",
    "author_name": "jack",
    "author_url": "https://twitter.com/jack",
    "provider_name": "Twitter",
    "html": OEMBED_HTML,
}


def _settings(bearer_token=None, max_chars=800000, render=True):
    return Settings(
        render=RenderSettings(
            account_id="acc" if render else None,
            api_token="tok" if render else None,
            max_chars=max_chars,
        ),
        twitter=TwitterSettings(bearer_token=bearer_token),
    )


class _Router:
    """MockTransport handler keyed by (host, path)."""

    def __init__(self, routes):
        self.routes = routes
        self.requests = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        route = self.routes.get((request.url.host, request.url.path))
        if route is None:
            return httpx.Response(404, text="not found")
        if callable(route):
            return route(request)
        # fresh instance per request; httpx binds a response to one request
        return httpx.Response(route.status_code, headers=route.headers, content=route.content)

    def count(self, host, path):
        return sum(1 for r in self.requests if (r.url.host, r.url.path) == (host, path))

    def client(self):
        return httpx.AsyncClient(transport=httpx.MockTransport(self))


class _FakeGrok(BaseLLM):
    def __init__(self, content):
        super().__init__(model="grok-fake")
        self.content = content
        self.calls = 0

    @property
    def provider(self) -> str:
        return "grok"

    async def acomplete(self, messages, *, json_mode=False, **kwargs):
        self.calls += 1
        return LLMResponse(content=self.content, model=self.model)


def _render_ok(markdown):
    return httpx.Response(200, json={"success": True, "result": markdown})


RENDER_PATH = ("api.cloudflare.com", "/client/v4/accounts/acc/browser-rendering/markdown")
OEMBED_PATH = ("publish.twitter.com", "/oembed")


# ============ Tweet helpers ============

def test_extract_oembed_text_flattens_markup():
    assert extract_oembed_text(OEMBED_HTML) == "just setting up my twttr second & line"
    assert extract_oembed_text("<blockquote>no paragraph</blockquote>") is None


def test_pick_tweet_text_prefers_long_form():
    assert pick_tweet_text({"text": "short", "note_tweet": {"text": "long note"}}) == "long note"
    assert pick_tweet_text({"text": "short", "article": {"plain_text": "article body"}}) == "article body"
    assert pick_tweet_text({"text": "  "}) is None
    assert pick_tweet_text(None) is None


def test_markdown_formatters():
    tweet = TweetContent(id="20", url=TWEET_URL, text="hello ", created_at="2006-03-21")
    assert format_tweet_markdown(tweet) == f"hello\n2006-03-21\n{TWEET_URL}"

    oembed = TwitterOEmbed(url=TWEET_URL, author_name="jack", author_handle="@jack", text="hello")
    assert format_oembed_markdown(oembed) == f"hello\n— jack (@jack)\n{TWEET_URL}"

    thread = GrokThreadResponse.model_validate(
        {
            "ok": True,
            "thread": [
                {"id": "20", "url": TWEET_URL, "authorHandle": "@jack", "text": "first"},
                {"id": "21", "url": "https://x.com/jack/status/21", "text": "second"},
            ],
            "relatedUrls": ["https://a.example", "https://a.example", "https://b.example"],
        }
    )
    assert format_thread_markdown(thread) == (
        f"first\n— @jack\n{TWEET_URL}\n\n"
        "second\nhttps://x.com/jack/status/21\n\n"
        "Links:\nhttps://a.example\nhttps://b.example"
    )


def test_interstitial_detection():
    assert looks_like_interstitial("Something went wrong, but don't fret")
    assert looks_like_interstitial("Try again\n\n[x.com](https://x.com)")
    assert not looks_like_interstitial("# A normal article\n\nTry again later maybe")


# ============ TwitterFetcher ============

@pytest.mark.asyncio
async def test_twitter_fetcher_uses_x_api_when_token_is_set():
    router = _Router(
        {
            ("api.x.com", "/2/tweets/20"): httpx.Response(
                200,
                json={"data": {"id": "20", "text": "short", "note_tweet": {"text": "long note"}}},
            )
        }
    )
    fetcher = TwitterFetcher(client=router.client(), settings=_settings(bearer_token="xtok"))

    markdown, source = await fetcher.fetch(TWEET_URL)

    assert source == MarkdownSource.TWITTER_X_API
    assert markdown == f"long note\n{TWEET_URL}"
    request = router.requests[0]
    assert request.headers["Authorization"] == "Bearer xtok"
    assert "note_tweet" in request.url.params["tweet.fields"]


@pytest.mark.asyncio
async def test_twitter_fetcher_uses_grok_thread_without_token():
    grok = _FakeGrok(
        "```json\n"
        + json.dumps({"ok": True, "thread": [{"id": "20", "url": TWEET_URL, "text": "thread root"}]})
        + "\n```"
    )
    router = _Router({})
    fetcher = TwitterFetcher(client=router.client(), settings=_settings(), grok=grok)

    markdown, source = await fetcher.fetch(TWEET_URL)

    assert source == MarkdownSource.TWITTER_GROK
    assert markdown == f"thread root\n{TWEET_URL}"
    assert router.requests == []


@pytest.mark.asyncio
async def test_twitter_fetcher_falls_back_to_oembed():
    grok = _FakeGrok('{"ok": false, "reason": "not accessible"}')
    router = _Router({OEMBED_PATH: httpx.Response(200, json=OEMBED_PAYLOAD)})
    fetcher = TwitterFetcher(client=router.client(), settings=_settings(), grok=grok)

    markdown, source = await fetcher.fetch(TWEET_URL)

    assert source == MarkdownSource.TWITTER_OEMBED
    assert markdown.startswith("just setting up my twttr")
    assert "— jack (@jack)" in markdown
    assert grok.calls == 1


@pytest.mark.asyncio
async def test_twitter_fetcher_ignores_non_status_urls():
    router = _Router({})
    fetcher = TwitterFetcher(client=router.client(), settings=_settings())
    assert await fetcher.fetch("https://example.com/a") is None
    assert router.requests == []


# ============ MarkdownFetcher ============

@pytest.mark.asyncio
async def test_render_for_regular_urls_is_capped():
    router = _Router({RENDER_PATH: _render_ok("# Title\n\n" + "x" * 50)})
    fetcher = MarkdownFetcher(client=router.client(), settings=_settings(max_chars=20))

    result = await fetcher.fetch("https://example.com/a")

    assert result.source == MarkdownSource.RENDER
    assert result.markdown == ("# Title\n\n" + "x" * 50)[:20]
    body = json.loads(router.requests[0].content)
    assert body == {"url": "https://example.com/a"}
    assert router.requests[0].headers["Authorization"] == "Bearer tok"


@pytest.mark.asyncio
async def test_render_failures_degrade_to_empty_markdown():
    router = _Router({RENDER_PATH: httpx.Response(500, text="upstream down")})
    result = await MarkdownFetcher(client=router.client(), settings=_settings()).fetch("https://example.com/a")
    assert result.markdown == ""
    assert "HTTP 500" in result.error

    router = _Router({RENDER_PATH: httpx.Response(200, json={"success": False, "errors": ["quota"]})})
    result = await MarkdownFetcher(client=router.client(), settings=_settings()).fetch("https://example.com/a")
    assert result.markdown == ""
    assert result.error

    router = _Router({})
    result = await MarkdownFetcher(client=router.client(), settings=_settings(render=False)).fetch(
        "https://example.com/a"
    )
    assert result.markdown == ""
    assert "credentials" in result.error
    assert router.requests == []


@pytest.mark.asyncio
async def test_tweet_chain_runs_before_render():
    router = _Router(
        {
            OEMBED_PATH: httpx.Response(200, json=OEMBED_PAYLOAD),
            RENDER_PATH: _render_ok("should not be used"),
        }
    )
    result = await MarkdownFetcher(client=router.client(), settings=_settings()).fetch(TWEET_URL)

    assert result.source == MarkdownSource.TWITTER_OEMBED
    assert router.count(*RENDER_PATH) == 0


@pytest.mark.asyncio
async def test_interstitial_render_retries_tweet_chain_then_gives_up():
    router = _Router(
        {
            OEMBED_PATH: httpx.Response(404, text="nope"),
            RENDER_PATH: _render_ok("Something went wrong. Try reloading."),
        }
    )
    result = await MarkdownFetcher(client=router.client(), settings=_settings()).fetch(TWEET_URL)

    assert result.markdown == ""
    assert "interstitial" in result.error
    assert router.count(*OEMBED_PATH) == 2
    assert router.count(*RENDER_PATH) == 1


@pytest.mark.asyncio
async def test_interstitial_retry_can_recover():
    responses = iter([httpx.Response(503), httpx.Response(200, json=OEMBED_PAYLOAD)])
    router = _Router(
        {
            OEMBED_PATH: lambda request: next(responses),
            RENDER_PATH: _render_ok("Something went wrong. Try reloading."),
        }
    )
    result = await MarkdownFetcher(client=router.client(), settings=_settings()).fetch(TWEET_URL)

    assert result.source == MarkdownSource.TWITTER_OEMBED
    assert "just setting up my twttr" in result.markdown


# ============ MetadataFetcher ============

ARTICLE_HTML = """<!doctype html>
<html lang="ja">
<head>
  <title>  記事タイトル  </title>
  <meta property="og:title" content="OG title">
  <meta property="og:description" content="OG description">
  <meta name="description" content="plain description">
  <meta property="og:type" content="article">
  <meta property="og:site_name" content="Example">
  <meta name="keywords" content="rust, cli">
  <link rel="canonical" href="https://example.com/canonical">
</head>
<body><p>body</p></body>
</html>"""


def test_parse_metadata_normalizes_fields():
    metadata = parse_metadata(ARTICLE_HTML, "https://example.com/a")

    assert metadata.title == "記事タイトル"
    assert metadata.description == "OG description"
    assert metadata.lang == "ja"
    assert metadata.og_type == "article"
    assert metadata.site_name == "Example"
    assert metadata.keywords == "rust, cli"
    assert metadata.canonical_url == "https://example.com/canonical"


def test_parse_metadata_falls_back_and_rejects_self_canonical():
    markup = """<html><head>
    <meta name="twitter:title" content="Card title">
    <meta name="twitter:description" content="Card description">
    <link rel="canonical" href="https://example.com/a">
    </head></html>"""
    metadata = parse_metadata(markup, "https://example.com/a")

    assert metadata.title == "Card title"
    assert metadata.description == "Card description"
    assert metadata.canonical_url is None
    assert metadata.lang is None


@pytest.mark.asyncio
async def test_metadata_fetch_reads_html_pages():
    router = _Router(
        {
            ("example.com", "/a"): httpx.Response(
                200, headers={"content-type": "text/html; charset=utf-8"}, text=ARTICLE_HTML
            )
        }
    )
    metadata = await MetadataFetcher(client=router.client(), settings=_settings()).fetch("https://example.com/a")
    assert metadata.title == "記事タイトル"


@pytest.mark.asyncio
async def test_metadata_fetch_ignores_non_html():
    router = _Router(
        {
            ("example.com", "/paper.pdf"): httpx.Response(
                200, headers={"content-type": "application/pdf"}, content=b"%PDF-1.7"
            )
        }
    )
    metadata = await MetadataFetcher(client=router.client(), settings=_settings()).fetch(
        "https://example.com/paper.pdf"
    )
    assert metadata.is_empty()


@pytest.mark.asyncio
async def test_metadata_fetch_uses_oembed_for_tweets():
    router = _Router({OEMBED_PATH: httpx.Response(200, json=OEMBED_PAYLOAD)})
    metadata = await MetadataFetcher(client=router.client(), settings=_settings()).fetch(TWEET_URL)

    assert metadata.title == "just setting up my twttr second & line (@jack)"
    assert metadata.og_type == "article"
    assert metadata.site_name == "Twitter"
    assert metadata.canonical_url == "https://twitter.com/jack/status/20"


@pytest.mark.asyncio
async def test_metadata_fetch_falls_back_to_youtube_oembed_for_generic_titles():
    router = _Router(
        {
            ("www.youtube.com", "/watch"): httpx.Response(
                200,
                headers={"content-type": "text/html"},
                text='<html lang="en"><head><title>YouTube</title></head></html>',
            ),
            ("www.youtube.com", "/oembed"): httpx.Response(
                200,
                json={"title": "Real video title", "author_name": "Channel", "provider_name": "YouTube"},
            ),
        }
    )
    metadata = await MetadataFetcher(client=router.client(), settings=_settings()).fetch(
        "https://www.youtube.com/watch?v=abc"
    )

    assert metadata.title == "Real video title"
    assert metadata.author == "Channel"
    assert metadata.lang == "en"
    assert metadata.site_name == "YouTube"


# ============ Unexpected JSON shapes ============

@pytest.mark.asyncio
async def test_render_json_array_degrades_to_empty_markdown():
    router = _Router({RENDER_PATH: httpx.Response(200, json=[{"success": True, "result": "# Title"}])})
    result = await MarkdownFetcher(client=router.client(), settings=_settings()).fetch("https://example.com/a")

    assert result.markdown == ""
    assert "Unexpected response shape" in result.error


@pytest.mark.asyncio
async def test_youtube_oembed_json_array_keeps_page_metadata():
    router = _Router(
        {
            ("www.youtube.com", "/watch"): httpx.Response(
                200,
                headers={"content-type": "text/html"},
                text='<html lang="en"><head><title>YouTube</title></head></html>',
            ),
            ("www.youtube.com", "/oembed"): httpx.Response(200, json=["Real video title"]),
        }
    )
    metadata = await MetadataFetcher(client=router.client(), settings=_settings()).fetch(
        "https://www.youtube.com/watch?v=abc"
    )

    assert metadata.title == "YouTube"
    assert metadata.lang == "en"


@pytest.mark.asyncio
async def test_tweet_lookups_ignore_json_arrays():
    router = _Router(
        {
            ("api.x.com", "/2/tweets/20"): httpx.Response(200, json=[{"data": {"text": "x"}}]),
            OEMBED_PATH: httpx.Response(200, json=[OEMBED_PAYLOAD]),
        }
    )
    fetcher = TwitterFetcher(client=router.client(), settings=_settings(bearer_token="xtok"))

    assert await fetcher.fetch_via_x_api(TWEET_URL) is None
    assert await fetcher.fetch_oembed(TWEET_URL) is None
    assert await fetcher.fetch(TWEET_URL) is None
