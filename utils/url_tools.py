"""
URL helpers: tracking-parameter cleanup, canonical resolution and the
hostname/path predicates that route social-status and video URLs.
"""

from __future__ import annotations

import re
from typing import Optional
from urllib.parse import parse_qsl, urlencode, urlsplit, urlunsplit


_TWITTER_HOSTS = {
    "twitter.com",
    "x.com",
    "www.twitter.com",
    "www.x.com",
    "mobile.twitter.com",
    "mobile.x.com",
}

_YOUTUBE_HOSTS = {
    "youtube.com",
    "www.youtube.com",
    "m.youtube.com",
    "music.youtube.com",
    "youtu.be",
}

_STATUS_PATH = re.compile(r"^/([^/]+)/status/(\d+)(?:/.*)?$")

_TRACKING_PARAMS = {
    "utm_source", "utm_medium", "utm_campaign", "utm_term", "utm_content", "utm_id",
    "fbclid", "fb_action_ids", "fb_action_types", "fb_source", "fb_ref",
    "twclid", "s", "t",
    "gclid", "gclsrc", "dclid", "gbraid", "wbraid",
    "msclkid", "yclid", "ttclid", "li_fat_id",
    "mc_eid", "mc_cid",
    "_hsenc", "_hsmi", "__hstc", "__hsfp", "__hssc", "hsctatracking",
    "mkt_tok", "sfmc_id", "sfmc_activityid",
    "cid", "ecid", "ref", "ref_", "source", "igshid", "si", "_ga", "_gl",
    "zanpid", "irclickid", "affiliate_id", "aff_id", "partner_id", "click_id",
    "cxensepc", "nr_email_referer", "_pjax",
    "trk", "trkinfo", "originalreferer", "refid", "trackingid",
}

_TRACKING_PATTERNS = [
    re.compile(r"^utm_", re.I),
    re.compile(r"^fb_", re.I),
    re.compile(r"^_ga", re.I),
    re.compile(r"^cx_", re.I),
    re.compile(r"^__hs", re.I),
    re.compile(r"^sfmc_", re.I),
    re.compile(r"^sc_", re.I),
    re.compile(r"^trk", re.I),
    re.compile(r"^ref[_-]?$", re.I),
]


def is_http_url(value: str) -> bool:
    try:
        parts = urlsplit(str(value or "").strip())
    except ValueError:
        return False
    return parts.scheme in {"http", "https"} and bool(parts.netloc)


def _is_tracking_param(name: str) -> bool:
    lowered = name.lower()
    if lowered in _TRACKING_PARAMS:
        return True
    return any(pattern.search(lowered) for pattern in _TRACKING_PATTERNS)


def clean_url(url: str) -> str:
    """Drop known tracking parameters; returns the input unchanged if it does not parse."""
    try:
        parts = urlsplit(url)
    except ValueError:
        return url
    if not parts.scheme or not parts.netloc:
        return url
    kept = [(k, v) for k, v in parse_qsl(parts.query, keep_blank_values=True) if not _is_tracking_param(k)]
    return urlunsplit((parts.scheme, parts.netloc, parts.path or "/", urlencode(kept), parts.fragment))


def _bare_host(host: str) -> str:
    host = (host or "").lower()
    return host[4:] if host.startswith("www.") else host


def resolve_canonical_url(requested_url: str, canonical: Optional[str]) -> Optional[str]:
    """
    Return the declared canonical URL only when it is absolute http(s) and
    actually different from the requested URL. Relative canonicals are
    rejected rather than resolved.
    """
    if not canonical:
        return None
    text = canonical.strip()
    if not is_http_url(text):
        return None
    resolved = clean_url(text)
    if _comparable(resolved) == _comparable(clean_url(requested_url)):
        return None
    return resolved


def _comparable(url: str) -> str:
    parts = urlsplit(url)
    return f"{_bare_host(parts.hostname or '')}{parts.path.rstrip('/')}?{parts.query}"


def match_twitter_status_url(url: str) -> Optional[tuple]:
    """(user, status_id) for twitter.com / x.com status URLs, else None."""
    try:
        parts = urlsplit(str(url or ""))
    except ValueError:
        return None
    if parts.scheme not in {"http", "https"}:
        return None
    if (parts.hostname or "").lower() not in _TWITTER_HOSTS:
        return None
    match = _STATUS_PATH.match(parts.path or "")
    if not match:
        return None
    return match.group(1), match.group(2)


def is_twitter_status_url(url: str) -> bool:
    return match_twitter_status_url(url) is not None


def extract_twitter_status_id(url: str) -> Optional[str]:
    matched = match_twitter_status_url(url)
    return matched[1] if matched else None


def extract_twitter_handle(author_url: Optional[str]) -> Optional[str]:
    """https://twitter.com/jack -> @jack"""
    if not author_url:
        return None
    try:
        parts = [p for p in urlsplit(author_url).path.split("/") if p]
    except ValueError:
        return None
    return f"@{parts[0]}" if parts else None


def is_youtube_url(url: str) -> bool:
    try:
        host = (urlsplit(str(url or "")).hostname or "").lower()
    except ValueError:
        return False
    return host in _YOUTUBE_HOSTS