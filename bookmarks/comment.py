"""
Bookmark comment helpers.

Hatena stores tags inline in the comment: "[tag1][tag2]summary".
The bookmark API truncates URL-encoded POST bodies beyond ~1024 bytes
before verifying the OAuth signature, which surfaces as a 401.
"""
import re
from typing import Iterable, List, Tuple
from urllib.parse import quote


HATENA_BODY_LIMIT = 1024

# "url=" + "&comment="
BODY_OVERHEAD = 13

_LEADING_TAG = re.compile(r"^\[([^\]]+)\]")


def _encode(text: str) -> str:
    # encodeURIComponent-compatible
    return quote(text, safe="-_.!~*'()")


def format_comment(tags: Iterable[str], summary: str) -> str:
    return "".join(f"[{tag}]" for tag in tags) + (summary or "")


def parse_comment(comment: str) -> Tuple[List[str], str]:
    """"[a][b]text" -> (["a", "b"], "text")"""
    tags = []
    remaining = comment or ""
    match = _LEADING_TAG.match(remaining)
    while match:
        tags.append(match.group(1))
        remaining = remaining[match.end():]
        match = _LEADING_TAG.match(remaining)
    return tags, remaining.strip()


def calculate_body_size(url: str, comment: str) -> int:
    return BODY_OVERHEAD + len(_encode(url)) + len(_encode(comment))


def max_encoded_comment_length(url: str) -> int:
    return HATENA_BODY_LIMIT - BODY_OVERHEAD - len(_encode(url))


def is_body_within_limit(url: str, comment: str) -> bool:
    return calculate_body_size(url, comment) <= HATENA_BODY_LIMIT


def remaining_comment_bytes(url: str, comment: str) -> int:
    return max_encoded_comment_length(url) - len(_encode(comment))
