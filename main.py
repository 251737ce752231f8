"""CLI entrypoint for bookmark annotation."""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import sys

from bookmarks.comment import calculate_body_size, is_body_within_limit, remaining_comment_bytes
from models import PipelineInput
from utils.exceptions import AnnotationError
from utils.logger import configure_package_logging


def _tags(text: str):
    return [item.strip() for item in str(text or "").split(",") if item.strip()]


async def _suggest(args) -> int:
    from intelligence.pipeline import AnnotationPipeline

    pipeline = AnnotationPipeline.from_settings()
    try:
        suggestion = await pipeline.run(
            PipelineInput(url=args.url, existing_tags=_tags(args.tags), user_context=args.context)
        )
    except AnnotationError as exc:
        print(json.dumps({"error": type(exc).__name__, "message": exc.message}, ensure_ascii=False))
        return 1
    finally:
        await pipeline.aclose()

    print(json.dumps(suggestion.model_dump(mode="json"), ensure_ascii=False, indent=2))
    return 0


def main() -> None:
    parser = argparse.ArgumentParser(description="Bookmark annotation CLI")
    parser.add_argument("--verbose", action="store_true")
    sub = parser.add_subparsers(dest="command", required=True)

    suggest = sub.add_parser("suggest")
    suggest.add_argument("--url", required=True)
    suggest.add_argument("--context", default=None)
    suggest.add_argument("--tags", default="", help="comma separated existing tags")

    serve = sub.add_parser("serve", help="run the HTTP API")
    serve.add_argument("--host", type=str, default="127.0.0.1", help="Bind host")
    serve.add_argument("--port", type=int, default=8765, help="Bind port")
    serve.add_argument("--reload", action="store_true", help="Enable auto-reload")

    comment = sub.add_parser("comment-size")
    comment.add_argument("--url", required=True)
    comment.add_argument("--comment", required=True)

    args = parser.parse_args()
    configure_package_logging(logging.DEBUG if args.verbose else logging.INFO)

    if args.command == "suggest":
        sys.exit(asyncio.run(_suggest(args)))

    if args.command == "serve":
        import uvicorn

        uvicorn.run("webapp.app:app", host=args.host, port=args.port, reload=args.reload)
        return

    if args.command == "comment-size":
        print(
            json.dumps(
                {
                    "body_bytes": calculate_body_size(args.url, args.comment),
                    "within_limit": is_body_within_limit(args.url, args.comment),
                    "remaining_bytes": remaining_comment_bytes(args.url, args.comment),
                },
                ensure_ascii=False,
            )
        )
        return


if __name__ == "__main__":
    main()
