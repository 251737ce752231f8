"""FastAPI app exposing bookmark suggestions."""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from fastapi import FastAPI, HTTPException
from pydantic import BaseModel, Field, ValidationError, field_validator

from models import PipelineInput, Suggestion
from utils.exceptions import FatalModerationError, FatalUpstreamError
from utils.url_tools import is_http_url
from webapp.runtime import get_pipeline


logger = logging.getLogger(__name__)

app = FastAPI(title="Bookmark Annotation API")


class SuggestPayload(BaseModel):
    url: str
    existing_tags: List[str] = Field(default_factory=list)
    user_context: Optional[str] = None

    @field_validator("url")
    @classmethod
    def _http_url(cls, value: str) -> str:
        text = str(value or "").strip()
        if not is_http_url(text):
            raise ValueError("url must be an absolute http(s) URL")
        return text


@app.get("/api/health")
def health() -> Dict[str, Any]:
    return {"ok": True, "ts": datetime.now(timezone.utc).isoformat(timespec="seconds")}


@app.post("/api/suggest", response_model=Suggestion)
async def suggest(payload: SuggestPayload) -> Suggestion:
    try:
        pipeline_input = PipelineInput(
            url=payload.url,
            existing_tags=payload.existing_tags,
            user_context=payload.user_context,
        )
    except ValidationError as exc:
        raise HTTPException(status_code=422, detail=str(exc)) from exc

    try:
        return await get_pipeline().run(pipeline_input)
    except FatalModerationError as exc:
        raise HTTPException(status_code=400, detail=exc.message) from exc
    except FatalUpstreamError as exc:
        logger.warning(f"[API] Upstream failure for {payload.url}: {exc}")
        raise HTTPException(status_code=502, detail=exc.message) from exc
