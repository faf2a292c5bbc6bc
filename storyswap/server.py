"""FastAPI server exposing the story transformation endpoints.

POST /api/transform-story          single-shot, JSON in and out
POST /api/transform-story-stream   Server-Sent Events relay
GET  /api/health                   liveness and configured model

Validation failures return 400 and generation failures 500, both with an
``{"error": ...}`` body. Once a stream has started, failures travel
in-band as a Failure event instead.
"""

from __future__ import annotations

import json
import logging

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, StreamingResponse
from pydantic import ValidationError as SchemaError

from storyswap import __version__
from storyswap.errors import GenerationError, ValidationError
from storyswap.providers.base import GenerationSource
from storyswap.providers.litellm_provider import LiteLLMSource
from storyswap.relay import StreamRelay
from storyswap.schemas.config import Settings
from storyswap.schemas.transform import ErrorResponse, TransformRequest, TransformResponse
from storyswap.settings import get_settings
from storyswap.transform import transform_once

logger = logging.getLogger(__name__)

# Keep proxies from buffering the event stream
_SSE_HEADERS = {"Cache-Control": "no-cache", "X-Accel-Buffering": "no"}


def _error(status_code: int, message: str) -> JSONResponse:
    return JSONResponse(ErrorResponse(error=message).model_dump(), status_code=status_code)


async def _read_request(request: Request) -> TransformRequest:
    """Parse and shape-check a transform request body.

    Raises:
        ValidationError: If the body is not JSON or does not match the schema.
    """
    try:
        body = await request.json()
    except json.JSONDecodeError as e:
        raise ValidationError(f"Request body is not valid JSON: {e.msg}") from e
    except UnicodeDecodeError as e:
        raise ValidationError("Request body is not UTF-8 text") from e
    try:
        return TransformRequest.model_validate(body)
    except SchemaError as e:
        fields = ", ".join(".".join(str(p) for p in err["loc"]) for err in e.errors())
        raise ValidationError(f"Malformed transform request ({fields or 'body'})") from e


def create_app(
    source: GenerationSource | None = None,
    settings: Settings | None = None,
) -> FastAPI:
    """Create and configure the FastAPI application.

    Args:
        source: Generation source to serve. When omitted, a LiteLLMSource
            is built from ``settings`` (or the process settings) right away,
            so a missing credential fails here rather than on first request.
        settings: Settings to build the default source from.

    Raises:
        ConfigurationError: If no source is given and the API key is missing.
    """
    if source is None:
        source = LiteLLMSource.from_settings(settings or get_settings())

    app = FastAPI(
        title="StorySwap",
        description="Character-substitution story rewriting",
        version=__version__,
    )
    app.state.source = source

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.exception_handler(ValidationError)
    async def _on_validation_error(request: Request, exc: ValidationError) -> JSONResponse:
        logger.info("Rejected %s: %s", request.url.path, exc)
        return _error(400, str(exc))

    @app.exception_handler(GenerationError)
    async def _on_generation_error(request: Request, exc: GenerationError) -> JSONResponse:
        logger.error("Generation failed on %s: %s", request.url.path, exc)
        return _error(500, str(exc) or "Failed to transform story")

    # ── Transform ────────────────────────────────────────────────

    @app.post("/api/transform-story")
    async def transform_story(request: Request) -> JSONResponse:
        """Rewrite a story in one model call."""
        transform_request = await _read_request(request)
        text = await transform_once(app.state.source, transform_request)
        return JSONResponse(
            TransformResponse(transformed_text=text).model_dump(by_alias=True)
        )

    @app.post("/api/transform-story-stream")
    async def transform_story_stream(request: Request) -> StreamingResponse:
        """Rewrite a story, streaming fragments as Server-Sent Events."""
        transform_request = await _read_request(request)
        relay = StreamRelay(app.state.source)
        relay.accept(transform_request)
        return StreamingResponse(
            relay.frames(),
            media_type="text/event-stream",
            headers=_SSE_HEADERS,
        )

    # ── Health ───────────────────────────────────────────────────

    @app.get("/api/health")
    async def health() -> dict:
        return {"status": "ok", "model": app.state.source.model_id}

    return app
