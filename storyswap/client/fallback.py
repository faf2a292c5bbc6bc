"""Single-shot fallback paths used when the stream cannot be opened.

LocalFallback calls a generation source in process; HttpFallback posts
the request to the non-streaming endpoint. Both produce one atomic result
and never retry.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod

import httpx

from storyswap.errors import GenerationError, TransportError, ValidationError
from storyswap.providers.base import GenerationSource
from storyswap.schemas.transform import TransformRequest, TransformResponse
from storyswap.transform import transform_once

logger = logging.getLogger(__name__)


def error_message(response: httpx.Response) -> str:
    """The ``error`` field of a JSON error body, or a status-based summary."""
    try:
        body = response.json()
    except ValueError:
        body = None
    if isinstance(body, dict) and isinstance(body.get("error"), str) and body["error"]:
        return body["error"]
    return f"HTTP {response.status_code}: {response.text[:200] or response.reason_phrase}"


class FallbackPath(ABC):
    """Non-streaming substitute for a streaming attempt."""

    @abstractmethod
    async def run_once(self, request: TransformRequest) -> str:
        """Return the complete rewritten story.

        Raises:
            ValidationError: If the request is rejected.
            GenerationError: If the model call fails.
            TransportError: If the server cannot be reached.
        """


class LocalFallback(FallbackPath):
    """Runs the single-shot transform against an in-process source."""

    def __init__(self, source: GenerationSource) -> None:
        self._source = source

    async def run_once(self, request: TransformRequest) -> str:
        return await transform_once(self._source, request)


class HttpFallback(FallbackPath):
    """Posts the request to the server's non-streaming endpoint."""

    def __init__(self, client: httpx.AsyncClient, path: str = "/api/transform-story") -> None:
        self._client = client
        self._path = path

    async def run_once(self, request: TransformRequest) -> str:
        try:
            response = await self._client.post(self._path, json=request.to_wire())
        except httpx.HTTPError as e:
            raise TransportError(f"Could not reach the transform service: {e}") from e

        if response.is_success:
            try:
                return TransformResponse.model_validate(response.json()).transformed_text
            except ValueError as e:
                raise GenerationError("Transform service returned an unreadable response") from e

        message = error_message(response)
        logger.info("Single-shot transform rejected with HTTP %d", response.status_code)
        if 400 <= response.status_code < 500:
            raise ValidationError(message)
        raise GenerationError(message)
