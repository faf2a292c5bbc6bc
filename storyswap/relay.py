"""Server-side stream relay.

Drives a GenerationSource in incremental mode and turns its fragments into
wire events, one event per fragment as soon as it arrives. Every attempt
ends with exactly one terminal event: Done after the source is exhausted,
or Failure if the source raised at any point. The relay never retries.
"""

from __future__ import annotations

import logging
from collections.abc import AsyncIterator
from contextlib import aclosing
from enum import StrEnum

from storyswap.errors import GenerationError
from storyswap.prompts import build_request_prompt
from storyswap.providers.base import GenerationSource
from storyswap.schemas.streaming import StreamEvent
from storyswap.schemas.transform import TransformRequest

logger = logging.getLogger(__name__)


class RelayState(StrEnum):
    """Lifecycle of one relay attempt."""

    IDLE = "idle"
    GENERATING = "generating"
    COMPLETED = "completed"
    FAILED = "failed"


def failure_message(error: Exception) -> str:
    """Human-readable text for a Failure event."""
    detail = str(error) or type(error).__name__
    return f"Text generation failed: {detail}"


class StreamRelay:
    """One streaming attempt for one request.

    Usage::

        relay = StreamRelay(source)
        relay.accept(request)          # raises ValidationError
        async for record in relay.frames():
            ...
    """

    def __init__(self, source: GenerationSource) -> None:
        self._source = source
        self._state = RelayState.IDLE
        self._prompt: str | None = None
        self._fragments = 0

    @property
    def state(self) -> RelayState:
        return self._state

    @property
    def fragment_count(self) -> int:
        """Fragments emitted so far."""
        return self._fragments

    def accept(self, request: TransformRequest) -> None:
        """Validate the request and build its prompt, staying IDLE.

        Raises:
            ValidationError: If the request is not submittable.
            RuntimeError: If this relay was already used.
        """
        if self._state != RelayState.IDLE or self._prompt is not None:
            raise RuntimeError("StreamRelay handles exactly one request")
        request.check_submittable()
        self._prompt = build_request_prompt(request)
        logger.info(
            "Stream relay accepted request: %d chars, %d replacements",
            len(request.source_text),
            len(request.complete_replacements),
        )

    async def events(self) -> AsyncIterator[StreamEvent]:
        """Yield Fragment events followed by exactly one Done or Failure."""
        if self._prompt is None:
            raise RuntimeError("accept() a request before streaming")
        if self._state != RelayState.IDLE:
            raise RuntimeError("StreamRelay events can only be consumed once")

        self._state = RelayState.GENERATING
        try:
            async with aclosing(self._source.generate_stream(self._prompt)) as stream:
                async for text in stream:
                    if not text:
                        continue
                    self._fragments += 1
                    if self._fragments == 1:
                        logger.info("Stream relay first fragment (%s)", self._source.model_id)
                    yield StreamEvent.fragment(text)
        except Exception as e:
            self._state = RelayState.FAILED
            if isinstance(e, GenerationError):
                logger.warning(
                    "Stream relay failed after %d fragments: %s", self._fragments, e
                )
            else:
                logger.exception("Stream relay failed after %d fragments", self._fragments)
            yield StreamEvent.failure(failure_message(e))
            return

        self._state = RelayState.COMPLETED
        logger.info("Stream relay done (%d fragments)", self._fragments)
        yield StreamEvent.done()

    async def frames(self) -> AsyncIterator[str]:
        """The events() sequence encoded as wire records."""
        async for event in self.events():
            yield event.to_record()
