"""Client-side stream consumer.

Opens the event stream for one TransformRequest, reassembles wire records,
accumulates Fragment payloads and reports the running text through an
optional progress callback. The attempt ends in one of:

- COMMITTED: Done arrived, or the stream closed after at least one fragment.
- ERRORED: a Failure event, a malformed record, a rejected request, an
  empty stream, or a connection lost after data had arrived.
- FALLEN_BACK: the stream could not be opened; the single-shot fallback
  ran once and its result or error is the outcome.
- CANCELLED: cancel() was called while reading.

A Failure event never triggers the fallback: the relay already called the
model and failed.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable
from enum import StrEnum
from typing import Any

import httpx
from pydantic import BaseModel, Field

from storyswap.client.fallback import FallbackPath, error_message
from storyswap.errors import FramingError, StorySwapError, TransportError
from storyswap.schemas.streaming import EventKind, RecordSplitter, parse_record
from storyswap.schemas.transform import TransformRequest

logger = logging.getLogger(__name__)

EMPTY_RESULT = "The model returned an empty result"
CANCELLED = "Transformation cancelled"

# Called with the full accumulated text after every fragment; may be async
ProgressCallback = Callable[[str], Any]


class ConsumerState(StrEnum):
    """Lifecycle of one consumer attempt."""

    NOT_STARTED = "not_started"
    CONNECTING = "connecting"
    STREAMING = "streaming"
    COMMITTED = "committed"
    FALLEN_BACK = "fallen_back"
    ERRORED = "errored"
    CANCELLED = "cancelled"


_IN_FLIGHT = (ConsumerState.CONNECTING, ConsumerState.STREAMING)

# Statuses on open that mean the relay rejected the request itself
_REJECTED = frozenset({400, 422})


class AttemptOutcome(BaseModel):
    """Final result of one transformation attempt."""

    state: ConsumerState = Field(description="Terminal consumer state")
    result: str | None = Field(default=None, description="Committed text, if any")
    error: str | None = Field(default=None, description="User-visible error, if any")
    via_fallback: bool = Field(default=False, description="Produced by the single-shot path")

    @property
    def ok(self) -> bool:
        return self.result is not None


class _OpenFailed(Exception):
    """The stream endpoint is missing or broken; no data was received."""


class StreamConsumer:
    """Runs streaming transformation attempts against a stream relay.

    Args:
        client: HTTP client whose base_url points at the relay. None means
            streaming is unavailable and every attempt goes straight to the
            fallback.
        fallback: Single-shot path used when the stream cannot be opened.
        stream_path: Path of the streaming endpoint.
        on_progress: Called with the running text after each fragment.
    """

    def __init__(
        self,
        client: httpx.AsyncClient | None,
        fallback: FallbackPath,
        *,
        stream_path: str = "/api/transform-story-stream",
        on_progress: ProgressCallback | None = None,
    ) -> None:
        self._client = client
        self._fallback = fallback
        self._stream_path = stream_path
        self._on_progress = on_progress
        self._state = ConsumerState.NOT_STARTED
        self._in_flight = False
        self._fragments: list[str] = []
        self._received = False
        self._cancelled = asyncio.Event()

    @property
    def state(self) -> ConsumerState:
        return self._state

    @property
    def in_flight(self) -> bool:
        return self._in_flight

    @property
    def accumulated(self) -> str:
        """Text received so far in the current attempt."""
        return "".join(self._fragments)

    def cancel(self) -> None:
        """Stop reading at the next received chunk and release the connection.

        Nothing is sent to the relay. To interrupt a read that is blocked
        waiting for data, cancel the task running start() instead.
        """
        if self._in_flight:
            self._cancelled.set()

    async def start(self, request: TransformRequest) -> AttemptOutcome:
        """Run one attempt for ``request`` and return its outcome.

        Raises:
            RuntimeError: If an attempt is already in flight.
        """
        if self._in_flight:
            raise RuntimeError("A transformation is already in flight")

        self._in_flight = True
        self._fragments = []
        self._received = False
        self._cancelled = asyncio.Event()
        self._state = ConsumerState.CONNECTING
        try:
            return await self._run(request)
        except asyncio.CancelledError:
            self._finish(ConsumerState.CANCELLED, error=CANCELLED)
            raise
        finally:
            if self._state in _IN_FLIGHT:
                self._finish(ConsumerState.ERRORED)
            self._in_flight = False

    async def _run(self, request: TransformRequest) -> AttemptOutcome:
        if self._client is None:
            return await self._fall_back(request, "streaming transport not configured")

        try:
            return await self._stream(request)
        except _OpenFailed as e:
            return await self._fall_back(request, str(e))
        except httpx.HTTPError as e:
            if self._received:
                error = TransportError(f"Connection lost during streaming: {e}")
                logger.warning("%s", error)
                return self._errored(str(error))
            return await self._fall_back(request, f"{type(e).__name__}: {e}")

    # ── Streaming ─────────────────────────────────────────────

    async def _stream(self, request: TransformRequest) -> AttemptOutcome:
        async with self._client.stream(
            "POST", self._stream_path, json=request.to_wire()
        ) as response:
            if response.status_code in _REJECTED:
                await response.aread()
                return self._errored(error_message(response))
            if not response.is_success:
                raise _OpenFailed(f"stream endpoint returned HTTP {response.status_code}")

            self._state = ConsumerState.STREAMING
            splitter = RecordSplitter()

            async for text in response.aiter_text():
                if self._cancelled.is_set():
                    return self._finish(ConsumerState.CANCELLED, error=CANCELLED)
                if text:
                    self._received = True
                for record in splitter.feed(text):
                    outcome = await self._handle_record(record)
                    if outcome is not None:
                        return outcome

            tail = splitter.flush()
            if tail is not None:
                outcome = await self._handle_record(tail)
                if outcome is not None:
                    return outcome

        # Closed without Done or Failure
        if self._fragments:
            logger.info("Stream closed without a terminal event; committing received text")
            return self._commit()
        return self._errored(EMPTY_RESULT)

    async def _handle_record(self, record: str) -> AttemptOutcome | None:
        """Apply one record; return an outcome when it ends the attempt."""
        try:
            event = parse_record(record)
        except FramingError as e:
            logger.warning("Malformed stream record, aborting attempt: %s", e)
            return self._errored(str(e))

        if event is None:
            return None
        if event.kind == EventKind.FRAGMENT:
            self._fragments.append(event.text)
            await self._publish()
            return None
        if event.kind == EventKind.DONE:
            return self._commit()
        return self._errored(event.message)

    async def _publish(self) -> None:
        if self._on_progress is None:
            return
        result = self._on_progress(self.accumulated)
        if asyncio.iscoroutine(result):
            await result

    # ── Fallback ──────────────────────────────────────────────

    async def _fall_back(self, request: TransformRequest, reason: str) -> AttemptOutcome:
        self._state = ConsumerState.FALLEN_BACK
        logger.info("Streaming unavailable (%s); using single-shot request", reason)
        try:
            text = await self._fallback.run_once(request)
        except StorySwapError as e:
            return AttemptOutcome(state=self._state, error=str(e), via_fallback=True)
        return AttemptOutcome(state=self._state, result=text, via_fallback=True)

    # ── Terminal transitions ──────────────────────────────────

    def _commit(self) -> AttemptOutcome:
        return self._finish(ConsumerState.COMMITTED, result=self.accumulated)

    def _errored(self, message: str) -> AttemptOutcome:
        return self._finish(ConsumerState.ERRORED, error=message)

    def _finish(
        self,
        state: ConsumerState,
        *,
        result: str | None = None,
        error: str | None = None,
    ) -> AttemptOutcome:
        if result is None:
            self._fragments = []
        self._state = state
        return AttemptOutcome(state=state, result=result, error=error)
