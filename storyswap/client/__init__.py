"""Client side of the transformation pipeline: stream consumer and fallbacks."""

from __future__ import annotations

import httpx

from storyswap.client.consumer import (
    AttemptOutcome,
    ConsumerState,
    ProgressCallback,
    StreamConsumer,
)
from storyswap.client.fallback import FallbackPath, HttpFallback, LocalFallback
from storyswap.schemas.config import ClientConfig


def open_http_client(config: ClientConfig) -> httpx.AsyncClient:
    """An AsyncClient pointed at the relay, with the configured timeouts.

    Reads may wait as long as the model takes between fragments, so only
    the connect phase gets the short timeout.
    """
    timeout = httpx.Timeout(config.timeout, connect=config.connect_timeout)
    return httpx.AsyncClient(base_url=config.base_url, timeout=timeout)


def http_consumer(
    client: httpx.AsyncClient,
    config: ClientConfig,
    on_progress: ProgressCallback | None = None,
) -> StreamConsumer:
    """A StreamConsumer that falls back to the server's single-shot endpoint."""
    return StreamConsumer(
        client,
        HttpFallback(client, config.transform_path),
        stream_path=config.stream_path,
        on_progress=on_progress,
    )


__all__ = [
    "AttemptOutcome",
    "ConsumerState",
    "FallbackPath",
    "HttpFallback",
    "LocalFallback",
    "ProgressCallback",
    "StreamConsumer",
    "http_consumer",
    "open_http_client",
]
