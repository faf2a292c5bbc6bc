"""Tests for storyswap.server — HTTP endpoints via httpx ASGI transport."""

from __future__ import annotations

import json
from collections.abc import AsyncIterator

import httpx
import pytest

from storyswap.errors import ConfigurationError, GenerationError
from storyswap.providers.base import GenerationSource
from storyswap.schemas.config import ModelConfig, Settings
from storyswap.schemas.streaming import EventKind, RecordSplitter, StreamEvent, parse_record
from storyswap.schemas.transform import NOTHING_TO_REPLACE, TEXT_REQUIRED
from storyswap.server import create_app

_STORY = "Once upon a time a Wolf met Little Red Riding Hood."


class FakeSource(GenerationSource):
    """Scripted generation source; ``error`` is raised instead of generating."""

    def __init__(
        self,
        deltas: list[str] | None = None,
        error: Exception | None = None,
        fail_after: int | None = None,
    ) -> None:
        super().__init__(ModelConfig(model="fake/model", display_name="Fake"))
        self.deltas = deltas if deltas is not None else ["Once upon a time ", "a Fox"]
        self.error = error
        self.fail_after = fail_after
        self.calls = 0

    async def generate_once(self, prompt: str) -> str:
        self.calls += 1
        if self.error is not None:
            raise self.error
        return "".join(self.deltas)

    async def generate_stream(self, prompt: str) -> AsyncIterator[str]:
        self.calls += 1
        for i, delta in enumerate(self.deltas):
            if self.error is not None and i == (self.fail_after or 0):
                raise self.error
            yield delta
        if self.error is not None and (self.fail_after or 0) >= len(self.deltas):
            raise self.error


def _client(source: GenerationSource) -> httpx.AsyncClient:
    transport = httpx.ASGITransport(app=create_app(source=source))
    return httpx.AsyncClient(transport=transport, base_url="http://test")


def _body(**overrides) -> dict:
    body = {
        "text": _STORY,
        "replacements": [{"id": "1", "original": "Wolf", "replacement": "Fox"}],
    }
    body.update(overrides)
    return body


def _events(body: str) -> list[StreamEvent]:
    splitter = RecordSplitter()
    records = splitter.feed(body)
    tail = splitter.flush()
    if tail is not None:
        records.append(tail)
    return [parse_record(r) for r in records]


# ── Single-shot ───────────────────────────────────────────────


class TestTransformStory:
    @pytest.mark.asyncio
    async def test_success(self):
        async with _client(FakeSource()) as client:
            response = await client.post("/api/transform-story", json=_body())

        assert response.status_code == 200
        assert response.json() == {"transformedText": "Once upon a time a Fox"}

    @pytest.mark.asyncio
    async def test_context_only(self):
        async with _client(FakeSource()) as client:
            response = await client.post(
                "/api/transform-story",
                json=_body(replacements=[], additionalContext="Make them cats"),
            )
        assert response.status_code == 200

    @pytest.mark.asyncio
    async def test_missing_text(self):
        source = FakeSource()
        async with _client(source) as client:
            response = await client.post("/api/transform-story", json={"replacements": []})

        assert response.status_code == 400
        assert response.json() == {"error": TEXT_REQUIRED}
        assert source.calls == 0

    @pytest.mark.asyncio
    async def test_nothing_to_replace(self):
        source = FakeSource()
        async with _client(source) as client:
            response = await client.post(
                "/api/transform-story",
                json=_body(replacements=[{"original": "Wolf", "replacement": ""}]),
            )

        assert response.status_code == 400
        assert response.json() == {"error": NOTHING_TO_REPLACE}
        assert source.calls == 0

    @pytest.mark.asyncio
    async def test_malformed_json(self):
        async with _client(FakeSource()) as client:
            response = await client.post(
                "/api/transform-story",
                content=b"{not json",
                headers={"Content-Type": "application/json"},
            )
        assert response.status_code == 400
        assert "not valid JSON" in response.json()["error"]

    @pytest.mark.asyncio
    async def test_wrong_shape(self):
        async with _client(FakeSource()) as client:
            response = await client.post("/api/transform-story", json={"text": ["a", "b"]})
        assert response.status_code == 400
        assert "Malformed transform request" in response.json()["error"]

    @pytest.mark.asyncio
    async def test_generation_failure(self):
        source = FakeSource(error=GenerationError("Fake: quota exceeded"))
        async with _client(source) as client:
            response = await client.post("/api/transform-story", json=_body())

        assert response.status_code == 500
        assert response.json() == {"error": "Fake: quota exceeded"}
        assert source.calls == 1


# ── Streaming ─────────────────────────────────────────────────


class TestTransformStoryStream:
    @pytest.mark.asyncio
    async def test_fragments_then_done(self):
        async with _client(FakeSource(["Once ", "upon ", "a Fox"])) as client:
            response = await client.post("/api/transform-story-stream", json=_body())

        assert response.status_code == 200
        assert response.headers["content-type"].startswith("text/event-stream")
        assert response.headers["cache-control"] == "no-cache"
        assert _events(response.text) == [
            StreamEvent.fragment("Once "),
            StreamEvent.fragment("upon "),
            StreamEvent.fragment("a Fox"),
            StreamEvent.done(),
        ]

    @pytest.mark.asyncio
    async def test_exact_wire_format(self):
        async with _client(FakeSource(["Fox"])) as client:
            response = await client.post("/api/transform-story-stream", json=_body())
        assert response.text == 'data: {"chunk": "Fox"}\n\ndata: [DONE]\n\n'

    @pytest.mark.asyncio
    async def test_validation_error_before_stream(self):
        source = FakeSource()
        async with _client(source) as client:
            response = await client.post("/api/transform-story-stream", json=_body(text=""))

        assert response.status_code == 400
        assert response.json() == {"error": TEXT_REQUIRED}
        assert source.calls == 0

    @pytest.mark.asyncio
    async def test_failure_travels_in_band(self):
        source = FakeSource(
            ["Once ", "upon "], error=GenerationError("Fake: quota exceeded"), fail_after=1
        )
        async with _client(source) as client:
            response = await client.post("/api/transform-story-stream", json=_body())

        assert response.status_code == 200
        events = _events(response.text)
        assert [e.kind for e in events] == [EventKind.FRAGMENT, EventKind.FAILURE]
        assert events[-1].message == "Text generation failed: Fake: quota exceeded"

    @pytest.mark.asyncio
    async def test_failure_before_first_fragment(self):
        source = FakeSource(error=GenerationError("blocked"))
        async with _client(source) as client:
            response = await client.post("/api/transform-story-stream", json=_body())

        events = _events(response.text)
        assert len(events) == 1
        assert events[0].kind == EventKind.FAILURE

    @pytest.mark.asyncio
    async def test_fragment_payloads_are_json(self):
        async with _client(FakeSource(['He said "hi"\n'])) as client:
            response = await client.post("/api/transform-story-stream", json=_body())

        first = response.text.split("\n\n")[0]
        assert json.loads(first.removeprefix("data: ")) == {"chunk": 'He said "hi"\n'}


# ── Health and construction ───────────────────────────────────


class TestApp:
    @pytest.mark.asyncio
    async def test_health(self):
        async with _client(FakeSource()) as client:
            response = await client.get("/api/health")
        assert response.json() == {"status": "ok", "model": "fake/model"}

    def test_missing_credential_fails_at_startup(self, monkeypatch):
        monkeypatch.setenv("STORYSWAP_TEST_SERVER_KEY", "")
        settings = Settings(model=ModelConfig(api_key_env="STORYSWAP_TEST_SERVER_KEY"))
        with pytest.raises(ConfigurationError):
            create_app(settings=settings)
