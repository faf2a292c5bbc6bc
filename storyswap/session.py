"""Client-side transformation session state.

Holds what the user is editing (story text, replacement pairs, context)
and the outcome of the last attempt. Pairs keep insertion order and are
addressed by id; reset() discards everything.
"""

from __future__ import annotations

import logging

from storyswap.client.consumer import AttemptOutcome, StreamConsumer
from storyswap.schemas.transform import ReplacementPair, TransformRequest

logger = logging.getLogger(__name__)


class TransformSession:
    """Editable state behind one story rewrite."""

    def __init__(self, source_text: str = "", additional_context: str = "") -> None:
        self.source_text = source_text
        self.additional_context = additional_context
        self._pairs: list[ReplacementPair] = []
        self.last_outcome: AttemptOutcome | None = None
        self._submitting = False

    # ── Replacement pairs ─────────────────────────────────────

    @property
    def pairs(self) -> list[ReplacementPair]:
        return list(self._pairs)

    def add_pair(self, original: str = "", replacement: str = "") -> ReplacementPair:
        pair = ReplacementPair(original=original, replacement=replacement)
        self._pairs.append(pair)
        return pair

    def update_pair(
        self,
        pair_id: str,
        *,
        original: str | None = None,
        replacement: str | None = None,
    ) -> ReplacementPair:
        """Change one or both names of a pair in place.

        Raises:
            KeyError: If no pair has ``pair_id``.
        """
        pair = self._find(pair_id)
        if original is not None:
            pair.original = original
        if replacement is not None:
            pair.replacement = replacement
        return pair

    def remove_pair(self, pair_id: str) -> None:
        """Drop a pair by id.

        Raises:
            KeyError: If no pair has ``pair_id``.
        """
        self._pairs.remove(self._find(pair_id))

    def _find(self, pair_id: str) -> ReplacementPair:
        for pair in self._pairs:
            if pair.id == pair_id:
                return pair
        raise KeyError(pair_id)

    def reset(self) -> None:
        """Forget the text, every pair, the context and the last result."""
        self.source_text = ""
        self.additional_context = ""
        self._pairs = []
        self.last_outcome = None

    # ── Submission ────────────────────────────────────────────

    @property
    def is_submittable(self) -> bool:
        """Text present, and a complete pair or some context.

        Also False while an attempt is running, so the same session cannot
        submit twice concurrently.
        """
        return not self._submitting and self.to_request().is_submittable

    def to_request(self) -> TransformRequest:
        """Snapshot the current state as an immutable request."""
        return TransformRequest(
            source_text=self.source_text,
            replacements=tuple(pair.model_copy() for pair in self._pairs),
            additional_context=self.additional_context or None,
        )

    async def submit(self, consumer: StreamConsumer) -> AttemptOutcome:
        """Run one attempt with ``consumer`` and record its outcome.

        Raises:
            RuntimeError: If an attempt from this session is still running.
            ValidationError: If the session is not submittable.
        """
        if self._submitting:
            raise RuntimeError("A transformation is already in flight")
        request = self.to_request()
        request.check_submittable()

        self._submitting = True
        try:
            outcome = await consumer.start(request)
        finally:
            self._submitting = False

        self.last_outcome = outcome
        if outcome.ok:
            logger.info("Transformation committed (%d chars)", len(outcome.result or ""))
        else:
            logger.info("Transformation failed: %s", outcome.error)
        return outcome

    @property
    def result(self) -> str | None:
        """Committed text of the last attempt, if it succeeded."""
        return self.last_outcome.result if self.last_outcome else None
