"""Request and response schemas for story transformation.

Field aliases follow the JSON bodies exchanged with the HTTP endpoints
(``text``, ``additionalContext``, ``transformedText``), so models can be
validated straight from a request body and dumped back with ``by_alias``.
"""

from __future__ import annotations

import uuid

from pydantic import BaseModel, ConfigDict, Field

from storyswap.errors import ValidationError

TEXT_REQUIRED = "Text is required"
NOTHING_TO_REPLACE = "At least one character replacement or additional context is required"


def _new_pair_id() -> str:
    return uuid.uuid4().hex


class ReplacementPair(BaseModel):
    """One character substitution: ``original`` becomes ``replacement``.

    Pairs are unique by ``id`` only; two pairs may name the same original.
    """

    id: str = Field(default_factory=_new_pair_id, description="Opaque unique token")
    original: str = Field(default="", description="Character name as it appears in the text")
    replacement: str = Field(default="", description="Character that takes its place")

    @property
    def is_complete(self) -> bool:
        """Both sides are filled in (whitespace does not count)."""
        return bool(self.original.strip()) and bool(self.replacement.strip())


class TransformRequest(BaseModel):
    """Everything needed to rewrite one story. Immutable once built."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    source_text: str = Field(default="", alias="text", description="The story to rewrite")
    replacements: tuple[ReplacementPair, ...] = Field(
        default=(), description="Substitutions in insertion order"
    )
    additional_context: str | None = Field(
        default=None,
        alias="additionalContext",
        description="Free-form guidance for the rewrite",
    )

    @property
    def complete_replacements(self) -> list[ReplacementPair]:
        """Pairs with both names filled in, in insertion order."""
        return [pair for pair in self.replacements if pair.is_complete]

    @property
    def has_context(self) -> bool:
        return bool(self.additional_context and self.additional_context.strip())

    @property
    def is_submittable(self) -> bool:
        try:
            self.check_submittable()
        except ValidationError:
            return False
        return True

    def check_submittable(self) -> None:
        """Raise ValidationError unless the request may reach the model.

        Raises:
            ValidationError: If the text is empty, or there is neither a
                complete replacement pair nor non-blank additional context.
        """
        if not self.source_text.strip():
            raise ValidationError(TEXT_REQUIRED)
        if not self.complete_replacements and not self.has_context:
            raise ValidationError(NOTHING_TO_REPLACE)

    def to_wire(self) -> dict:
        """JSON-ready body for the transform endpoints."""
        return self.model_dump(by_alias=True, exclude_none=True)


class TransformResponse(BaseModel):
    """Successful non-streaming response body."""

    model_config = ConfigDict(populate_by_name=True)

    transformed_text: str = Field(alias="transformedText")


class ErrorResponse(BaseModel):
    """Error body returned with a non-2xx status."""

    error: str
