"""Single-shot story transformation.

The one non-streaming operation: validate, build the prompt, call the
generation source once. Used by the non-streaming endpoint and by the
in-process fallback, so both produce identical results for a request.
"""

from __future__ import annotations

import logging

from storyswap.prompts import build_request_prompt
from storyswap.providers.base import GenerationSource
from storyswap.schemas.transform import TransformRequest

logger = logging.getLogger(__name__)


async def transform_once(source: GenerationSource, request: TransformRequest) -> str:
    """Rewrite the story in ``request`` with a single model call.

    Args:
        source: The generation source to call.
        request: The transform request.

    Returns:
        The rewritten story text.

    Raises:
        ValidationError: If the request is not submittable. The source is
            not called in that case.
        GenerationError: If the model call fails.
    """
    request.check_submittable()
    prompt = build_request_prompt(request)
    logger.info(
        "Single-shot transform: %d chars, %d replacements, context=%s",
        len(request.source_text),
        len(request.complete_replacements),
        "yes" if request.has_context else "no",
    )
    return await source.generate_once(prompt)
