"""Prompt template loader and the story-transformation prompt builder.

Loads Markdown prompt templates from the prompts/ directory and renders
them with Jinja2 variable substitution.
"""

from __future__ import annotations

from collections.abc import Iterable
from pathlib import Path

from jinja2 import BaseLoader, Environment

from storyswap.schemas.transform import ReplacementPair, TransformRequest

# Directory containing the .md prompt template files
_PROMPTS_DIR = Path(__file__).parent

# Used in place of the pair list when the user only gave free-form context
DELEGATED_REPLACEMENT = (
    "characters of your own choosing, in line with the additional context"
)


def render_prompt(template_name: str, **variables: object) -> str:
    """Load a prompt template and render it with Jinja2 variables.

    Args:
        template_name: Name of the template file (without .md extension).
                       Must correspond to a file in the prompts/ directory.
        **variables: Template variables to inject.

    Returns:
        The fully rendered prompt string.

    Raises:
        FileNotFoundError: If the template file does not exist.
    """
    path = _PROMPTS_DIR / f"{template_name}.md"
    if not path.exists():
        raise FileNotFoundError(f"Prompt template not found: {path}")

    template_text = path.read_text(encoding="utf-8")

    # Default Undefined renders as empty string, so {% if %} guards skip
    # optional blocks when a variable is not provided.
    env = Environment(loader=BaseLoader(), keep_trailing_newline=True)
    template = env.from_string(template_text)
    return template.render(**variables)


def format_replacements(replacements: Iterable[ReplacementPair]) -> str:
    """Render complete pairs as ``"<original>" → "<replacement>"``, comma-joined.

    Incomplete pairs are skipped; with none left the delegation phrase is
    returned instead.
    """
    rendered = [
        f'"{pair.original}" → "{pair.replacement}"'
        for pair in replacements
        if pair.is_complete
    ]
    return ", ".join(rendered) if rendered else DELEGATED_REPLACEMENT


def build_prompt(
    source_text: str,
    replacements: Iterable[ReplacementPair] = (),
    additional_context: str | None = None,
) -> str:
    """Turn a story, its substitutions and optional context into one instruction.

    The story is embedded verbatim between triple-quote delimiters. Nothing
    is escaped, so a story that itself contains ``\"\"\"`` can blur the
    boundary for the model.
    """
    context = additional_context if additional_context and additional_context.strip() else ""
    return render_prompt(
        "transform",
        source_text=source_text,
        replacement_text=format_replacements(replacements),
        additional_context=context,
    )


def build_request_prompt(request: TransformRequest) -> str:
    """build_prompt() for a TransformRequest."""
    return build_prompt(
        request.source_text, request.replacements, request.additional_context
    )
