"""Story text extraction from local files.

Only plain-text formats are read; anything else is reported as a per-file
failure. One unreadable file never stops the others from loading.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path

from storyswap.errors import ExtractionError

logger = logging.getLogger(__name__)

# Extensions read as UTF-8 text
TEXT_EXTENSIONS = frozenset({".txt", ".md", ".markdown", ".text", ""})


@dataclass
class LoadedSources:
    """Texts that loaded, and a message for each file that did not."""

    texts: list[tuple[Path, str]] = field(default_factory=list)
    failures: dict[Path, str] = field(default_factory=dict)

    @property
    def combined(self) -> str:
        """All loaded texts joined with a blank line, in input order."""
        return "\n\n".join(text for _, text in self.texts)


def extract_text(path: Path) -> str:
    """Read one document as text.

    A UTF-8 byte-order mark is stripped; Windows line endings are
    normalized.

    Raises:
        ExtractionError: If the file is missing, unreadable, not a
            supported text format, not valid UTF-8, or empty.
    """
    if path.suffix.lower() not in TEXT_EXTENSIONS:
        raise ExtractionError(f"Unsupported file format: {path.suffix or path.name}")
    try:
        raw = path.read_bytes()
    except OSError as e:
        raise ExtractionError(f"Could not read {path.name}: {e.strerror or e}") from e
    try:
        text = raw.decode("utf-8-sig")
    except UnicodeDecodeError as e:
        raise ExtractionError(f"{path.name} is not valid UTF-8 text") from e

    text = text.replace("\r\n", "\n")
    if not text.strip():
        raise ExtractionError(f"{path.name} contains no text")
    return text


def load_sources(paths: list[Path]) -> LoadedSources:
    """Extract every file, collecting failures instead of raising."""
    loaded = LoadedSources()
    for path in paths:
        try:
            loaded.texts.append((path, extract_text(path)))
        except ExtractionError as e:
            logger.warning("Skipping %s: %s", path, e)
            loaded.failures[path] = str(e)
    return loaded
