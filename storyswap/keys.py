"""API key resolution for the generation source.

Keys are looked up with this priority:
  1. Environment variables (highest, already set in shell)
  2. ~/.storyswap/keys.env (written by `storyswap setup`)
  3. .env in current directory (project-level)
"""

from __future__ import annotations

import logging
import os
from pathlib import Path

from storyswap.errors import ConfigurationError

logger = logging.getLogger(__name__)

# Directory for user-level StorySwap configuration
STORYSWAP_HOME = Path.home() / ".storyswap"
KEYS_FILE = STORYSWAP_HOME / "keys.env"

_KEYS_FILE_HEADER = (
    "# Model credentials for StorySwap.\n"
    "# Managed by `storyswap setup`; shell variables take precedence.\n"
)


def read_key_file(path: Path) -> dict[str, str]:
    """Return the ``NAME=value`` entries of a keys file.

    Comment lines and lines without ``=`` are ignored. Surrounding quotes
    are removed from values. A later entry for the same name wins.
    """
    try:
        text = path.read_text(encoding="utf-8")
    except OSError as e:
        logger.debug("Skipping keys file %s: %s", path, e)
        return {}

    entries: dict[str, str] = {}
    for raw in text.splitlines():
        line = raw.strip()
        name, sep, value = line.partition("=")
        if line.startswith("#") or not sep or not name.strip():
            continue
        entries[name.strip()] = value.strip().strip("'\"")
    return entries


def load_keys_env() -> None:
    """Copy saved credentials into os.environ without overriding the shell.

    The user keys file is applied before the project .env, so it wins when
    both name the same variable.
    """
    for env_file in (KEYS_FILE, Path.cwd() / ".env"):
        if not env_file.is_file():
            continue
        for name, value in read_key_file(env_file).items():
            if os.environ.get(name):
                continue
            os.environ[name] = value
            logger.debug("Loaded %s from %s", name, env_file)


def save_key(env_var: str, value: str) -> Path:
    """Store ``env_var`` in the user keys file, readable only by the owner.

    Other credentials already in the file are kept.
    """
    entries = read_key_file(KEYS_FILE) if KEYS_FILE.is_file() else {}
    entries[env_var] = value

    STORYSWAP_HOME.mkdir(parents=True, exist_ok=True)
    body = "".join(f"{name}={saved}\n" for name, saved in entries.items())
    KEYS_FILE.write_text(_KEYS_FILE_HEADER + body, encoding="utf-8")
    KEYS_FILE.chmod(0o600)
    logger.debug("Saved %s to %s", env_var, KEYS_FILE)
    return KEYS_FILE


def require_api_key(env_var: str) -> str:
    """Resolve a credential or fail before any request is served.

    Raises:
        ConfigurationError: If the variable is unset in the environment and
            in every keys file.
    """
    load_keys_env()
    value = os.environ.get(env_var, "")
    if not value:
        raise ConfigurationError(
            f"API key is not configured. Set {env_var} or run `storyswap setup`."
        )
    return value
