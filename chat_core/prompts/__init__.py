"""System prompt helpers.

The conversation is seeded with a single system message. It defaults to
DEFAULT_SYSTEM_PROMPT and can be read from a text file instead.
"""

from pathlib import Path
from typing import Optional


DEFAULT_SYSTEM_PROMPT = "You are a helpful assistant."


def load_system_prompt(value: Optional[str] = None) -> str:
    """Resolve the system prompt.

    ``value`` may be literal prompt text or ``@path/to/file`` to read the
    prompt from a UTF-8 file. Empty values fall back to the default.
    """

    if not value or not value.strip():
        return DEFAULT_SYSTEM_PROMPT
    if value.startswith("@"):
        text = Path(value[1:]).expanduser().read_text(encoding="utf-8").strip()
        return text or DEFAULT_SYSTEM_PROMPT
    return value.strip()
