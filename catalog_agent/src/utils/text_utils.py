"""
Catalog Agent - Text Utilities
===============================
Helper functions for normalising user messages and unwrapping model
output.  Stateless and side-effect-free.
"""

from __future__ import annotations

import re
import unicodedata

# Control characters (C0/C1) plus BOM, zero-width chars and soft hyphens.
_NON_PRINTABLE_RE = re.compile(r"[\x00-\x08\x0b\x0c\x0e-\x1f\x7f-\x9f\ufeff\u200b\u200c\u200d\u200e\u200f\u00ad\u2060\ufffe]")
_WHITESPACE_RE = re.compile(r"\s+")
_CODE_FENCE_RE = re.compile(r"^```[a-zA-Z0-9_-]*\s*\n?(.*?)\n?```$", re.DOTALL)


def normalize_message(text: str) -> str:
    """
    Sanitise a free-text chat message before it is embedded.

    Steps:
        1. Unicode NFC normalisation.
        2. Strip non-printable / zero-width characters.
        3. Collapse every whitespace run (newlines included) to one space.

    Args:
        text: Raw message as received from the client.

    Returns:
        Single-line, trimmed message.  May be empty.
    """
    text = unicodedata.normalize("NFC", text)
    text = _NON_PRINTABLE_RE.sub("", text)
    return _WHITESPACE_RE.sub(" ", text).strip()


def strip_code_fence(text: str) -> str:
    """Remove a surrounding Markdown code fence (```json ... ```) if present."""
    stripped = text.strip()
    match = _CODE_FENCE_RE.match(stripped)
    if match:
        return match.group(1).strip()
    return stripped
