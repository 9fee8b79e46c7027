# vnshelf/utils/text_utils.py

"""Text cleanup for catalog descriptions."""

from __future__ import annotations

import re

__all__ = ["strip_markup"]

# VNDB BBCode; the tag content is kept, only the tags go
_MARKUP_RE = re.compile(
    r"\[(url|spoiler|quote|raw|code)(?:=[^\]]*)?]|\[/(url|spoiler|quote|raw|code)]",
    re.IGNORECASE,
)


def strip_markup(text: str | None) -> str:
    """Removes VNDB formatting tags from a description.

    Args:
        text: Raw description, may be None.

    Returns:
        The text without [url], [spoiler], [quote], [raw] and [code] tags.
    """
    if not text:
        return ""
    return _MARKUP_RE.sub("", text)
