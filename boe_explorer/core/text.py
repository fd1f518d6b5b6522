"""
Accent/case folding used by every matcher in the system.

Spanish administrative text mixes accented and unaccented spellings of the
same word ("Resolución" / "RESOLUCION"), so every substring or keyword test
runs over folded text on both sides.
"""

import re
from typing import Optional

# Fixed one-to-one substitution table (Spanish, French, German diacritics)
_ACCENT_TABLE = str.maketrans(
    "áéíóúÁÉÍÓÚñÑüÜàèìòùÀÈÌÒÙäëïöÄËÏÖâêîôûÂÊÎÔÛçÇÿ",
    "aeiouAEIOUnNuUaeiouAEIOUaeioAEIOaeiouAEIOUcCy",
)

_WHITESPACE_RE = re.compile(r"\s+")


def normalize(text: Optional[str], lower: bool = False) -> str:
    """
    Map diacritics to their base Latin letter, optionally lower-casing.

    Examples:
        >>> normalize("García")
        'Garcia'
        >>> normalize("RESOLUCIÓN de la Dirección", lower=True)
        'resolucion de la direccion'
    """
    if not text:
        return ""
    folded = text.translate(_ACCENT_TABLE)
    return folded.lower() if lower else folded


def fold(text: Optional[str]) -> str:
    """Shorthand for accent-folded, lower-cased text."""
    return normalize(text, lower=True)


def contains_normalized(haystack: Optional[str], needle: Optional[str]) -> bool:
    """Case- and accent-insensitive substring test."""
    return fold(needle) in fold(haystack)


def collapse_whitespace(text: Optional[str]) -> str:
    """Collapse any run of whitespace to a single space and trim."""
    if not text:
        return ""
    return _WHITESPACE_RE.sub(" ", text).strip()


def title_name(name: str) -> str:
    """
    Title-case a person or company name as printed in registry text.

    Examples:
        >>> title_name("GARCIA LOPEZ JUAN")
        'Garcia Lopez Juan'
    """
    return name.lower().title()
