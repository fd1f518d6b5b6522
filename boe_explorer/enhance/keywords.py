"""
Keyword matching shared by the classifiers.

Keywords and text are both accent-folded and lower-cased. Keywords of six
characters or fewer must match a whole word so that short tokens ("chile",
"india") do not fire inside longer unrelated words.
"""

import re
from dataclasses import dataclass
from typing import Dict, List, Optional, Sequence, Tuple

from boe_explorer.core.text import fold

SHORT_KEYWORD_MAX = 6


@dataclass(frozen=True)
class Keyword:
    text: str
    pattern: Optional[re.Pattern] = None

    def matches(self, folded: str) -> bool:
        if self.pattern is not None:
            return bool(self.pattern.search(folded))
        return self.text in folded


def compile_keyword(raw: str, word_boundary_short: bool = True) -> Keyword:
    text = fold(raw)
    if word_boundary_short and len(text) <= SHORT_KEYWORD_MAX:
        return Keyword(text, re.compile(r"\b" + re.escape(text) + r"\b"))
    return Keyword(text)


def compile_table(table: Dict[str, Sequence[str]],
                  word_boundary_short: bool = True) -> List[Tuple[str, List[Keyword]]]:
    """Ordered (label, keywords) list; dict order is the match priority."""
    return [
        (label, [compile_keyword(k, word_boundary_short) for k in keywords])
        for label, keywords in table.items()
    ]


def first_match(folded: str, table: List[Tuple[str, List[Keyword]]]) -> Optional[str]:
    """Label of the first entry with any matching keyword."""
    for label, keywords in table:
        for keyword in keywords:
            if keyword.matches(folded):
                return label
    return None
