"""
Company-name canonicalization for joining award winners with registry entries.

Awards and registry filings spell the same company differently
("INDRA SISTEMAS S.A.", "Indra Sistemas, SA"). Every join goes through
canonical_company_name() so that both sides collapse to one key:

    1. upper-case and fold accents
    2. drop dots inside abbreviations ("S.A." -> "SA")
    3. turn remaining punctuation into spaces and collapse whitespace
    4. strip trailing legal-form suffixes, repeatedly ("SL UNIPERSONAL")
"""

import re
from typing import Dict, Iterable, List, Optional

from boe_explorer.core.text import normalize

# Longest forms first so "SOCIEDAD LIMITADA LABORAL" wins over "SOCIEDAD LIMITADA"
LEGAL_SUFFIXES = [
    'SOCIEDAD ANONIMA LABORAL', 'SOCIEDAD LIMITADA LABORAL', 'SOCIEDAD LIMITADA NUEVA EMPRESA',
    'SOCIEDAD ANONIMA UNIPERSONAL', 'SOCIEDAD LIMITADA UNIPERSONAL',
    'SOCIEDAD ANONIMA', 'SOCIEDAD LIMITADA', 'SOCIEDAD COOPERATIVA', 'SOCIEDAD CIVIL',
    'UNIPERSONAL', 'EN LIQUIDACION',
    'SLNE', 'SCOOP', 'SCCL', 'COOP', 'SAU', 'SAL', 'SLU', 'SLL', 'SRL', 'AIE', 'UTE',
    'SA', 'SL', 'SC',
]

_SUFFIX_RE = re.compile(r"(?:\s|^)(?:" + "|".join(re.escape(s) for s in LEGAL_SUFFIXES) + r")$")
_PUNCT_RE = re.compile(r"[^\w\s]+")
_SPACES_RE = re.compile(r"\s+")


def canonical_company_name(name: Optional[str]) -> str:
    """
    Canonical join key for a company name.

    Examples:
        >>> canonical_company_name("INDRA SISTEMAS S.A.")
        'INDRA SISTEMAS'
        >>> canonical_company_name("Indra Sistemas, SA")
        'INDRA SISTEMAS'
        >>> canonical_company_name("Construcciones Pérez, S.L. Unipersonal")
        'CONSTRUCCIONES PEREZ'
    """
    text = normalize(name or '').upper().replace('.', '')
    text = _PUNCT_RE.sub(' ', text)
    text = _SPACES_RE.sub(' ', text).strip()

    while True:
        stripped = _SUFFIX_RE.sub('', text).strip()
        # Never strip a name down to nothing ("SA" alone stays)
        if stripped == text or not stripped:
            break
        text = stripped
    return text


def build_canonical_index(names: Iterable[str]) -> Dict[str, List[str]]:
    """Group raw names (e.g. registry index keys) by canonical form."""
    grouped: Dict[str, List[str]] = {}
    for raw in names:
        key = canonical_company_name(raw)
        if key:
            grouped.setdefault(key, []).append(raw)
    return grouped
