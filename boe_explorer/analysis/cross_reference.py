"""
Score candidate relationships between two independently sourced record sets.

Typical use pairs general bulletin items (set A) with procurement notices
(set B). Five additive signals, clamped to [0, 1]:

    thematic   +0.15 per topic category matched by both records
    department +0.30 when both organs resolve to the same department key
    lexical    +0.10 per shared title word (>= 4 chars), needs 2+, max 0.30
    type       +0.10 when A is a procurement-adjacent document type
    identifier +0.50 when A's reference appears in B's title or description

Comparison is pairwise, so both inputs are capped to the most recent
records before scoring.
"""

import logging
import re
from typing import Any, Dict, List, Mapping, Optional, Sequence, Set, Tuple

from boe_explorer.core import config
from boe_explorer.core.domain_models import CrossReference
from boe_explorer.core.text import fold
from boe_explorer.enhance.keywords import Keyword, compile_keyword, compile_table

logger = logging.getLogger(__name__)

Record = Mapping[str, Any]

KEYWORD_CATEGORIES = {
    'tecnologia': ['digital', 'tecnología', 'informática', 'software', 'datos', 'telecomunicaciones',
                   'electrónica', 'TIC', 'ciberseguridad', 'inteligencia artificial', 'red', 'redes'],
    'infraestructura': ['obra', 'construcción', 'carretera', 'ferrocarril', 'puerto', 'aeropuerto',
                        'infraestructura', 'edificio', 'mantenimiento', 'rehabilitación'],
    'sanidad': ['salud', 'sanitario', 'hospital', 'médico', 'farmacéutico', 'vacuna', 'medicamento', 'clínico'],
    'educacion': ['educación', 'formación', 'universidad', 'escolar', 'docente', 'enseñanza', 'investigación'],
    'defensa': ['defensa', 'militar', 'ejército', 'armada', 'aeronáutico', 'seguridad nacional'],
    'medioambiente': ['medioambiental', 'ambiental', 'residuos', 'agua', 'energía renovable', 'sostenible',
                      'emisiones'],
    'transporte': ['transporte', 'movilidad', 'vehículo', 'autobús', 'tren', 'metro', 'logística', 'tráfico'],
    'servicios_sociales': ['social', 'dependencia', 'discapacidad', 'inclusión', 'igualdad', 'vivienda',
                           'pensión'],
}

# Canonical department key -> aliases found in organ names
DEPT_ALIASES = {
    'presidencia': ['presidencia', 'gobierno', 'consejo de ministros'],
    'hacienda': ['hacienda', 'tributaria', 'fiscal', 'presupuesto'],
    'interior': ['interior', 'policía', 'guardia civil', 'seguridad'],
    'transportes': ['transporte', 'movilidad', 'agenda urbana', 'fomento'],
    'economia': ['economía', 'económico', 'transformación digital', 'comercio'],
    'justicia': ['justicia', 'judicial', 'tribunal'],
    'defensa': ['defensa', 'militar', 'ejército'],
    'educacion': ['educación', 'formación profesional', 'universidades'],
    'trabajo': ['trabajo', 'empleo', 'seguridad social', 'migración'],
    'sanidad': ['sanidad', 'salud', 'consumo'],
    'ciencia': ['ciencia', 'innovación', 'investigación'],
    'cultura': ['cultura', 'deporte'],
    'transicion_ecologica': ['transición ecológica', 'medio ambiente'],
}

# Document types of set A that usually precede or follow a procurement
PROCUREMENT_ADJACENT_TYPES = {'Licitación', 'Adjudicación', 'Anuncio'}

CATEGORY_WEIGHT = 0.15
DEPARTMENT_WEIGHT = 0.3
WORD_WEIGHT = 0.1
WORD_CAP = 0.3
MIN_SHARED_WORDS = 2
TYPE_WEIGHT = 0.1
IDENTIFIER_WEIGHT = 0.5
DEPT_FALLBACK_CHARS = 30

# Confidence bands, highest first
BANDS: List[Tuple[float, str]] = [
    (0.7, 'Alta correlación'),
    (0.4, 'Correlación media'),
    (0.2, 'Baja correlación'),
]
LOWEST_BAND = 'Posible relación'

_WORD_RE = re.compile(r"\b\w{4,}\b")


def _compile_categories() -> List[Tuple[str, List[Keyword]]]:
    # Only the tiny tokens ("tic", "red") need whole-word matching here
    return [
        (category, [compile_keyword(k, word_boundary_short=len(k) <= 3) for k in keywords])
        for category, keywords in KEYWORD_CATEGORIES.items()
    ]


_CATEGORY_TABLE = _compile_categories()
_DEPT_TABLE = compile_table(DEPT_ALIASES, word_boundary_short=False)


def confidence_band(score: float) -> str:
    for floor, label in BANDS:
        if score >= floor:
            return label
    return LOWEST_BAND


def matched_categories(text: str) -> Set[str]:
    """Topic categories with at least one keyword in the text."""
    folded = fold(text)
    return {
        category for category, keywords in _CATEGORY_TABLE
        if any(k.matches(folded) for k in keywords)
    }


def matched_keywords(text: str) -> Set[str]:
    folded = fold(text)
    return {k.text for _, keywords in _CATEGORY_TABLE for k in keywords if k.matches(folded)}


def department_key(departamento: Optional[str]) -> str:
    """
    Canonical department key, or the first 30 folded characters when no
    alias matches.

    Examples:
        >>> department_key("MINISTERIO DE HACIENDA")
        'hacienda'
        >>> department_key("Ayuntamiento de Soria")
        'ayuntamiento de soria'
    """
    folded = fold(departamento)
    for key, aliases in _DEPT_TABLE:
        if any(alias.matches(folded) for alias in aliases):
            return key
    return folded[:DEPT_FALLBACK_CHARS].strip()


def title_words(titulo: Optional[str]) -> Set[str]:
    return set(_WORD_RE.findall(fold(titulo)))


def _text_a(record: Record) -> str:
    return ' '.join(str(record.get(k) or '') for k in ('titulo', 'departamento', 'subseccion'))


def _text_b(record: Record) -> str:
    parts = [
        record.get('titulo'),
        _organ(record),
        record.get('tipo_contrato_detalle') or record.get('tipo_contrato'),
        record.get('descripcion'),
    ]
    return ' '.join(str(p or '') for p in parts)


def _organ(record: Record) -> str:
    return record.get('departamento') or record.get('organo_contratacion') or ''


def _by_recency(records: Sequence[Record], cap: int) -> List[Record]:
    return sorted(records, key=lambda r: r.get('fecha') or '', reverse=True)[:cap]


def score_pair(a: Record, b: Record) -> Tuple[float, List[str]]:
    """
    Similarity of record A to record B.

    Returns:
        (score clamped to [0, 1] and rounded to 3 decimals, contributing keywords)
    """
    score = 0.0
    contributing: List[str] = []

    shared_categories = matched_categories(_text_a(a)) & matched_categories(_text_b(b))
    if shared_categories:
        score += len(shared_categories) * CATEGORY_WEIGHT
        shared_kw = matched_keywords(_text_a(a)) & matched_keywords(_text_b(b))
        contributing.extend(sorted(shared_kw) or sorted(shared_categories))

    dept_a = department_key(_organ(a))
    dept_b = department_key(_organ(b))
    if dept_a and dept_a == dept_b:
        score += DEPARTMENT_WEIGHT

    shared_words = title_words(a.get('titulo')) & title_words(b.get('titulo'))
    if len(shared_words) >= MIN_SHARED_WORDS:
        score += min(len(shared_words) * WORD_WEIGHT, WORD_CAP)
        contributing.extend(sorted(shared_words)[:5])

    if a.get('tipo') in PROCUREMENT_ADJACENT_TYPES:
        score += TYPE_WEIGHT

    reference = a.get('referencia') or ''
    if reference and (reference in (b.get('titulo') or '') or reference in (b.get('descripcion') or '')):
        score += IDENTIFIER_WEIGHT

    unique = list(dict.fromkeys(contributing))
    return round(min(score, 1.0), 3), unique


class CrossReferenceEngine:
    """Rank candidate relationships between two record sets."""

    def __init__(self, max_input: int = config.XREF_MAX_INPUT):
        self.max_input = max_input

    def cross_reference(self, records_a: Sequence[Record], records_b: Sequence[Record],
                        threshold: float = config.XREF_DEFAULT_THRESHOLD,
                        max_results: int = config.XREF_DEFAULT_MAX_RESULTS) -> List[CrossReference]:
        """
        Score every (A, B) pair and keep those at or above the threshold.

        Zero-score pairs are never emitted, whatever the threshold.

        Args:
            records_a: Bulletin items as dicts (BulletinDocument.to_dict())
            records_b: Procurement items as dicts
            threshold: Minimum score kept
            max_results: Cap on the returned list

        Returns:
            CrossReference list sorted by score, highest first
        """
        docs_a = _by_recency(records_a, self.max_input)
        docs_b = _by_recency(records_b, self.max_input)
        logger.info(f"Cross-referencing {len(docs_a)} x {len(docs_b)} records (threshold {threshold})")

        refs: List[CrossReference] = []
        for a in docs_a:
            for b in docs_b:
                if a.get('id') and a.get('id') == b.get('id'):
                    continue
                score, keywords = score_pair(a, b)
                if score <= 0 or score < threshold:
                    continue
                refs.append(CrossReference(
                    doc_a=a.get('id', ''),
                    doc_b=b.get('id', ''),
                    score=score,
                    categoria=confidence_band(score),
                    keywords=keywords,
                    titulo_a=a.get('titulo', ''),
                    titulo_b=b.get('titulo', ''),
                ))

        refs.sort(key=lambda r: r.score, reverse=True)
        logger.info(f"Found {len(refs)} candidate relationships, returning {min(len(refs), max_results)}")
        return refs[:max_results]

    def thematic_analysis(self, records_a: Sequence[Record],
                          records_b: Sequence[Record]) -> Dict[str, Dict[str, int]]:
        """
        Count records per topic category in each set.

        Returns:
            {category: {documentos, licitaciones, total}} sorted by total
        """
        counts: Dict[str, Dict[str, int]] = {}
        for field_name, records, text_of in (('documentos', records_a, _text_a),
                                             ('licitaciones', records_b, _text_b)):
            for record in records:
                for category in matched_categories(text_of(record)):
                    row = counts.setdefault(category, {'documentos': 0, 'licitaciones': 0, 'total': 0})
                    row[field_name] += 1
                    row['total'] += 1

        return dict(sorted(counts.items(), key=lambda item: item[1]['total'], reverse=True))
