"""
Search and summary over stored subsidy calls.

Sector and destination are derived on read from the description, so the
stored records never carry them.
"""

import logging
from collections import Counter
from typing import Any, Dict, Iterable, List, Optional, Sequence

from boe_explorer.core.domain_models import Subsidy
from boe_explorer.core.text import contains_normalized
from boe_explorer.enhance.subsidy_classifier import classify_sector, is_international, tag_subsidy

logger = logging.getLogger(__name__)

UNSPECIFIED = 'Sin especificar'


def search_subsidies(subsidies: Sequence[Subsidy], texto: str = '', nivel: str = '',
                     fecha_desde: str = '', fecha_hasta: str = '', sector: str = '') -> List[Dict[str, Any]]:
    """
    Filter calls and attach the derived `sector` and `destino` tags.

    Args:
        texto: Matched against description, department and entity
        nivel: Exact administrative level (case-insensitive input)
        fecha_desde: Inclusive lower date bound, YYYY-MM-DD
        fecha_hasta: Inclusive upper date bound, YYYY-MM-DD
        sector: Exact sector label

    Returns:
        Tagged dicts, newest first
    """
    result = list(subsidies)
    if texto:
        result = [s for s in result
                  if contains_normalized(s.descripcion, texto) or contains_normalized(s.organo, texto)
                  or contains_normalized(s.entidad, texto)]
    if nivel:
        level = nivel.strip().upper()
        result = [s for s in result if s.nivel == level]
    if fecha_desde:
        result = [s for s in result if (s.fecha or '') >= fecha_desde]
    if fecha_hasta:
        result = [s for s in result if (s.fecha or '') <= fecha_hasta]
    if sector:
        result = [s for s in result if classify_sector(s.descripcion) == sector]

    result.sort(key=lambda s: s.fecha or '', reverse=True)
    return [tag_subsidy(s) for s in result]


def _count_and_sum(rows: Iterable[Dict[str, Any]], field: str, top: Optional[int] = None):
    counts: Counter = Counter()
    euros: Counter = Counter()
    for row in rows:
        label = row.get(field) or UNSPECIFIED
        counts[label] += 1
        euros[label] += row.get('presupuesto') or 0
    return dict(counts.most_common(top)), dict(euros.most_common(top))


def subsidy_summary(subsidies: Sequence[Subsidy], meta: Optional[Dict[str, Any]] = None,
                    **filters) -> Dict[str, Any]:
    """
    Breakdowns by level, entity, department, sector, destination and month.

    Args:
        subsidies: Stored calls
        meta: Store metadata (last update, date range), copied into the result
        **filters: Passed to search_subsidies()
    """
    meta = meta or {}
    rows = search_subsidies(subsidies, **filters)

    by_level, euros_level = _count_and_sum(rows, 'nivel')
    by_entity, euros_entity = _count_and_sum(rows, 'entidad', top=30)
    by_organ, euros_organ = _count_and_sum(rows, 'organo', top=30)
    by_sector, euros_sector = _count_and_sum(rows, 'sector')
    all_dest, all_euros_dest = _count_and_sum(rows, 'destino')

    by_month: Counter = Counter()
    euros_month: Counter = Counter()
    by_date: Counter = Counter()
    for row in rows:
        fecha = row.get('fecha') or ''
        by_date[fecha or 'Sin fecha'] += 1
        if len(fecha) >= 7:
            by_month[fecha[:7]] += 1
            euros_month[fecha[:7]] += row.get('presupuesto') or 0

    budgets = [row['presupuesto'] for row in rows if (row.get('presupuesto') or 0) > 0]
    recent_dates = sorted(by_date)[-60:]

    return {
        'total_convocatorias': len(rows),
        'last_update': meta.get('last_update'),
        'fecha_min': meta.get('fecha_min'),
        'fecha_max': meta.get('fecha_max'),
        'mrr_count': sum(1 for row in rows if row.get('mrr')),
        'total_presupuesto': round(sum(budgets), 2),
        'con_presupuesto': len(budgets),
        'euros_estatal': euros_level.get('ESTATAL', euros_level.get('ESTADO', 0)),
        'euros_autonomico': euros_level.get('AUTONOMICO', euros_level.get('AUTONOMICA', 0)),
        'euros_local': euros_level.get('LOCAL', 0),
        'por_nivel': by_level,
        'euros_por_nivel': euros_level,
        'por_entidad': by_entity,
        'euros_por_entidad': euros_entity,
        'por_organo': by_organ,
        'euros_por_organo': euros_organ,
        'por_sector': by_sector,
        'euros_por_sector': euros_sector,
        'por_destino': dict(list(all_dest.items())[:20]),
        'euros_por_destino': dict(list(all_euros_dest.items())[:20]),
        'por_destino_intl': {k: v for k, v in all_dest.items() if is_international(k)},
        'euros_por_destino_intl': {k: v for k, v in all_euros_dest.items() if is_international(k)},
        'por_fecha': {d: by_date[d] for d in recent_dates},
        'por_mes': dict(sorted(by_month.items())),
        'euros_por_mes': dict(sorted(euros_month.items())),
        'ultimas': rows[:20],
    }


def international_calls(subsidies: Sequence[Subsidy]) -> List[Dict[str, Any]]:
    """Calls with a foreign destination grouped by destination, largest group first."""
    grouped: Dict[str, List[Dict[str, Any]]] = {}
    for row in search_subsidies(subsidies):
        if not is_international(row['destino']):
            continue
        grouped.setdefault(row['destino'], []).append({
            'id': row['id'],
            'numero': row.get('numero'),
            'descripcion': (row.get('descripcion') or '')[:300],
            'fecha': row.get('fecha'),
            'entidad': row.get('entidad'),
            'organo': row.get('organo'),
        })
    ordered = sorted(grouped.items(), key=lambda kv: len(kv[1]), reverse=True)
    return [{'nombre': dest, 'total': len(items), 'convocatorias': items} for dest, items in ordered]
