"""
Aggregations over stored bulletin documents and procurement records.

Every function takes already-loaded BulletinDocument lists and returns
plain dicts ready for JSON output; nothing here performs I/O.
"""

import logging
import re
from collections import Counter
from typing import Any, Callable, Dict, Iterable, List, Optional, Sequence

from boe_explorer.core.domain_models import BulletinDocument
from boe_explorer.core.text import contains_normalized, fold
from boe_explorer.enhance.company_classifier import classify_nif
from boe_explorer.enhance.procurement_sector import classify_procurement_sector

logger = logging.getLogger(__name__)

Row = Dict[str, Any]

_REGION_SPLIT = re.compile(r"[\n,]+")

CONCENTRATION_MIN = 3
CONCENTRATION_HIGH = 5
RECURRENCE_MIN = 2
RECURRENCE_HIGH = 3


def _rows(documents: Iterable[BulletinDocument]) -> List[Row]:
    return [d.to_dict() for d in documents]


def _newest_first(rows: List[Row]) -> List[Row]:
    return sorted(rows, key=lambda r: r.get('fecha') or '', reverse=True)


def _cpv_text(row: Row) -> str:
    cpv = row.get('cpv') or []
    return '\n'.join(cpv) if isinstance(cpv, list) else str(cpv)


def _regions(row: Row) -> List[str]:
    raw = row.get('ambito_geografico') or 'Sin especificar'
    return [r.strip() for r in _REGION_SPLIT.split(raw) if r.strip()]


def _grouped(rows: Iterable[Row], key: Callable[[Row], Any], top: Optional[int] = None) -> Dict[str, Dict]:
    """{label: {importe, count}} sorted by amount, highest first."""
    groups: Dict[str, Dict[str, Any]] = {}
    for row in rows:
        labels = key(row)
        for label in labels if isinstance(labels, list) else [labels]:
            item = groups.setdefault(label, {'importe': 0.0, 'count': 0})
            item['importe'] += row.get('importe') or 0
            item['count'] += 1

    for item in groups.values():
        item['importe'] = round(item['importe'], 2)
    ordered = sorted(groups.items(), key=lambda kv: kv[1]['importe'], reverse=True)
    return dict(ordered[:top] if top else ordered)


def _counted(values: Iterable[str]) -> Dict[str, int]:
    return dict(Counter(values).most_common())


# =============================================================================
# BULLETIN DOCUMENTS
# =============================================================================

def document_stats(documents: Sequence[BulletinDocument]) -> Dict[str, Any]:
    """Counts by section, department and classified type."""
    return {
        'total': len(documents),
        'por_seccion': dict(Counter(d.seccion or 'Otro' for d in documents)),
        'por_departamento': _counted(d.departamento or 'Sin departamento' for d in documents),
        'por_tipo': _counted(d.tipo for d in documents),
    }


def search_documents(documents: Sequence[BulletinDocument], texto: str = '', departamento: str = '',
                     seccion: str = '', tipo: str = '') -> List[BulletinDocument]:
    """
    Filter documents; all text filters are accent- and case-insensitive.

    `seccion` must match exactly. Results are sorted newest first.
    """
    result = list(documents)
    if texto:
        result = [d for d in result
                  if contains_normalized(d.titulo, texto) or contains_normalized(d.departamento, texto)
                  or contains_normalized(d.referencia, texto)]
    if departamento:
        result = [d for d in result if contains_normalized(d.departamento, departamento)]
    if seccion:
        result = [d for d in result if d.seccion == seccion]
    if tipo:
        result = [d for d in result if contains_normalized(d.tipo, tipo)]
    return sorted(result, key=lambda d: d.fecha, reverse=True)


# =============================================================================
# PROCUREMENT
# =============================================================================

def search_procurements(procurements: Sequence[BulletinDocument], texto: str = '', tipo: str = '',
                        departamento: str = '', empresa: str = '', nif: str = '',
                        importe_min: Optional[float] = None, importe_max: Optional[float] = None,
                        procedimiento: str = '', ccaa: str = '') -> List[Row]:
    """
    Filter procurement records.

    Args:
        texto: Matched against title, department, winner, tax id, CPV and region
        empresa: Every word must appear in winner + title + department + tax id
        nif: Upper-case substring of the winner's tax id
        importe_min: Records without an amount count as 0
        importe_max: Records without an amount are kept

    Returns:
        Flattened records, newest first
    """
    rows = _rows(procurements)

    if texto:
        rows = [r for r in rows if any(contains_normalized(v, texto) for v in (
            r.get('titulo'), r.get('departamento'), r.get('adjudicatario'),
            r.get('nif_adjudicatario'), _cpv_text(r), r.get('ambito_geografico')))]
    if tipo:
        rows = [r for r in rows if contains_normalized(r.get('tipo_contrato_detalle') or r.get('tipo'), tipo)]
    if departamento:
        rows = [r for r in rows if contains_normalized(r.get('departamento'), departamento)]
    if empresa:
        words = empresa.split()

        def _all_words(row: Row) -> bool:
            combined = ' '.join(str(row.get(k) or '') for k in
                                ('adjudicatario', 'titulo', 'departamento', 'nif_adjudicatario'))
            return all(contains_normalized(combined, w) for w in words)

        rows = [r for r in rows if _all_words(r)]
    if nif:
        needle = nif.strip().upper()
        rows = [r for r in rows if needle in (r.get('nif_adjudicatario') or '').upper()]
    if importe_min is not None:
        rows = [r for r in rows if (r.get('importe') or 0) >= importe_min]
    if importe_max is not None:
        rows = [r for r in rows if r.get('importe') is None or r['importe'] <= importe_max]
    if procedimiento:
        rows = [r for r in rows if contains_normalized(r.get('procedimiento'), procedimiento)]
    if ccaa:
        rows = [r for r in rows if contains_normalized(r.get('ambito_geografico'), ccaa)]

    return _newest_first(rows)


def is_award(row: Row) -> bool:
    """Award/formalization notices, as opposed to calls for tender."""
    tipo = fold(row.get('tipo'))
    return 'adjudicacion' in tipo or 'formalizacion' in tipo or 'formalizacion' in fold(row.get('modalidad'))


def sector_of(row: Row) -> str:
    return classify_procurement_sector(row.get('titulo'), row.get('departamento'),
                                       row.get('cpv') or [], row.get('tipo_contrato_detalle'))


def spending_summary(procurements: Sequence[BulletinDocument]) -> Dict[str, Any]:
    """
    Spending totals and breakdowns over records with a positive amount.

    Returns:
        Totals (sum, mean, max, min, SME share), award vs tender split and
        groupings by department (top 15), contract type, company (top 20),
        day, procedure, region and sector
    """
    rows = _rows(procurements)
    priced = [r for r in rows if (r.get('importe') or 0) > 0]
    amounts = [r['importe'] for r in priced]
    total = sum(amounts)

    awards = [r for r in priced if is_award(r)]
    tenders = [r for r in priced if not is_award(r)]

    companies: Dict[str, Dict[str, Any]] = {}
    for row in priced:
        name = row.get('adjudicatario')
        if not name:
            continue
        item = companies.setdefault(name, {'importe': 0.0, 'count': 0, 'nif': row.get('nif_adjudicatario'),
                                           'es_pyme': bool(row.get('es_pyme'))})
        item['importe'] += row['importe']
        item['count'] += 1
    top_companies = dict(sorted(companies.items(), key=lambda kv: kv[1]['importe'], reverse=True)[:20])

    smes = sum(1 for r in priced if r.get('es_pyme'))
    by_day = _grouped(priced, lambda r: r.get('fecha') or '')

    return {
        'importe_total': round(total, 2),
        'importe_adjudicaciones': round(sum(r['importe'] for r in awards), 2),
        'importe_licitaciones': round(sum(r['importe'] for r in tenders), 2),
        'num_adjudicaciones': len(awards),
        'num_licitaciones': len(tenders),
        'num_contratos': len(priced),
        'num_licitaciones_total': len(rows),
        'importe_medio': round(total / len(priced), 2) if priced else 0,
        'importe_max': round(max(amounts), 2) if amounts else 0,
        'importe_min': round(min(amounts), 2) if amounts else 0,
        'pct_pyme': round(smes / len(priced) * 100, 1) if priced else 0,
        'por_departamento': _grouped(priced, lambda r: r.get('departamento') or 'Sin departamento', top=15),
        'por_tipo_contrato': _grouped(priced, lambda r: r.get('tipo_contrato_detalle') or r.get('tipo') or 'Otro'),
        'por_empresa': top_companies,
        'por_dia': dict(sorted(by_day.items())),
        'por_procedimiento': _grouped(priced, lambda r: r.get('procedimiento') or 'Sin especificar'),
        'por_ccaa': _grouped(priced, _regions),
        'por_ccaa_todas': _grouped(rows, _regions),
        'por_sector': _grouped(priced, sector_of),
    }


def company_analysis(procurements: Sequence[BulletinDocument]) -> Dict[str, Any]:
    """
    Per-company concentration and recurrence flags for award winners.

    Concentration: 3+ contracts (high at 5+). Recurrence: 2+ contracts with
    the same department (high at 3+).
    """
    rows = _rows(procurements)
    awarded = [r for r in rows if r.get('adjudicatario')]

    companies: Dict[str, Dict[str, Any]] = {}
    for row in awarded:
        name = row['adjudicatario']
        if name not in companies:
            companies[name] = {
                'nombre': name,
                'nif': row.get('nif_adjudicatario'),
                'es_pyme': bool(row.get('es_pyme')),
                **classify_nif(row.get('nif_adjudicatario')),
                'contratos': 0,
                'importe_total': 0.0,
                'departamentos': [],
                'contratos_detalle': [],
            }
        item = companies[name]
        item['contratos'] += 1
        item['importe_total'] += row.get('importe') or 0
        dept = row.get('departamento') or ''
        if dept and dept not in item['departamentos']:
            item['departamentos'].append(dept)
        item['contratos_detalle'].append({
            'id': row['id'],
            'titulo': (row.get('titulo') or '')[:120],
            'importe': row.get('importe'),
            'fecha': row.get('fecha'),
            'departamento': dept,
            'procedimiento': row.get('procedimiento'),
        })

    ranked = sorted(companies.values(), key=lambda c: c['importe_total'], reverse=True)

    alerts: List[Dict[str, Any]] = []
    for company in ranked:
        if company['contratos'] >= CONCENTRATION_MIN:
            alerts.append({
                'tipo': 'concentracion',
                'nivel': 'alta' if company['contratos'] >= CONCENTRATION_HIGH else 'media',
                'empresa': company['nombre'],
                'nif': company['nif'],
                'contratos': company['contratos'],
                'importe_total': round(company['importe_total'], 2),
                'mensaje': f"{company['nombre']} tiene {company['contratos']} contratos",
            })
        per_dept = Counter(c['departamento'] for c in company['contratos_detalle'] if c['departamento'])
        for dept, count in per_dept.items():
            if count >= RECURRENCE_MIN:
                alerts.append({
                    'tipo': 'recurrencia',
                    'nivel': 'alta' if count >= RECURRENCE_HIGH else 'media',
                    'empresa': company['nombre'],
                    'nif': company['nif'],
                    'departamento': dept,
                    'veces': count,
                    'mensaje': f"{company['nombre']} tiene {count} contratos con {dept}",
                })

    # Stable sort keeps the amount ranking within each level
    alerts.sort(key=lambda a: 0 if a['nivel'] == 'alta' else 1)

    return {
        'total_empresas': len(ranked),
        'total_licitaciones_analizadas': len(rows),
        'total_con_adjudicatario': len(awarded),
        'importe_total_adjudicado': round(sum(c['importe_total'] for c in ranked), 2),
        'empresas': ranked[:50],
        'alertas': alerts,
        'top_empresa': ranked[0]['nombre'] if ranked else None,
    }
