"""Tests for document/procurement aggregations and subsidy summaries."""

import pytest

from boe_explorer.analysis.reporting import (
    company_analysis,
    document_stats,
    search_documents,
    search_procurements,
    spending_summary,
)
from boe_explorer.analysis.subsidy_report import international_calls, search_subsidies, subsidy_summary
from boe_explorer.core.domain_models import BulletinDocument


@pytest.fixture
def procurements(make_award):
    return [
        make_award('B1', '2024-06-20', 'ACME SL', 100000.0, 'Abierto', nif_adjudicatario='B11111111',
                   es_pyme=True, ambito_geografico='Madrid, Toledo'),
        make_award('B2', '2024-06-21', None, 50000.0, 'Abierto', tipo='Licitación'),
        make_award('B3', '2024-06-24', None, None, None, tipo='Anuncio'),
    ]


def test_spending_summary_totals(procurements):
    summary = spending_summary(procurements)

    assert summary['importe_total'] == 150000.0
    assert summary['importe_adjudicaciones'] == 100000.0
    assert summary['importe_licitaciones'] == 50000.0
    assert summary['num_contratos'] == 2
    assert summary['num_licitaciones_total'] == 3
    assert summary['importe_medio'] == 75000.0
    assert summary['importe_max'] == 100000.0
    assert summary['importe_min'] == 50000.0
    assert summary['pct_pyme'] == 50.0
    assert summary['por_departamento'] == {'MINISTERIO DE DEFENSA': {'importe': 150000.0, 'count': 2}}
    assert summary['por_empresa']['ACME SL']['nif'] == 'B11111111'
    assert list(summary['por_dia']) == ['2024-06-20', '2024-06-21']


def test_spending_summary_regions(procurements):
    summary = spending_summary(procurements)

    assert summary['por_ccaa'] == {
        'Madrid': {'importe': 100000.0, 'count': 1},
        'Toledo': {'importe': 100000.0, 'count': 1},
        'Sin especificar': {'importe': 50000.0, 'count': 1},
    }
    assert summary['por_ccaa_todas']['Sin especificar']['count'] == 2


def test_spending_summary_empty():
    summary = spending_summary([])

    assert summary['importe_total'] == 0
    assert summary['importe_medio'] == 0
    assert summary['pct_pyme'] == 0


def test_search_procurements_filters(procurements):
    assert [r['id'] for r in search_procurements(procurements, importe_min=60000)] == ['B1']
    assert [r['id'] for r in search_procurements(procurements, importe_max=60000)] == ['B3', 'B2']
    assert [r['id'] for r in search_procurements(procurements, empresa='acme')] == ['B1']
    assert [r['id'] for r in search_procurements(procurements, texto='toledo')] == ['B1']
    assert [r['id'] for r in search_procurements(procurements, nif='b111')] == ['B1']
    assert [r['id'] for r in search_procurements(procurements, ccaa='madrid')] == ['B1']


def test_company_analysis_flags_concentration_and_recurrence(make_award):
    awards = [make_award(f'B{i}', f'2024-06-2{i}', 'ACME SL', 1000.0 * i, 'Abierto',
                         nif_adjudicatario='B11111111') for i in range(1, 4)]
    awards.append(make_award('B9', '2024-06-29', 'OTRA SA', 500.0, 'Abierto', departamento='AYUNTAMIENTO'))

    result = company_analysis(awards)

    assert result['total_empresas'] == 2
    assert result['top_empresa'] == 'ACME SL'
    assert result['empresas'][0]['tipo_sociedad'] == 'Sociedad Limitada (S.L.)'
    assert [(a['tipo'], a['nivel']) for a in result['alertas']] == [('recurrencia', 'alta'),
                                                                    ('concentracion', 'media')]


def _document(doc_id, titulo, departamento, seccion='I', fecha='2024-06-24'):
    return BulletinDocument(id=doc_id, fecha=fecha, titulo=titulo, tipo='Resolución',
                            departamento=departamento, seccion=seccion)


def test_search_documents_is_accent_insensitive():
    docs = [
        _document('A1', 'Resolución de la Dirección General de Tráfico', 'MINISTERIO DEL INTERIOR', fecha='2024-06-20'),
        _document('A2', 'Orden de ayudas a la educación', 'MINISTERIO DE EDUCACIÓN', fecha='2024-06-24'),
    ]

    assert [d.id for d in search_documents(docs, texto='trafico')] == ['A1']
    assert [d.id for d in search_documents(docs, departamento='educacion')] == ['A2']
    assert [d.id for d in search_documents(docs)] == ['A2', 'A1']
    assert search_documents(docs, seccion='V-A') == []

    stats = document_stats(docs)
    assert stats['total'] == 2
    assert stats['por_seccion'] == {'I': 2}


def test_search_subsidies_filters(subsidies):
    assert [s['id'] for s in search_subsidies(subsidies)] == ['1', '3', '2']
    assert [s['id'] for s in search_subsidies(subsidies, nivel='local')] == ['3']
    assert [s['id'] for s in search_subsidies(subsidies, fecha_desde='2024-06-01')] == ['1', '3']
    assert [s['id'] for s in search_subsidies(subsidies, sector='Vivienda')] == ['2']
    assert [s['id'] for s in search_subsidies(subsidies, texto='soria')] == ['3']


def test_subsidy_summary(subsidies):
    summary = subsidy_summary(subsidies, meta={'last_update': '2024-06-24T08:00:00+02:00'})

    assert summary['total_convocatorias'] == 3
    assert summary['last_update'] == '2024-06-24T08:00:00+02:00'
    assert summary['mrr_count'] == 1
    assert summary['total_presupuesto'] == 1250000.0
    assert summary['con_presupuesto'] == 2
    assert summary['euros_estatal'] == 1000000.0
    assert summary['por_destino_intl'] == {'Siria': 1}
    assert summary['por_mes'] == {'2024-05': 1, '2024-06': 2}
    assert [row['id'] for row in summary['ultimas']] == ['1', '3', '2']


def test_international_calls(subsidies):
    groups = international_calls(subsidies)

    assert [(g['nombre'], g['total']) for g in groups] == [('Siria', 1)]
    assert groups[0]['convocatorias'][0]['numero'] == '700001'
