"""Tests for cross-reference scoring between bulletin items and procurements."""

import pytest

from boe_explorer.analysis.cross_reference import (
    CrossReferenceEngine,
    confidence_band,
    department_key,
    matched_categories,
    score_pair,
)


@pytest.fixture
def resolution():
    return {
        'id': 'BOE-A-2024-12001',
        'referencia': 'BOE-A-2024-12001',
        'fecha': '2024-06-24',
        'titulo': 'Resolución sobre ciberseguridad de redes ministeriales',
        'departamento': 'MINISTERIO DE HACIENDA',
        'subseccion': '',
        'tipo': 'Resolución',
    }


@pytest.fixture
def tender():
    return {
        'id': 'BOE-B-2024-20001',
        'fecha': '2024-06-24',
        'titulo': 'Servicio de ciberseguridad de redes ministeriales',
        'departamento': 'Agencia Estatal de Administración Tributaria',
        'tipo': 'Licitación',
    }


def test_department_key_aliases_and_fallback():
    assert department_key("MINISTERIO DE HACIENDA") == 'hacienda'
    assert department_key("Agencia Estatal de Administración Tributaria") == 'hacienda'
    assert department_key("Ayuntamiento de Soria") == 'ayuntamiento de soria'
    assert department_key(None) == ''


def test_confidence_bands():
    assert confidence_band(0.75) == 'Alta correlación'
    assert confidence_band(0.5) == 'Correlación media'
    assert confidence_band(0.25) == 'Baja correlación'
    assert confidence_band(0.1) == 'Posible relación'


def test_tiny_category_keywords_need_whole_words():
    assert 'tecnologia' in matched_categories('Plan TIC de la administración')
    assert 'tecnologia' not in matched_categories('Servicio de restauración ética')


def test_score_pair_adds_topic_department_and_words(resolution, tender):
    score, keywords = score_pair(resolution, tender)

    # 0.15 topic + 0.30 department + 0.30 shared words (capped)
    assert score == pytest.approx(0.75)
    assert keywords == ['ciberseguridad', 'redes', 'ministeriales']


def test_score_pair_identifier_bonus():
    a = {'id': 'BOE-A-2024-9', 'referencia': 'BOE-A-2024-9', 'titulo': 'Orden X',
         'departamento': 'Ayuntamiento de Soria', 'tipo': 'Orden'}
    b = {'id': 'BOE-B-2024-5', 'titulo': 'Anuncio', 'descripcion': 'En relación con BOE-A-2024-9',
         'departamento': 'Diputación de Lugo'}

    score, keywords = score_pair(a, b)

    assert score == pytest.approx(0.5)
    assert keywords == []


def test_engine_ranks_and_bands(resolution, tender):
    unrelated = {'id': 'BOE-B-2024-20002', 'fecha': '2024-06-21', 'titulo': 'Beta',
                 'departamento': 'Diputación de Lugo'}

    refs = CrossReferenceEngine().cross_reference([resolution], [tender, unrelated], threshold=0.0)

    assert len(refs) == 1
    assert refs[0].doc_a == 'BOE-A-2024-12001'
    assert refs[0].doc_b == 'BOE-B-2024-20001'
    assert refs[0].categoria == 'Alta correlación'


def test_engine_skips_same_record(resolution):
    assert CrossReferenceEngine().cross_reference([resolution], [dict(resolution)], threshold=0.0) == []


def test_engine_threshold_and_cap(resolution, tender):
    engine = CrossReferenceEngine()

    assert engine.cross_reference([resolution], [tender], threshold=0.8) == []
    assert len(engine.cross_reference([resolution], [tender, dict(tender, id='X')], max_results=1)) == 1


def test_engine_keeps_most_recent_inputs(resolution, tender):
    older = dict(resolution, fecha='2024-01-01')
    newer = {'id': 'BOE-A-2024-13000', 'fecha': '2024-06-25', 'titulo': 'Nada en común',
             'departamento': 'Diputación de Lugo'}

    refs = CrossReferenceEngine(max_input=1).cross_reference([older, newer], [tender], threshold=0.0)

    assert refs == []


def test_thematic_analysis_counts_both_sets(resolution, tender):
    counts = CrossReferenceEngine().thematic_analysis([resolution], [tender])

    assert counts == {'tecnologia': {'documentos': 1, 'licitaciones': 1, 'total': 2}}
