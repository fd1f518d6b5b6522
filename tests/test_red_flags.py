"""Tests for red-flag detection over awards joined with the registry."""

from unittest.mock import MagicMock

import pytest

from boe_explorer.analysis.red_flags import CompanyProfile, RedFlagEngine, summarize_company
from boe_explorer.core.domain_models import AlertType, Person, RegistryEntry, Severity


@pytest.fixture
def awards(make_award):
    return [
        make_award('BOE-B-2024-100', '2024-03-01', 'Acme Soluciones, S.L.', 200000.0, 'Abierto'),
        make_award('BOE-B-2024-101', '2024-03-01', 'BETA SERVICIOS, S.L.', 80000.0, 'Negociado sin publicidad'),
        make_award('BOE-B-2024-102', '2024-03-04', None, 50000.0, 'Abierto', tipo='Licitación'),
        make_award('BOE-B-2024-103', '2024-03-05', 'Desconocida SA', 300000.0, 'Abierto'),
    ]


def _by_type(alerts, tipo):
    return [a for a in alerts if a.tipo == tipo]


def test_match_companies_uses_canonical_names(populated_registry, awards):
    engine = RedFlagEngine(populated_registry)

    profiles = engine.match_companies([a for a in awards if a.detalle.adjudicatario])

    assert [p.clave for p in profiles] == ['ACME SOLUCIONES', 'BETA SERVICIOS']
    acme, beta = profiles
    assert acme.registro == ['ACME SOLUCIONES SL']
    assert acme.capital == 5000.0
    assert acme.fecha_constitucion == '2024-01-15'
    assert beta.fecha_constitucion == '2020-01-10'
    assert beta.disolucion_fecha == '2024-05-10'
    assert beta.capital == 60000.0


def test_capital_mismatch(populated_registry, awards):
    alerts, _ = RedFlagEngine(populated_registry).evaluate(awards)

    capital = _by_type(alerts, AlertType.CAPITAL_MISMATCH)
    assert len(capital) == 1
    assert capital[0].severidad == Severity.HIGH
    assert capital[0].datos['ratio'] == 40.0
    assert capital[0].documentos == ['BOE-B-2024-100']


def test_capital_mismatch_thresholds(awards, make_award):
    engine = RedFlagEngine(registry=None)
    big_contract = awards[0]

    well_funded = CompanyProfile(clave='X', empresa='X', capital=50000.0, contratos=[big_contract])
    assert engine.capital_alerts(well_funded) == []

    small_contract = make_award('BOE-B-2024-200', '2024-03-01', 'X', 90000.0)
    small = CompanyProfile(clave='X', empresa='X', capital=5000.0, contratos=[small_contract])
    assert engine.capital_alerts(small) == []

    unknown_amount = make_award('BOE-B-2024-201', '2024-03-01', 'X', None)
    unknown = CompanyProfile(clave='X', empresa='X', capital=5000.0, contratos=[unknown_amount])
    assert engine.capital_alerts(unknown) == []


def test_recent_incorporation(populated_registry, awards):
    alerts, _ = RedFlagEngine(populated_registry).evaluate(awards)

    recent = _by_type(alerts, AlertType.RECENT_INCORPORATION)
    assert len(recent) == 1
    assert recent[0].empresa == 'Acme Soluciones, S.L.'
    assert recent[0].datos['meses_antes'] == 1


def test_recent_incorporation_window_is_exclusive(make_award):
    engine = RedFlagEngine(registry=None)
    profile = CompanyProfile(clave='X', empresa='X', fecha_constitucion='2024-01-15', contratos=[
        make_award('D1', '2024-01-15', 'X', 1.0),
        make_award('D2', '2024-07-15', 'X', 1.0),
        make_award('D3', '2024-07-14', 'X', 1.0),
    ])

    assert [a.documentos for a in engine.incorporation_alerts(profile)] == [['D3']]


def test_post_award_dissolution(populated_registry, awards):
    alerts, _ = RedFlagEngine(populated_registry).evaluate(awards)

    dissolved = _by_type(alerts, AlertType.POST_AWARD_DISSOLUTION)
    assert len(dissolved) == 1
    assert dissolved[0].empresa == 'BETA SERVICIOS, S.L.'
    assert dissolved[0].datos['dias_despues'] == 70
    assert dissolved[0].registros == ['2024-05-10/2002']


def test_officer_change_near_award(populated_registry, awards):
    alerts, _ = RedFlagEngine(populated_registry).evaluate(awards)

    changes = _by_type(alerts, AlertType.OFFICER_CHANGE_NEAR_AWARD)
    assert len(changes) == 1
    assert changes[0].severidad == Severity.MEDIUM
    assert changes[0].datos['persona'] == 'Perez Garcia Antonio'
    assert changes[0].datos['dias_diferencia'] == 46


def test_shared_administrator(populated_registry, awards):
    alerts, _ = RedFlagEngine(populated_registry).evaluate(awards)

    shared = _by_type(alerts, AlertType.SHARED_ADMINISTRATOR)
    assert len(shared) == 1
    assert shared[0].severidad == Severity.MEDIUM
    assert shared[0].datos['empresas'] == ['Acme Soluciones, S.L.', 'BETA SERVICIOS, S.L.']
    assert shared[0].importe == 280000.0


def test_shared_administrator_high_at_three_companies():
    engine = RedFlagEngine(registry=None)
    profiles = []
    for name in ('A', 'B', 'C'):
        profile = CompanyProfile(clave=name, empresa=name)
        profile.personas['GIL PARDO LUIS'] = 'Gil Pardo Luis'
        profiles.append(profile)

    alerts, summary = engine.shared_administrator_alerts(profiles)

    assert alerts[0].severidad == Severity.HIGH
    assert summary == [{'nombre': 'Gil Pardo Luis', 'empresas': ['A', 'B', 'C']}]


def test_low_transparency_needs_no_registry(awards):
    alerts = RedFlagEngine(registry=None).low_transparency_alerts(awards)

    assert [a.documentos for a in alerts] == [['BOE-B-2024-101']]
    assert alerts[0].datos['adjudicatario'] == 'BETA SERVICIOS, S.L.'


def test_alerts_sorted_by_severity_then_amount(populated_registry, awards):
    alerts, _ = RedFlagEngine(populated_registry).evaluate(awards)

    assert [a.severidad for a in alerts] == [Severity.HIGH] * 3 + [Severity.MEDIUM] * 3
    assert [a.magnitude for a in alerts[:3]] == [200000.0, 200000.0, 80000.0]
    assert alerts[3].tipo == AlertType.SHARED_ADMINISTRATOR


def test_report_totals(populated_registry, awards):
    report = RedFlagEngine(populated_registry).report(awards)

    assert report['total_licitaciones'] == 4
    assert report['total_con_adjudicatario'] == 3
    assert report['empresas_cruzadas_registro'] == 2
    assert report['total_alertas'] == 6
    assert report['alertas_por_tipo'] == {
        'capital_mismatch': 1,
        'recent_incorporation': 1,
        'post_award_dissolution': 1,
        'shared_administrator': 1,
        'officer_change_near_award': 1,
        'low_transparency_procedure': 1,
    }
    assert report['negociado_sin_publicidad']['total'] == 1
    assert report['negociado_sin_publicidad']['importe_total'] == 80000.0
    assert report['multi_administradores'] == [
        {'nombre': 'Perez Garcia Antonio', 'empresas': ['Acme Soluciones, S.L.', 'BETA SERVICIOS, S.L.']}]
    assert report['alertas'][0]['tipo'] == 'capital_mismatch'
    assert report['alertas'][0]['severidad'] == 'alta'

    acme = report['empresas_cruzadas'][0]
    assert acme['registro_empresa'] == 'ACME SOLUCIONES SL'
    assert acme['disuelta'] is False
    assert acme['nombramientos'][0]['nombre'] == 'Perez Garcia Antonio'



def test_report_matches_shared_administrators_once(populated_registry, awards):
    engine = RedFlagEngine(populated_registry)
    engine.shared_administrator_alerts = MagicMock(wraps=engine.shared_administrator_alerts)

    report = engine.report(awards)

    assert engine.shared_administrator_alerts.call_count == 1
    assert report['alertas_por_tipo']['shared_administrator'] == 1
    assert [a['nombre'] for a in report['multi_administradores']] == ['Perez Garcia Antonio']

def test_summarize_company_orders_lifecycle():
    profile = CompanyProfile(clave='X', empresa='X', actos=[
        RegistryEntry(numero='3', empresa='X SL', provincia='P', fecha='2023-05-01', actos=['Disolución']),
        RegistryEntry(numero='1', empresa='X SL', provincia='P', fecha='2021-01-01', actos=['Constitución'],
                      capital=3000.0, personas=[Person('Ana Ruiz', 'Consejero', 'Nombramientos')]),
        RegistryEntry(numero='2', empresa='X SL', provincia='P', fecha='2022-01-01',
                      actos=['Ampliación de capital'], capital=12000.0,
                      personas=[Person('Ana Ruiz', 'Consejero', 'Ceses/Dimisiones')]),
    ])

    summarize_company(profile)

    assert profile.fecha_constitucion == '2021-01-01'
    assert profile.disolucion_fecha == '2023-05-01'
    assert profile.capital == 12000.0
    assert [(e.tipo, e.fecha) for e in profile.eventos] == [('Nombramiento', '2021-01-01'), ('Cese', '2022-01-01')]
