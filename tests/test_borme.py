"""Tests for the registry text parser and the registry client."""

from datetime import date
from unittest.mock import MagicMock

from boe_explorer.core.results import FetchStatus, SourceUnavailable
from boe_explorer.ingest.borme import BormeClient, parse_registry_summary
from boe_explorer.ingest.borme_parser import (
    detect_acts,
    extract_persons,
    parse_entry,
    parse_registry_text,
    reflow,
    split_company,
)


def test_reflow_drops_boilerplate_and_banners(registry_text):
    blob = reflow(registry_text)

    assert blob.startswith('123456 - CONSTRUCCIONES PEREZ SL.')
    assert 'BOLETÍN OFICIAL' not in blob
    assert 'Verificable' not in blob
    assert 'Actos inscritos' not in blob


def test_parse_registry_text_segments_entries(registry_text):
    entries = parse_registry_text(registry_text, 'MADRID', '2024-06-24')

    assert [e.numero for e in entries] == ['123456', '123457']
    assert [e.empresa for e in entries] == ['CONSTRUCCIONES PEREZ SL', 'INDRA SISTEMAS SA']
    assert all(e.provincia == 'MADRID' and e.fecha == '2024-06-24' for e in entries)


def test_incorporation_entry_fields(registry_text):
    entry = parse_registry_text(registry_text, 'MADRID', '2024-06-24')[0]

    assert entry.actos == ['Constitución', 'Nombramientos']
    assert entry.capital == 3000.0
    assert entry.domicilio == 'C/ MAYOR 1 (MADRID)'
    assert entry.objeto_social == 'Construcción de edificios'
    assert entry.datos_registrales == 'T 100 , F 1, S 8, H M 1, I/A 1 (18.06.24)'

    assert len(entry.personas) == 1
    person = entry.personas[0]
    assert person.nombre == 'Perez Garcia Antonio'
    assert person.cargo == 'Administrador único'
    assert person.accion == 'Nombramientos'
    assert person.fecha == '2024-06-24'


def test_officers_take_the_preceding_section(registry_text):
    entry = parse_registry_text(registry_text, 'MADRID', '2024-06-24')[1]

    assert entry.actos == ['Nombramientos', 'Ceses/Dimisiones']
    assert [(p.nombre, p.accion) for p in entry.personas] == [
        ('Lopez Ruiz Maria', 'Ceses/Dimisiones'),
        ('Sanz Molina Pedro', 'Nombramientos'),
    ]
    assert entry.capital is None


def test_split_company_at_earliest_marker():
    assert split_company("ACME SL. Constitución. Capital: 3.000,00 Euros.") == (
        'ACME SL', 'Constitución. Capital: 3.000,00 Euros.')


def test_extract_persons_splits_name_lists():
    persons = extract_persons("Nombramientos. Apoderado: RUIZ PEÑA ANA;GOMEZ SAEZ LUIS. Datos registrales. T 1.")

    assert [p.nombre for p in persons] == ['Ruiz Peña Ana', 'Gomez Saez Luis']
    assert {p.cargo for p in persons} == {'Apoderado'}


def test_extract_persons_stops_at_next_role_label():
    persons = extract_persons("Nombramientos. Apoderado: A PEREZ; Liquidador: B GOMEZ.")

    assert [(p.nombre, p.cargo) for p in persons] == [('A Perez', 'Apoderado'), ('B Gomez', 'Liquidador')]
    assert {p.accion for p in persons} == {'Nombramientos'}


def test_sole_shareholder_becomes_person():
    entry = parse_entry(
        '200001',
        'SOL Y MAR SL. Declaración de unipersonalidad. Socio único: GARCIA LOPEZ MARIA. '
        'Datos registrales. T 1 , F 2.',
        'MÁLAGA', '2024-06-24',
    )

    assert entry.empresa == 'SOL Y MAR SL'
    assert entry.actos == ['Unipersonalidad']
    assert entry.socio_unico == 'Garcia Lopez Maria'
    assert entry.personas[0].cargo == 'Socio único'
    assert entry.personas[0].accion == 'Constitución'


def test_detect_acts_is_accent_insensitive():
    assert detect_acts("DISOLUCION. Voluntaria. Extinción.") == ['Disolución', 'Extinción']
    assert detect_acts("Sin actos reconocibles") == []


def test_parse_registry_text_tolerates_garbage():
    assert parse_registry_text("texto ilegible sin entradas", 'SORIA') == []
    assert parse_registry_text("", 'SORIA') == []


def test_parse_registry_summary_keeps_section_a_provinces(registry_summary):
    pdfs = parse_registry_summary(registry_summary)

    assert len(pdfs) == 1
    assert pdfs[0].provincia == 'MADRID'
    assert pdfs[0].url.endswith('BORME-A-2024-120-28.pdf')
    assert parse_registry_summary({'status': {'code': '404'}}) is None
    assert parse_registry_summary('not json') is None


def _client(registry_store, registry_summary, registry_text):
    fetcher = MagicMock()
    fetcher.fetch_json.return_value = registry_summary
    fetcher.fetch_pdf.return_value = b'%PDF-1.4'
    pdf_parser = MagicMock()
    pdf_parser.extract_text.return_value = registry_text
    client = BormeClient(fetcher, registry_store, pdf_parser, pdf_delay=0, day_delay=0)
    return client, fetcher


def test_fetch_day_parses_province_pdfs(registry_store, registry_summary, registry_text):
    client, fetcher = _client(registry_store, registry_summary, registry_text)

    result = client.fetch_day(date(2024, 6, 24))

    assert result.status == FetchStatus.OK
    assert len(result) == 2
    fetcher.fetch_pdf.assert_called_once()


def test_fetch_day_skips_failed_province(registry_store, registry_summary, registry_text):
    client, fetcher = _client(registry_store, registry_summary, registry_text)
    fetcher.fetch_pdf.side_effect = SourceUnavailable('borme', 'HTTP 404')

    result = client.fetch_day(date(2024, 6, 24))

    assert result.succeeded
    assert result.status == FetchStatus.EMPTY


def test_fetch_day_fails_without_summary(registry_store, registry_summary, registry_text):
    client, fetcher = _client(registry_store, registry_summary, registry_text)
    fetcher.fetch_json.side_effect = SourceUnavailable('borme', 'HTTP 503', status_code=503)

    assert client.fetch_day(date(2024, 6, 24)).status == FetchStatus.FAILED


def test_daily_update_resumes_after_last_processed_day(registry_store, registry_summary, registry_text):
    client, _ = _client(registry_store, registry_summary, registry_text)
    registry_store.record_progress('2024-06-21', 0)

    total = client.daily_update(until=date(2024, 6, 24))

    assert total == 2
    assert registry_store.stored_dates() == ['2024-06-24']
    assert registry_store.load_meta()['last_date'] == '2024-06-24'
    assert set(registry_store.load_index()) == {'CONSTRUCCIONES PEREZ SL', 'INDRA SISTEMAS SA'}


def test_fetch_day_without_bulletin_is_empty(registry_store, registry_summary, registry_text):
    client, fetcher = _client(registry_store, registry_summary, registry_text)
    fetcher.fetch_json.side_effect = SourceUnavailable('borme', 'HTTP 404', status_code=404)

    result = client.fetch_day(date(2024, 6, 24))

    assert result.succeeded
    assert result.status == FetchStatus.EMPTY


def test_daily_update_keeps_cursor_on_failed_summary(registry_store, registry_summary, registry_text):
    client, fetcher = _client(registry_store, registry_summary, registry_text)
    fetcher.fetch_json.side_effect = SourceUnavailable('borme', 'HTTP 503', status_code=503)
    registry_store.record_progress('2024-06-20', 0)

    total = client.daily_update(until=date(2024, 6, 24))

    assert total == 0
    assert fetcher.fetch_json.call_count == 1
    assert registry_store.load_meta()['last_date'] == '2024-06-20'
    assert registry_store.stored_dates() == []


def test_daily_update_moves_past_days_without_bulletin(registry_store, registry_summary, registry_text):
    client, fetcher = _client(registry_store, registry_summary, registry_text)
    fetcher.fetch_json.side_effect = [
        SourceUnavailable('borme', 'HTTP 404', status_code=404),
        registry_summary,
    ]
    registry_store.record_progress('2024-06-20', 0)

    total = client.daily_update(until=date(2024, 6, 24))

    assert total == 2
    assert registry_store.stored_dates() == ['2024-06-24']
    assert registry_store.load_meta()['last_date'] == '2024-06-24'


def test_daily_update_does_not_record_unpublished_last_day(registry_store, registry_summary, registry_text):
    client, fetcher = _client(registry_store, registry_summary, registry_text)
    fetcher.fetch_json.side_effect = SourceUnavailable('borme', 'HTTP 404', status_code=404)
    registry_store.record_progress('2024-06-21', 0)

    assert client.daily_update(until=date(2024, 6, 24)) == 0
    assert registry_store.load_meta()['last_date'] == '2024-06-21'
