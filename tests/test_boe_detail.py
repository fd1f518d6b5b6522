"""Tests for procurement detail extraction and enrichment."""

from unittest.mock import MagicMock

import pytest
from bs4 import ParserRejectedMarkup

from boe_explorer.core.domain_models import BulletinDocument
from boe_explorer.core.results import SourceUnavailable
from boe_explorer.ingest import boe_detail
from boe_explorer.ingest.boe_detail import BoeDetailEnricher, extract_amount, extract_detail


def _notice(doc_id='BOE-B-2024-20001', seccion='V-A'):
    return BulletinDocument(id=doc_id, fecha='2024-06-24', titulo='Anuncio de formalización',
                            tipo='Adjudicación', departamento='MINISTERIO DE DEFENSA', seccion=seccion)


def test_extract_detail_reads_structured_and_text_fields(detail_xml):
    detail = extract_detail(detail_xml)

    assert detail.procedimiento == 'Negociado sin publicidad'
    assert detail.tipo_contrato_detalle == 'Suministros'
    assert detail.modalidad == 'Formalización contrato'
    assert detail.ambito_geografico == 'Madrid'
    assert detail.cpv == ['Partes y accesorios de vehículos']

    assert detail.importe == 150000.0
    assert detail.adjudicatario == 'Talleres Martínez, S.L'
    assert detail.nif_adjudicatario == 'B12345678'
    assert detail.es_pyme is True
    assert detail.oferta_mayor == 180000.0
    assert detail.oferta_menor == 140000.0
    assert detail.duracion is None


def test_amount_cascade_prefers_selected_offer():
    text = ("Presupuesto base de licitación: 9.000,00 euros. "
            "Valor de la oferta seleccionada: 5.785,12 euros")
    assert extract_amount(text) == 5785.12
    assert extract_amount("Presupuesto base de licitación: 9.000,00 euros.") == 9000.0
    assert extract_amount("Sin importes publicados") is None


def test_extract_detail_missing_fields_stay_unset():
    detail = extract_detail("<documento><texto><p>Anuncio sin datos de adjudicación.</p></texto></documento>")

    assert detail is not None
    assert detail.importe is None
    assert detail.adjudicatario is None
    assert detail.es_pyme is False
    assert detail.cpv == []


def test_extract_detail_rejects_html_error_page():
    assert extract_detail("<!DOCTYPE html><html><body>Error 500</body></html>") is None
    assert extract_detail("") is None


def test_extract_detail_returns_none_when_parser_rejects_markup(monkeypatch):
    def reject(markup, features):
        raise ParserRejectedMarkup('lxml could not read the document')

    monkeypatch.setattr(boe_detail, 'BeautifulSoup', reject)

    assert extract_detail('<documento><texto/></documento>') is None


def test_extract_detail_lets_programming_errors_through(monkeypatch):
    def broken(markup, features):
        raise TypeError('unexpected argument')

    monkeypatch.setattr(boe_detail, 'BeautifulSoup', broken)

    with pytest.raises(TypeError):
        extract_detail('<documento><texto/></documento>')


def test_enrich_only_touches_pending_procurements(detail_xml):
    fetcher = MagicMock()
    fetcher.fetch_text.return_value = detail_xml
    enricher = BoeDetailEnricher(fetcher, delay=0)
    notice = _notice()
    general = _notice('BOE-A-2024-12001', seccion='I')

    assert enricher.enrich([notice, general]) == 1
    assert notice.is_enriched
    assert notice.detalle.importe == 150000.0
    assert general.detalle is None

    # Already enriched records are not fetched again
    assert enricher.enrich([notice, general]) == 0
    assert fetcher.fetch_text.call_count == 1


def test_enrich_skips_failed_fetches():
    fetcher = MagicMock()
    fetcher.fetch_text.side_effect = SourceUnavailable('boe', 'timeout')
    enricher = BoeDetailEnricher(fetcher, delay=0)
    notice = _notice()

    assert enricher.enrich([notice]) == 0
    assert notice.detalle is None
