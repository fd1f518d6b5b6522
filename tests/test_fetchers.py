"""Tests for the HTTP resource fetcher and PDF text extraction."""

from unittest.mock import MagicMock

import pytest
import requests

from boe_explorer.core.results import SourceUnavailable
from boe_explorer.ingest.pdf_parser import PDFParser
from boe_explorer.ingest.resource_fetcher import ResourceFetcher, looks_like_html_error
from boe_explorer.storage.fetch_cache import FetchCache

SUMMARY_URL = 'https://www.boe.es/datosabiertos/api/boe/sumario/20240624'


def _session(text='<response/>', error=None):
    session = MagicMock()
    response = MagicMock(text=text)
    if error is not None:
        response.raise_for_status.side_effect = error
    session.get.return_value = response
    return session


def test_fetch_text_fills_and_uses_cache(tmp_path):
    session = _session('<response><sumario/></response>')
    fetcher = ResourceFetcher(cache=FetchCache(tmp_path / 'cache.db'), session=session)

    first = fetcher.fetch_text(SUMMARY_URL)
    second = fetcher.fetch_text(SUMMARY_URL)

    assert first == second == '<response><sumario/></response>'
    assert session.get.call_count == 1
    assert session.get.call_args.kwargs['headers'] == {'Accept': 'application/xml'}


def test_fetch_text_bypasses_cache_on_request(tmp_path):
    session = _session()
    fetcher = ResourceFetcher(cache=FetchCache(tmp_path / 'cache.db'), session=session)

    fetcher.fetch_text(SUMMARY_URL, use_cache=False)
    fetcher.fetch_text(SUMMARY_URL, use_cache=False)

    assert session.get.call_count == 2


def test_fetch_text_raises_on_http_error():
    fetcher = ResourceFetcher(session=_session(error=requests.HTTPError('503 Server Error')))

    with pytest.raises(SourceUnavailable) as excinfo:
        fetcher.fetch_text(SUMMARY_URL)

    assert '503' in excinfo.value.reason


def test_fetch_text_rejects_html_error_page():
    fetcher = ResourceFetcher(session=_session('<!DOCTYPE html><html><body>Error</body></html>'))

    with pytest.raises(SourceUnavailable):
        fetcher.fetch_text(SUMMARY_URL)


def test_fetch_json_rejects_invalid_body():
    fetcher = ResourceFetcher(session=_session('{"status": '))

    with pytest.raises(SourceUnavailable):
        fetcher.fetch_json(SUMMARY_URL)


def _pdf_session(content_type, chunks=(b'%PDF', b'-1.4')):
    session = MagicMock()
    response = MagicMock(headers={'content-type': content_type})
    response.iter_content.return_value = list(chunks)
    session.get.return_value.__enter__.return_value = response
    return session


def test_fetch_pdf_joins_streamed_chunks():
    session = _pdf_session('application/pdf')
    fetcher = ResourceFetcher(session=session)

    assert fetcher.fetch_pdf('https://www.boe.es/borme/a.pdf') == b'%PDF-1.4'
    assert session.get.call_args.kwargs['stream'] is True
    session.get.return_value.__exit__.assert_called_once()


def test_fetch_pdf_closes_response_on_wrong_content_type():
    session = _pdf_session('text/html')
    fetcher = ResourceFetcher(session=session)

    with pytest.raises(SourceUnavailable) as excinfo:
        fetcher.fetch_pdf('https://www.boe.es/borme/a.pdf')

    assert 'not a PDF' in excinfo.value.reason
    session.get.return_value.__exit__.assert_called_once()


def test_fetch_pdf_rejects_oversized_download(monkeypatch):
    monkeypatch.setattr(ResourceFetcher, 'MAX_PDF_BYTES', 6)
    fetcher = ResourceFetcher(session=_pdf_session('application/pdf'))

    with pytest.raises(SourceUnavailable, match='too large'):
        fetcher.fetch_pdf('https://www.boe.es/borme/a.pdf')


def test_http_error_keeps_status_code():
    error = requests.HTTPError('404 Client Error', response=MagicMock(status_code=404))
    fetcher = ResourceFetcher(session=_session(error=error))

    with pytest.raises(SourceUnavailable) as excinfo:
        fetcher.fetch_text(SUMMARY_URL)

    assert excinfo.value.status_code == 404


def test_looks_like_html_error():
    assert looks_like_html_error('<html><head></head></html>')
    assert not looks_like_html_error('<?xml version="1.0"?><response/>')


def test_pdf_parser_falls_back_when_first_backend_is_short(monkeypatch):
    long_text = 'CONSTRUCCIONES PEREZ SL. Constitución. ' * 5
    monkeypatch.setattr(PDFParser, 'BACKENDS', [
        ('first', lambda data: ['short']),
        ('second', lambda data: [long_text, '']),
    ])

    assert PDFParser().extract_text(b'%PDF-1.4') == long_text


def test_pdf_parser_skips_backend_errors(monkeypatch):
    def broken(data):
        raise ValueError('damaged xref table')

    monkeypatch.setattr(PDFParser, 'BACKENDS', [
        ('first', broken),
        ('second', lambda data: ['line one\r\n', 'x' * 120]),
    ])

    assert PDFParser().extract_text(b'%PDF-1.4') == 'line one\n\n' + 'x' * 120


def test_pdf_parser_returns_none_when_nothing_extracts(monkeypatch):
    monkeypatch.setattr(PDFParser, 'BACKENDS', [('only', lambda data: [''])])

    assert PDFParser().extract_text(b'not a pdf') is None
