"""
Daily bulletin (BOE) summary client and structural parser.

The open-data API publishes one summary per day:

    response > status > code
    response > data > sumario > diario > seccion > departamento >
        (epigrafe > item | item)

Departments in sections I-III group items under sub-headings (epigrafe);
sections IV and V list items directly. Both shapes are flattened into
BulletinDocument records carrying the section/department/sub-heading path.
"""

import re
import json
import logging
from datetime import date, timedelta
from typing import List, Optional, Tuple, Any, Dict, Union

from bs4 import BeautifulSoup, ParserRejectedMarkup, Tag

from boe_explorer.core import config
from boe_explorer.core.domain_models import BulletinDocument
from boe_explorer.core.results import FetchResult, SourceUnavailable
from boe_explorer.core.text import fold
from boe_explorer.core.time_utils import is_weekend, today_madrid
from boe_explorer.ingest.resource_fetcher import ResourceFetcher, looks_like_html_error

logger = logging.getLogger(__name__)


SECTION_LABELS = {
    '1': 'I',
    '2': 'II',
    '2A': 'II-A',
    '2B': 'II-B',
    '3': 'III',
    '4': 'IV',
    '5': 'V',
    '5A': 'V-A',
    '5B': 'V-B',
    '5C': 'V-C',
    'T': 'T.C.',
}

# Ordered (pattern, type) rules over the folded title; first match wins.
# Specific acts go before their generic forms ("real decreto-ley" before
# "real decreto" before "decreto"; "correccion de errores" before
# "resolucion" and "anuncio").
TYPE_RULES: List[Tuple[re.Pattern, str]] = [
    (re.compile(r"ley organica"), 'Ley Orgánica'),
    (re.compile(r"real decreto-ley"), 'Real Decreto-ley'),
    (re.compile(r"real decreto"), 'Real Decreto'),
    (re.compile(r"decreto"), 'Decreto'),
    (re.compile(r"\bley\b.*(?:por la que|\bde )"), 'Ley'),
    (re.compile(r"\borden\b.*(?:por la que|\bde )"), 'Orden'),
    (re.compile(r"correccion de errores"), 'Corrección de errores'),
    (re.compile(r"resolucion"), 'Resolución'),
    (re.compile(r"licitacion"), 'Licitación'),
    (re.compile(r"anuncio de formalizacion|adjudicacion"), 'Adjudicación'),
    (re.compile(r"convenio"), 'Convenio'),
    (re.compile(r"anuncio"), 'Anuncio'),
    (re.compile(r"acuerdo"), 'Acuerdo'),
    (re.compile(r"sentencia"), 'Sentencia'),
    (re.compile(r"circular"), 'Circular'),
    (re.compile(r"instruccion"), 'Instrucción'),
]

DEFAULT_TYPE = 'Otro'


def classify_type(titulo: str) -> str:
    """
    Infer the document type from its title.

    Examples:
        >>> classify_type("Ley Orgánica 3/2024, de 2 de agosto, de ...")
        'Ley Orgánica'
        >>> classify_type("Corrección de errores de la Resolución de 3 de mayo")
        'Corrección de errores'
    """
    folded = fold(titulo)
    for pattern, label in TYPE_RULES:
        if pattern.search(folded):
            return label
    return DEFAULT_TYPE


def section_label(code: str) -> str:
    """Map an API section code to its display label; unknown codes pass through."""
    return SECTION_LABELS.get(code, code)


def absolute_url(url: Optional[str]) -> Optional[str]:
    url = (url or '').strip()
    if not url:
        return None
    if not url.startswith('http'):
        url = config.BOE_BASE_URL + url
    return url


def _build_document(fields: Dict[str, Any], fecha: str, departamento: str,
                    seccion: str, subseccion: str) -> Optional[BulletinDocument]:
    identificador = (fields.get('identificador') or '').strip()
    if not identificador:
        return None
    titulo = (fields.get('titulo') or '').strip()
    return BulletinDocument(
        id=identificador,
        fecha=fecha,
        titulo=titulo,
        tipo=classify_type(titulo),
        departamento=departamento,
        seccion=seccion,
        subseccion=subseccion,
        url_pdf=absolute_url(fields.get('url_pdf')),
        url_html=absolute_url(fields.get('url_html')),
        url_xml=absolute_url(fields.get('url_xml')),
    )


# =============================================================================
# XML SHAPE
# =============================================================================

def _child_text(tag: Tag, name: str) -> str:
    child = tag.find(name, recursive=False)
    return child.get_text(strip=True) if child else ''


def _xml_item_fields(item: Tag) -> Dict[str, str]:
    return {name: _child_text(item, name)
            for name in ('identificador', 'titulo', 'url_pdf', 'url_html', 'url_xml')}


def _parse_xml(text: str, fecha: str) -> Optional[List[BulletinDocument]]:
    soup = BeautifulSoup(text, 'xml')
    response = soup.find('response')
    if response is None:
        logger.error(f"Cannot parse BOE summary XML for {fecha}")
        return None

    status = response.find('status', recursive=False)
    code = _child_text(status, 'code') if status else ''
    if code != '200':
        logger.error(f"BOE API returned status {code or '?'} for {fecha}")
        return None

    data = response.find('data', recursive=False)
    sumario = data.find('sumario', recursive=False) if data else None
    if sumario is None:
        return []

    documents = []
    for diario in sumario.find_all('diario', recursive=False):
        for seccion in diario.find_all('seccion', recursive=False):
            label = section_label(seccion.get('codigo', ''))
            for departamento in seccion.find_all('departamento', recursive=False):
                dept_name = departamento.get('nombre', '')
                for child in departamento.find_all(['epigrafe', 'item'], recursive=False):
                    if child.name == 'epigrafe':
                        epigrafe = child.get('nombre', '')
                        items = [(item, epigrafe) for item in child.find_all('item', recursive=False)]
                    else:
                        items = [(child, '')]
                    for item, epigrafe in items:
                        doc = _build_document(_xml_item_fields(item), fecha, dept_name, label, epigrafe)
                        if doc:
                            documents.append(doc)
    return documents


# =============================================================================
# JSON SHAPE
# =============================================================================

def _as_list(value: Any) -> List[Any]:
    """The JSON API emits a bare object where a list has a single element."""
    if value is None:
        return []
    if isinstance(value, list):
        return value
    return [value]


def _json_url(value: Any) -> str:
    # url_pdf comes as {"szBytes": ..., "texto": "https://..."}
    if isinstance(value, dict):
        return value.get('texto') or ''
    return value or ''


def _json_item_fields(item: Dict[str, Any]) -> Dict[str, str]:
    return {
        'identificador': item.get('identificador') or '',
        'titulo': item.get('titulo') or '',
        'url_pdf': _json_url(item.get('url_pdf')),
        'url_html': _json_url(item.get('url_html')),
        'url_xml': _json_url(item.get('url_xml')),
    }


def _parse_json(payload: Any, fecha: str) -> Optional[List[BulletinDocument]]:
    if not isinstance(payload, dict):
        return None
    code = str((payload.get('status') or {}).get('code', ''))
    if code != '200':
        logger.error(f"BOE API returned status {code or '?'} for {fecha}")
        return None

    sumario = (payload.get('data') or {}).get('sumario')
    if not isinstance(sumario, dict):
        return []

    documents = []
    for diario in _as_list(sumario.get('diario')):
        for seccion in _as_list(diario.get('seccion')):
            label = section_label(str(seccion.get('codigo', '')))
            for departamento in _as_list(seccion.get('departamento')):
                dept_name = departamento.get('nombre', '')
                for epigrafe in _as_list(departamento.get('epigrafe')):
                    for item in _as_list(epigrafe.get('item')):
                        doc = _build_document(_json_item_fields(item), fecha, dept_name,
                                              label, epigrafe.get('nombre', ''))
                        if doc:
                            documents.append(doc)
                for item in _as_list(departamento.get('item')):
                    doc = _build_document(_json_item_fields(item), fecha, dept_name, label, '')
                    if doc:
                        documents.append(doc)
    return documents


def parse_summary(payload: Union[str, Dict[str, Any]], fecha: str) -> Optional[List[BulletinDocument]]:
    """
    Flatten one day's summary into BulletinDocument records.

    Accepts the XML text, the JSON text, or an already decoded JSON dict.
    Never raises on malformed input.

    Args:
        payload: Summary payload
        fecha: Publication date ('YYYY-MM-DD') stamped on every record

    Returns:
        List of documents ([] for a well-formed day with no items),
        or None when the payload is malformed or carries a non-200 status
    """
    if isinstance(payload, dict):
        return _parse_json(payload, fecha)

    text = (payload or '').strip()
    if not text or looks_like_html_error(text):
        return None

    if text.startswith('{'):
        try:
            return _parse_json(json.loads(text), fecha)
        except ValueError:
            logger.error(f"Cannot decode BOE summary JSON for {fecha}")
            return None

    try:
        return _parse_xml(text, fecha)
    except (ParserRejectedMarkup, ValueError) as e:
        logger.error(f"Cannot parse BOE summary XML for {fecha}: {e}")
        return None


class BoeSummaryClient:
    """Fetch and parse daily bulletin summaries."""

    def __init__(self, fetcher: Optional[ResourceFetcher] = None):
        self.fetcher = fetcher or ResourceFetcher()

    def summary_url(self, day: date) -> str:
        return f"{config.BOE_API_BASE}/boe/sumario/{day.strftime('%Y%m%d')}"

    def fetch_day(self, day: date) -> FetchResult[BulletinDocument]:
        """
        Fetch one day's bulletin.

        Weekends are never published and return EMPTY without a request.
        """
        fecha = day.isoformat()
        if is_weekend(day):
            logger.debug(f"Skipping weekend {fecha}")
            return FetchResult.empty()

        try:
            text = self.fetcher.fetch_text(self.summary_url(day), accept='application/xml')
        except SourceUnavailable as e:
            logger.warning(f"BOE summary unavailable for {fecha}: {e.reason}")
            return FetchResult.failed(e.reason)

        documents = parse_summary(text, fecha)
        if documents is None:
            return FetchResult.failed(f"malformed summary for {fecha}")

        logger.info(f"BOE {fecha}: {len(documents)} documents")
        return FetchResult.ok(documents)

    def fetch_range(self, days: int = 7, until: Optional[date] = None) -> List[BulletinDocument]:
        """Documents from the last `days` calendar days, newest day first."""
        until = until or today_madrid()
        documents = []
        for offset in range(days):
            result = self.fetch_day(until - timedelta(days=offset))
            documents.extend(result.records)
        return documents
