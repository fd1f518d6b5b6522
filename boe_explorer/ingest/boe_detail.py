"""
Procurement detail enrichment.

Procurement notices (section V-A) carry their award data only in the
per-document XML. The structured <analisis> block gives the procedure,
contract type, geography and CPV codes; everything else is pulled out of
the flattened <texto> block with ordered regex cascades, one per field,
stopping at the first pattern that matches.
"""

import re
import logging
from typing import List, Optional, Tuple, Iterable

from bs4 import BeautifulSoup, ParserRejectedMarkup
from tqdm import tqdm

from boe_explorer.core import config
from boe_explorer.core.domain_models import BulletinDocument, ProcurementDetail
from boe_explorer.core.money import parse_spanish_amount
from boe_explorer.core.results import SourceUnavailable
from boe_explorer.core.text import collapse_whitespace
from boe_explorer.ingest.resource_fetcher import ResourceFetcher, looks_like_html_error

logger = logging.getLogger(__name__)


# Amount in Spanish format followed by "euros"
_AMOUNT = r"[:\s]*?(\d{1,3}(?:\.\d{3})*(?:,\d{1,2})?)\s*euros"


def _amount_rule(label: str) -> re.Pattern:
    return re.compile(label + _AMOUNT, re.IGNORECASE)


# Award value first, then estimates, then the budget ceiling and finally the
# lowest bid. Only the first matching rule is used.
AMOUNT_RULES: List[Tuple[str, re.Pattern]] = [
    ('oferta_seleccionada', _amount_rule(r"Valor de la oferta seleccionada")),
    ('valor_total', _amount_rule(r"Valor total del contrato")),
    ('importe_total', _amount_rule(r"Importe total")),
    ('importe_adjudicacion', _amount_rule(r"Importe de la adjudicaci[oó]n")),
    ('valor_estimado', _amount_rule(r"Valor estimado")),
    ('presupuesto_base', _amount_rule(r"Presupuesto base de licitaci[oó]n")),
    ('oferta_menor', _amount_rule(r"13\.3\)\s*Valor de la oferta de menor coste")),
]

# Numbered form fields: name ends where the next "N.N)" or "N. " marker starts
NAME_RE = re.compile(r"12\.1\)\s*Nombre:\s*(.+?)(?=\s*\d{1,2}\.\d{1,2}\)|\s*\d{1,2}\.\s|$)")
NIF_RE = re.compile(
    r"12\.2\)\s*(?:N[uú]mero de identificaci[oó]n fiscal|NIF|CIF)[:\s]*([A-Z0-9]\d{6,8}[A-Z0-9]?)",
    re.IGNORECASE,
)
SME_RE = re.compile(r"adjudicatario es una PYME", re.IGNORECASE)
DURATION_RE = re.compile(r"Duraci[oó]n del contrato[^:]*:\s*(.+?)(?=\s*\d{1,2}\.\s[A-Z]|\s*$)", re.IGNORECASE)
HIGHEST_BID_RE = _amount_rule(r"13\.2\)\s*Valor de la oferta de mayor coste")
LOWEST_BID_RE = _amount_rule(r"13\.3\)\s*Valor de la oferta de menor coste")


def extract_amount(text: str) -> Optional[float]:
    """
    Contract amount by priority cascade.

    Examples:
        >>> extract_amount("Presupuesto base de licitación: 9.000,00 euros. "
        ...                "Valor de la oferta seleccionada: 5.785,12 euros")
        5785.12
    """
    for name, pattern in AMOUNT_RULES:
        match = pattern.search(text)
        if match:
            amount = parse_spanish_amount(match.group(1))
            if amount is not None:
                logger.debug(f"Amount from {name}: {amount}")
                return amount
    return None


def _search_amount(pattern: re.Pattern, text: str) -> Optional[float]:
    match = pattern.search(text)
    return parse_spanish_amount(match.group(1)) if match else None


def extract_award_name(text: str) -> Optional[str]:
    match = NAME_RE.search(text)
    if not match:
        return None
    name = match.group(1).strip(" .\t\n\r")
    if 1 < len(name) < 200:
        return name
    return None


def extract_tax_id(text: str) -> Optional[str]:
    match = NIF_RE.search(text)
    return match.group(1).strip(" .").upper() if match else None


def extract_duration(text: str) -> Optional[str]:
    match = DURATION_RE.search(text)
    if not match:
        return None
    duration = match.group(1).strip(" .\t\n\r")
    return duration if 0 < len(duration) < 100 else None


def _analisis_text(analisis, name: str) -> Optional[str]:
    tag = analisis.find(name)
    if tag is None:
        return None
    value = tag.get_text(" ", strip=True)
    return value or None


def _cpv_codes(analisis) -> List[str]:
    tag = analisis.find('materias_cpv')
    if tag is None:
        return []
    children = [c.get_text(" ", strip=True) for c in tag.find_all(True)]
    codes = [c for c in children if c]
    if codes:
        return codes
    return [line.strip() for line in re.split(r"[\n;]", tag.get_text("\n")) if line.strip()]


def flatten_text(texto) -> str:
    """Plain text of a <texto> block with whitespace collapsed."""
    return collapse_whitespace(texto.get_text(" "))


def extract_detail(xml_text: str) -> Optional[ProcurementDetail]:
    """
    Extract award fields from one document's detail XML.

    Fields whose patterns find nothing stay None; this never raises.

    Returns:
        ProcurementDetail, or None when the payload is not parseable XML
    """
    if not xml_text or looks_like_html_error(xml_text):
        return None

    try:
        soup = BeautifulSoup(xml_text, 'xml')
    except (ParserRejectedMarkup, ValueError) as e:
        logger.debug(f"Detail XML not parseable: {e}")
        return None

    root = soup.find('documento') or soup
    if root is None or not soup.find(True):
        return None

    detail = ProcurementDetail()

    analisis = root.find('analisis')
    if analisis is not None:
        detail.modalidad = _analisis_text(analisis, 'modalidad')
        detail.tipo_contrato_detalle = _analisis_text(analisis, 'tipo')
        detail.procedimiento = _analisis_text(analisis, 'procedimiento')
        detail.ambito_geografico = _analisis_text(analisis, 'ambito_geografico')
        detail.cpv = _cpv_codes(analisis)

    texto = root.find('texto')
    if texto is None:
        return detail

    raw = flatten_text(texto)

    detail.importe = extract_amount(raw)
    detail.adjudicatario = extract_award_name(raw)
    detail.nif_adjudicatario = extract_tax_id(raw)
    detail.es_pyme = bool(SME_RE.search(raw))
    detail.duracion = extract_duration(raw)
    detail.oferta_mayor = _search_amount(HIGHEST_BID_RE, raw)
    detail.oferta_menor = _search_amount(LOWEST_BID_RE, raw)

    if detail.importe is None:
        logger.debug("No amount pattern matched")
    return detail


class BoeDetailEnricher:
    """
    Fetch detail XML for procurement notices and merge the award fields.

    Requests are paced (DETAIL_FETCH_DELAY between calls). A failed fetch
    skips that record and the batch continues.
    """

    def __init__(self, fetcher: Optional[ResourceFetcher] = None,
                 delay: float = config.DETAIL_FETCH_DELAY):
        self.fetcher = fetcher or ResourceFetcher()
        self.delay = delay

    def fetch_detail(self, doc_id: str) -> Optional[ProcurementDetail]:
        url = config.BOE_DETAIL_URL.format(id=doc_id)
        try:
            xml_text = self.fetcher.fetch_text(url, accept='application/xml', delay=self.delay)
        except SourceUnavailable as e:
            logger.warning(f"Detail unavailable for {doc_id}: {e.reason}")
            return None
        return extract_detail(xml_text)

    def enrich(self, documents: Iterable[BulletinDocument], progress: bool = False) -> int:
        """
        Enrich procurement documents in place, once each.

        Args:
            documents: Documents of one or more days
            progress: Show a tqdm progress bar

        Returns:
            Number of documents enriched
        """
        pending = [d for d in documents if d.is_procurement and not d.is_enriched]
        if not pending:
            return 0

        enriched = 0
        iterator = tqdm(pending, desc="Enriching", unit="doc") if progress else pending
        for doc in iterator:
            detail = self.fetch_detail(doc.id)
            if detail is None:
                continue
            doc.detalle = detail
            enriched += 1

        logger.info(f"Enriched {enriched}/{len(pending)} procurement documents")
        return enriched
