"""
Commercial registry bulletin (BORME) client.

For each publication day: read the JSON summary, keep section A (acts
registered) minus the alphabetical index, download every province PDF,
extract its text and parse the entries. One JSON file per day is written
through RegistryStore and the company index is rebuilt afterwards.
"""

import time
import logging
from dataclasses import dataclass
from datetime import date, timedelta
from typing import Any, List, Optional

from tqdm import tqdm

from boe_explorer.core import config
from boe_explorer.core.domain_models import RegistryEntry
from boe_explorer.core.results import FetchResult, FetchStatus, SourceUnavailable
from boe_explorer.core.time_utils import is_weekend, iter_days, today_madrid
from boe_explorer.core.utils import to_date
from boe_explorer.ingest.borme_parser import parse_registry_text
from boe_explorer.ingest.pdf_parser import PDFParser
from boe_explorer.ingest.resource_fetcher import ResourceFetcher
from boe_explorer.storage.registry_store import RegistryStore

logger = logging.getLogger(__name__)

REGISTERED_ACTS_SECTION = 'A'
INDEX_ITEM_MARKER = '-99'


@dataclass
class ProvincePdf:
    """Section A item of the registry summary: one PDF per province."""
    id: str
    provincia: str
    url: str


def _as_list(value: Any) -> List[Any]:
    if value is None:
        return []
    return value if isinstance(value, list) else [value]


def parse_registry_summary(payload: Any) -> Optional[List[ProvincePdf]]:
    """
    Province PDFs listed in a registry summary.

    The alphabetical index item (identifier containing "-99") is dropped.

    Returns:
        List of PDFs, or None when the payload is malformed or not status 200
    """
    if not isinstance(payload, dict):
        return None
    if str((payload.get('status') or {}).get('code', '')) != '200':
        return None

    sumario = (payload.get('data') or {}).get('sumario') or {}
    pdfs = []
    for diario in _as_list(sumario.get('diario')):
        for seccion in _as_list(diario.get('seccion')):
            if seccion.get('codigo') != REGISTERED_ACTS_SECTION:
                continue
            for item in _as_list(seccion.get('item')):
                url_pdf = item.get('url_pdf')
                url = url_pdf.get('texto') if isinstance(url_pdf, dict) else url_pdf
                identifier = item.get('identificador') or ''
                if not url or INDEX_ITEM_MARKER in identifier:
                    continue
                pdfs.append(ProvincePdf(id=identifier, provincia=item.get('titulo') or '', url=url))
    return pdfs


class BormeClient:
    """Fetch, parse and store registry bulletins."""

    def __init__(self, fetcher: Optional[ResourceFetcher] = None,
                 store: Optional[RegistryStore] = None,
                 pdf_parser: Optional[PDFParser] = None,
                 pdf_delay: float = config.BORME_PDF_DELAY,
                 day_delay: float = config.BORME_DAY_DELAY):
        self.fetcher = fetcher or ResourceFetcher()
        self.store = store or RegistryStore()
        self.pdf_parser = pdf_parser or PDFParser()
        self.pdf_delay = pdf_delay
        self.day_delay = day_delay

    def fetch_summary(self, day: date) -> FetchResult[ProvincePdf]:
        url = config.BORME_SUMMARY_URL.format(date=day.strftime('%Y%m%d'))
        try:
            payload = self.fetcher.fetch_json(url)
        except SourceUnavailable as e:
            # No summary exists for days without a bulletin
            if e.status_code == 404:
                logger.info(f"No registry bulletin for {day}")
                return FetchResult.empty()
            logger.warning(f"Registry summary unavailable for {day}: {e.reason}")
            return FetchResult.failed(e.reason)

        pdfs = parse_registry_summary(payload)
        if pdfs is None:
            return FetchResult.failed(f"malformed registry summary for {day}")
        return FetchResult.ok(pdfs)

    def fetch_day(self, day: date) -> FetchResult[RegistryEntry]:
        """
        Parse every province PDF of one day.

        A province whose PDF cannot be downloaded or read is skipped; the
        day fails only when its summary cannot be read.
        """
        fecha = day.isoformat()
        if is_weekend(day):
            return FetchResult.empty()

        summary = self.fetch_summary(day)
        if summary.status != FetchStatus.OK:
            return FetchResult(status=summary.status, error=summary.error)

        logger.info(f"Registry {fecha}: {len(summary)} province PDFs")
        entries: List[RegistryEntry] = []
        for pdf in summary.records:
            try:
                content = self.fetcher.fetch_pdf(pdf.url, delay=self.pdf_delay)
            except SourceUnavailable as e:
                logger.warning(f"  {pdf.id} ({pdf.provincia}) failed: {e.reason}")
                continue

            text = self.pdf_parser.extract_text(content)
            if not text:
                logger.warning(f"  {pdf.id} ({pdf.provincia}): no text extracted")
                continue

            parsed = parse_registry_text(text, pdf.provincia, fecha)
            logger.info(f"  {pdf.id} ({pdf.provincia}): {len(parsed)} entries")
            entries.extend(parsed)

        return FetchResult.ok(entries)

    def process_day(self, day: date) -> FetchResult[RegistryEntry]:
        """Fetch one day and store it when it produced entries."""
        result = self.fetch_day(day)
        if result.records:
            provincias = len({e.provincia for e in result.records})
            self.store.save_day(day.isoformat(), result.records, provincias)
        return result

    def daily_update(self, until: Optional[date] = None, progress: bool = False) -> int:
        """
        Process every business day since the last processed one.

        First run backfills BORME_MAX_DAYS_BACKFILL days. Days already stored
        are skipped. A failed day stops the walk without advancing the
        cursor, so the next run starts from it. An empty `until` day is not
        recorded either: its bulletin may not be out yet. The company index
        is rebuilt when anything new arrived.

        Returns:
            Number of entries parsed
        """
        end = until or today_madrid()
        last = to_date(self.store.load_meta().get('last_date'))
        start = last + timedelta(days=1) if last else end - timedelta(days=config.BORME_MAX_DAYS_BACKFILL)

        days = [d for d in iter_days(start, end) if not is_weekend(d)]
        total = 0
        days_with_data = 0

        iterator = tqdm(days, desc="BORME", unit="day") if progress else days
        for day in iterator:
            fecha = day.isoformat()
            if self.store.is_stored(fecha):
                logger.debug(f"Skipping {fecha} (already stored)")
                continue

            result = self.process_day(day)
            if not result.succeeded:
                logger.warning(f"Registry {fecha} failed ({result.error}), resuming from it next run")
                break

            count = len(result)
            if count:
                total += count
                days_with_data += 1
            if result.status == FetchStatus.EMPTY and day == end:
                logger.info(f"Registry {fecha}: nothing published yet")
            else:
                self.store.record_progress(fecha, count)
            time.sleep(self.day_delay)

        if days_with_data:
            self.store.rebuild_index()

        logger.info(f"Registry update complete: {days_with_data} days, {total} entries")
        return total
