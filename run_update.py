#!/usr/bin/env python3
"""
BOE Explorer - scheduled update

Fetches bulletin days, enriches procurement notices and refreshes the
subsidy and registry stores. Meant to run from cron on weekdays:

    30 8  * * 1-5   python run_update.py           (bulletin published ~7:30)
    0  17 * * *     python run_update.py           (safety net for gaps)

Usage:
    python run_update.py                 # Today + gaps in the previous 3 business days
    python run_update.py 2026-02-15      # One specific day
    python run_update.py --week          # Last 7 business days (fill gaps)
    python run_update.py --month         # Business days of the last 45 days
    python run_update.py --enrich        # Enrich stored procurement notices
    python run_update.py --borme         # Registry bulletins only
    python run_update.py --bdns          # Subsidy calls only
    python run_update.py --bdns-budgets  # Subsidy budget lookups only
"""

import os
import re
import sys
import time
import argparse
import logging
from datetime import date, datetime, timedelta
from pathlib import Path
from typing import List, Optional

import requests
from dotenv import load_dotenv
load_dotenv()

from boe_explorer.core import config
from boe_explorer.core.results import FetchStatus, SourceUnavailable
from boe_explorer.core.time_utils import is_weekend, now_madrid, recent_business_days, today_madrid
from boe_explorer.ingest.bdns import BdnsClient
from boe_explorer.ingest.boe_detail import BoeDetailEnricher
from boe_explorer.ingest.boe_summary import BoeSummaryClient
from boe_explorer.ingest.borme import BormeClient
from boe_explorer.ingest.resource_fetcher import ResourceFetcher
from boe_explorer.storage.bulletin_store import BulletinStore
from boe_explorer.storage.fetch_cache import FetchCache

logger = logging.getLogger(__name__)

LOCK_FILE = config.DATA_DIR / 'cron.lock'
RETRY_DELAYS = [5, 15, 30]  # seconds before attempts 2, 3 and giving up
PUBLICATION_HOUR = 9
DATE_RE = re.compile(r"^\d{4}-\d{2}-\d{2}$")


def setup_logging(verbose: bool = False):
    config.LOG_DIR.mkdir(parents=True, exist_ok=True)
    log_file = config.LOG_DIR / f"update_{datetime.now().strftime('%Y%m%d_%H%M%S')}.log"
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format='%(asctime)s - %(levelname)s - %(message)s',
        handlers=[
            logging.FileHandler(log_file),
            logging.StreamHandler()
        ]
    )


# =============================================================================
# LOCKING
# =============================================================================

def acquire_lock(lock_file: Path = LOCK_FILE, max_age: int = config.LOCK_MAX_AGE_SECONDS) -> bool:
    """
    Create the lock file unless another run holds a fresh one.

    A lock older than `max_age` seconds is treated as stale and replaced.
    """
    if lock_file.exists():
        age = time.time() - lock_file.stat().st_mtime
        if age < max_age:
            logger.info(f"Another update is running (lock age: {age:.0f}s), aborting")
            return False
        logger.warning(f"Removing stale lock (age: {age:.0f}s)")
        lock_file.unlink(missing_ok=True)

    lock_file.parent.mkdir(parents=True, exist_ok=True)
    lock_file.write_text(f"{now_madrid().strftime('%Y-%m-%d %H:%M:%S')} PID={os.getpid()}")
    return True


def release_lock(lock_file: Path = LOCK_FILE):
    lock_file.unlink(missing_ok=True)


# =============================================================================
# DATE SELECTION
# =============================================================================

def dates_for_today(store: BulletinStore, today: date) -> List[date]:
    """Today plus any of the previous 3 business days not yet stored."""
    previous = recent_business_days(3, until=today - timedelta(days=1), max_lookback=5)
    gaps = [d for d in previous if not store.is_stored(d.isoformat())]
    if gaps:
        logger.info(f"Filling gaps: {', '.join(d.isoformat() for d in gaps)}")
    return gaps + [today]


def dates_for_month(today: date) -> List[date]:
    return sorted(today - timedelta(days=i) for i in range(45) if not is_weekend(today - timedelta(days=i)))


def select_dates(args, store: BulletinStore, today: date) -> List[date]:
    if args.week:
        return recent_business_days(7, until=today)
    if args.month:
        return dates_for_month(today)
    if args.date:
        return [date.fromisoformat(args.date)]
    return dates_for_today(store, today)


# =============================================================================
# BULLETIN
# =============================================================================

def fetch_and_store_day(day: date, client: BoeSummaryClient, enricher: BoeDetailEnricher,
                        store: BulletinStore, today: date) -> Optional[int]:
    """
    Fetch, enrich and store one day with retries.

    Returns:
        Number of documents stored, or None when every attempt failed
    """
    fecha = day.isoformat()
    for attempt in range(1, len(RETRY_DELAYS) + 1):
        result = client.fetch_day(day)

        if result.status == FetchStatus.FAILED:
            logger.warning(f"[{fecha}] attempt {attempt}/{len(RETRY_DELAYS)} failed: {result.error}")
            if attempt < len(RETRY_DELAYS):
                time.sleep(RETRY_DELAYS[attempt - 1])
                continue
            logger.error(f"[{fecha}] giving up")
            return None

        # Early on the publication day an empty summary usually means "not out yet"
        if (result.status == FetchStatus.EMPTY and day == today
                and now_madrid().hour < PUBLICATION_HOUR and attempt < len(RETRY_DELAYS)):
            logger.info(f"[{fecha}] not yet published, retrying in {RETRY_DELAYS[attempt - 1]}s")
            time.sleep(RETRY_DELAYS[attempt - 1])
            continue

        documents = result.records
        procurements = sum(1 for d in documents if d.is_procurement)
        if procurements:
            logger.info(f"[{fecha}] {len(documents)} documents, enriching {procurements} procurement notices")
            enricher.enrich(documents)

        store.save_day(fecha, documents)
        logger.info(f"[{fecha}] OK ({len(documents)} documents)")
        return len(documents)
    return None


def update_bulletin(dates: List[date], client: BoeSummaryClient, enricher: BoeDetailEnricher,
                    store: BulletinStore, today: date) -> int:
    """Fetch the given days; returns the number of failed days."""
    fetched = 0
    total_docs = 0
    errors = 0

    for day in dates:
        fecha = day.isoformat()
        if store.is_stored(fecha) and day != today:
            logger.info(f"[{fecha}] already stored, skipping")
            continue
        if is_weekend(day):
            logger.info(f"[{fecha}] weekend, skipping")
            continue

        count = fetch_and_store_day(day, client, enricher, store, today)
        if count is None:
            errors += 1
        else:
            fetched += 1
            total_docs += count

        if len(dates) > 1:
            time.sleep(1)

    meta = store.load_meta()
    logger.info(f"Bulletin: {fetched} days fetched, {total_docs} documents stored, {errors} errors")
    logger.info(f"Database: {meta.get('total_days', 0)} days, {meta.get('total_documents', 0)} documents "
                f"({meta.get('first_date')} → {meta.get('last_date')})")
    return errors


def enrich_stored(enricher: BoeDetailEnricher, store: BulletinStore) -> int:
    """Enrich procurement notices of every stored day that still lacks detail."""
    total = 0
    for fecha in store.stored_dates():
        documents = store.load_day(fecha)
        if not documents:
            continue
        pending = [d for d in documents if d.is_procurement and not d.is_enriched]
        if not pending:
            continue

        logger.info(f"[{fecha}] {len(pending)} procurement notices to enrich")
        count = enricher.enrich(documents, progress=True)
        if count:
            store.save_day(fecha, documents)
            total += count

    logger.info(f"Enrichment complete: {total} procurement notices enriched")
    return total


# =============================================================================
# SUBSIDIES & REGISTRY
# =============================================================================

def update_subsidies(client: BdnsClient, attempts: int = 2) -> bool:
    for attempt in range(1, attempts + 1):
        if client.daily_update():
            return True
        logger.warning(f"[BDNS] attempt {attempt} failed")
        if attempt < attempts:
            time.sleep(10)
    logger.error(f"[BDNS] update failed after {attempts} attempts")
    return False


def update_registry(client: BormeClient, today: date, attempts: int = 2) -> int:
    for attempt in range(1, attempts + 1):
        try:
            count = client.daily_update(until=today, progress=True)
            logger.info(f"[BORME] {count} new entries processed")
            return count
        except (requests.RequestException, SourceUnavailable, OSError, ValueError) as e:
            logger.warning(f"[BORME] attempt {attempt} failed: {type(e).__name__}: {e}")
            if attempt < attempts:
                time.sleep(10)
    return 0


def main():
    parser = argparse.ArgumentParser(description='BOE Explorer scheduled update')
    parser.add_argument('date', nargs='?', help='Specific day to fetch (YYYY-MM-DD)')
    parser.add_argument('--week', action='store_true', help='Fill gaps in the last 7 business days')
    parser.add_argument('--month', action='store_true', help='Fill gaps in the last 45 days')
    parser.add_argument('--enrich', action='store_true', help='Enrich stored procurement notices')
    parser.add_argument('--borme', action='store_true', help='Registry bulletins only')
    parser.add_argument('--bdns', action='store_true', help='Subsidy calls only')
    parser.add_argument('--bdns-budgets', action='store_true', help='Subsidy budget lookups only')
    parser.add_argument('--limit', type=int, default=0, help='Max budget lookups (with --bdns-budgets)')
    parser.add_argument('--verbose', '-v', action='store_true', help='Debug logging')

    args = parser.parse_args()

    if args.date and args.date != 'today' and not DATE_RE.match(args.date):
        parser.error(f"invalid date: {args.date}")
    if args.date == 'today':
        args.date = None

    setup_logging(args.verbose)

    if not acquire_lock():
        return 0

    start = time.time()
    errors = 0
    try:
        today = today_madrid()
        logger.info("=" * 60)
        logger.info(f"BOE EXPLORER UPDATE - {today.isoformat()}")
        logger.info("=" * 60)

        cache = FetchCache(config.CACHE_DB, config.CACHE_TTL_MINUTES)
        cache.purge_expired()
        fetcher = ResourceFetcher(cache=cache)
        store = BulletinStore()

        if args.bdns:
            if not update_subsidies(BdnsClient()):
                errors += 1
        elif args.bdns_budgets:
            BdnsClient().enrich_budgets(limit=args.limit, progress=True)
        elif args.borme:
            update_registry(BormeClient(fetcher=fetcher), today)
        elif args.enrich:
            enrich_stored(BoeDetailEnricher(fetcher), store)
        else:
            dates = select_dates(args, store, today)
            # Summaries bypass the cache so a retry sees a freshly published day
            errors += update_bulletin(dates, BoeSummaryClient(ResourceFetcher()), BoeDetailEnricher(fetcher),
                                      store, today)
            # Full runs also refresh the other sources
            if not (args.date or args.week or args.month):
                if not update_subsidies(BdnsClient()):
                    errors += 1
                update_registry(BormeClient(fetcher=fetcher), today)
    finally:
        release_lock()

    logger.info(f"Done in {time.time() - start:.1f}s with {errors} errors")
    return 1 if errors else 0


if __name__ == '__main__':
    sys.exit(main())
