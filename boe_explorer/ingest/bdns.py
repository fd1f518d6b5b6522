"""
Client for the national subsidy database (BDNS) public API.

The API requires an XSRF token and session cookies obtained from its
configuration endpoint. BdnsSession owns that state explicitly and
re-acquires it when the API answers 401/403, or proactively after a fixed
number of requests during long budget passes.

Working GET endpoints:
    convocatorias/ultimas   paginated latest calls
    regiones, objetivos, instrumentos, sectores, actividades   taxonomies
    v2.1 convocatoria/{numero}   per-call financing (budget)
"""

import time
import logging
from typing import Any, Dict, List, Optional

import requests
from tqdm import tqdm

from boe_explorer.core import config
from boe_explorer.core.domain_models import Subsidy
from boe_explorer.core.results import FetchResult, SourceUnavailable
from boe_explorer.storage.subsidy_store import SubsidyStore

logger = logging.getLogger(__name__)

TAXONOMY_ENDPOINTS = ['regiones', 'objetivos', 'instrumentos', 'sectores', 'actividades']


class BdnsSession:
    """
    XSRF token + cookie session for the BDNS API.

    Usage:
        session = BdnsSession()
        data = session.get_json('convocatorias/ultimas', params={'page': 0, 'size': 50})
    """

    def __init__(self, http: Optional[requests.Session] = None,
                 api_base: str = config.BDNS_API_BASE,
                 timeout: int = config.HTTP_TIMEOUT):
        self.http = http or requests.Session()
        self.http.headers.update({'User-Agent': config.USER_AGENT, 'Accept': 'application/json'})
        self.api_base = api_base.rstrip('/')
        self.timeout = timeout
        self.xsrf_token: Optional[str] = None
        self.requests_since_acquire = 0

    @property
    def active(self) -> bool:
        return bool(self.xsrf_token)

    def acquire(self) -> str:
        """
        Obtain a fresh XSRF token (cookies land in the session jar).

        Raises:
            SourceUnavailable: configuration endpoint failed or sent no token
        """
        url = f"{self.api_base}/vpd/GE/configuracion"
        try:
            response = self.http.get(url, timeout=15)
        except requests.RequestException as e:
            raise SourceUnavailable(url, str(e)) from e

        if response.status_code != 200:
            raise SourceUnavailable(url, f"session init failed: HTTP {response.status_code}")

        token = response.cookies.get('XSRF-TOKEN') or self.http.cookies.get('XSRF-TOKEN')
        if not token:
            raise SourceUnavailable(url, "no XSRF token in response")

        self.xsrf_token = token
        self.requests_since_acquire = 0
        logger.debug("BDNS session acquired")
        return token

    def invalidate(self):
        self.xsrf_token = None

    def get_json(self, endpoint: str, params: Optional[Dict[str, Any]] = None,
                 timeout: Optional[int] = None) -> Any:
        """
        GET an API endpoint (relative to the API base, or an absolute URL).

        Re-acquires the session once on 401/403.

        Raises:
            SourceUnavailable: network error, non-200 status or invalid JSON
        """
        url = endpoint if endpoint.startswith('http') else f"{self.api_base}/{endpoint.lstrip('/')}"
        if not self.active:
            self.acquire()

        for attempt in (1, 2):
            try:
                response = self.http.get(
                    url,
                    params=params,
                    headers={'X-XSRF-TOKEN': self.xsrf_token or ''},
                    timeout=timeout or self.timeout,
                )
            except requests.RequestException as e:
                raise SourceUnavailable(url, str(e)) from e

            self.requests_since_acquire += 1

            if response.status_code in (401, 403) and attempt == 1:
                logger.info(f"BDNS session expired (HTTP {response.status_code}), re-acquiring")
                self.acquire()
                continue
            break

        if response.status_code != 200:
            raise SourceUnavailable(url, f"HTTP {response.status_code}")

        try:
            return response.json()
        except ValueError as e:
            raise SourceUnavailable(url, f"invalid JSON: {e}") from e


def parse_budget(payload: Any) -> Optional[float]:
    """
    Total financing of a call from the v2.1 response.

    Returns:
        Sum of financiacion[].importe, 0.0 when financiacion is not a list,
        or None when the payload has no financing block at all
    """
    try:
        financing = payload[0]['convocatoria']['financiacion']
    except (KeyError, IndexError, TypeError):
        return None

    if not isinstance(financing, list):
        return 0.0

    total = 0.0
    for item in financing:
        if not isinstance(item, dict):
            continue
        try:
            total += float(item.get('importe') or 0)
        except (TypeError, ValueError):
            logger.debug(f"Ignoring non-numeric financing amount: {item.get('importe')!r}")
    return total


class BdnsClient:
    """Fetch calls, budgets and taxonomies; persist through SubsidyStore."""

    def __init__(self, session: Optional[BdnsSession] = None,
                 store: Optional[SubsidyStore] = None,
                 page_size: int = config.BDNS_PAGE_SIZE,
                 page_delay: float = config.BDNS_PAGE_DELAY,
                 budget_delay: float = config.BDNS_BUDGET_DELAY):
        self.session = session or BdnsSession()
        self.store = store or SubsidyStore()
        self.page_size = page_size
        self.page_delay = page_delay
        self.budget_delay = budget_delay

    def fetch_latest(self, max_pages: int = config.BDNS_MAX_PAGES) -> FetchResult[Subsidy]:
        """
        Page through `convocatorias/ultimas`.

        Stops on the `last` flag, an empty page or a short page. A failure
        after some pages were read keeps what was fetched.
        """
        subsidies: List[Subsidy] = []
        try:
            self.session.acquire()
            for page in range(max_pages):
                data = self.session.get_json('convocatorias/ultimas',
                                             params={'page': page, 'size': self.page_size})
                content = (data or {}).get('content') or []
                if not content:
                    break

                subsidies.extend(Subsidy.from_api(item) for item in content)

                if data.get('last') or len(content) < self.page_size:
                    break
                time.sleep(self.page_delay)
        except SourceUnavailable as e:
            if not subsidies:
                logger.error(f"BDNS fetch failed: {e}")
                return FetchResult.failed(str(e))
            logger.warning(f"BDNS fetch stopped early after {len(subsidies)} calls: {e}")

        logger.info(f"Fetched {len(subsidies)} subsidy calls")
        return FetchResult.ok(subsidies)

    def fetch_budget(self, numero: str) -> Optional[float]:
        """Budget for one call, None when the lookup fails."""
        url = config.BDNS_BUDGET_URL.format(numero=numero)
        try:
            payload = self.session.get_json(url, timeout=10)
        except SourceUnavailable as e:
            logger.debug(f"Budget lookup failed for {numero}: {e.reason}")
            return None
        return parse_budget(payload)

    def enrich_budgets(self, limit: int = 0, progress: bool = False) -> Dict[str, int]:
        """
        Look up budgets for stored calls that have none yet.

        Calls already carrying `presupuesto` (even 0) are skipped. A failed
        lookup stores 0 so it is not retried. Progress is saved every
        BDNS_SAVE_EVERY lookups; the session is renewed every
        BDNS_SESSION_REFRESH_EVERY lookups.

        Args:
            limit: Maximum lookups this run (0 = no limit)
            progress: Show a tqdm progress bar

        Returns:
            {'enriched': n, 'skipped': n, 'failed': n}
        """
        stats = {'enriched': 0, 'skipped': 0, 'failed': 0}
        subsidies = self.store.load_all()

        try:
            self.session.acquire()
        except SourceUnavailable as e:
            logger.error(f"Could not start BDNS session for budget enrichment: {e}")
            return stats

        pending = [s for s in subsidies if not s.has_budget_field]
        stats['skipped'] = len(subsidies) - len(pending)
        modified = False

        iterator = tqdm(pending, desc="Budgets", unit="call") if progress else pending
        for subsidy in iterator:
            if limit and stats['enriched'] + stats['failed'] >= limit:
                break
            if not subsidy.numero:
                stats['skipped'] += 1
                continue

            amount = self.fetch_budget(subsidy.numero)
            if amount is not None:
                subsidy.presupuesto = amount
                stats['enriched'] += 1
            else:
                subsidy.presupuesto = 0.0
                stats['failed'] += 1
            modified = True

            done = stats['enriched'] + stats['failed']
            if done % config.BDNS_SAVE_EVERY == 0:
                self.store.save_all(subsidies)
                logger.info(f"Budget progress: {stats['enriched']} enriched, {stats['failed']} failed")

            if done % config.BDNS_SESSION_REFRESH_EVERY == 0:
                try:
                    self.session.acquire()
                except SourceUnavailable as e:
                    logger.warning(f"BDNS session refresh failed: {e}")

            time.sleep(self.budget_delay)

        if modified:
            self.store.save_all(subsidies)

        logger.info(f"Budget enrichment done: {stats}")
        return stats

    def fetch_taxonomies(self) -> Dict[str, Any]:
        taxonomies = {}
        for endpoint in TAXONOMY_ENDPOINTS:
            try:
                taxonomies[endpoint] = self.session.get_json(endpoint)
            except SourceUnavailable as e:
                logger.warning(f"Taxonomy {endpoint} unavailable: {e.reason}")
            time.sleep(self.page_delay)
        return taxonomies

    def daily_update(self) -> bool:
        """Fetch and merge the latest calls; refresh taxonomies weekly."""
        result = self.fetch_latest()
        if not result.succeeded:
            return False

        new_count, total = self.store.merge(result.records)
        meta = self.store.load_meta()
        logger.info(f"BDNS: {new_count} new, {total} stored ({meta.get('fecha_min')} → {meta.get('fecha_max')})")

        age = self.store.taxonomies_age_days()
        if age is None or age > config.BDNS_TAXONOMY_MAX_AGE_DAYS:
            logger.info("Refreshing BDNS taxonomies")
            taxonomies = self.fetch_taxonomies()
            if taxonomies:
                self.store.save_taxonomies(taxonomies)
        return True
