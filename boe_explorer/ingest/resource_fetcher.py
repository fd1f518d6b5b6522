"""
Fetch upstream resources (XML, JSON, PDFs) with caching and rate limiting.
"""

import json
import time
import logging
from typing import Optional, Dict, Any
from urllib.parse import urlparse

import requests

from boe_explorer.core import config
from boe_explorer.core.results import SourceUnavailable
from boe_explorer.storage.fetch_cache import FetchCache

logger = logging.getLogger(__name__)


def _status_code(error: requests.RequestException) -> Optional[int]:
    response = getattr(error, 'response', None)
    return response.status_code if response is not None else None


def looks_like_html_error(text: str) -> bool:
    """The BOE API answers some failures with an HTML page and status 200."""
    head = text[:2048]
    return '<!DOCTYPE' in head or '<html' in head


class ResourceFetcher:
    """
    Fetch external resources with caching and rate limiting.

    Every failure (network error, non-2xx status, HTML error page, oversized
    PDF) raises SourceUnavailable; ingest modules turn that into a failed
    FetchResult.
    """

    MAX_PDF_BYTES = 50 * 1024 * 1024

    def __init__(self, cache: Optional[FetchCache] = None,
                 session: Optional[requests.Session] = None,
                 timeout: int = config.HTTP_TIMEOUT):
        self.cache = cache
        self.timeout = timeout
        self.session = session or requests.Session()
        self.session.headers.update({
            'User-Agent': config.USER_AGENT,
            'Accept-Language': 'es-ES,es;q=0.9',
            'Accept-Encoding': 'gzip, deflate',
            'Connection': 'keep-alive',
        })
        self.last_request_time: Dict[str, float] = {}  # Domain-based rate limiting

    def fetch_text(self, url: str, accept: str = 'application/xml',
                   delay: float = 0.0, use_cache: bool = True) -> str:
        """
        Fetch a text resource (XML/JSON/HTML source).

        Args:
            url: Resource URL
            accept: Accept header (the BOE open-data API requires it)
            delay: Minimum seconds since the previous request to the same domain
            use_cache: Consult and fill the TTL cache

        Returns:
            Response body as text

        Raises:
            SourceUnavailable: network failure, bad status or HTML error page
        """
        if use_cache and self.cache:
            cached = self.cache.get_text(url, accept)
            if cached is not None:
                logger.debug(f"Cache hit: {url}")
                return cached

        self._rate_limit(url, delay)

        try:
            response = self.session.get(url, timeout=self.timeout, headers={'Accept': accept})
            response.raise_for_status()
        except requests.RequestException as e:
            raise SourceUnavailable(url, str(e), status_code=_status_code(e)) from e

        text = response.text
        if not text or not text.strip():
            raise SourceUnavailable(url, "empty response body")
        if accept != 'text/html' and looks_like_html_error(text):
            raise SourceUnavailable(url, "HTML error page instead of data")

        if use_cache and self.cache:
            self.cache.put_text(url, accept, text)

        logger.debug(f"Fetched {url} ({len(text)} chars)")
        return text

    def fetch_json(self, url: str, delay: float = 0.0, use_cache: bool = True) -> Any:
        """Fetch and decode a JSON resource."""
        text = self.fetch_text(url, accept='application/json', delay=delay, use_cache=use_cache)
        try:
            return json.loads(text)
        except ValueError as e:
            raise SourceUnavailable(url, f"invalid JSON: {e}") from e

    def fetch_pdf(self, url: str, delay: float = 0.0) -> bytes:
        """
        Fetch PDF bytes (not cached: registry PDFs are read once per day).

        Raises:
            SourceUnavailable: fetch failed, not a PDF, or larger than 50MB
        """
        self._rate_limit(url, delay)

        try:
            with self.session.get(url, timeout=self.timeout, stream=True) as response:
                response.raise_for_status()

                content_type = response.headers.get('content-type', '')
                if 'pdf' not in content_type.lower():
                    raise SourceUnavailable(url, f"not a PDF ({content_type})")

                content = bytearray()
                for chunk in response.iter_content(chunk_size=1024 * 1024):
                    content.extend(chunk)
                    if len(content) > self.MAX_PDF_BYTES:
                        raise SourceUnavailable(url, "PDF too large")
        except requests.RequestException as e:
            raise SourceUnavailable(url, str(e), status_code=_status_code(e)) from e

        logger.debug(f"Fetched PDF: {url} ({len(content)} bytes)")
        return bytes(content)

    def _rate_limit(self, url: str, delay: float):
        """Apply rate limiting per domain."""
        if delay <= 0:
            return
        domain = urlparse(url).netloc

        if domain in self.last_request_time:
            elapsed = time.time() - self.last_request_time[domain]
            if elapsed < delay:
                time.sleep(delay - elapsed)

        self.last_request_time[domain] = time.time()
