"""
Runtime configuration.

All settings come from the environment (optionally a .env file) with
sensible defaults, so the CLI scripts and the library share one source.
"""

import os
from pathlib import Path

from dotenv import load_dotenv

load_dotenv()


def _env_float(name: str, default: float) -> float:
    value = os.getenv(name)
    if value is None or not value.strip():
        return default
    try:
        return float(value)
    except ValueError:
        return default


def _env_int(name: str, default: int) -> int:
    return int(_env_float(name, default))


# =============================================================================
# PATHS
# =============================================================================

DATA_DIR = Path(os.getenv("BOE_DATA_DIR", "data"))
LOG_DIR = DATA_DIR / "logs"
CACHE_DB = Path(os.getenv("BOE_CACHE_DB", str(DATA_DIR / "fetch_cache.db")))
CACHE_TTL_MINUTES = _env_int("BOE_CACHE_TTL_MINUTES", 10)

# =============================================================================
# UPSTREAM SOURCES
# =============================================================================

BOE_BASE_URL = "https://www.boe.es"
BOE_API_BASE = os.getenv("BOE_API_BASE", "https://www.boe.es/datosabiertos/api")
BOE_DETAIL_URL = os.getenv("BOE_DETAIL_URL", "https://www.boe.es/diario_boe/xml.php?id={id}")
BORME_SUMMARY_URL = BOE_API_BASE + "/borme/sumario/{date}"

BDNS_API_BASE = os.getenv("BDNS_API_BASE", "https://www.pap.hacienda.gob.es/bdnstrans/api")
BDNS_BUDGET_URL = os.getenv(
    "BDNS_BUDGET_URL",
    "https://www.pap.hacienda.gob.es/bdnstrans/GE/es/api/v2.1/convocatoria/{numero}",
)

USER_AGENT = os.getenv("BOE_USER_AGENT", "BOEExplorer/3.2 (DataAnalysis)")
HTTP_TIMEOUT = _env_int("BOE_HTTP_TIMEOUT", 30)

# =============================================================================
# PACING (seconds between upstream requests)
# =============================================================================

DETAIL_FETCH_DELAY = _env_float("BOE_DETAIL_DELAY", 0.3)
BORME_PDF_DELAY = _env_float("BORME_PDF_DELAY", 0.2)
BORME_DAY_DELAY = _env_float("BORME_DAY_DELAY", 0.5)
BDNS_PAGE_DELAY = _env_float("BDNS_PAGE_DELAY", 0.2)
BDNS_BUDGET_DELAY = _env_float("BDNS_BUDGET_DELAY", 0.15)

# =============================================================================
# INGEST LIMITS
# =============================================================================

BORME_MAX_DAYS_BACKFILL = _env_int("BORME_MAX_DAYS_BACKFILL", 60)
BDNS_MAX_PAGES = _env_int("BDNS_MAX_PAGES", 200)
BDNS_PAGE_SIZE = 50
BDNS_SESSION_REFRESH_EVERY = 500
BDNS_SAVE_EVERY = 50
BDNS_TAXONOMY_MAX_AGE_DAYS = 7

# =============================================================================
# ANALYSIS
# =============================================================================

XREF_MAX_INPUT = _env_int("XREF_MAX_INPUT", 150)
XREF_DEFAULT_THRESHOLD = 0.2
XREF_DEFAULT_MAX_RESULTS = 50

RED_FLAG_CAPITAL_THRESHOLD = 10_000
RED_FLAG_CONTRACT_THRESHOLD = 100_000
RED_FLAG_RECENT_MONTHS = 6
RED_FLAG_OFFICER_WINDOW_DAYS = 60
RED_FLAG_SHARED_ADMIN_HIGH = 3
RED_FLAG_MAX_ALERTS = 100

# Stale lock age for the update CLI
LOCK_MAX_AGE_SECONDS = 600
