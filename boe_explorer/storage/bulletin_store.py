"""
Day-partitioned storage for bulletin documents.

Layout:
    <data>/boe/YYYY-MM-DD.json   list of document dicts for that day
    <data>/meta.json             per-day counts, date range, last update

A day that was never stored loads as None; a stored day with no documents
(a holiday) loads as [].
"""

import logging
from datetime import date, datetime, timedelta
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

from boe_explorer.core import config
from boe_explorer.core.domain_models import BulletinDocument
from boe_explorer.core.time_utils import iter_days, now_madrid, today_madrid
from boe_explorer.core.utils import iso, to_date
from boe_explorer.storage.json_files import day_files, read_json, write_json

logger = logging.getLogger(__name__)

DayKey = Union[str, date]


def _empty_meta() -> Dict[str, Any]:
    return {
        'last_update': None,
        'total_days': 0,
        'total_documents': 0,
        'first_date': None,
        'last_date': None,
        'daily_counts': {},
    }


class BulletinStore:
    """
    Persistent storage for BulletinDocument records, one file per day.

    Usage:
        store = BulletinStore()
        store.save_day("2026-02-10", documents)
        documents = store.load_day("2026-02-10")
    """

    def __init__(self, data_dir: Optional[Path] = None):
        self.data_dir = Path(data_dir or config.DATA_DIR)
        self.day_dir = self.data_dir / 'boe'
        self.meta_path = self.data_dir / 'meta.json'

    def _day_path(self, fecha: DayKey) -> Path:
        return self.day_dir / f"{fecha if isinstance(fecha, str) else iso(fecha)}.json"

    def is_stored(self, fecha: DayKey) -> bool:
        return self._day_path(fecha).exists()

    def save_day(self, fecha: DayKey, documents: List[BulletinDocument]) -> None:
        """Persist a day (replacing any previous copy) and update the meta index."""
        key = fecha if isinstance(fecha, str) else iso(fecha)
        write_json(self._day_path(key), [d.to_dict() for d in documents])
        self.update_meta(key, len(documents))
        logger.info(f"Stored {len(documents)} documents for {key}")

    def load_day(self, fecha: DayKey) -> Optional[List[BulletinDocument]]:
        path = self._day_path(fecha)
        if not path.exists():
            return None
        data = read_json(path, default=[])
        if not isinstance(data, list):
            return []
        return [BulletinDocument.from_dict(d) for d in data if isinstance(d, dict)]

    def stored_dates(self) -> List[str]:
        return day_files(self.day_dir)

    def load_range(self, desde: DayKey, hasta: DayKey) -> List[BulletinDocument]:
        """All documents from `desde` to `hasta` inclusive, oldest day first."""
        start, end = to_date(desde), to_date(hasta)
        if start is None or end is None:
            return []
        documents = []
        for day in iter_days(start, end):
            documents.extend(self.load_day(day) or [])
        return documents

    def load_last_days(self, dias: int = 7, until: Optional[date] = None) -> List[BulletinDocument]:
        """
        Documents from the last `dias` stored days, walking back from `until`.

        Only days that are actually stored count towards `dias`; the walk
        gives up after 2 * dias calendar days.
        """
        day = until or today_madrid()
        documents = []
        found = 0
        for _ in range(dias * 2):
            if found >= dias:
                break
            loaded = self.load_day(day)
            if loaded is not None:
                documents.extend(loaded)
                found += 1
            day -= timedelta(days=1)
        return documents

    def load_procurements_range(self, desde: DayKey, hasta: DayKey) -> List[BulletinDocument]:
        return [d for d in self.load_range(desde, hasta) if d.is_procurement]

    def load_procurements_last_days(self, dias: int = 30, until: Optional[date] = None) -> List[BulletinDocument]:
        return [d for d in self.load_last_days(dias, until) if d.is_procurement]

    # =========================================================================
    # META INDEX
    # =========================================================================

    def load_meta(self) -> Dict[str, Any]:
        meta = read_json(self.meta_path, default=None)
        if not isinstance(meta, dict):
            return _empty_meta()
        meta.setdefault('daily_counts', {})
        return meta

    def _finish_meta(self, meta: Dict[str, Any]) -> Dict[str, Any]:
        counts = dict(sorted(meta['daily_counts'].items()))
        meta['daily_counts'] = counts
        meta['last_update'] = now_madrid().isoformat(timespec='seconds')
        meta['total_days'] = len(counts)
        meta['total_documents'] = sum(counts.values())
        if counts:
            dates = list(counts)
            meta['first_date'] = dates[0]
            meta['last_date'] = dates[-1]
        write_json(self.meta_path, meta, pretty=True)
        return meta

    def update_meta(self, fecha: Optional[str] = None, count: Optional[int] = None) -> Dict[str, Any]:
        meta = self.load_meta()
        if fecha is not None and count is not None:
            meta['daily_counts'][fecha] = count
        return self._finish_meta(meta)

    def rebuild_meta(self) -> Dict[str, Any]:
        """Recount every stored day file (repair tool)."""
        meta = _empty_meta()
        for fecha in self.stored_dates():
            meta['daily_counts'][fecha] = len(self.load_day(fecha) or [])
        return self._finish_meta(meta)

    def trend(self, dias: int = 30) -> List[Dict[str, Any]]:
        """Per-day document counts for the last `dias` stored days (from meta only)."""
        counts = self.load_meta().get('daily_counts', {})
        recent = list(counts.items())[-dias:]
        return [
            {'fecha': fecha, 'dia': datetime.strptime(fecha, '%Y-%m-%d').strftime('%d/%m'), 'total': total}
            for fecha, total in recent
        ]
