"""
Storage for subsidy calls (BDNS).

Layout:
    <data>/bdns/convocatorias.json   list of calls, newest first
    <data>/bdns/taxonomias.json      reference taxonomies
    <data>/bdns/meta.json            last update, totals, date range

Calls are merged by id: new ids are added, existing ids are overwritten
(last write wins). A stored `presupuesto` survives a merge that does not
carry one, so the budget pass never repeats work.
"""

import logging
import time
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

from boe_explorer.core import config
from boe_explorer.core.domain_models import Subsidy
from boe_explorer.core.time_utils import now_madrid
from boe_explorer.storage.json_files import read_json, write_json

logger = logging.getLogger(__name__)


class SubsidyStore:
    """Merge-by-id storage for Subsidy records."""

    def __init__(self, data_dir: Optional[Path] = None):
        self.data_dir = Path(data_dir or config.DATA_DIR) / 'bdns'
        self.calls_path = self.data_dir / 'convocatorias.json'
        self.taxonomies_path = self.data_dir / 'taxonomias.json'
        self.meta_path = self.data_dir / 'meta.json'

    def load_all(self) -> List[Subsidy]:
        data = read_json(self.calls_path, default=[])
        if not isinstance(data, list):
            return []
        return [Subsidy.from_dict(item) for item in data if isinstance(item, dict)]

    def save_all(self, subsidies: List[Subsidy]) -> None:
        """Write the list as is (no merge); used by the budget pass."""
        write_json(self.calls_path, [s.to_dict() for s in subsidies])

    def merge(self, incoming: List[Subsidy]) -> Tuple[int, int]:
        """
        Merge fetched calls into the stored set.

        Returns:
            (new records, total stored records)
        """
        by_id: Dict[str, Subsidy] = {s.id: s for s in self.load_all() if s.id}
        existing = len(by_id)

        new_count = 0
        for subsidy in incoming:
            if not subsidy.id:
                continue
            previous = by_id.get(subsidy.id)
            if previous is None:
                new_count += 1
            elif subsidy.presupuesto is None and previous.presupuesto is not None:
                subsidy.presupuesto = previous.presupuesto
            by_id[subsidy.id] = subsidy

        merged = sorted(by_id.values(), key=lambda s: s.fecha or '', reverse=True)
        self.save_all(merged)
        self.update_meta(merged)

        logger.info(f"Stored {len(merged)} subsidy calls (merged {new_count} new with {existing} existing)")
        return new_count, len(merged)

    # =========================================================================
    # META & TAXONOMIES
    # =========================================================================

    def update_meta(self, subsidies: List[Subsidy]) -> Dict[str, Any]:
        fechas = sorted(s.fecha for s in subsidies if s.fecha)
        meta = {
            'last_update': now_madrid().isoformat(timespec='seconds'),
            'total_convocatorias': len(subsidies),
            'fecha_min': fechas[0] if fechas else None,
            'fecha_max': fechas[-1] if fechas else None,
        }
        write_json(self.meta_path, meta, pretty=True)
        return meta

    def load_meta(self) -> Dict[str, Any]:
        meta = read_json(self.meta_path, default=None)
        if not isinstance(meta, dict):
            return {'last_update': None, 'total_convocatorias': 0}
        return meta

    def save_taxonomies(self, taxonomies: Dict[str, Any]) -> None:
        write_json(self.taxonomies_path, taxonomies)

    def load_taxonomies(self) -> Dict[str, Any]:
        data = read_json(self.taxonomies_path, default={})
        return data if isinstance(data, dict) else {}

    def taxonomies_age_days(self) -> Optional[float]:
        """Age of the taxonomy file in days, None when it does not exist."""
        if not self.taxonomies_path.exists():
            return None
        return (time.time() - self.taxonomies_path.stat().st_mtime) / 86400
