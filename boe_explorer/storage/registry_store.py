"""
Storage for parsed commercial-registry days and the company index.

Layout:
    <data>/borme/YYYY-MM-DD.json   {fecha, total_entries, provincias, entries, processed_at}
    <data>/borme/index.json        UPPER company name -> {empresa, fechas}
    <data>/borme/meta.json         processing progress

The index is never edited in place; rebuild_index() re-derives it from
every stored day.
"""

import logging
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional

from boe_explorer.core import config
from boe_explorer.core.domain_models import RegistryEntry
from boe_explorer.core.text import fold
from boe_explorer.core.time_utils import now_madrid
from boe_explorer.storage.json_files import day_files, read_json, write_json

logger = logging.getLogger(__name__)


def index_key(empresa: str) -> str:
    return (empresa or '').strip().upper()


class RegistryStore:
    """Day files, index and lookups for registry entries."""

    def __init__(self, data_dir: Optional[Path] = None):
        self.data_dir = Path(data_dir or config.DATA_DIR) / 'borme'
        self.index_path = self.data_dir / 'index.json'
        self.meta_path = self.data_dir / 'meta.json'
        self._index: Optional[Dict[str, Dict[str, Any]]] = None

    def _day_path(self, fecha: str) -> Path:
        return self.data_dir / f"{fecha}.json"

    def is_stored(self, fecha: str) -> bool:
        return self._day_path(fecha).exists()

    def stored_dates(self) -> List[str]:
        return day_files(self.data_dir)

    def save_day(self, fecha: str, entries: List[RegistryEntry], provincias: int) -> None:
        write_json(self._day_path(fecha), {
            'fecha': fecha,
            'total_entries': len(entries),
            'provincias': provincias,
            'entries': [e.to_dict() for e in entries],
            'processed_at': now_madrid().strftime('%Y-%m-%d %H:%M:%S'),
        })
        logger.info(f"Saved registry {fecha}: {len(entries)} entries from {provincias} provinces")

    def load_day(self, fecha: str) -> Optional[List[RegistryEntry]]:
        """Entries of a stored day, None when the day was never stored."""
        path = self._day_path(fecha)
        if not path.exists():
            return None
        data = read_json(path, default={})
        entries = data.get('entries') if isinstance(data, dict) else None
        if not isinstance(entries, list):
            return []
        parsed = []
        for item in entries:
            entry = RegistryEntry.from_dict(item)
            entry.fecha = entry.fecha or fecha
            parsed.append(entry)
        return parsed

    # =========================================================================
    # META
    # =========================================================================

    def load_meta(self) -> Dict[str, Any]:
        meta = read_json(self.meta_path, default={})
        return meta if isinstance(meta, dict) else {}

    def record_progress(self, fecha: str, count: int) -> Dict[str, Any]:
        """Advance the processing cursor after a day was attempted."""
        meta = self.load_meta()
        meta['last_date'] = fecha
        meta['last_update'] = now_madrid().strftime('%Y-%m-%d %H:%M:%S')
        meta['total_entries'] = meta.get('total_entries', 0) + count
        meta['days_processed'] = meta.get('days_processed', 0) + (1 if count > 0 else 0)
        write_json(self.meta_path, meta, pretty=True)
        return meta

    def status(self) -> Dict[str, Any]:
        meta = self.load_meta()
        return {
            'last_date': meta.get('last_date'),
            'last_update': meta.get('last_update'),
            'total_entries': meta.get('total_entries', 0),
            'days_processed': len(self.stored_dates()),
            'companies_indexed': len(self.load_index()),
        }

    # =========================================================================
    # COMPANY INDEX
    # =========================================================================

    def rebuild_index(self) -> int:
        """Scan every stored day and rewrite the company -> dates index."""
        index: Dict[str, Dict[str, Any]] = {}
        for fecha in self.stored_dates():
            for entry in self.load_day(fecha) or []:
                key = index_key(entry.empresa)
                if not key:
                    continue
                item = index.setdefault(key, {'empresa': entry.empresa, 'fechas': []})
                if fecha not in item['fechas']:
                    item['fechas'].append(fecha)

        for item in index.values():
            item['fechas'].sort()

        write_json(self.index_path, index)
        self._index = index
        logger.info(f"Registry index rebuilt: {len(index)} companies")
        return len(index)

    def load_index(self) -> Dict[str, Dict[str, Any]]:
        if self._index is None:
            data = read_json(self.index_path, default={})
            self._index = data if isinstance(data, dict) else {}
        return self._index

    def load_companies(self, keys: Iterable[str]) -> Dict[str, List[RegistryEntry]]:
        """
        All entries for the given index keys.

        Each needed day file is read once, however many companies it holds.
        """
        index = self.load_index()
        wanted = {k for k in keys if k in index}
        needed_dates = sorted({f for k in wanted for f in index[k].get('fechas', [])})

        acts: Dict[str, List[RegistryEntry]] = {k: [] for k in wanted}
        for fecha in needed_dates:
            for entry in self.load_day(fecha) or []:
                key = index_key(entry.empresa)
                if key in acts:
                    acts[key].append(entry)
        return acts

    def search_company(self, query: str) -> List[Dict[str, Any]]:
        """
        Accent-insensitive substring search over the index.

        A company matches when either name contains the other.

        Returns:
            [{empresa, total_actos, actos}] with every stored act per company
        """
        needle = fold(query.strip())
        if not needle:
            return []

        index = self.load_index()
        matched = [key for key in index if needle in fold(key) or fold(key) in needle]
        acts = self.load_companies(matched)

        return [
            {
                'empresa': index[key]['empresa'],
                'total_actos': len(acts.get(key, [])),
                'actos': [e.to_dict() for e in acts.get(key, [])],
            }
            for key in matched
        ]

    def get_officers(self, query: str) -> List[Dict[str, Any]]:
        """
        Consolidate the people named in a company's filings.

        One row per person with every role held (annotated with the action
        unless it was an appointment) and first/last dates seen.
        """
        people: Dict[str, Dict[str, Any]] = {}
        for result in self.search_company(query):
            for act in result['actos']:
                fecha = act.get('fecha') or ''
                for persona in act.get('personas', []):
                    key = persona.get('nombre', '').upper()
                    row = people.setdefault(key, {
                        'nombre': persona.get('nombre', ''),
                        'cargos': [],
                        'primera_fecha': fecha,
                        'ultima_fecha': fecha,
                        'empresa': act.get('empresa', ''),
                    })
                    cargo = persona.get('cargo', '')
                    accion = persona.get('accion')
                    if accion and accion != 'Nombramientos':
                        cargo = f"{cargo} ({accion})"
                    if cargo not in row['cargos']:
                        row['cargos'].append(cargo)
                    row['primera_fecha'] = min(row['primera_fecha'], fecha)
                    row['ultima_fecha'] = max(row['ultima_fecha'], fecha)
        return list(people.values())
