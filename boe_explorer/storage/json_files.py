"""
Atomic JSON file helpers shared by the day-partitioned stores.
"""

import json
import os
import re
import logging
import tempfile
from pathlib import Path
from typing import Any, List

logger = logging.getLogger(__name__)

DAY_FILE_RE = re.compile(r"^\d{4}-\d{2}-\d{2}$")


def read_json(path: Path, default: Any = None) -> Any:
    """Load a JSON file; missing or corrupt files yield `default`."""
    if not path.exists():
        return default
    try:
        with path.open(encoding='utf-8') as f:
            return json.load(f)
    except (OSError, ValueError) as e:
        logger.error(f"Cannot read {path}: {e}")
        return default


def write_json(path: Path, data: Any, pretty: bool = False) -> None:
    """
    Write JSON atomically: temp file in the same directory, then replace.

    Readers never see a half-written file; concurrent writers to the same
    path resolve as last write wins.
    """
    path.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp_name = tempfile.mkstemp(dir=str(path.parent), prefix=f".{path.stem}.", suffix=".tmp")
    try:
        with os.fdopen(fd, 'w', encoding='utf-8') as f:
            json.dump(data, f, ensure_ascii=False, indent=2 if pretty else None)
        os.replace(tmp_name, path)
    except BaseException:
        if os.path.exists(tmp_name):
            os.unlink(tmp_name)
        raise


def day_files(directory: Path) -> List[str]:
    """Sorted 'YYYY-MM-DD' stems of the day files in a directory."""
    if not directory.exists():
        return []
    return sorted(p.stem for p in directory.glob('*.json') if DAY_FILE_RE.match(p.stem))
