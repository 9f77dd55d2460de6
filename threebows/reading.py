"""
Last-reading cache.
Keeps the most recent chart + fortune as a single JSON file so a visitor
can see their reading again without bowing a second time.

Usage from Python:
    from threebows.reading import save_last_reading, load_last_reading
    save_last_reading("1990-03-15", "10:30", chart, fortune)
    load_last_reading()  # → dict or None
"""

import json
import logging
import os
from datetime import datetime
from pathlib import Path
from typing import Optional

from threebows.bazi import FourPillarChart
from threebows.fortune import Fortune

logger = logging.getLogger(__name__)

DEFAULT_CACHE = Path(__file__).parent.parent / "reading_data" / "last.json"


def cache_path(path=None) -> Path:
    """Resolve the cache file: explicit path, then $THREEBOWS_CACHE, then reading_data/last.json."""
    return Path(path or os.getenv("THREEBOWS_CACHE") or DEFAULT_CACHE)


def save_last_reading(birth_date: str, birth_time: Optional[str],
                      chart: FourPillarChart, fortune: Fortune, path=None) -> Path:
    """
    Save a reading, replacing the previous one.

    Returns:
        Path of the written file
    """
    reading = {
        "birth_date": birth_date,
        "birth_time": birth_time or None,
        "chart": chart.to_dict(),
        "fortune": fortune.model_dump(),
        "saved_at": datetime.now().isoformat(),
    }

    target = cache_path(path)
    target.parent.mkdir(parents=True, exist_ok=True)
    with open(target, "w", encoding="utf-8") as f:
        json.dump(reading, f, indent=2, ensure_ascii=False)
    return target


def load_last_reading(path=None) -> Optional[dict]:
    """Load the last saved reading, or None if there is no usable one."""
    target = cache_path(path)
    if not target.exists():
        return None

    try:
        with open(target, encoding="utf-8") as f:
            saved = json.load(f)
    except (OSError, json.JSONDecodeError) as err:
        logger.warning("Ignoring unreadable reading cache %s: %s", target, err)
        return None

    if not isinstance(saved, dict) or not saved.get("fortune") or not saved.get("chart"):
        return None
    return saved
