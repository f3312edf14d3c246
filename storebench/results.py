"""
Run artifact persistence.

Every load and benchmark run is written as one JSON file under the results
directory, plus a `latest` copy for the most recent run of that kind:

- `results/load-<engine>-<timestamp>.json` / `results/load-latest.json`
- `results/run-<timestamp>.json` / `results/latest.json`
"""

from __future__ import annotations

import json
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, Optional

from storebench.utils.logging import get_logger

log = get_logger(__name__)


def timestamp_slug() -> str:
    return datetime.now(timezone.utc).strftime("%Y%m%dT%H%M%S%fZ")


def persist_payload(
    payload: Dict[str, Any],
    results_dir: Path | str,
    archive_name: str,
    latest_name: Optional[str] = None,
) -> Path:
    """Write `payload` to `archive_name` (and `latest_name`) and return the archive path."""
    directory = Path(results_dir)
    directory.mkdir(parents=True, exist_ok=True)
    archive_path = directory / archive_name

    with archive_path.open("w", encoding="utf-8") as f:
        json.dump(payload, f, indent=2, sort_keys=True, default=str)
    extra: Dict[str, Any] = {"archive": str(archive_path)}
    if latest_name:
        latest_path = directory / latest_name
        with latest_path.open("w", encoding="utf-8") as f:
            json.dump(payload, f, indent=2, sort_keys=True, default=str)
        extra["latest"] = str(latest_path)

    log.info("Results persisted", extra=extra)
    return archive_path


__all__ = ["persist_payload", "timestamp_slug"]
