"""Loading festival snapshots exported by the data layer."""

from __future__ import annotations

import json
import logging
from pathlib import Path

from django.conf import settings

from .snapshot import Snapshot, SnapshotError, build_snapshot

logger = logging.getLogger(__name__)


def snapshot_path() -> Path | None:
    configured = getattr(settings, "FESTIVAL_SNAPSHOT_PATH", None)
    return Path(configured) if configured else None


def load_snapshot(path: str | Path | None = None) -> Snapshot | None:
    """Return the current snapshot, or ``None`` while no usable export exists."""

    target = Path(path) if path else snapshot_path()
    if target is None or not target.exists():
        logger.debug("No festival snapshot at %s", target)
        return None
    try:
        with target.open("r", encoding="utf-8") as handle:
            payload = json.load(handle)
        return build_snapshot(payload)
    except (OSError, ValueError) as exc:
        # SnapshotError and JSONDecodeError are both ValueErrors.
        logger.warning("Unable to read festival snapshot %s: %s", target, exc)
        return None


__all__ = ["load_snapshot", "snapshot_path", "SnapshotError"]
