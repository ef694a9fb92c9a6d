"""
Single-slot persistence for the supply snapshot and refresh metadata.

Files (under DATA_DIR):
- supply-data.json  latest snapshot
- metadata.json     last/next refresh times

Each write replaces the whole document through a temporary file, so a reader
sees either the previous document or the new one, never a partial write.
"""

from __future__ import annotations

import json
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path

from logger import setup_logger
from snapshot_builder import Snapshot, format_timestamp, parse_timestamp
from supply_config import DATA_DIR

logger = setup_logger('snapshot_store')

SUPPLY_FILENAME = 'supply-data.json'
METADATA_FILENAME = 'metadata.json'


class PersistError(Exception):
    """Raised when a snapshot or metadata document cannot be written."""
    def __init__(self, path: Path, message: str):
        self.path = path
        super().__init__(f"Failed to write {path}: {message}")


@dataclass(frozen=True)
class RefreshMarker:
    last_refresh_at: datetime | None = None
    next_scheduled_at: datetime | None = None

    def to_json(self) -> dict:
        return {
            'lastFetch': format_timestamp(self.last_refresh_at),
            'nextScheduledFetch': format_timestamp(self.next_scheduled_at),
        }

    @classmethod
    def from_json(cls, data: dict) -> RefreshMarker:
        return cls(
            last_refresh_at=parse_timestamp(data.get('lastFetch')),
            next_scheduled_at=parse_timestamp(data.get('nextScheduledFetch')),
        )


def _read_json(path: Path) -> dict | list | None:
    if not path.exists():
        return None
    try:
        with path.open('r', encoding='utf-8') as f:
            return json.load(f)
    except (OSError, ValueError) as exc:
        logger.error(f"Error reading JSON {path}: {exc}")
        return None


def _write_json(path: Path, data: dict) -> None:
    tmp = path.with_suffix(path.suffix + '.tmp')
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        with tmp.open('w', encoding='utf-8') as f:
            json.dump(data, f, indent=2)
        tmp.replace(path)
    except OSError as exc:
        logger.error(f"Error writing JSON {path}: {exc}")
        raise PersistError(path, str(exc)) from exc


class SnapshotStore:
    def __init__(self, data_dir: Path | str = DATA_DIR):
        self.data_dir = Path(data_dir)
        self.supply_path = self.data_dir / SUPPLY_FILENAME
        self.metadata_path = self.data_dir / METADATA_FILENAME

    def save(self, snapshot: Snapshot) -> None:
        _write_json(self.supply_path, snapshot.to_json())
        logger.info(f"Data saved successfully ({len(snapshot.cards)} cards)")

    def load(self) -> Snapshot | None:
        data = _read_json(self.supply_path)
        if not isinstance(data, dict):
            if data is not None:
                logger.warning(f"Ignoring malformed snapshot document at {self.supply_path}")
            return None
        try:
            return Snapshot.from_json(data)
        except (KeyError, TypeError, ValueError) as exc:
            logger.warning(f"Ignoring unreadable snapshot document at {self.supply_path}: {exc}")
            return None

    def save_marker(self, marker: RefreshMarker) -> None:
        _write_json(self.metadata_path, marker.to_json())

    def load_marker(self) -> RefreshMarker:
        data = _read_json(self.metadata_path)
        if not isinstance(data, dict):
            return RefreshMarker()
        return RefreshMarker.from_json(data)
