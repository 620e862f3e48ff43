"""Flat-file JSON persistence for giveaway records."""

from __future__ import annotations

import asyncio
import json
import logging
from contextlib import asynccontextmanager
from pathlib import Path
from typing import AsyncIterator, Dict

from .models import GiveawayRecord

LOGGER = logging.getLogger(__name__)

Records = Dict[str, GiveawayRecord]


class GiveawayStore:
    """Async wrapper around a single JSON file holding every giveaway record.

    The whole collection is read and rewritten on every access. Access is
    serialized behind one lock so that concurrent writers touching different
    records cannot drop each other's update.
    """

    def __init__(self, path: Path) -> None:
        self.path = path
        self._lock = asyncio.Lock()

    async def load(self) -> Records:
        """Load every record; a missing or unreadable file yields an empty mapping."""
        async with self._lock:
            return await asyncio.to_thread(self._read)

    async def save(self, records: Records) -> None:
        """Replace the persisted collection with ``records``."""
        async with self._lock:
            await asyncio.to_thread(self._write, records)

    @asynccontextmanager
    async def transaction(self) -> AsyncIterator[Records]:
        """Hold the lock across load, mutate and save.

        The mapping yielded to the caller is written back when the block exits
        normally; if the block raises, nothing is written.
        """
        async with self._lock:
            records = await asyncio.to_thread(self._read)
            yield records
            await asyncio.to_thread(self._write, records)

    # --- Internal helpers -------------------------------------------------

    def _read(self) -> Records:
        if not self.path.exists():
            LOGGER.info("Giveaway store %s not found; creating an empty one.", self.path)
            self._write({})
            return {}

        try:
            payload = json.loads(self.path.read_text(encoding="utf-8"))
        except (OSError, ValueError) as exc:
            LOGGER.warning(
                "Giveaway store %s is unreadable (%s); treating it as empty.",
                self.path,
                exc,
            )
            return {}
        if not isinstance(payload, dict):
            LOGGER.warning(
                "Giveaway store %s does not hold a mapping; treating it as empty.",
                self.path,
            )
            return {}

        records: Records = {}
        for giveaway_id, entry in payload.items():
            try:
                record = GiveawayRecord.from_payload(entry)
            except (KeyError, TypeError, ValueError) as exc:
                LOGGER.warning("Skipping malformed giveaway %s: %s", giveaway_id, exc)
                continue
            records[record.id] = record
        return records

    def _write(self, records: Records) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        payload = {giveaway_id: record.to_payload() for giveaway_id, record in records.items()}
        tmp_path = self.path.with_suffix(self.path.suffix + ".tmp")
        tmp_path.write_text(json.dumps(payload, indent=2), encoding="utf-8")
        tmp_path.replace(self.path)
