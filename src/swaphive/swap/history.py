"""Persisted swap history.

All users share one ordered list stored under a single key, newest first.
Each user keeps at most ``limit`` records; adding a record for one user
never touches the records of another.
"""

import logging
from typing import Iterable

from swaphive.storage.base import KeyValueStore
from swaphive.swap.models import SwapRecord

logger = logging.getLogger(__name__)

HISTORY_KEY = "swapHistory"


class SwapHistory:
    """Swap records kept in a key-value store."""

    def __init__(self, store: KeyValueStore, key: str = HISTORY_KEY, limit: int = 10):
        self.store = store
        self.key = key
        self.limit = limit

    async def all(self) -> list[SwapRecord]:
        """Every stored record, newest first. Unreadable entries are skipped."""
        raw = await self.store.get(self.key, default=[]) or []
        records = []
        for entry in raw:
            try:
                records.append(SwapRecord.from_dict(entry))
            except (KeyError, TypeError, ValueError) as e:
                logger.warning(f"Skipping malformed swap record {entry!r}: {e}")
        return records

    async def save(self, records: Iterable[SwapRecord]) -> None:
        await self.store.set(self.key, [record.to_dict() for record in records])

    async def records_for(self, username: str) -> list[SwapRecord]:
        """Records of one user, newest first."""
        return [r for r in await self.all() if r.username == username]

    async def add(self, record: SwapRecord) -> None:
        """Insert a record at the front and trim that user's records to the limit."""
        records = [record] + await self.all()

        own = [r for r in records if r.username == record.username][: self.limit]
        others = [r for r in records if r.username != record.username]
        await self.save(own + others)

        logger.info(
            f"Recorded swap {record.tx_id_sent} for @{record.username} "
            f"({len(own)} in history)"
        )

    async def update(self, updated: Iterable[SwapRecord]) -> int:
        """Replace stored records that share a ``tx_id_sent`` with an updated one.

        Returns:
            Number of records that changed
        """
        by_tx = {record.tx_id_sent: record for record in updated}
        records = await self.all()

        changed = 0
        for index, record in enumerate(records):
            replacement = by_tx.get(record.tx_id_sent)
            if replacement is not None and replacement != record:
                records[index] = replacement
                changed += 1

        if changed:
            await self.save(records)
        return changed

    async def clear(self, username: str) -> None:
        """Drop every record of one user."""
        records = [r for r in await self.all() if r.username != username]
        await self.save(records)
