"""Activity log service — append, read and verify the per-device ledger trail."""

import hashlib
import hmac as hmac_mod
import json
from datetime import datetime, timezone
from typing import Any, AsyncIterator

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from bvpn_console.common.config import ConsoleSettings
from bvpn_console.common.exceptions import ValidationError
from bvpn_console.common.models import utcnow
from bvpn_console.activity.models import ACTIVITY_TYPES, ActivityLogModel


def _canonical_timestamp(ts: datetime) -> str:
    if ts.tzinfo is not None:
        ts = ts.astimezone(timezone.utc).replace(tzinfo=None)
    return ts.isoformat(timespec="microseconds")


class ActivityLogService:
    """Append-only, hash-chained activity history per device.

    Entries are never updated or deleted. Callers append inside the same
    session that mutates the account, after the account row UPDATE, so the
    row lock orders concurrent appends on one device's chain.
    """

    def __init__(self, settings: ConsoleSettings):
        self.settings = settings

    # ── Write ──

    async def append(
        self,
        session: AsyncSession,
        device_id: str,
        type: str,
        description: str,
        amount: int,
        idempotency_key: str | None = None,
    ) -> ActivityLogModel:
        if type not in ACTIVITY_TYPES:
            raise ValidationError(f"Unknown activity type '{type}'")

        head = await self.get_chain_head(session, device_id)
        sequence = head.sequence + 1 if head else 1
        prev_hash = head.entry_hash if head else None
        timestamp = utcnow()

        entry_hash = self._compute_entry_hash(
            device_id, sequence, type, description, amount, timestamp, prev_hash,
        )
        entry = ActivityLogModel(
            device_id=device_id,
            type=type,
            description=description,
            amount=amount,
            timestamp=timestamp,
            sequence=sequence,
            prev_hash=prev_hash,
            entry_hash=entry_hash,
            signature=self._sign(entry_hash),
            idempotency_key=idempotency_key,
        )
        session.add(entry)
        await session.flush()
        return entry

    # ── Read ──

    async def get_chain_head(
        self, session: AsyncSession, device_id: str,
    ) -> ActivityLogModel | None:
        result = await session.execute(
            select(ActivityLogModel)
            .where(ActivityLogModel.device_id == device_id)
            .order_by(ActivityLogModel.sequence.desc())
            .limit(1)
        )
        return result.scalar_one_or_none()

    async def find_by_idempotency_key(
        self, session: AsyncSession, idempotency_key: str,
    ) -> ActivityLogModel | None:
        result = await session.execute(
            select(ActivityLogModel)
            .where(ActivityLogModel.idempotency_key == idempotency_key)
        )
        return result.scalar_one_or_none()

    async def iter_entries(
        self,
        session: AsyncSession,
        device_id: str,
        type: str | None = None,
        limit: int = 50,
        batch_size: int = 50,
    ) -> AsyncIterator[ActivityLogModel]:
        """Yield up to ``limit`` entries, newest first, fetched in batches.

        Nothing is cached between calls; iterating again re-reads the store.
        """
        fetched = 0
        last_sequence: int | None = None
        while fetched < limit:
            query = select(ActivityLogModel).where(ActivityLogModel.device_id == device_id)
            if type:
                query = query.where(ActivityLogModel.type == type)
            # Keyset paging: entries appended mid-iteration never shift the window
            if last_sequence is not None:
                query = query.where(ActivityLogModel.sequence < last_sequence)
            query = (
                query.order_by(ActivityLogModel.sequence.desc())
                .limit(min(batch_size, limit - fetched))
            )
            result = await session.execute(query)
            batch = list(result.scalars().all())
            if not batch:
                return
            for entry in batch:
                yield entry
            fetched += len(batch)
            last_sequence = batch[-1].sequence

    async def get_entries(
        self,
        session: AsyncSession,
        device_id: str,
        type: str | None = None,
        limit: int = 50,
    ) -> list[ActivityLogModel]:
        return [e async for e in self.iter_entries(session, device_id, type=type, limit=limit)]

    async def total_amount(self, session: AsyncSession, device_id: str) -> int:
        result = await session.execute(
            select(func.coalesce(func.sum(ActivityLogModel.amount), 0))
            .where(ActivityLogModel.device_id == device_id)
        )
        return int(result.scalar_one())

    # ── Verify ──

    async def verify_chain(
        self, session: AsyncSession, device_id: str,
    ) -> dict[str, Any]:
        """Walk the chain oldest→newest, verify linkage, hashes and signatures."""
        result = await session.execute(
            select(ActivityLogModel)
            .where(ActivityLogModel.device_id == device_id)
            .order_by(ActivityLogModel.sequence.asc())
        )
        entries = list(result.scalars().all())

        prev_hash = None
        for index, entry in enumerate(entries):
            expected_hash = self._compute_entry_hash(
                entry.device_id, entry.sequence, entry.type, entry.description,
                entry.amount, entry.timestamp, entry.prev_hash,
            )
            if (
                entry.sequence != index + 1
                or entry.prev_hash != prev_hash
                or entry.entry_hash != expected_hash
                or not self._verify_signature(entry.entry_hash, entry.signature)
            ):
                return {"valid": False, "entries_checked": index, "break_at": entry.id}
            prev_hash = entry.entry_hash

        return {"valid": True, "entries_checked": len(entries), "break_at": None}

    # ── Internal helpers ──

    @staticmethod
    def _compute_entry_hash(
        device_id: str,
        sequence: int,
        type: str,
        description: str,
        amount: int,
        timestamp: datetime,
        prev_hash: str | None,
    ) -> str:
        """SHA-256 of canonical JSON of the entry fields."""
        canonical = json.dumps(
            {
                "device_id": device_id,
                "sequence": sequence,
                "type": type,
                "description": description,
                "amount": amount,
                "timestamp": _canonical_timestamp(timestamp),
                "prev_hash": prev_hash,
            },
            sort_keys=True,
            separators=(",", ":"),
        )
        return hashlib.sha256(canonical.encode()).hexdigest()

    def _sign(self, entry_hash: str) -> str:
        return hmac_mod.new(
            self.settings.ledger_signing_key.encode(),
            entry_hash.encode(),
            hashlib.sha256,
        ).hexdigest()

    def _verify_signature(self, entry_hash: str, signature: str) -> bool:
        return hmac_mod.compare_digest(self._sign(entry_hash), signature)
