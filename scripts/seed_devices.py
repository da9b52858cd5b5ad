#!/usr/bin/env python3
"""Seed the database with demo devices and opening balances.

Re-running is safe: opening credits carry an idempotency key.

Usage:
    python scripts/seed_devices.py
"""

import asyncio
import sys
from pathlib import Path

# Ensure project root is on path
sys.path.insert(0, str(Path(__file__).resolve().parent.parent / "src"))

from bvpn_console.common.config import get_settings
from bvpn_console.common.database import DatabaseManager
from bvpn_console.accounts.service import AccountService
from bvpn_console.activity.service import ActivityLogService
from bvpn_console.ledger.service import LedgerService

DEVICE_SEEDS = [
    {"id": "demo-pixel-8", "model": "Pixel 8", "platform": "android", "balance": 25000},
    {"id": "demo-galaxy-a54", "model": "Galaxy A54", "platform": "android", "balance": 4500},
    {"id": "demo-redmi-note-12", "model": "Redmi Note 12", "platform": "android", "balance": 0},
]


async def seed_devices() -> None:
    settings = get_settings()
    db = DatabaseManager(settings)
    await db.init()
    await db.create_all()

    accounts = AccountService(settings)
    ledger = LedgerService(settings, ActivityLogService(settings))

    for seed in DEVICE_SEEDS:
        async with db.get_session() as session:
            _, created = await accounts.check_in(
                session, seed["id"], seed["model"], platform=seed["platform"],
            )
            if seed["balance"]:
                await ledger.adjust_balance(
                    session, seed["id"], seed["balance"], "Opening balance",
                    idempotency_key=f"seed:{seed['id']}",
                )
        print(f"  [{'created' if created else 'skip'}] {seed['id']} ({seed['model']})")

    await db.close()
    print(f"\nDone. {len(DEVICE_SEEDS)} devices seeded.")


if __name__ == "__main__":
    asyncio.run(seed_devices())
