"""BVPN Console: operator ledger, withdrawal approvals and device presence."""

from bvpn_console.client import ConsoleClient
from bvpn_console.presence.resolver import EffectiveStatus, resolve_presence
from bvpn_console.withdrawals.txid import generate_transaction_id, is_transaction_id

__all__ = [
    "ConsoleClient",
    "EffectiveStatus",
    "resolve_presence",
    "generate_transaction_id",
    "is_transaction_id",
]
__version__ = "0.1.0"
