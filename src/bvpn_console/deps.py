"""Dependency injection singletons for BVPN Console."""

from bvpn_console.common.config import get_settings
from bvpn_console.common.database import DatabaseManager
from bvpn_console.accounts.service import AccountService
from bvpn_console.activity.service import ActivityLogService
from bvpn_console.events.feed import ChangeFeed
from bvpn_console.ledger.service import LedgerService
from bvpn_console.presence.monitor import PresenceMonitor
from bvpn_console.withdrawals.service import WithdrawalService

_db: DatabaseManager | None = None
_feed: ChangeFeed | None = None
_accounts: AccountService | None = None
_activity: ActivityLogService | None = None
_ledger: LedgerService | None = None
_withdrawals: WithdrawalService | None = None
_presence: PresenceMonitor | None = None


def get_db() -> DatabaseManager:
    global _db
    if _db is None:
        _db = DatabaseManager(get_settings())
    return _db


def get_feed() -> ChangeFeed:
    global _feed
    if _feed is None:
        _feed = ChangeFeed()
    return _feed


def get_account_service() -> AccountService:
    global _accounts
    if _accounts is None:
        _accounts = AccountService(get_settings(), feed=get_feed())
    return _accounts


def get_activity_service() -> ActivityLogService:
    global _activity
    if _activity is None:
        _activity = ActivityLogService(get_settings())
    return _activity


def get_ledger_service() -> LedgerService:
    global _ledger
    if _ledger is None:
        _ledger = LedgerService(
            get_settings(), get_activity_service(), feed=get_feed(),
        )
    return _ledger


def get_withdrawal_service() -> WithdrawalService:
    global _withdrawals
    if _withdrawals is None:
        _withdrawals = WithdrawalService(
            get_settings(), get_ledger_service(), feed=get_feed(),
        )
    return _withdrawals


def get_presence_monitor() -> PresenceMonitor:
    global _presence
    if _presence is None:
        settings = get_settings()
        _presence = PresenceMonitor(
            get_feed(),
            window=settings.presence_window,
            tick_seconds=settings.presence_tick_seconds,
        )
    return _presence


def reset_singletons() -> None:
    """Reset all singletons (for testing)."""
    global _db, _feed, _accounts, _activity, _ledger, _withdrawals, _presence
    _db = None
    _feed = None
    _accounts = None
    _activity = None
    _ledger = None
    _withdrawals = None
    _presence = None
