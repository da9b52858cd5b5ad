"""Presence resolution — derive effective connectivity from stored heartbeat data.

A device that crashes never reports itself offline, so the stored
``status`` label cannot be trusted on its own. The effective status
combines the label with the age of the last heartbeat.
"""

from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import Optional

STALENESS_WINDOW = timedelta(minutes=5)


class EffectiveStatus(str, Enum):
    ONLINE = "online"
    OFFLINE = "offline"
    BANNED = "banned"
    VPN_CONNECTED = "vpn_connected"


def _as_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def is_fresh(
    last_seen: Optional[datetime],
    now: datetime,
    window: timedelta = STALENESS_WINDOW,
) -> bool:
    """True when a heartbeat exists and is no older than ``window``."""
    if last_seen is None:
        return False
    return _as_utc(now) - _as_utc(last_seen) <= window


def resolve_presence(
    stored_status: Optional[str],
    last_seen: Optional[datetime],
    now: datetime,
    window: timedelta = STALENESS_WINDOW,
) -> EffectiveStatus:
    """Map stored status + heartbeat age to an effective status.

    First match wins:

    1. ``banned`` stays banned whatever the heartbeat says.
    2. ``vpn_connected`` with a fresh heartbeat is ``vpn_connected``.
    3. ``online`` with a fresh heartbeat is ``online``.
    4. Everything else is ``offline``.
    """
    if stored_status == EffectiveStatus.BANNED.value:
        return EffectiveStatus.BANNED
    fresh = is_fresh(last_seen, now, window)
    if stored_status == EffectiveStatus.VPN_CONNECTED.value and fresh:
        return EffectiveStatus.VPN_CONNECTED
    if stored_status == EffectiveStatus.ONLINE.value and fresh:
        return EffectiveStatus.ONLINE
    return EffectiveStatus.OFFLINE
