"""Tests for presence resolution."""

from datetime import datetime, timedelta, timezone

import pytest

from bvpn_console.presence.resolver import (
    STALENESS_WINDOW,
    EffectiveStatus,
    is_fresh,
    resolve_presence,
)


NOW = datetime(2026, 3, 1, 12, 0, 0, tzinfo=timezone.utc)


class TestResolvePresence:
    def test_banned_always_banned(self):
        assert resolve_presence("banned", NOW, NOW) == EffectiveStatus.BANNED
        assert resolve_presence("banned", None, NOW) == EffectiveStatus.BANNED
        old = NOW - timedelta(days=30)
        assert resolve_presence("banned", old, NOW) == EffectiveStatus.BANNED

    def test_vpn_connected_fresh(self):
        seen = NOW - timedelta(minutes=1)
        assert resolve_presence("vpn_connected", seen, NOW) == EffectiveStatus.VPN_CONNECTED

    def test_vpn_connected_stale_is_offline(self):
        seen = NOW - timedelta(minutes=10)
        assert resolve_presence("vpn_connected", seen, NOW) == EffectiveStatus.OFFLINE

    def test_online_fresh(self):
        seen = NOW - timedelta(seconds=30)
        assert resolve_presence("online", seen, NOW) == EffectiveStatus.ONLINE

    def test_online_stale_is_offline(self):
        seen = NOW - timedelta(minutes=6)
        assert resolve_presence("online", seen, NOW) == EffectiveStatus.OFFLINE

    def test_online_without_heartbeat_is_offline(self):
        assert resolve_presence("online", None, NOW) == EffectiveStatus.OFFLINE

    def test_stored_offline_stays_offline(self):
        assert resolve_presence("offline", NOW, NOW) == EffectiveStatus.OFFLINE

    def test_unknown_label_is_offline(self):
        assert resolve_presence("sleeping", NOW, NOW) == EffectiveStatus.OFFLINE
        assert resolve_presence(None, NOW, NOW) == EffectiveStatus.OFFLINE

    def test_window_boundary_inclusive(self):
        seen = NOW - STALENESS_WINDOW
        assert resolve_presence("online", seen, NOW) == EffectiveStatus.ONLINE
        seen = NOW - STALENESS_WINDOW - timedelta(seconds=1)
        assert resolve_presence("online", seen, NOW) == EffectiveStatus.OFFLINE

    def test_custom_window(self):
        seen = NOW - timedelta(minutes=2)
        window = timedelta(minutes=1)
        assert resolve_presence("online", seen, NOW, window) == EffectiveStatus.OFFLINE

    def test_naive_timestamps_are_utc(self):
        seen = (NOW - timedelta(minutes=1)).replace(tzinfo=None)
        assert resolve_presence("online", seen, NOW) == EffectiveStatus.ONLINE

    def test_pure_function(self):
        seen = NOW - timedelta(minutes=1)
        results = {resolve_presence("online", seen, NOW) for _ in range(5)}
        assert results == {EffectiveStatus.ONLINE}

    @pytest.mark.parametrize("status", ["online", "vpn_connected", "offline", "banned"])
    def test_result_is_known_status(self, status):
        result = resolve_presence(status, NOW - timedelta(minutes=3), NOW)
        assert result in set(EffectiveStatus)


class TestIsFresh:
    def test_none_is_stale(self):
        assert is_fresh(None, NOW) is False

    def test_future_heartbeat_is_fresh(self):
        assert is_fresh(NOW + timedelta(seconds=5), NOW) is True

    def test_status_value_is_str(self):
        assert EffectiveStatus.VPN_CONNECTED.value == "vpn_connected"
        assert EffectiveStatus.ONLINE == "online"
