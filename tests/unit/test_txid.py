"""Tests for payout transaction id generation."""

from bvpn_console.withdrawals.txid import (
    CLOCK_LENGTH,
    SUFFIX_LENGTH,
    _base36,
    generate_transaction_id,
    is_transaction_id,
)


class TestGenerate:
    def test_format(self):
        txid = generate_transaction_id()
        assert txid.startswith("TXN")
        assert len(txid) == 3 + CLOCK_LENGTH + 1 + SUFFIX_LENGTH
        assert is_transaction_id(txid)

    def test_custom_prefix(self):
        txid = generate_transaction_id("BV")
        assert is_transaction_id(txid, prefix="BV")
        assert not is_transaction_id(txid)

    def test_clock_part_fixed(self):
        txid = generate_transaction_id(now_ms=0)
        assert txid.startswith("TXN00000000-")

    def test_clock_sorts_with_time(self):
        early = generate_transaction_id(now_ms=1_700_000_000_000)
        late = generate_transaction_id(now_ms=1_800_000_000_000)
        assert early[:3 + CLOCK_LENGTH] < late[:3 + CLOCK_LENGTH]

    def test_unique_across_calls(self):
        ids = {generate_transaction_id(now_ms=1_700_000_000_000) for _ in range(200)}
        assert len(ids) == 200


class TestValidate:
    def test_rejects_garbage(self):
        assert not is_transaction_id("")
        assert not is_transaction_id(None)
        assert not is_transaction_id("TXN123")
        assert not is_transaction_id("TXNabcdefgh-ABCDEF")

    def test_base36(self):
        assert _base36(0) == "0"
        assert _base36(35) == "Z"
        assert _base36(36) == "10"
