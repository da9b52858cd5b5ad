"""Payout transaction id generation.

Format: ``<PREFIX><clock><-><suffix>``, e.g. ``TXNLQ2ZK9F1-7QK2ZD``:

- ``clock`` is the millisecond epoch clock in base 36, upper-case, padded
  to 8 characters, so ids sort roughly by creation time;
- ``suffix`` is 6 random characters from ``[0-9A-Z]`` drawn with
  :mod:`secrets`.
"""

import re
import secrets
import time

_ALPHABET = "0123456789ABCDEFGHIJKLMNOPQRSTUVWXYZ"
CLOCK_LENGTH = 8
SUFFIX_LENGTH = 6


def _base36(value: int) -> str:
    if value == 0:
        return "0"
    digits = []
    while value:
        value, rem = divmod(value, 36)
        digits.append(_ALPHABET[rem])
    return "".join(reversed(digits))


def generate_transaction_id(prefix: str = "TXN", now_ms: int | None = None) -> str:
    if now_ms is None:
        now_ms = time.time_ns() // 1_000_000
    clock = _base36(now_ms).rjust(CLOCK_LENGTH, "0")[-CLOCK_LENGTH:]
    suffix = "".join(secrets.choice(_ALPHABET) for _ in range(SUFFIX_LENGTH))
    return f"{prefix}{clock}-{suffix}"


def transaction_id_pattern(prefix: str = "TXN") -> re.Pattern:
    return re.compile(
        rf"^{re.escape(prefix)}[0-9A-Z]{{{CLOCK_LENGTH}}}-[0-9A-Z]{{{SUFFIX_LENGTH}}}$"
    )


def is_transaction_id(value: str, prefix: str = "TXN") -> bool:
    return bool(transaction_id_pattern(prefix).match(value or ""))
