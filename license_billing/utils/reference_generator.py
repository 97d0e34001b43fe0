"""
GUID and payment reference generation.

Records need a 6-digit numeric GUID and payments an opaque unique
reference. The store enforces uniqueness; generators only propose values.
"""

import secrets
from typing import Iterator, Optional, Protocol

GUID_MIN = 100000
GUID_MAX = 999999


class ReferenceGenerator(Protocol):
    def next_guid(self) -> int:
        ...

    def next_payment_reference(self) -> str:
        ...


class RandomReferenceGenerator:
    """Random GUIDs and ``PAY-`` prefixed hex references"""

    def __init__(self, prefix: str = "PAY"):
        self.prefix = prefix

    def next_guid(self) -> int:
        return GUID_MIN + secrets.randbelow(GUID_MAX - GUID_MIN + 1)

    def next_payment_reference(self) -> str:
        return f"{self.prefix}-{secrets.token_hex(8).upper()}"


class SequentialReferenceGenerator:
    """Deterministic generator, mostly for fixtures and replays."""

    def __init__(self, start: int = GUID_MIN, prefix: str = "PAY"):
        if not GUID_MIN <= start <= GUID_MAX:
            raise ValueError(f"GUID start must be within {GUID_MIN}-{GUID_MAX}")
        self.prefix = prefix
        self._guids: Iterator[int] = iter(range(start, GUID_MAX + 1))
        self._reference_counter = 0
        self._last_guid: Optional[int] = None

    def next_guid(self) -> int:
        try:
            self._last_guid = next(self._guids)
        except StopIteration as e:
            raise RuntimeError("GUID space exhausted") from e
        return self._last_guid

    def next_payment_reference(self) -> str:
        self._reference_counter += 1
        return f"{self.prefix}-{self._reference_counter:08d}"
