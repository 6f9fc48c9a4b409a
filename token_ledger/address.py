"""
Account Address Module

Fixed-width account identifiers. The all-zero address is the null sentinel
and never identifies a live account.
"""

from dataclasses import dataclass
from typing import Union
import re
import secrets


ADDRESS_BYTES = 20
_HEX_PATTERN = re.compile(r"(0x)?[0-9a-fA-F]{%d}" % (ADDRESS_BYTES * 2))


@dataclass(frozen=True)
class Address:
    """
    Immutable 20-byte account identifier, rendered as 0x-prefixed lowercase hex.
    """
    value: str

    def __post_init__(self):
        if not isinstance(self.value, str) or not _HEX_PATTERN.fullmatch(self.value):
            raise ValueError(f"Invalid address: {self.value!r}")

        normalized = self.value.lower()
        if not normalized.startswith("0x"):
            normalized = "0x" + normalized
        object.__setattr__(self, 'value', normalized)

    @classmethod
    def from_hex(cls, value: str) -> 'Address':
        """Parse an address from a hex string (with or without 0x prefix)"""
        return cls(value)

    @classmethod
    def from_bytes(cls, raw: bytes) -> 'Address':
        """Build an address from its raw 20-byte form"""
        if len(raw) != ADDRESS_BYTES:
            raise ValueError(f"Address must be {ADDRESS_BYTES} bytes, got {len(raw)}")
        return cls(raw.hex())

    @classmethod
    def zero(cls) -> 'Address':
        """The null sentinel address"""
        return cls("0" * (ADDRESS_BYTES * 2))

    @classmethod
    def generate(cls) -> 'Address':
        """Generate a random non-zero address"""
        while True:
            candidate = cls(secrets.token_hex(ADDRESS_BYTES))
            if not candidate.is_zero():
                return candidate

    @classmethod
    def coerce(cls, value: Union['Address', str]) -> 'Address':
        """Accept either an Address or its hex string form"""
        if isinstance(value, Address):
            return value
        return cls(value)

    def is_zero(self) -> bool:
        """Check if this is the null sentinel"""
        return int(self.value, 16) == 0

    def to_bytes(self) -> bytes:
        return bytes.fromhex(self.value[2:])

    def short(self) -> str:
        """Abbreviated form for log messages"""
        return f"{self.value[:6]}...{self.value[-4:]}"

    def __str__(self) -> str:
        return self.value


ZERO_ADDRESS = Address.zero()
