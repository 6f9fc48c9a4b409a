"""
Tests for account addresses
"""

import pytest

from token_ledger.address import Address, ZERO_ADDRESS, ADDRESS_BYTES


class TestAddress:
    """Test address parsing and the zero sentinel"""

    def test_normalizes_case_and_prefix(self):
        address = Address("AB" * 20)

        assert address.value == "0x" + "ab" * 20
        assert address == Address("0x" + "Ab" * 20)
        assert str(address) == address.value

    def test_invalid_addresses(self):
        for bad in ["", "0x", "0x1234", "zz" * 20, "0x" + "ab" * 21,
                    "0x" + "b2" * 20 + "\n", " 0x" + "b2" * 20]:
            with pytest.raises(ValueError, match="Invalid address"):
                Address(bad)

    def test_zero_sentinel(self):
        assert ZERO_ADDRESS.is_zero()
        assert ZERO_ADDRESS == Address.from_hex("0x" + "00" * 20)
        assert not Address("0x" + "00" * 19 + "01").is_zero()

    def test_bytes_round_trip(self):
        raw = bytes(range(ADDRESS_BYTES))
        address = Address.from_bytes(raw)

        assert address.to_bytes() == raw

    def test_from_bytes_wrong_length(self):
        with pytest.raises(ValueError, match="20 bytes"):
            Address.from_bytes(b"\x01" * 19)

    def test_generate_is_non_zero_and_unique(self):
        generated = {Address.generate() for _ in range(20)}

        assert len(generated) == 20
        assert not any(a.is_zero() for a in generated)

    def test_coerce(self):
        address = Address.generate()

        assert Address.coerce(address) is address
        assert Address.coerce(address.value) == address

    def test_hashable(self):
        address = Address("0x" + "12" * 20)
        balances = {address: 5}

        assert balances[Address("0x" + "12" * 20)] == 5

    def test_short_form(self):
        address = Address("0x" + "12" * 20)
        assert address.short() == "0x1212...1212"
