"""
Principal Unit Tests

Tests textual encoding and validation of principals.
"""

import sys
from pathlib import Path

import pytest

# Add parent to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent.parent))

from ic.principal import Principal as IcPrincipal

from icp_wallet_core.types.principal import (
    Principal,
    is_valid_principal,
    base32_encode,
    crc32_bytes,
    MAX_PRINCIPAL_BYTES,
)
from icp_wallet_core.types import ICP_LEDGER_ID


class TestPrincipalText:
    """Tests for textual encoding"""

    def test_management_canister(self):
        """The empty principal is aaaaa-aa"""
        p = Principal.from_text("aaaaa-aa")
        assert p.raw == b""
        assert p == Principal.management_canister()
        assert p.to_text() == "aaaaa-aa"

    def test_ledger_canister_bytes(self):
        """Canister ids are 8-byte big-endian ids followed by 0x01 0x01"""
        p = Principal.from_text(ICP_LEDGER_ID)
        assert p.raw == bytes.fromhex("00000000000000020101")
        assert str(p) == ICP_LEDGER_ID

    @pytest.mark.parametrize("length", [0, 1, 4, 10, 28, MAX_PRINCIPAL_BYTES])
    def test_round_trip(self, length):
        """Text of any valid length parses back to the same bytes"""
        raw = bytes(range(1, length + 1))
        text = Principal.from_bytes(raw).to_text()
        assert Principal.from_text(text).raw == raw

    def test_groups_of_five(self):
        """Text is dash-separated groups of five characters"""
        text = Principal.from_bytes(bytes(range(29))).to_text()
        groups = text.split("-")
        assert all(len(g) == 5 for g in groups[:-1])
        assert 1 <= len(groups[-1]) <= 5

    @pytest.mark.parametrize("text", ["aaaaa-aa", ICP_LEDGER_ID, "xevnm-gaaaa-aaaar-qafnq-cai"])
    def test_matches_ic_py(self, text):
        """Bytes and text agree with ic-py's own Principal"""
        ours = Principal.from_text(text)
        theirs = IcPrincipal.from_str(text)
        assert ours.raw == theirs.bytes
        assert ours.to_ic().to_str() == text
        assert Principal.from_ic(theirs) == ours

    def test_repr(self):
        assert repr(Principal.management_canister()) == "Principal(aaaaa-aa)"


class TestPrincipalValidation:
    """Tests for rejected inputs"""

    def test_empty_text(self):
        with pytest.raises(ValueError):
            Principal.from_text("")

    def test_too_long(self):
        with pytest.raises(ValueError):
            Principal.from_bytes(bytes(MAX_PRINCIPAL_BYTES + 1))

    def test_bad_alphabet(self):
        with pytest.raises(ValueError):
            Principal.from_text("aaaaa-a!")

    def test_uppercase_is_not_canonical(self):
        with pytest.raises(ValueError):
            Principal.from_text(ICP_LEDGER_ID.upper())

    def test_bad_grouping_is_not_canonical(self):
        with pytest.raises(ValueError):
            Principal.from_text(ICP_LEDGER_ID.replace("-", ""))

    def test_checksum_mismatch(self):
        """Changing a data character breaks the checksum"""
        tampered = "ryjl3-tyaaa-aaaaa-aaaca-cai"
        with pytest.raises(ValueError):
            Principal.from_text(tampered)

    def test_is_valid_principal(self):
        assert is_valid_principal(ICP_LEDGER_ID)
        assert is_valid_principal("aaaaa-aa")
        assert not is_valid_principal("not-a-principal")
        assert not is_valid_principal("")


class TestBase32Helpers:
    """Tests for the checksum helpers used by ICRC-1 account text"""

    def test_base32_encode(self):
        assert base32_encode(b"\x00\xffhello") == "ad7wqzlmnrxq"

    def test_crc32_of_empty_is_zero(self):
        assert crc32_bytes(b"") == b"\x00\x00\x00\x00"
