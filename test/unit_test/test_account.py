"""
Account Module Unit Tests

Tests subaccount descriptor parsing and long-form account encoding.
"""

import random
import sys
from pathlib import Path

import pytest

# Add parent to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent.parent))

from icp_wallet_core.modules.account import (
    AccountCodec,
    parse_subaccount,
    resolve_subaccount,
    parse_account,
    parse_long_account,
    encode_long_account,
    describe_subaccount,
)
from icp_wallet_core.types import (
    Principal,
    ParsedAccount,
    SubaccountInfo,
    SubaccountFormat,
    NumberSubaccount,
    HexSubaccount,
    BytesSubaccount,
    PrincipalSubaccount,
    TextSubaccount,
    DEFAULT_SUBACCOUNT,
    MAX_SUBACCOUNT_INDEX,
    ICP_LEDGER_ID,
)
from icp_wallet_core.errors import ErrorCode, InvalidFormat


def index_of(subaccount: bytes) -> int:
    return int.from_bytes(subaccount[29:], "big")


def split_long(text: str):
    head, _, sub_hex = text.partition(".")
    owner, _, checksum = head.rpartition("-")
    return owner, checksum, sub_hex


class TestNumberSubaccount:
    """Tests for numeric subaccount indexes"""

    @pytest.mark.parametrize("n", [0, 1, 255, 256, 65535, 65536, 1_000_000, MAX_SUBACCOUNT_INDEX])
    def test_round_trip(self, n):
        """Number lands in the last 3 bytes, big-endian"""
        result = parse_subaccount(NumberSubaccount(n))
        assert result.is_ok
        assert len(result.value) == 32
        assert result.value[:29] == bytes(29)
        assert index_of(result.value) == n

    def test_string_input(self):
        assert index_of(parse_subaccount(NumberSubaccount("42")).value) == 42

    def test_blank_is_default(self):
        assert parse_subaccount(NumberSubaccount("  ")).value == DEFAULT_SUBACCOUNT

    def test_above_max(self):
        result = parse_subaccount(NumberSubaccount(MAX_SUBACCOUNT_INDEX + 1))
        assert result.is_error
        assert result.error.code == ErrorCode.SUBACCOUNT_OUT_OF_RANGE

    def test_negative(self):
        assert parse_subaccount(NumberSubaccount(-1)).is_error
        assert parse_subaccount(NumberSubaccount("-5")).is_error

    def test_not_a_number(self):
        result = parse_subaccount(NumberSubaccount("12a"))
        assert result.is_error
        assert result.error.code == ErrorCode.INVALID_SUBACCOUNT


class TestHexSubaccount:
    """Tests for hex subaccount indexes"""

    def test_empty_is_default(self):
        assert parse_subaccount(HexSubaccount("")).value == DEFAULT_SUBACCOUNT
        assert parse_subaccount(HexSubaccount("0x")).value == DEFAULT_SUBACCOUNT

    def test_short_value_is_left_padded(self):
        result = parse_subaccount(HexSubaccount("ff"))
        assert result.value[29:] == b"\x00\x00\xff"

    def test_prefix_and_case(self):
        result = parse_subaccount(HexSubaccount("0xABCDEF"))
        assert result.value[29:] == bytes.fromhex("abcdef")

    def test_too_long(self):
        result = parse_subaccount(HexSubaccount("1234567"))
        assert result.is_error
        assert result.error.code == ErrorCode.SUBACCOUNT_OUT_OF_RANGE

    def test_not_hex(self):
        assert parse_subaccount(HexSubaccount("zz")).is_error


class TestBytesSubaccount:
    """Tests for comma separated byte subaccounts"""

    def test_empty_is_default(self):
        assert parse_subaccount(BytesSubaccount("")).value == DEFAULT_SUBACCOUNT

    def test_three_values(self):
        assert parse_subaccount(BytesSubaccount("1, 2, 3")).value[29:] == b"\x01\x02\x03"

    def test_missing_values_are_zero(self):
        """Trailing commas are stripped and missing values filled with zero"""
        assert parse_subaccount(BytesSubaccount("7,")).value[29:] == b"\x07\x00\x00"

    def test_value_out_of_range(self):
        result = parse_subaccount(BytesSubaccount("256"))
        assert result.is_error
        assert isinstance(result.error, InvalidFormat)

    def test_too_many_values(self):
        assert parse_subaccount(BytesSubaccount("1,2,3,4")).is_error

    def test_non_integer(self):
        assert parse_subaccount(BytesSubaccount("1,x")).is_error


class TestPrincipalSubaccount:
    """Tests for principal-derived subaccounts"""

    def test_principal_with_index(self):
        result = parse_subaccount(PrincipalSubaccount(ICP_LEDGER_ID, NumberSubaccount(5)))
        raw = Principal.from_text(ICP_LEDGER_ID).raw
        assert result.value[:len(raw)] == raw
        assert result.value[len(raw):29] == bytes(29 - len(raw))
        assert index_of(result.value) == 5

    def test_principal_without_index(self):
        result = parse_subaccount(PrincipalSubaccount(ICP_LEDGER_ID))
        assert result.value[29:] == b"\x00\x00\x00"

    def test_hex_index(self):
        result = parse_subaccount(PrincipalSubaccount(ICP_LEDGER_ID, HexSubaccount("0x0102")))
        assert result.value[29:] == b"\x00\x01\x02"

    def test_invalid_principal(self):
        result = parse_subaccount(PrincipalSubaccount("nope"))
        assert result.is_error
        assert result.error.code == ErrorCode.INVALID_PRINCIPAL

    def test_invalid_index(self):
        assert parse_subaccount(PrincipalSubaccount(ICP_LEDGER_ID, BytesSubaccount("300"))).is_error

    def test_text_index_is_rejected(self):
        assert parse_subaccount(PrincipalSubaccount(ICP_LEDGER_ID, TextSubaccount("x"))).is_error

    def test_trailing_zero_principal_is_rejected(self):
        """Principal bytes ending in 0x00 cannot be told apart from the padding"""
        text = Principal.from_bytes(b"\x05\x00").to_text()
        result = parse_subaccount(PrincipalSubaccount(text, NumberSubaccount(1)))
        assert result.is_error
        assert result.error.code == ErrorCode.INVALID_PRINCIPAL


class TestTextSubaccount:
    """Tests for text subaccounts"""

    def test_left_aligned(self):
        result = parse_subaccount(TextSubaccount("savings"))
        assert result.value == b"savings" + bytes(25)

    def test_too_long(self):
        assert parse_subaccount(TextSubaccount("x" * 33)).is_error

    def test_max_length(self):
        assert parse_subaccount(TextSubaccount("x" * 32)).value == b"x" * 32

    def test_unsupported_characters(self):
        assert parse_subaccount(TextSubaccount("tab<>")).is_error


class TestResolveSubaccount:
    """Tests for SubaccountInfo construction"""

    def test_keeps_source(self):
        info = resolve_subaccount(HexSubaccount("ff")).unwrap()
        assert isinstance(info, SubaccountInfo)
        assert info.source_format == SubaccountFormat.HEX
        assert info.raw_input == "ff"
        assert info.hex.endswith("0000ff")
        assert not info.is_default

    def test_unwrap_raises(self):
        with pytest.raises(InvalidFormat):
            resolve_subaccount(BytesSubaccount("1,2,3,4")).unwrap()


class TestParseAccount:
    """Tests for parse_account"""

    def test_bare_management_canister(self):
        result = parse_account("aaaaa-aa")
        assert result.is_ok
        account = result.value
        assert account.principal.to_text() == "aaaaa-aa"
        assert account.subaccount is None
        assert account.original_text is None
        assert account.is_default_subaccount

    def test_bare_principal_with_descriptor(self):
        account = parse_account(ICP_LEDGER_ID, NumberSubaccount(1)).unwrap()
        assert account.subaccount.source_format == SubaccountFormat.NUMBER
        assert index_of(account.resolved_subaccount) == 1

    def test_invalid_descriptor(self):
        result = parse_account(ICP_LEDGER_ID, BytesSubaccount("999"))
        assert result.is_error

    def test_invalid_principal(self):
        result = parse_account("definitely not an account")
        assert result.is_error
        assert result.error.code == ErrorCode.INVALID_PRINCIPAL

    def test_non_text_input(self):
        assert parse_account(12345).is_error

    def test_long_form_wins_over_descriptor(self):
        """The embedded subaccount is used and the descriptor ignored"""
        subaccount = parse_subaccount(NumberSubaccount(7)).value
        text = encode_long_account(ParsedAccount(
            principal=Principal.from_text(ICP_LEDGER_ID),
            subaccount=SubaccountInfo(SubaccountFormat.NUMBER, "7", subaccount),
        ))
        account = parse_account(text, NumberSubaccount(99)).unwrap()
        assert index_of(account.resolved_subaccount) == 7
        assert account.subaccount.source_format == SubaccountFormat.LONG_ACCOUNT
        assert account.original_text == text


class TestLongAccount:
    """Tests for ICRC-1 long-form encoding"""

    def _account(self, subaccount: bytes, owner: str = ICP_LEDGER_ID) -> ParsedAccount:
        return ParsedAccount(
            principal=Principal.from_text(owner),
            subaccount=SubaccountInfo(SubaccountFormat.HEX, subaccount.hex(), subaccount),
        )

    def test_default_subaccount_encodes_bare(self):
        assert encode_long_account(ParsedAccount(Principal.from_text(ICP_LEDGER_ID))) == ICP_LEDGER_ID
        assert encode_long_account(self._account(DEFAULT_SUBACCOUNT)) == ICP_LEDGER_ID

    def test_format(self):
        text = encode_long_account(self._account(parse_subaccount(NumberSubaccount(1)).value))
        owner, checksum, sub_hex = split_long(text)
        assert owner == ICP_LEDGER_ID
        assert len(checksum) == 7
        assert sub_hex == "1"

    def test_round_trip_random_subaccounts(self):
        """encode(parse(encode(a))) == encode(a) and the bytes survive"""
        rng = random.Random(1234)
        samples = [bytes(rng.getrandbits(8) for _ in range(32)) for _ in range(20)]
        samples.append(bytes(31) + b"\x01")
        samples.append(b"\xff" * 32)
        samples.append(b"\x01" + bytes(31))

        for subaccount in samples:
            if subaccount == DEFAULT_SUBACCOUNT:
                continue
            account = self._account(subaccount)
            text = encode_long_account(account)
            parsed = parse_account(text).unwrap()
            assert parsed.same_account(account)
            assert parsed.resolved_subaccount == subaccount
            assert encode_long_account(parsed) == text

    def test_round_trip_management_owner(self):
        account = self._account(b"\x02" * 32, owner="aaaaa-aa")
        parsed = parse_account(encode_long_account(account)).unwrap()
        assert parsed.principal == Principal.management_canister()
        assert parsed.resolved_subaccount == b"\x02" * 32

    def test_bad_checksum(self):
        text = encode_long_account(self._account(b"\x05" * 32))
        owner, checksum, sub_hex = split_long(text)
        wrong = "aaaaaaa" if checksum != "aaaaaaa" else "bbbbbbb"
        result = parse_account(f"{owner}-{wrong}.{sub_hex}")
        assert result.is_error
        assert result.error.code == ErrorCode.INVALID_CHECKSUM

    def test_leading_zero_is_not_canonical(self):
        text = encode_long_account(self._account(bytes(31) + b"\x10"))
        owner, checksum, sub_hex = split_long(text)
        result = parse_long_account(f"{owner}-{checksum}.0{sub_hex}")
        assert result.is_error
        assert result.error.code == ErrorCode.NON_CANONICAL

    def test_not_long_form(self):
        assert parse_long_account(ICP_LEDGER_ID).is_error


class TestDescribeSubaccount:
    """Tests for display rendering"""

    def test_number(self):
        view = describe_subaccount(parse_subaccount(NumberSubaccount(5)).value)
        assert view["number"] == "5"
        assert view["hex"] == "00" * 31 + "05"
        assert view["bytes"].endswith("0, 5")
        assert view["text"] is None
        assert view["principal"] is None

    def test_text(self):
        view = describe_subaccount(parse_subaccount(TextSubaccount("savings")).value)
        assert view["text"] == "savings"
        assert view["number"] is None

    def test_principal(self):
        view = describe_subaccount(
            parse_subaccount(PrincipalSubaccount(ICP_LEDGER_ID, NumberSubaccount(3))).value
        )
        assert view["principal"] == f"{ICP_LEDGER_ID} (index: 3)"

    def test_principal_round_trips_through_view(self):
        owner = Principal.from_bytes(b"\x00\x07\x02")
        subaccount = parse_subaccount(PrincipalSubaccount(owner.to_text())).value
        assert describe_subaccount(subaccount)["principal"] == owner.to_text()

    def test_large_number_within_eight_bytes(self):
        subaccount = (2 ** 40).to_bytes(32, "big")
        assert describe_subaccount(subaccount)["number"] == str(2 ** 40)

    def test_number_beyond_eight_bytes(self):
        subaccount = (2 ** 64).to_bytes(32, "big")
        assert describe_subaccount(subaccount)["number"] is None

    @pytest.mark.parametrize("buffer", [b"", b"\x01", bytes(33)])
    def test_wrong_length(self, buffer):
        """Wrong-sized buffers render nothing instead of raising"""
        view = describe_subaccount(buffer)
        assert set(view) == {"hex", "bytes", "number", "text", "principal"}
        assert all(value is None for value in view.values())


class TestAccountCodec:
    """Tests for the object facade"""

    def test_facade_delegates(self):
        codec = AccountCodec()
        account = codec.parse_account("aaaaa-aa", HexSubaccount("ff")).unwrap()
        text = codec.encode_long_account(account)
        assert codec.parse_account(text).unwrap().same_account(account)
