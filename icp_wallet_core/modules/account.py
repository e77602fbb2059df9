"""
Account Module

Parses and encodes account identifiers:
- Subaccount descriptors (number, hex, bytes, principal+index, text)
- ICRC-1 long-form account strings (``<owner>-<checksum>.<subaccount hex>``)

All functions are pure and total: they return a CodecResult holding either
the value or an InvalidFormat error, and never raise to the caller.
"""

import logging
import re
from typing import Dict, Optional, Union

from ..types.principal import Principal, base32_encode, crc32_bytes
from ..types.account import (
    SubaccountFormat,
    NumberSubaccount,
    HexSubaccount,
    BytesSubaccount,
    PrincipalSubaccount,
    TextSubaccount,
    SubaccountDescriptor,
    SubaccountInfo,
    ParsedAccount,
    CodecResult,
    DEFAULT_SUBACCOUNT,
    SUBACCOUNT_LENGTH,
    INDEX_LENGTH,
    INDEX_OFFSET,
    MAX_SUBACCOUNT_INDEX,
    descriptor_input,
)
from ..errors import InvalidFormat

logger = logging.getLogger(__name__)

_HEX_RE = re.compile(r"^[0-9a-fA-F]*$")
_DECIMAL_RE = re.compile(r"^[0-9]+$")
VALID_TEXT_CHARS = re.compile(r"^[a-zA-Z0-9\s\-_.,!@#$%^&*()+=]+$")
MAX_TEXT_LENGTH = 32
CHECKSUM_LENGTH = 7
# format_number renders values up to 2**64 - 1
NUMBER_DISPLAY_BYTES = 8


def _place_index(index_bytes: bytes) -> bytes:
    """Put a 3-byte index at the end of a zero subaccount"""
    return bytes(INDEX_OFFSET) + index_bytes


def _parse_number(value: Union[int, str]) -> CodecResult[bytes]:
    fmt = SubaccountFormat.NUMBER.value
    if isinstance(value, bool):
        return CodecResult.failed(InvalidFormat.subaccount(fmt, str(value), "not a number"))

    if isinstance(value, str):
        text = value.strip()
        if not text:
            return CodecResult.ok(DEFAULT_SUBACCOUNT)
        if text.startswith("-") and _DECIMAL_RE.match(text[1:]):
            return CodecResult.failed(InvalidFormat.subaccount(fmt, value, "must not be negative"))
        if not _DECIMAL_RE.match(text):
            return CodecResult.failed(InvalidFormat.subaccount(fmt, value, "not a decimal integer"))
        number = int(text)
    elif isinstance(value, int):
        number = value
    else:
        return CodecResult.failed(InvalidFormat.subaccount(fmt, str(value), "not a number"))

    if number < 0:
        return CodecResult.failed(InvalidFormat.subaccount(fmt, str(value), "must not be negative"))
    if number > MAX_SUBACCOUNT_INDEX:
        return CodecResult.failed(InvalidFormat.out_of_range(fmt, str(value), MAX_SUBACCOUNT_INDEX))

    return CodecResult.ok(_place_index(number.to_bytes(INDEX_LENGTH, "big")))


def _parse_hex(value: str) -> CodecResult[bytes]:
    fmt = SubaccountFormat.HEX.value
    text = value.strip()
    if text.lower().startswith("0x"):
        text = text[2:]
    if not text:
        return CodecResult.ok(DEFAULT_SUBACCOUNT)

    padded = text.rjust(INDEX_LENGTH * 2, "0")
    if len(padded) != INDEX_LENGTH * 2:
        return CodecResult.failed(
            InvalidFormat.out_of_range(fmt, value, MAX_SUBACCOUNT_INDEX)
        )
    if not _HEX_RE.match(padded):
        return CodecResult.failed(InvalidFormat.subaccount(fmt, value, "not a hex string"))

    return CodecResult.ok(_place_index(bytes.fromhex(padded)))


def _parse_bytes(value: str) -> CodecResult[bytes]:
    fmt = SubaccountFormat.BYTES.value
    text = value.strip().rstrip(",").strip()
    if not text:
        return CodecResult.ok(DEFAULT_SUBACCOUNT)

    parts = [part.strip() for part in text.split(",")]
    if len(parts) > INDEX_LENGTH:
        return CodecResult.failed(
            InvalidFormat.subaccount(fmt, value, f"at most {INDEX_LENGTH} values allowed")
        )

    values = []
    for part in parts:
        if not _DECIMAL_RE.match(part):
            return CodecResult.failed(
                InvalidFormat.subaccount(fmt, value, f"{part!r} is not a byte value")
            )
        byte = int(part)
        if byte > 255:
            return CodecResult.failed(
                InvalidFormat.subaccount(fmt, value, f"{byte} is out of range 0..255")
            )
        values.append(byte)

    # Missing trailing values are zero
    values.extend([0] * (INDEX_LENGTH - len(values)))
    return CodecResult.ok(_place_index(bytes(values)))


def _parse_index(descriptor: Optional[SubaccountDescriptor]) -> CodecResult[bytes]:
    if descriptor is None:
        return CodecResult.ok(DEFAULT_SUBACCOUNT)
    if isinstance(descriptor, NumberSubaccount):
        return _parse_number(descriptor.value)
    if isinstance(descriptor, HexSubaccount):
        return _parse_hex(descriptor.value)
    if isinstance(descriptor, BytesSubaccount):
        return _parse_bytes(descriptor.value)
    return CodecResult.failed(
        InvalidFormat.subaccount(
            SubaccountFormat.PRINCIPAL.value,
            descriptor_input(descriptor),
            "index must be a number, hex or bytes descriptor",
        )
    )


def _parse_principal_subaccount(descriptor: PrincipalSubaccount) -> CodecResult[bytes]:
    try:
        principal = Principal.from_text(descriptor.principal.strip())
    except ValueError as e:
        return CodecResult.failed(InvalidFormat.principal(descriptor.principal, str(e)))

    index = _parse_index(descriptor.index)
    if index.is_error:
        return index

    if principal.raw.endswith(b"\x00"):
        # zero padding would swallow the trailing byte on the way back
        return CodecResult.failed(
            InvalidFormat.principal(descriptor.principal, "principal bytes end in 0x00")
        )
    head = principal.raw.ljust(INDEX_OFFSET, b"\x00")
    return CodecResult.ok(head + index.value[INDEX_OFFSET:])


def _parse_text(value: str) -> CodecResult[bytes]:
    fmt = SubaccountFormat.TEXT.value
    if not value:
        return CodecResult.ok(DEFAULT_SUBACCOUNT)
    if len(value) > MAX_TEXT_LENGTH:
        return CodecResult.failed(
            InvalidFormat.subaccount(fmt, value, f"longer than {MAX_TEXT_LENGTH} characters")
        )
    if not VALID_TEXT_CHARS.match(value):
        return CodecResult.failed(
            InvalidFormat.subaccount(fmt, value, "contains unsupported characters")
        )
    # The charset is ASCII so the encoding never exceeds 32 bytes
    return CodecResult.ok(value.encode("utf-8").ljust(SUBACCOUNT_LENGTH, b"\x00"))


def parse_subaccount(descriptor: SubaccountDescriptor) -> CodecResult[bytes]:
    """
    Resolve a subaccount descriptor to 32 bytes

    Number, hex and bytes forms fill the last 3 bytes; blank input for them
    means the default (all-zero) subaccount. Principal forms put the
    principal bytes first and the index last.

    Args:
        descriptor: One of the SubaccountDescriptor variants

    Returns:
        CodecResult with the 32 subaccount bytes or an InvalidFormat error
    """
    if isinstance(descriptor, NumberSubaccount):
        return _parse_number(descriptor.value)
    if isinstance(descriptor, HexSubaccount):
        return _parse_hex(descriptor.value)
    if isinstance(descriptor, BytesSubaccount):
        return _parse_bytes(descriptor.value)
    if isinstance(descriptor, PrincipalSubaccount):
        return _parse_principal_subaccount(descriptor)
    if isinstance(descriptor, TextSubaccount):
        return _parse_text(descriptor.value)
    return CodecResult.failed(
        InvalidFormat.subaccount("unknown", repr(descriptor), "unsupported descriptor type")
    )


def resolve_subaccount(descriptor: SubaccountDescriptor) -> CodecResult[SubaccountInfo]:
    """Like parse_subaccount, keeping the source format and raw input"""
    result = parse_subaccount(descriptor)
    if result.is_error:
        return CodecResult.failed(result.error)
    return CodecResult.ok(
        SubaccountInfo(
            source_format=descriptor.source_format,
            raw_input=descriptor_input(descriptor),
            resolved=result.value,
        )
    )


def _account_checksum(principal: Principal, subaccount: bytes) -> str:
    return base32_encode(crc32_bytes(principal.raw + subaccount))


def parse_long_account(text: str) -> CodecResult[ParsedAccount]:
    """
    Parse an ICRC-1 long-form account string

    Format: ``<owner>-<checksum>.<subaccount hex without leading zeros>``.
    A text without ``.`` is not a long-form account.
    """
    if not isinstance(text, str) or "." not in text:
        return CodecResult.failed(InvalidFormat(f"Not a long-form account: {text!r}", value=str(text)))

    head, _, sub_hex = text.partition(".")
    owner_text, sep, checksum = head.rpartition("-")
    if not sep or not owner_text:
        return CodecResult.failed(InvalidFormat(f"Missing checksum in {text!r}", value=text))

    try:
        owner = Principal.from_text(owner_text)
    except ValueError as e:
        return CodecResult.failed(InvalidFormat.principal(owner_text, str(e)))

    if not sub_hex or len(sub_hex) > SUBACCOUNT_LENGTH * 2 or not _HEX_RE.match(sub_hex):
        return CodecResult.failed(InvalidFormat(f"Invalid subaccount in {text!r}", value=text))
    if sub_hex.startswith("0"):
        return CodecResult.failed(InvalidFormat.non_canonical(text, "subaccount has leading zeros"))

    subaccount = bytes.fromhex(sub_hex.rjust(SUBACCOUNT_LENGTH * 2, "0"))
    if checksum != _account_checksum(owner, subaccount):
        return CodecResult.failed(InvalidFormat.bad_checksum(text))

    return CodecResult.ok(
        ParsedAccount(
            principal=owner,
            subaccount=SubaccountInfo(
                source_format=SubaccountFormat.LONG_ACCOUNT,
                raw_input=text,
                resolved=subaccount,
            ),
            original_text=text,
        )
    )


def parse_account(
    text: str,
    subaccount: Optional[SubaccountDescriptor] = None,
) -> CodecResult[ParsedAccount]:
    """
    Parse an account from text and an optional subaccount descriptor

    A long-form account string wins: its embedded subaccount is used and the
    descriptor is ignored. Otherwise text must be a bare principal and the
    descriptor, if any, supplies the subaccount.

    Args:
        text: Principal or long-form account string
        subaccount: Optional subaccount descriptor

    Returns:
        CodecResult with the ParsedAccount or an InvalidFormat error

    Example:
        parse_account("aaaaa-aa").value.subaccount        # None
        parse_account("aaaaa-aa", NumberSubaccount(1))     # index 1
    """
    if not isinstance(text, str):
        return CodecResult.failed(InvalidFormat(f"Account must be text, got {type(text).__name__}"))
    text = text.strip()

    if "." in text:
        long_form = parse_long_account(text)
        if long_form.is_ok:
            return long_form
        logger.debug(f"Not a long-form account ({long_form.error.message}), trying bare principal")

    try:
        principal = Principal.from_text(text)
    except ValueError as e:
        if "." in text:
            return CodecResult.failed(long_form.error)
        return CodecResult.failed(InvalidFormat.principal(text, str(e)))

    if subaccount is None:
        return CodecResult.ok(ParsedAccount(principal=principal))

    info = resolve_subaccount(subaccount)
    if info.is_error:
        return CodecResult.failed(info.error)
    return CodecResult.ok(ParsedAccount(principal=principal, subaccount=info.value))


def encode_long_account(account: ParsedAccount) -> str:
    """
    Encode an account as its canonical textual form

    The default (absent or all-zero) subaccount encodes as the bare
    principal.
    """
    owner_text = account.principal.to_text()
    subaccount = account.resolved_subaccount
    if subaccount == DEFAULT_SUBACCOUNT:
        return owner_text

    checksum = _account_checksum(account.principal, subaccount)
    return f"{owner_text}-{checksum}.{subaccount.hex().lstrip('0')}"


# =========================================================================
# Display helpers
# =========================================================================

def format_hex(subaccount: bytes) -> str:
    return subaccount.hex()


def format_bytes(subaccount: bytes) -> str:
    return ", ".join(str(b) for b in subaccount)


def format_number(subaccount: bytes) -> Optional[str]:
    """Decimal value when non-zero and it fits in the last 8 bytes"""
    if subaccount[:-NUMBER_DISPLAY_BYTES].strip(b"\x00"):
        return None
    number = int.from_bytes(subaccount, "big")
    return str(number) if number else None


def format_text(subaccount: bytes) -> Optional[str]:
    """Text when the bytes are valid left-aligned text"""
    text_bytes = subaccount.rstrip(b"\x00")
    if not text_bytes or b"\x00" in text_bytes:
        return None
    try:
        text = text_bytes.decode("utf-8")
    except UnicodeDecodeError:
        return None
    return text if VALID_TEXT_CHARS.match(text) else None


def format_principal(subaccount: bytes) -> Optional[str]:
    """``<principal> (index: n)`` reading of a principal-derived subaccount"""
    head = subaccount[:INDEX_OFFSET].rstrip(b"\x00")
    if not head:
        return None
    principal = Principal.from_bytes(head)
    index = int.from_bytes(subaccount[INDEX_OFFSET:], "big")
    if index:
        return f"{principal.to_text()} (index: {index})"
    return principal.to_text()


_DISPLAY_FORMATTERS = (
    (SubaccountFormat.HEX, format_hex),
    (SubaccountFormat.BYTES, format_bytes),
    (SubaccountFormat.NUMBER, format_number),
    (SubaccountFormat.TEXT, format_text),
    (SubaccountFormat.PRINCIPAL, format_principal),
)


def describe_subaccount(subaccount: bytes) -> Dict[str, Optional[str]]:
    """
    Render a subaccount in every supported form

    Returns:
        Mapping of format name to display text, None where not representable.
        A buffer that is not 32 bytes long maps every format to None.
    """
    if len(subaccount) != SUBACCOUNT_LENGTH:
        logger.debug(f"Not describing a {len(subaccount)}-byte subaccount")
        return {fmt.value: None for fmt, _ in _DISPLAY_FORMATTERS}
    return {fmt.value: render(subaccount) for fmt, render in _DISPLAY_FORMATTERS}


class AccountCodec:
    """
    Object facade over the account functions

    Usage:
        codec = AccountCodec()
        account = codec.parse_account("aaaaa-aa", HexSubaccount("ff")).unwrap()
        text = codec.encode_long_account(account)
    """

    parse_subaccount = staticmethod(parse_subaccount)
    resolve_subaccount = staticmethod(resolve_subaccount)
    parse_account = staticmethod(parse_account)
    parse_long_account = staticmethod(parse_long_account)
    encode_long_account = staticmethod(encode_long_account)
    describe_subaccount = staticmethod(describe_subaccount)
