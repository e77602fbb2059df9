"""
Principal type

A principal is an opaque, variable-length (at most 29 bytes) network
identity. Its textual form is the lowercase, unpadded base32 encoding of
``crc32(raw) || raw`` split into dash-separated groups of five characters.
Text conversion is done by ic-py; the CRC32 and base32 helpers remain for
ICRC-1 account checksums, which ic-py does not encode.
"""

import base64
import zlib
from dataclasses import dataclass

from ic.principal import Principal as IcPrincipal

MAX_PRINCIPAL_BYTES = 29
CHECKSUM_BYTES = 4


def crc32_bytes(data: bytes) -> bytes:
    """Big-endian CRC32 of data"""
    return (zlib.crc32(data) & 0xFFFFFFFF).to_bytes(CHECKSUM_BYTES, "big")


def base32_encode(data: bytes) -> str:
    """Lowercase base32 without padding"""
    return base64.b32encode(data).decode("ascii").lower().rstrip("=")


@dataclass(frozen=True)
class Principal:
    """
    Immutable principal value

    Usage:
        p = Principal.from_text("aaaaa-aa")
        p.raw          # b""
        p.to_text()    # "aaaaa-aa"
    """
    raw: bytes

    def __post_init__(self):
        if len(self.raw) > MAX_PRINCIPAL_BYTES:
            raise ValueError(
                f"principal is {len(self.raw)} bytes, max {MAX_PRINCIPAL_BYTES}"
            )

    @classmethod
    def from_text(cls, text: str) -> "Principal":
        """
        Parse textual principal

        Raises:
            ValueError: On bad alphabet, checksum mismatch, excessive length
                or non-canonical grouping/case
        """
        if not isinstance(text, str) or not text:
            raise ValueError("empty principal text")
        try:
            parsed = IcPrincipal.from_str(text)
        except (TypeError, ValueError) as e:
            # ic-py raises plain strings for length/format errors, seen here as TypeError
            raise ValueError(f"invalid principal text {text!r}") from e
        return cls(bytes(parsed.bytes))

    @classmethod
    def from_bytes(cls, raw: bytes) -> "Principal":
        return cls(bytes(raw))

    @classmethod
    def from_ic(cls, principal: IcPrincipal) -> "Principal":
        return cls(bytes(principal.bytes))

    @classmethod
    def management_canister(cls) -> "Principal":
        """The empty principal, ``aaaaa-aa``"""
        return cls(b"")

    def to_ic(self) -> IcPrincipal:
        return IcPrincipal(bytes=self.raw)

    def to_text(self) -> str:
        return self.to_ic().to_str()

    def __str__(self) -> str:
        return self.to_text()

    def __repr__(self) -> str:
        return f"Principal({self.to_text()})"


def is_valid_principal(text: str) -> bool:
    """Check if text is a canonical principal"""
    try:
        Principal.from_text(text)
        return True
    except ValueError:
        return False
