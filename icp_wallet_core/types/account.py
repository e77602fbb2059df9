"""
Account and subaccount type definitions
"""

from dataclasses import dataclass
from enum import Enum
from typing import Generic, Optional, TypeVar, Union

from .principal import Principal
from ..errors import InvalidFormat

SUBACCOUNT_LENGTH = 32
# Index forms (number/hex/bytes) occupy the last 3 bytes of a subaccount
INDEX_LENGTH = 3
INDEX_OFFSET = SUBACCOUNT_LENGTH - INDEX_LENGTH
MAX_SUBACCOUNT_INDEX = 2 ** 24 - 1

DEFAULT_SUBACCOUNT = bytes(SUBACCOUNT_LENGTH)


class SubaccountFormat(Enum):
    """Source format of a resolved subaccount"""
    NUMBER = "number"
    HEX = "hex"
    BYTES = "bytes"
    PRINCIPAL = "principal"
    TEXT = "text"
    LONG_ACCOUNT = "long_account"


@dataclass(frozen=True)
class NumberSubaccount:
    """Numeric index, 0..=16_777_215 (blank string means the default account)"""
    value: Union[int, str]
    source_format = SubaccountFormat.NUMBER


@dataclass(frozen=True)
class HexSubaccount:
    """Hex index, up to 6 hex digits with optional 0x prefix"""
    value: str
    source_format = SubaccountFormat.HEX


@dataclass(frozen=True)
class BytesSubaccount:
    """Comma separated byte values, at most 3 of them"""
    value: str
    source_format = SubaccountFormat.BYTES


IndexDescriptor = Union[NumberSubaccount, HexSubaccount, BytesSubaccount]


@dataclass(frozen=True)
class PrincipalSubaccount:
    """
    Principal-derived subaccount with an optional index

    The first 29 bytes hold the principal (zero padded), the last 3 the index.
    """
    principal: str
    index: Optional[IndexDescriptor] = None
    source_format = SubaccountFormat.PRINCIPAL


@dataclass(frozen=True)
class TextSubaccount:
    """UTF-8 text, left aligned and zero padded"""
    value: str
    source_format = SubaccountFormat.TEXT


SubaccountDescriptor = Union[
    NumberSubaccount,
    HexSubaccount,
    BytesSubaccount,
    PrincipalSubaccount,
    TextSubaccount,
]


def descriptor_input(descriptor: SubaccountDescriptor) -> str:
    """Raw user input carried by a descriptor, for display and error messages"""
    if isinstance(descriptor, PrincipalSubaccount):
        if descriptor.index is None:
            return descriptor.principal
        return f"{descriptor.principal}:{descriptor_input(descriptor.index)}"
    return str(descriptor.value)


@dataclass(frozen=True)
class SubaccountInfo:
    """
    A resolved subaccount

    Attributes:
        source_format: How the subaccount was entered
        raw_input: The text the caller supplied
        resolved: The 32 subaccount bytes
    """
    source_format: SubaccountFormat
    raw_input: str
    resolved: bytes

    @property
    def is_default(self) -> bool:
        return self.resolved == DEFAULT_SUBACCOUNT

    @property
    def hex(self) -> str:
        return self.resolved.hex()


@dataclass(frozen=True)
class ParsedAccount:
    """
    An account: owner principal plus optional subaccount

    When ``original_text`` is set, encoding the account again yields an
    equivalent long-form string.
    """
    principal: Principal
    subaccount: Optional[SubaccountInfo] = None
    original_text: Optional[str] = None

    @property
    def resolved_subaccount(self) -> bytes:
        """Subaccount bytes, the default account when none was given"""
        if self.subaccount is None:
            return DEFAULT_SUBACCOUNT
        return self.subaccount.resolved

    @property
    def is_default_subaccount(self) -> bool:
        return self.resolved_subaccount == DEFAULT_SUBACCOUNT

    def same_account(self, other: "ParsedAccount") -> bool:
        """Compare by owner and effective subaccount, ignoring source formats"""
        return (
            self.principal == other.principal
            and self.resolved_subaccount == other.resolved_subaccount
        )

    def __str__(self) -> str:
        if self.is_default_subaccount:
            return self.principal.to_text()
        return f"{self.principal.to_text()} ({self.resolved_subaccount.hex()})"


T = TypeVar("T")


@dataclass(frozen=True)
class CodecResult(Generic[T]):
    """
    Outcome of a codec call: either a value or an InvalidFormat error

    Usage:
        result = parse_subaccount(HexSubaccount("ff"))
        if result.is_ok:
            data = result.value
        else:
            print(result.error.message)
    """
    value: Optional[T] = None
    error: Optional[InvalidFormat] = None

    @property
    def is_ok(self) -> bool:
        return self.error is None

    @property
    def is_error(self) -> bool:
        return self.error is not None

    @classmethod
    def ok(cls, value: T) -> "CodecResult[T]":
        return cls(value=value)

    @classmethod
    def failed(cls, error: InvalidFormat) -> "CodecResult[T]":
        return cls(error=error)

    def unwrap(self) -> T:
        """
        Return the value

        Raises:
            InvalidFormat: If the result holds an error
        """
        if self.error is not None:
            raise self.error
        return self.value
