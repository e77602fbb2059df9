"""
Token references and the known-token registry
"""

from dataclasses import dataclass
from typing import Dict, Optional

ICP_LEDGER_ID = "ryjl3-tyaaa-aaaaa-aaaba-cai"
CKUSDC_LEDGER_ID = "xevnm-gaaaa-aaaar-qafnq-cai"

ICRC1 = "ICRC1"
ICRC2 = "ICRC2"
DIP20 = "DIP20"


@dataclass(frozen=True)
class TokenRef:
    """
    Token reference as understood by the swap factory

    Attributes:
        address: Ledger canister id (textual principal)
        standard: Token standard ("ICRC1", "ICRC2", "DIP20")
    """
    address: str
    standard: str = ICRC1

    def to_dict(self) -> dict:
        return {"address": self.address, "standard": self.standard}

    @classmethod
    def from_dict(cls, data: dict) -> "TokenRef":
        return cls(address=str(data["address"]), standard=str(data.get("standard", ICRC1)))


@dataclass(frozen=True)
class Token:
    """
    Token information

    Attributes:
        ledger_id: Ledger canister id
        symbol: Token symbol (e.g., "ICP", "ckUSDC")
        decimals: Number of decimal places
        name: Full token name (optional)
    """
    ledger_id: str
    symbol: str
    decimals: int
    name: str = ""

    def __str__(self) -> str:
        return self.symbol


ICP = Token(ledger_id=ICP_LEDGER_ID, symbol="ICP", decimals=8, name="Internet Computer")
CKUSDC = Token(ledger_id=CKUSDC_LEDGER_ID, symbol="ckUSDC", decimals=6, name="ckUSDC")

KNOWN_TOKENS: Dict[str, Token] = {
    ICP.ledger_id: ICP,
    CKUSDC.ledger_id: CKUSDC,
}


def get_token_decimals(ledger_id: str, default: Optional[int] = None) -> Optional[int]:
    """
    Get decimals for a known token

    Args:
        ledger_id: Ledger canister id
        default: Returned when the token is not registered

    Returns:
        Token decimals or default
    """
    token = KNOWN_TOKENS.get(ledger_id)
    if token is None:
        return default
    return token.decimals


def register_token(token: Token) -> None:
    """Add or replace a token in the known-token registry"""
    KNOWN_TOKENS[token.ledger_id] = token
