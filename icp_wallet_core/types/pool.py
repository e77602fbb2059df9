"""
Pool type definitions
"""

from dataclasses import dataclass
from decimal import Decimal
from typing import Optional

from .common import TokenRef

# 2^96, the fixed-point scale of sqrtPriceX96
Q96 = 2 ** 96


def make_pair_key(token0: str, token1: str, fee: int) -> str:
    """Cache key for a sorted token pair at a fee tier"""
    return f"{token0}|{token1}|{fee}"


def sort_tokens(token_a: TokenRef, token_b: TokenRef) -> tuple:
    """Order a pair the way the swap factory does: smaller address first"""
    if token_a.address.lower() < token_b.address.lower():
        return token_a, token_b
    return token_b, token_a


@dataclass(frozen=True)
class PoolIdentity:
    """
    Resolved AMM pool for a token pair

    Pool assignment for a pair and fee never changes, so a resolved identity
    is valid for the lifetime of the process and across restarts.

    Attributes:
        pair_key: ``token0|token1|fee``
        canister_id: Pool canister id (normalized textual principal)
        token0: Lower-address token
        token1: Higher-address token
        fee: Fee tier (3000 = 0.3%)
        tick_spacing: Pool tick spacing, if reported
    """
    pair_key: str
    canister_id: str
    token0: TokenRef
    token1: TokenRef
    fee: int = 3000
    tick_spacing: Optional[int] = None

    @property
    def fee_rate(self) -> Decimal:
        return Decimal(self.fee) / Decimal(1_000_000)

    def is_token0(self, address: str) -> bool:
        return self.token0.address == address

    def to_dict(self) -> dict:
        """Convert to JSON-serializable dictionary"""
        return {
            "pair_key": self.pair_key,
            "canister_id": self.canister_id,
            "token0": self.token0.to_dict(),
            "token1": self.token1.to_dict(),
            "fee": self.fee,
            "tick_spacing": self.tick_spacing,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "PoolIdentity":
        tick_spacing = data.get("tick_spacing")
        return cls(
            pair_key=str(data["pair_key"]),
            canister_id=str(data["canister_id"]),
            token0=TokenRef.from_dict(data["token0"]),
            token1=TokenRef.from_dict(data["token1"]),
            fee=int(data.get("fee", 3000)),
            tick_spacing=int(tick_spacing) if tick_spacing is not None else None,
        )


@dataclass(frozen=True)
class PoolState:
    """
    Pool metadata snapshot

    Attributes:
        token0: Lower-address token
        token1: Higher-address token
        sqrt_price_x96: sqrt(token1 per token0) scaled by 2^96
        liquidity: In-range liquidity
    """
    token0: TokenRef
    token1: TokenRef
    sqrt_price_x96: int
    liquidity: int = 0

    @property
    def ratio(self) -> float:
        """Raw-unit amount of token1 per token0"""
        sqrt_price = self.sqrt_price_x96 / Q96
        return sqrt_price * sqrt_price

    def contains(self, address: str) -> bool:
        return address in (self.token0.address, self.token1.address)
