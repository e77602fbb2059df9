"""
Price type definitions
"""

from dataclasses import dataclass


@dataclass(frozen=True)
class PriceCacheEntry:
    """
    Cached price

    Attributes:
        key: Cache key (token ledger id, or the fixed ICP/USD key)
        value: Price
        fetched_at: Unix timestamp of the successful fetch
    """
    key: str
    value: float
    fetched_at: float

    def age(self, now: float) -> float:
        return now - self.fetched_at

    def is_fresh(self, now: float, ttl_seconds: float) -> bool:
        return self.age(now) < ttl_seconds

    def to_dict(self) -> dict:
        return {"key": self.key, "value": self.value, "fetched_at": self.fetched_at}

    @classmethod
    def from_dict(cls, data: dict) -> "PriceCacheEntry":
        return cls(
            key=str(data["key"]),
            value=float(data["value"]),
            fetched_at=float(data["fetched_at"]),
        )
