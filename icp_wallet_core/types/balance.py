"""
Balance record type definitions
"""

from dataclasses import dataclass
from enum import Enum
from typing import Optional, Tuple


class BalanceState(Enum):
    """Balance record lifecycle state"""
    IDLE = "idle"
    LOADING = "loading"
    LOADED = "loaded"
    ERROR = "error"


# (token ledger id, subaccount hex or None for the default account)
BalanceKey = Tuple[str, Optional[str]]


@dataclass
class BalanceRecord:
    """
    Balance of one token for one subaccount of the tracked owner

    Attributes:
        token_id: Ledger canister id
        subaccount_key: Subaccount hex, None for the default account
        amount_raw: Balance in the token's smallest units
        state: Lifecycle state
        error: Error message when state is ERROR
        generation: Id of the latest fetch issued for this record
        updated_at: Timestamp of the last completed fetch
    """
    token_id: str
    subaccount_key: Optional[str] = None
    amount_raw: int = 0
    state: BalanceState = BalanceState.IDLE
    error: Optional[str] = None
    generation: int = 0
    updated_at: Optional[float] = None

    @property
    def key(self) -> BalanceKey:
        return (self.token_id, self.subaccount_key)

    @property
    def is_loading(self) -> bool:
        return self.state == BalanceState.LOADING

    @property
    def is_loaded(self) -> bool:
        return self.state == BalanceState.LOADED

    @property
    def is_error(self) -> bool:
        return self.state == BalanceState.ERROR

    def mark_loading(self) -> int:
        """Start a fetch; returns its generation. Clears any previous error."""
        self.generation += 1
        self.state = BalanceState.LOADING
        self.error = None
        return self.generation

    def copy(self) -> "BalanceRecord":
        return BalanceRecord(
            token_id=self.token_id,
            subaccount_key=self.subaccount_key,
            amount_raw=self.amount_raw,
            state=self.state,
            error=self.error,
            generation=self.generation,
            updated_at=self.updated_at,
        )

    def __str__(self) -> str:
        if self.state == BalanceState.ERROR:
            return f"{self.token_id}: error ({self.error})"
        if self.state == BalanceState.LOADED:
            return f"{self.token_id}: {self.amount_raw}"
        return f"{self.token_id}: {self.state.value}"
