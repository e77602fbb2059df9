"""
Infrastructure layer: collaborator gateway, caches, persistence and retry
"""

from .store import CacheStore, JsonFileStore, MemoryStore, create_store, STORE_VERSION
from .cache import TtlCache, PoolCache
from .gateway import (
    PoolFactory,
    PoolStateSource,
    LedgerClient,
    CanisterGateway,
    GatewayClientConfig,
)
from .agent import AgentGateway
from .retry import (
    call_with_retry,
    classify_error,
    CorrelationContext,
    get_correlation_id,
)

__all__ = [
    # Persistence
    "CacheStore",
    "JsonFileStore",
    "MemoryStore",
    "create_store",
    "STORE_VERSION",
    # Caches
    "TtlCache",
    "PoolCache",
    # Collaborators
    "PoolFactory",
    "PoolStateSource",
    "LedgerClient",
    "CanisterGateway",
    "GatewayClientConfig",
    "AgentGateway",
    # Retry
    "call_with_retry",
    "classify_error",
    "CorrelationContext",
    "get_correlation_id",
]
