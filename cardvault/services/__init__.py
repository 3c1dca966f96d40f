"""
CardVault services.

Upstream access (transport, queue, cache), card resolution and import
orchestration.
"""

from cardvault.services.card_resolver import CardResolver, Strategy
from cardvault.services.import_orchestrator import ImportOrchestrator, ImportProgress
from cardvault.services.lru_cache import MISSING, LRUCache
from cardvault.services.request_queue import Priority, RequestQueue
from cardvault.services.transport import RetryingTransport, RetryPolicy

__all__ = [
    "MISSING",
    "CardResolver",
    "ImportOrchestrator",
    "ImportProgress",
    "LRUCache",
    "Priority",
    "RequestQueue",
    "RetryPolicy",
    "RetryingTransport",
    "Strategy",
]
