"""
Persistence layer

Store adapter interface, concrete adapters, the caching/batching
gateway in front of them and the call event repository.
"""

from call_ingest.db.base import Row, SelectQuery, StoreAdapter
from call_ingest.db.gateway import PersistenceGateway
from call_ingest.db.repository import CallEventRepository

__all__ = [
    "Row",
    "SelectQuery",
    "StoreAdapter",
    "PersistenceGateway",
    "CallEventRepository",
]
