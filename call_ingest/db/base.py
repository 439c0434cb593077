"""
Store Adapter Base Classes

This module defines the abstract interface that every backend store
adapter implements: table-style insert/update/upsert/select with
filtering and ordering, plus server-side function calls.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Sequence

Row = Dict[str, Any]


@dataclass
class SelectQuery:
    """
    Description of a filtered, ordered read

    Attributes:
        table: Table name
        columns: Projection, "*" for every column
        filters: Equality filters (None values are skipped)
        in_filter: Optional (column, values) membership filter
        order_by: Ordering column
        ascending: Ordering direction
        after: Only rows whose order_by value lies strictly past this
            value in the ordering direction (cursor pagination)
        limit: Maximum rows returned
    """
    table: str
    columns: str = "*"
    filters: Dict[str, Any] = field(default_factory=dict)
    in_filter: Optional[tuple] = None
    order_by: Optional[str] = None
    ascending: bool = True
    after: Optional[Any] = None
    limit: Optional[int] = None

    def active_filters(self) -> Dict[str, Any]:
        return {k: v for k, v in self.filters.items() if v is not None}


class StoreAdapter(ABC):
    """
    Abstract base class for backend store adapters.

    All store implementations (Supabase, in-memory) must implement this
    interface. Failures are raised as StoreError.
    """

    @abstractmethod
    async def connect(self) -> bool:
        """
        Establish connection to the store.
        Returns True if successful, False otherwise.
        """
        pass

    @abstractmethod
    async def disconnect(self) -> None:
        """Close the store connection."""
        pass

    @abstractmethod
    def is_connected(self) -> bool:
        """Check if the store connection is active."""
        pass

    @abstractmethod
    async def insert(self, table: str, records: Sequence[Row]) -> List[Row]:
        """Insert rows and return them as stored."""
        pass

    @abstractmethod
    async def update(self, table: str, values: Row, filters: Dict[str, Any]) -> List[Row]:
        """Update rows matching every equality filter; return updated rows."""
        pass

    @abstractmethod
    async def upsert(
        self,
        table: str,
        records: Sequence[Row],
        on_conflict: str = "id",
        ignore_duplicates: bool = False
    ) -> List[Row]:
        """Insert rows, merging into existing ones that share the conflict column."""
        pass

    @abstractmethod
    async def select(self, query: SelectQuery) -> List[Row]:
        """Execute a read described by a SelectQuery."""
        pass

    @abstractmethod
    async def rpc(self, function_name: str, params: Dict[str, Any]) -> Any:
        """
        Call a server-side function.
        Raises RpcUnavailableError when the function does not exist.
        """
        pass
