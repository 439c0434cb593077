"""
In-Memory Store Adapter

Implementation of the StoreAdapter interface backed by plain dicts.
Used when no Supabase project is configured (local runs) and by the
test suite. It mirrors the table defaults of the hosted schema: every
row gets an `id` and a `created_at` when they are missing.
"""

import copy
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Sequence
from uuid import uuid4

from call_ingest.core.exceptions import RpcUnavailableError, StoreError
from call_ingest.core.logging import get_logger
from call_ingest.db.base import Row, SelectQuery, StoreAdapter

logger = get_logger(__name__)


class MemoryStoreAdapter(StoreAdapter):
    """Process-local tables; contents vanish with the process"""

    def __init__(self):
        self.tables: Dict[str, List[Row]] = {}
        self.functions: Dict[str, Callable[[Dict[str, Any]], Any]] = {}
        self._connected = False

    async def connect(self) -> bool:
        self._connected = True
        logger.info("Using in-memory store (data is not persisted)")
        return True

    async def disconnect(self) -> None:
        self._connected = False

    def is_connected(self) -> bool:
        return self._connected

    def register_function(self, name: str, fn: Callable[[Dict[str, Any]], Any]) -> None:
        """Expose a server-side function to rpc()"""
        self.functions[name] = fn

    def rows(self, table: str) -> List[Row]:
        """Snapshot of a table's rows"""
        return copy.deepcopy(self.tables.get(table, []))

    # ==================== Table operations ====================

    async def insert(self, table: str, records: Sequence[Row]) -> List[Row]:
        self._check_connected(table, "insert")
        stored = [self._with_defaults(record) for record in records]
        self.tables.setdefault(table, []).extend(stored)
        return copy.deepcopy(stored)

    async def update(self, table: str, values: Row, filters: Dict[str, Any]) -> List[Row]:
        self._check_connected(table, "update")
        updated = []
        for row in self.tables.get(table, []):
            if all(row.get(column) == value for column, value in filters.items()):
                row.update(copy.deepcopy(values))
                updated.append(copy.deepcopy(row))
        return updated

    async def upsert(
        self,
        table: str,
        records: Sequence[Row],
        on_conflict: str = "id",
        ignore_duplicates: bool = False
    ) -> List[Row]:
        self._check_connected(table, "upsert")
        rows = self.tables.setdefault(table, [])
        result = []
        for record in records:
            existing = next(
                (row for row in rows if on_conflict in record and row.get(on_conflict) == record[on_conflict]),
                None
            )
            if existing is None:
                stored = self._with_defaults(record)
                rows.append(stored)
                result.append(copy.deepcopy(stored))
            elif not ignore_duplicates:
                existing.update(copy.deepcopy(record))
                result.append(copy.deepcopy(existing))
        return result

    async def select(self, query: SelectQuery) -> List[Row]:
        self._check_connected(query.table, "select")
        filters = query.active_filters()
        rows = [
            row for row in self.tables.get(query.table, [])
            if all(row.get(column) == value for column, value in filters.items())
        ]

        if query.in_filter is not None:
            column, values = query.in_filter
            wanted = set(values)
            rows = [row for row in rows if row.get(column) in wanted]

        if query.order_by:
            column = query.order_by
            if query.after is not None:
                rows = [
                    row for row in rows
                    if row.get(column) is not None
                    and (row[column] > query.after if query.ascending else row[column] < query.after)
                ]
            rows = sorted(
                rows,
                key=lambda row: (row.get(column) is not None, row.get(column)),
                reverse=not query.ascending
            )

        if query.limit is not None:
            rows = rows[:query.limit]

        return [self._project(row, query.columns) for row in rows]

    async def rpc(self, function_name: str, params: Dict[str, Any]) -> Any:
        fn = self.functions.get(function_name)
        if fn is None:
            raise RpcUnavailableError(function_name)
        return fn(params)

    # ==================== Helpers ====================

    def _check_connected(self, table: str, operation: str) -> None:
        if not self._connected:
            raise StoreError("Not connected to memory store", table=table, operation=operation)

    @staticmethod
    def _with_defaults(record: Row) -> Row:
        stored = copy.deepcopy(dict(record))
        stored.setdefault("id", str(uuid4()))
        stored.setdefault("created_at", datetime.now(timezone.utc).isoformat())
        return stored

    @staticmethod
    def _project(row: Row, columns: str) -> Row:
        if columns.strip() == "*":
            return copy.deepcopy(row)
        wanted = [column.strip() for column in columns.split(",") if column.strip()]
        return {column: copy.deepcopy(row.get(column)) for column in wanted}
