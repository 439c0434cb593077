"""
Supabase Store Adapter

Implementation of the StoreAdapter interface on top of the Supabase
PostgREST client. The client is synchronous, so every request runs in a
worker thread to keep the event loop free.
"""

import asyncio
from typing import Any, Callable, Dict, List, Optional, Sequence

from supabase import Client, create_client

from call_ingest.core.config import settings
from call_ingest.core.exceptions import RpcUnavailableError, StoreError
from call_ingest.core.logging import get_logger
from call_ingest.db.base import Row, SelectQuery, StoreAdapter

logger = get_logger(__name__)

# PostgREST error code for an unknown function
FUNCTION_NOT_FOUND = "PGRST202"


class SupabaseAdapter(StoreAdapter):
    """
    Supabase (PostgREST) store adapter.

    Uses the service role key; sessions are never persisted.
    """

    def __init__(self, url: Optional[str] = None, service_role_key: Optional[str] = None):
        """
        Initialize Supabase adapter.

        Args:
            url: Project URL (defaults to settings.supabase_url)
            service_role_key: Service role key (defaults to settings.supabase_service_role_key)
        """
        self.url = url or settings.supabase_url
        self.service_role_key = service_role_key or settings.supabase_service_role_key
        self._client: Optional[Client] = None

    async def connect(self) -> bool:
        """Create the client and verify it can reach the project."""
        if not self.url or not self.service_role_key:
            logger.error("Cannot connect: Missing SUPABASE_URL or SUPABASE_SERVICE_ROLE_KEY")
            return False

        try:
            self._client = create_client(self.url, self.service_role_key)
            logger.info(f"Connected to Supabase project: {self.url}")
            return True
        except Exception as e:
            logger.error(f"Failed to connect to Supabase: {e}")
            self._client = None
            return False

    async def disconnect(self) -> None:
        if self._client is not None:
            self._client = None
            logger.info("Disconnected from Supabase")

    def is_connected(self) -> bool:
        return self._client is not None

    # ==================== Table operations ====================

    async def insert(self, table: str, records: Sequence[Row]) -> List[Row]:
        return await self._execute(
            table, "insert",
            lambda client: client.table(table).insert(list(records)).execute()
        )

    async def update(self, table: str, values: Row, filters: Dict[str, Any]) -> List[Row]:
        def run(client: Client):
            builder = client.table(table).update(values)
            for column, value in filters.items():
                builder = builder.eq(column, value)
            return builder.execute()

        return await self._execute(table, "update", run)

    async def upsert(
        self,
        table: str,
        records: Sequence[Row],
        on_conflict: str = "id",
        ignore_duplicates: bool = False
    ) -> List[Row]:
        return await self._execute(
            table, "upsert",
            lambda client: client.table(table).upsert(
                list(records),
                on_conflict=on_conflict,
                ignore_duplicates=ignore_duplicates,
            ).execute()
        )

    async def select(self, query: SelectQuery) -> List[Row]:
        def run(client: Client):
            builder = client.table(query.table).select(query.columns)
            for column, value in query.active_filters().items():
                builder = builder.eq(column, value)
            if query.in_filter is not None:
                column, values = query.in_filter
                builder = builder.in_(column, list(values))
            if query.order_by:
                if query.after is not None:
                    builder = (
                        builder.gt(query.order_by, query.after)
                        if query.ascending
                        else builder.lt(query.order_by, query.after)
                    )
                builder = builder.order(query.order_by, desc=not query.ascending)
            if query.limit is not None:
                builder = builder.limit(query.limit)
            return builder.execute()

        return await self._execute(query.table, "select", run)

    async def rpc(self, function_name: str, params: Dict[str, Any]) -> Any:
        client = self._require_client()
        try:
            response = await asyncio.to_thread(lambda: client.rpc(function_name, params).execute())
        except Exception as e:
            if getattr(e, "code", None) == FUNCTION_NOT_FOUND:
                raise RpcUnavailableError(function_name) from e
            logger.error(f"RPC {function_name} failed: {e}")
            raise StoreError(str(e), operation="rpc") from e
        return response.data

    # ==================== Helpers ====================

    def _require_client(self) -> Client:
        if self._client is None:
            raise StoreError("Not connected to Supabase")
        return self._client

    async def _execute(self, table: str, operation: str, run: Callable[[Client], Any]) -> List[Row]:
        client = self._require_client()
        try:
            response = await asyncio.to_thread(run, client)
        except Exception as e:
            logger.error(f"Supabase {operation} on {table} failed: {e}")
            raise StoreError(str(e), table=table, operation=operation) from e
        return list(response.data or [])
