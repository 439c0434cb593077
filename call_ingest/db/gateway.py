"""
Persistence Gateway

Batched and cached access to the backend store. Keeps request latency
away from store latency and keeps the store away from redundant or
serial round-trips.

Every cache key written here starts with the table name, so a write
through the gateway can drop all cached reads of that table with one
`table:*` invalidation.
"""

import asyncio
from collections import OrderedDict
from typing import Any, Awaitable, Callable, Dict, List, Optional, Sequence, Tuple

from call_ingest.core.exceptions import AggregationLimitError, RpcUnavailableError, ValidationError
from call_ingest.core.logging import get_logger
from call_ingest.db.base import Row, SelectQuery, StoreAdapter
from call_ingest.services.cache_service import CacheService, cache_aside, generate_cache_key
from call_ingest.services.metrics import QueryMetrics, timed

logger = get_logger(__name__)

AGGREGATE_FUNCTIONS = ("count", "sum", "avg", "min", "max")


class PersistenceGateway:
    """
    Front door to the store for reads and writes

    Reads are cache-aside; writes invalidate the cached reads of the
    table they touch.
    """

    def __init__(
        self,
        adapter: StoreAdapter,
        cache: CacheService,
        metrics: QueryMetrics,
        cache_ttl: float = 60.0,
        aggregate_ttl: float = 300.0,
        aggregate_max_rows: int = 10000,
        default_page_size: int = 50
    ):
        self.adapter = adapter
        self.cache = cache
        self.metrics = metrics
        self.cache_ttl = cache_ttl
        self.aggregate_ttl = aggregate_ttl
        self.aggregate_max_rows = aggregate_max_rows
        self.default_page_size = default_page_size

        self._fetch_page = self._cached(
            "paginated_query",
            lambda query: generate_cache_key(query.table, "page", self._describe(query)),
            self._select,
            cache_ttl,
        )
        self._aggregate = self._cached(
            "aggregate",
            lambda table, group_by, aggregates, filters: generate_cache_key(
                table, "aggregate", {"group_by": group_by, "aggregates": aggregates, "filters": filters}
            ),
            self._run_aggregate,
            aggregate_ttl,
        )

    def _cached(
        self,
        label: str,
        key_fn: Callable[..., str],
        fetch: Callable[..., Awaitable[Any]],
        ttl: float
    ) -> Callable[..., Awaitable[Any]]:
        """Cache-aside around a timed store call; hits are recorded as metrics too"""
        read = cache_aside(self.cache, key_fn, timed(self.metrics, label, fetch), ttl)

        async def wrapper(*args) -> Any:
            if key_fn(*args) in self.cache:
                self.metrics.record(label, 0.0, cache_hit=True)
            return await read(*args)

        return wrapper

    async def _select(self, query: SelectQuery) -> List[Row]:
        return await self.adapter.select(query)

    @staticmethod
    def _describe(query: SelectQuery) -> Dict[str, Any]:
        return {
            "columns": query.columns,
            "filters": query.active_filters(),
            "order_by": query.order_by,
            "ascending": query.ascending,
            "after": query.after,
            "limit": query.limit,
        }

    # ==================== Reads ====================

    async def batch_fetch_by_ids(
        self,
        table: str,
        ids: Sequence[str],
        columns: str = "*",
        id_column: str = "id",
        ttl: Optional[float] = None
    ) -> List[Row]:
        """
        Fetch rows by id, going to the store only for ids not cached

        Missing ids are read with a single multi-id query and every row
        fetched is cached under (table, id, projection). The result holds
        every requested id that exists, in no particular order.
        """
        unique_ids = list(OrderedDict.fromkeys(str(i) for i in ids if i is not None))
        if not unique_ids:
            return []

        if columns.strip() != "*" and id_column not in [c.strip() for c in columns.split(",")]:
            columns = f"{id_column},{columns}"

        keys = {row_id: generate_cache_key(table, "id", columns, row_id) for row_id in unique_ids}
        cached = self.cache.get_many(keys.values())
        rows = list(cached.values())
        missing = [row_id for row_id, key in keys.items() if key not in cached]

        if not missing:
            self.metrics.record("batch_fetch_by_ids", 0.0, cache_hit=True)
            return rows

        query = SelectQuery(table=table, columns=columns, in_filter=(id_column, missing))
        fetched = await timed(self.metrics, "batch_fetch_by_ids", self._select)(query)
        for row in fetched:
            row_id = row.get(id_column)
            if row_id is not None:
                self.cache.set(generate_cache_key(table, "id", columns, row_id), row, ttl or self.cache_ttl)
        logger.debug(f"batch_fetch_by_ids {table}: {len(cached)} cached, {len(fetched)} fetched")
        return rows + fetched

    async def paginated_query(
        self,
        table: str,
        order_by: str = "created_at",
        ascending: bool = False,
        page_size: Optional[int] = None,
        cursor: Optional[Any] = None,
        filters: Optional[Dict[str, Any]] = None,
        columns: str = "*"
    ) -> Dict[str, Any]:
        """
        Cursor-based page read

        The cursor is the ordering-column value of the last row of the
        previous page. One row past the page is requested to know whether
        another page exists.

        Returns:
            {"data": rows, "next_cursor": value or None, "has_more": bool}
        """
        size = max(1, page_size or self.default_page_size)
        query = SelectQuery(
            table=table,
            columns=columns,
            filters=dict(filters or {}),
            order_by=order_by,
            ascending=ascending,
            after=cursor,
            limit=size + 1,
        )
        rows = await self._fetch_page(query)

        has_more = len(rows) > size
        data = rows[:size]
        next_cursor = data[-1].get(order_by) if has_more and data else None
        return {"data": data, "next_cursor": next_cursor, "has_more": has_more}

    async def parallel_queries(
        self,
        queries: Dict[str, Callable[[], Awaitable[Any]]]
    ) -> Dict[str, Optional[Any]]:
        """
        Run named queries concurrently

        A failing query contributes None under its name and is logged;
        it never fails the others or the caller.
        """
        names = list(queries)
        outcomes = await asyncio.gather(*(queries[name]() for name in names), return_exceptions=True)

        results: Dict[str, Optional[Any]] = {}
        for name, outcome in zip(names, outcomes):
            if isinstance(outcome, BaseException):
                logger.error(f"Parallel query '{name}' failed: {outcome}")
                results[name] = None
            else:
                results[name] = outcome
        return results

    async def aggregate(
        self,
        table: str,
        group_by: Optional[Sequence[str]] = None,
        aggregates: Optional[Sequence[Dict[str, str]]] = None,
        filters: Optional[Dict[str, Any]] = None
    ) -> List[Row]:
        """
        Grouped aggregation, server-side when possible

        Args:
            table: Table name
            group_by: Grouping columns
            aggregates: Items like {"column": "duration", "function": "avg", "as": "avg_duration"};
                count accepts column "*" for a row count
            filters: Equality filters

        Raises:
            ValidationError: Unknown aggregate function
            AggregationLimitError: The in-process fallback would exceed its row ceiling
        """
        specs = [self._aggregate_spec(item) for item in (aggregates or [{"function": "count"}])]
        return await self._aggregate(
            table,
            list(group_by or []),
            specs,
            {k: v for k, v in (filters or {}).items() if v is not None},
        )

    @staticmethod
    def _aggregate_spec(item: Dict[str, str]) -> Dict[str, str]:
        function = str(item.get("function", "")).lower()
        if function not in AGGREGATE_FUNCTIONS:
            raise ValidationError(f"Unsupported aggregate function: {function or 'missing'}", field="function")
        column = item.get("column") or "*"
        if column == "*" and function != "count":
            raise ValidationError(f"Aggregate {function} requires a column", field="column")
        alias = item.get("as") or (function if column == "*" else f"{function}_{column}")
        return {"column": column, "function": function, "as": alias}

    async def _run_aggregate(
        self,
        table: str,
        group_by: List[str],
        aggregates: List[Dict[str, str]],
        filters: Dict[str, Any]
    ) -> List[Row]:
        try:
            result = await self.adapter.rpc(
                f"aggregate_{table}",
                {"group_by": group_by, "aggregates": aggregates, "filters": filters},
            )
            return list(result or [])
        except RpcUnavailableError:
            logger.info(f"No server-side aggregation for {table}, aggregating in process")

        columns = sorted({*group_by, *(a["column"] for a in aggregates if a["column"] != "*")})
        query = SelectQuery(
            table=table,
            columns=",".join(columns) if columns else "*",
            filters=filters,
            limit=self.aggregate_max_rows + 1,
        )
        rows = await self.adapter.select(query)
        if len(rows) > self.aggregate_max_rows:
            raise AggregationLimitError(table, self.aggregate_max_rows)
        return aggregate_rows(rows, group_by, aggregates)

    # ==================== Writes ====================

    async def insert(self, table: str, records: Sequence[Row]) -> List[Row]:
        if not records:
            return []
        rows = await timed(self.metrics, f"insert:{table}", self.adapter.insert)(table, records)
        self.invalidate_table(table)
        return rows

    async def update(self, table: str, values: Row, filters: Dict[str, Any]) -> List[Row]:
        rows = await timed(self.metrics, f"update:{table}", self.adapter.update)(table, values, filters)
        self.invalidate_table(table)
        return rows

    async def bulk_upsert(
        self,
        table: str,
        records: Sequence[Row],
        conflict_key: str = "id",
        ignore_duplicates: bool = False
    ) -> List[Row]:
        """Single multi-row upsert; drops every cached read of the table on success"""
        if not records:
            return []
        rows = await timed(self.metrics, "bulk_upsert", self.adapter.upsert)(
            table, records, conflict_key, ignore_duplicates
        )
        removed = self.invalidate_table(table)
        logger.debug(f"bulk_upsert {table}: {len(records)} records, {removed} cache entries invalidated")
        return rows

    def invalidate_table(self, table: str) -> int:
        return self.cache.invalidate(f"{table}:*")

    # ==================== Batching ====================

    async def execute_batch(self, operations: Sequence[Awaitable[Any]]) -> List[Any]:
        """
        Run operations together, degrading to per-operation outcomes

        All operations start at once. If the combined await fails, each
        operation's own outcome is collected one at a time: its result, or
        {"error": message}. Nothing is executed twice.
        """
        tasks = [asyncio.ensure_future(operation) for operation in operations]
        if not tasks:
            return []
        try:
            return list(await asyncio.gather(*tasks))
        except Exception as e:
            logger.warning(f"Batch of {len(tasks)} operations failed ({e}), collecting outcomes individually")

        results: List[Any] = []
        for task in tasks:
            try:
                results.append(await task)
            except Exception as e:
                results.append({"error": str(e)})
        return results


def aggregate_rows(
    rows: Sequence[Row],
    group_by: Sequence[str],
    aggregates: Sequence[Dict[str, str]]
) -> List[Row]:
    """In-process count/sum/avg/min/max over rows, grouped by columns"""
    groups: "OrderedDict[Tuple[Any, ...], List[Row]]" = OrderedDict()
    for row in rows:
        groups.setdefault(tuple(row.get(column) for column in group_by), []).append(row)

    if not groups and not group_by:
        groups[()] = []

    results = []
    for group_key, members in groups.items():
        result: Row = dict(zip(group_by, group_key))
        for spec in aggregates:
            result[spec["as"]] = _apply(spec["function"], spec["column"], members)
        results.append(result)
    return results


def _apply(function: str, column: str, rows: Sequence[Row]) -> Any:
    if function == "count":
        if column == "*":
            return len(rows)
        return sum(1 for row in rows if row.get(column) is not None)

    values = [row.get(column) for row in rows if row.get(column) is not None]
    if not values:
        return None
    if function == "sum":
        return sum(values)
    if function == "avg":
        return sum(values) / len(values)
    if function == "min":
        return min(values)
    return max(values)
