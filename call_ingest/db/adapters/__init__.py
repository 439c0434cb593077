"""
Store Adapters

This module contains concrete implementations of the StoreAdapter
interface for different backends.
"""

from call_ingest.db.adapters.memory import MemoryStoreAdapter
from call_ingest.db.adapters.supabase_adapter import SupabaseAdapter

__all__ = ["MemoryStoreAdapter", "SupabaseAdapter"]
