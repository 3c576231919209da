"""
Cloud store shared across devices.

The remote is addressed as a key-value tree:

    questions               shared question bank (admin writes only)
    users/{uid}/history     one user's answer history
    users/{uid}/memos       one user's memos

Each path maps onto a Supabase table with ``key`` and ``data`` columns;
per-user paths add a ``user_id`` column. Batch writes go out as a single
upsert request, so a batch either lands whole or must be treated as not
written.
"""
from abc import ABC, abstractmethod
from typing import Any, Dict, Optional, Tuple
import asyncio
import logging

from supabase import create_client, Client

from archstudy.config import Settings
from archstudy.errors import RemoteStoreError

logger = logging.getLogger(__name__)

QUESTIONS_PATH = "questions"

def history_path(user_id: str) -> str:
    return f"users/{user_id}/history"

def memos_path(user_id: str) -> str:
    return f"users/{user_id}/memos"

class RemoteStore(ABC):
    """Path-addressed key-value collections"""

    @abstractmethod
    async def fetch(self, path: str) -> Dict[str, Any]:
        """Read a whole collection as key -> value"""

    @abstractmethod
    async def update(self, path: str, mapping: Dict[str, Any], overwrite: bool = True) -> None:
        """Write many keys in one batch; with overwrite=False existing keys are kept"""

    @abstractmethod
    async def set(self, path: str, key: str, value: Any) -> None:
        """Write a single key"""

    @abstractmethod
    async def remove(self, path: str, key: Optional[str] = None) -> None:
        """Remove one key, or the whole collection when key is None"""

class SupabaseRemoteStore(RemoteStore):
    """RemoteStore backed by Supabase tables"""

    def __init__(self, client: Client, settings: Settings):
        self.client = client
        self.page_size = settings.remote_page_size
        self.tables = {
            "questions": settings.questions_table,
            "history": settings.history_table,
            "memos": settings.memos_table,
        }

    def _resolve(self, path: str) -> Tuple[str, Dict[str, str]]:
        """Map a path to (table, owner filters)"""
        parts = path.strip("/").split("/")
        if parts == ["questions"]:
            return self.tables["questions"], {}
        if len(parts) == 3 and parts[0] == "users" and parts[1] and parts[2] in ("history", "memos"):
            return self.tables[parts[2]], {"user_id": parts[1]}
        raise ValueError(f"Unknown remote path: {path}")

    def _fetch_sync(self, path: str) -> Dict[str, Any]:
        table, filters = self._resolve(path)
        result = {}
        start = 0
        while True:
            query = self.client.table(table).select("key,data")
            for column, value in filters.items():
                query = query.eq(column, value)
            response = query.order("key").range(start, start + self.page_size - 1).execute()
            rows = response.data or []
            for row in rows:
                result[row["key"]] = row["data"]
            if len(rows) < self.page_size:
                return result
            start += self.page_size

    def _update_sync(self, path: str, mapping: Dict[str, Any], overwrite: bool):
        table, filters = self._resolve(path)
        rows = [{**filters, "key": key, "data": value} for key, value in mapping.items()]
        conflict = ",".join([*filters.keys(), "key"])
        self.client.table(table).upsert(
            rows, on_conflict=conflict, ignore_duplicates=not overwrite
        ).execute()

    def _remove_sync(self, path: str, key: Optional[str]):
        table, filters = self._resolve(path)
        if key is None and not filters:
            raise ValueError("Refusing to remove the whole shared question bank")
        query = self.client.table(table).delete()
        for column, value in filters.items():
            query = query.eq(column, value)
        if key is not None:
            query = query.eq("key", key)
        query.execute()

    async def _call(self, label: str, path: str, func, *args):
        try:
            return await asyncio.to_thread(func, *args)
        except ValueError:
            raise
        except Exception as e:
            logger.error(f"Remote {label} error at {path}: {e}")
            raise RemoteStoreError(path, str(e)) from e

    async def fetch(self, path: str) -> Dict[str, Any]:
        return await self._call("fetch", path, self._fetch_sync, path)

    async def update(self, path: str, mapping: Dict[str, Any], overwrite: bool = True) -> None:
        if not mapping:
            return
        await self._call("update", path, self._update_sync, path, mapping, overwrite)

    async def set(self, path: str, key: str, value: Any) -> None:
        await self._call("set", path, self._update_sync, path, {key: value}, True)

    async def remove(self, path: str, key: Optional[str] = None) -> None:
        await self._call("remove", path, self._remove_sync, path, key)

def get_supabase_client(settings: Settings) -> Client:
    """Get Supabase client for the configured project"""
    return create_client(settings.supabase_url, settings.supabase_anon_key.get_secret_value())

def create_remote_store(settings: Settings, client: Optional[Client] = None) -> Optional[SupabaseRemoteStore]:
    """Remote store for the configured project, or None when running offline-only"""
    if client is None:
        if not settings.remote_enabled:
            logger.info("Supabase not configured, running offline-only")
            return None
        try:
            client = get_supabase_client(settings)
        except Exception as e:
            logging.error(f"Supabase client setup failed: {e}")
            return None
    return SupabaseRemoteStore(client, settings)
