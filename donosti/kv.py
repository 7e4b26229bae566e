"""Key-value store adapter.

Every record of the site lives under a prefix-encoded string key. Writes are
staged on the store and become visible to other requests only after
``commit()``, so one service operation is one unit of work.
"""
from __future__ import annotations

import copy
import logging
from typing import Any, Dict, List, Optional, Tuple

from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession

from .models import KVEntry

logger = logging.getLogger(__name__)


class KVStore:
    """Minimal interface: get / set / delete / prefix-scan."""

    async def get(self, key: str, *, for_update: bool = False) -> Any:
        raise NotImplementedError

    async def set(self, key: str, value: Any) -> None:
        raise NotImplementedError

    async def delete(self, key: str) -> None:
        raise NotImplementedError

    async def scan(self, prefix: str) -> List[Tuple[str, Any]]:
        """Return ``(key, value)`` pairs whose key starts with ``prefix``, ordered by key."""
        raise NotImplementedError

    async def commit(self) -> None:
        raise NotImplementedError

    async def rollback(self) -> None:
        raise NotImplementedError

    async def values(self, prefix: str) -> List[Any]:
        return [value for _, value in await self.scan(prefix)]

    async def delete_prefix(self, prefix: str) -> int:
        keys = [key for key, _ in await self.scan(prefix)]
        for key in keys:
            await self.delete(key)
        return len(keys)


# ---------------------------
# SQL backend
# ---------------------------
class SqlKVStore(KVStore):
    """``kv_store`` table accessed through an async SQLAlchemy session."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def get(self, key: str, *, for_update: bool = False) -> Any:
        stmt = select(KVEntry).where(KVEntry.key == key)
        if for_update:
            # serialises read-modify-write on counters (no-op on sqlite)
            stmt = stmt.with_for_update()
        row = (await self.session.execute(stmt)).scalars().first()
        return copy.deepcopy(row.value) if row else None

    async def set(self, key: str, value: Any) -> None:
        await self.session.merge(KVEntry(key=key, value=value))
        await self.session.flush()

    async def delete(self, key: str) -> None:
        row = await self.session.get(KVEntry, key)
        if row is not None:
            await self.session.delete(row)
            await self.session.flush()

    async def scan(self, prefix: str) -> List[Tuple[str, Any]]:
        rows = (
            await self.session.execute(
                select(KVEntry)
                .where(KVEntry.key.startswith(prefix, autoescape=True))
                .order_by(KVEntry.key)
            )
        ).scalars().all()
        return [(row.key, copy.deepcopy(row.value)) for row in rows]

    async def delete_prefix(self, prefix: str) -> int:
        result = await self.session.execute(
            delete(KVEntry)
            .where(KVEntry.key.startswith(prefix, autoescape=True))
            .execution_options(synchronize_session="fetch")
        )
        return result.rowcount or 0

    async def commit(self) -> None:
        await self.session.commit()

    async def rollback(self) -> None:
        await self.session.rollback()


# ---------------------------
# In-memory backend
# ---------------------------
_DELETED = object()
_SHARED: Dict[str, Any] = {}


class MemoryKVStore(KVStore):
    """Dict-backed store; each instance stages its own writes over shared committed data."""

    def __init__(self, data: Optional[Dict[str, Any]] = None):
        self._data = _SHARED if data is None else data
        self._pending: Dict[str, Any] = {}

    async def get(self, key: str, *, for_update: bool = False) -> Any:
        if key in self._pending:
            value = self._pending[key]
            return None if value is _DELETED else copy.deepcopy(value)
        return copy.deepcopy(self._data.get(key))

    async def set(self, key: str, value: Any) -> None:
        self._pending[key] = copy.deepcopy(value)

    async def delete(self, key: str) -> None:
        self._pending[key] = _DELETED

    async def scan(self, prefix: str) -> List[Tuple[str, Any]]:
        merged = {k: v for k, v in self._data.items() if k.startswith(prefix)}
        for key, value in self._pending.items():
            if not key.startswith(prefix):
                continue
            if value is _DELETED:
                merged.pop(key, None)
            else:
                merged[key] = value
        return [(key, copy.deepcopy(merged[key])) for key in sorted(merged)]

    async def commit(self) -> None:
        for key, value in self._pending.items():
            if value is _DELETED:
                self._data.pop(key, None)
            else:
                self._data[key] = value
        if self._pending:
            logger.debug("memory kv commit: %d key(s)", len(self._pending))
        self._pending = {}

    async def rollback(self) -> None:
        self._pending = {}


__all__ = ["KVStore", "SqlKVStore", "MemoryKVStore"]
