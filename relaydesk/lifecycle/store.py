from __future__ import annotations

import asyncio
import copy
from collections import defaultdict
from typing import Any, Mapping

from ..core.config import Settings
from ..core.errors import LifecycleError, NotFound, StaleStateConflict, StoreFailure
from ..core.logging import get_logger
from .models import utcnow

logger = get_logger(name=__name__)

REQUESTS = "requests"
ACTORS = "actors"
CATEGORIES = "categories"

_MISSING = object()


class Store:
    """Document store contract consumed by the lifecycle.

    ``save`` is the only write path. It applies ``fields`` onto one document
    if every key in ``expected`` still holds its expected value, so callers
    express each transition as a single compare-then-set write instead of a
    read followed by an unguarded write.
    """

    async def find_by_id(self, collection: str, record_id: str) -> dict[str, Any] | None:
        return await self._guard("find_by_id", self._find_by_id(collection, record_id))

    async def find_where(self, collection: str, **criteria: Any) -> list[dict[str, Any]]:
        return await self._guard("find_where", self._find_where(collection, criteria))

    async def save(
        self,
        collection: str,
        record_id: str,
        fields: Mapping[str, Any],
        *,
        expected: Mapping[str, Any] | None = None,
        create: bool = False,
    ) -> dict[str, Any]:
        return await self._guard(
            "save",
            self._save(collection, record_id, dict(fields), dict(expected or {}), create),
        )

    async def delete_by_id(
        self,
        collection: str,
        record_id: str,
        *,
        expected: Mapping[str, Any] | None = None,
    ) -> bool:
        return await self._guard("delete_by_id", self._delete_by_id(collection, record_id, dict(expected or {})))

    async def close(self) -> None:
        return None

    async def _guard(self, operation: str, awaitable: Any) -> Any:
        try:
            return await awaitable
        except LifecycleError:
            raise
        except Exception as exc:
            logger.error("store_operation_failed", operation=operation, error=str(exc))
            raise StoreFailure(operation, detail=str(exc)) from exc

    # Abstract hooks -----------------------------------------------------------------

    async def _find_by_id(self, collection: str, record_id: str) -> dict[str, Any] | None:
        raise NotImplementedError

    async def _find_where(self, collection: str, criteria: Mapping[str, Any]) -> list[dict[str, Any]]:
        raise NotImplementedError

    async def _save(
        self,
        collection: str,
        record_id: str,
        fields: dict[str, Any],
        expected: dict[str, Any],
        create: bool,
    ) -> dict[str, Any]:
        raise NotImplementedError

    async def _delete_by_id(self, collection: str, record_id: str, expected: dict[str, Any]) -> bool:
        raise NotImplementedError


def _matches(document: Mapping[str, Any], criteria: Mapping[str, Any]) -> bool:
    for key, value in criteria.items():
        current = document.get(key, _MISSING)
        if isinstance(value, (set, frozenset, tuple, list)):
            if current not in value:
                return False
        elif current != value:
            return False
    return True


class InMemoryStore(Store):
    def __init__(self) -> None:
        self._collections: defaultdict[str, dict[str, dict[str, Any]]] = defaultdict(dict)
        self._lock = asyncio.Lock()

    async def _find_by_id(self, collection: str, record_id: str) -> dict[str, Any] | None:
        async with self._lock:
            document = self._collections[collection].get(record_id)
            return None if document is None else copy.deepcopy(document)

    async def _find_where(self, collection: str, criteria: Mapping[str, Any]) -> list[dict[str, Any]]:
        async with self._lock:
            return [
                copy.deepcopy(document)
                for document in self._collections[collection].values()
                if _matches(document, criteria)
            ]

    async def _save(
        self,
        collection: str,
        record_id: str,
        fields: dict[str, Any],
        expected: dict[str, Any],
        create: bool,
    ) -> dict[str, Any]:
        async with self._lock:
            documents = self._collections[collection]
            current = documents.get(record_id)
            now = utcnow()
            if create:
                if current is not None:
                    raise StaleStateConflict("duplicate", detail=f"{collection}/{record_id} already exists")
                document = copy.deepcopy(fields)
                document.setdefault("created_at", now)
                document["updated_at"] = now
                document["revision"] = 1
                documents[record_id] = document
                return copy.deepcopy(document)
            if current is None:
                raise NotFound(collection, record_id)
            mismatched = {
                key: current.get(key)
                for key, value in expected.items()
                if current.get(key, _MISSING) != value
            }
            if mismatched:
                raise StaleStateConflict(
                    "precondition_failed",
                    detail=f"{collection}/{record_id} precondition failed on {sorted(mismatched)}",
                )
            current.update(copy.deepcopy(fields))
            current["updated_at"] = now
            current["revision"] = int(current.get("revision", 0)) + 1
            return copy.deepcopy(current)

    async def _delete_by_id(self, collection: str, record_id: str, expected: dict[str, Any]) -> bool:
        async with self._lock:
            documents = self._collections[collection]
            current = documents.get(record_id)
            if current is None:
                return False
            if expected and not _matches(current, expected):
                raise StaleStateConflict("precondition_failed", detail=f"{collection}/{record_id} changed")
            del documents[record_id]
            return True


def build_store(settings: Settings) -> Store:
    logger.info("document_store_in_memory", environment=settings.environment)
    return InMemoryStore()


__all__ = ["ACTORS", "CATEGORIES", "InMemoryStore", "REQUESTS", "Store", "build_store"]
