from __future__ import annotations

from ..core.errors import NotFound, ValidationFailure
from ..core.logging import get_logger
from .models import Category, new_id
from .store import CATEGORIES, REQUESTS, Store

logger = get_logger(name=__name__)


class CategoryCatalog:
    def __init__(self, store: Store) -> None:
        self._store = store

    async def list(self) -> list[Category]:
        documents = await self._store.find_where(CATEGORIES)
        return sorted((Category.from_document(doc) for doc in documents), key=lambda category: category.name)

    async def get(self, category_id: str) -> Category | None:
        document = await self._store.find_by_id(CATEGORIES, category_id)
        return None if document is None else Category.from_document(document)

    async def find_by_name(self, name: str) -> Category | None:
        documents = await self._store.find_where(CATEGORIES, name=name.strip())
        return Category.from_document(documents[0]) if documents else None

    async def create(self, *, name: str, tag: str = "") -> Category:
        name = name.strip()
        if not name:
            raise ValidationFailure("empty_category_name")
        if await self.find_by_name(name) is not None:
            raise ValidationFailure("category_exists")
        category = Category(category_id=new_id(), name=name, tag=_normalize_tag(tag))
        document = await self._store.save(CATEGORIES, category.category_id, category.to_document(), create=True)
        logger.info("category_created", category_id=category.category_id, name=name)
        return Category.from_document(document)

    async def rename(self, category_id: str, *, name: str | None = None, tag: str | None = None) -> Category:
        current = await self.get(category_id)
        if current is None:
            raise NotFound("category", category_id)
        fields: dict[str, str] = {}
        if name is not None and name.strip() and name.strip() != current.name:
            clash = await self.find_by_name(name)
            if clash is not None and clash.category_id != category_id:
                raise ValidationFailure("category_exists")
            fields["name"] = name.strip()
        if tag is not None:
            fields["tag"] = _normalize_tag(tag)
        if not fields:
            return current
        document = await self._store.save(CATEGORIES, category_id, fields)
        logger.info("category_updated", category_id=category_id, fields=sorted(fields))
        return Category.from_document(document)

    async def delete(self, category_id: str) -> None:
        if await self.get(category_id) is None:
            raise NotFound("category", category_id)
        references = await self._store.find_where(REQUESTS, category_id=category_id)
        if references:
            raise ValidationFailure("category_in_use")
        await self._store.delete_by_id(CATEGORIES, category_id)
        logger.info("category_deleted", category_id=category_id)


def _normalize_tag(tag: str) -> str:
    tag = tag.strip()
    if tag and not tag.startswith("#"):
        tag = f"#{tag}"
    return tag


__all__ = ["CategoryCatalog"]
