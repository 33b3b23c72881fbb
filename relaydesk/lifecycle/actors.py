from __future__ import annotations

from typing import Any, Iterable

from ..core.errors import NotFound, StaleStateConflict, ValidationFailure
from ..core.logging import get_logger
from .models import ROLE_RANK, Actor, ActorProfile, ActorRole, utcnow
from .store import ACTORS, Store

logger = get_logger(name=__name__)


class ActorDirectory:
    """Registers actors and maintains their assignment back-reference."""

    def __init__(
        self,
        store: Store,
        *,
        default_locale: str = "ru",
        bootstrap_reviewers: Iterable[str] = (),
    ) -> None:
        self._store = store
        self._default_locale = default_locale
        self._bootstrap_reviewers = frozenset(bootstrap_reviewers)

    async def get(self, actor_id: str) -> Actor | None:
        document = await self._store.find_by_id(ACTORS, actor_id)
        return None if document is None else Actor.from_document(document)

    async def require(self, actor_id: str) -> Actor:
        actor = await self.get(actor_id)
        if actor is None:
            raise NotFound("actor", actor_id)
        return actor

    async def get_or_register(self, actor_id: str, profile: ActorProfile | None = None) -> Actor:
        existing = await self.get(actor_id)
        bootstrap = actor_id in self._bootstrap_reviewers
        if existing is not None:
            if bootstrap and existing.role is not ActorRole.REVIEWER:
                return await self._bootstrap(existing)
            return existing
        profile = profile or ActorProfile()
        now = utcnow()
        actor = Actor(
            actor_id=actor_id,
            role=ActorRole.REVIEWER if bootstrap else ActorRole.REQUESTER,
            locale=profile.locale or self._default_locale,
            display_name=profile.display_name,
            username=profile.username,
            created_at=now,
            updated_at=now,
        )
        try:
            document = await self._store.save(ACTORS, actor_id, actor.to_document(), create=True)
        except StaleStateConflict:
            # A concurrent event for the same actor registered it first.
            return await self.require(actor_id)
        logger.info("actor_registered", actor_id=actor_id, role=actor.role.value)
        return Actor.from_document(document)

    async def set_role(self, actor_id: str, role: ActorRole) -> Actor:
        actor = await self.require(actor_id)
        if ROLE_RANK[role] < ROLE_RANK[actor.role]:
            # Demotion has no defined policy; roles only move up.
            raise ValidationFailure("role_demotion_unsupported")
        if role is actor.role:
            return actor
        document = await self._store.save(ACTORS, actor_id, {"role": role.value}, expected={"role": actor.role.value})
        logger.info("actor_role_changed", actor_id=actor_id, previous=actor.role.value, role=role.value)
        return Actor.from_document(document)

    async def _bootstrap(self, actor: Actor) -> Actor:
        try:
            document = await self._store.save(
                ACTORS, actor.actor_id, {"role": ActorRole.REVIEWER.value}, expected={"role": actor.role.value}
            )
        except StaleStateConflict:
            return await self.require(actor.actor_id)
        logger.info("actor_bootstrapped_reviewer", actor_id=actor.actor_id, previous=actor.role.value)
        return Actor.from_document(document)

    async def set_banned(self, actor_id: str, banned: bool) -> Actor:
        await self.require(actor_id)
        document = await self._store.save(ACTORS, actor_id, {"banned": banned})
        logger.info("actor_ban_updated", actor_id=actor_id, banned=banned)
        return Actor.from_document(document)

    async def set_locale(self, actor_id: str, locale: str) -> Actor:
        await self.require(actor_id)
        document = await self._store.save(ACTORS, actor_id, {"locale": locale})
        return Actor.from_document(document)

    async def bind_assignment(self, actor: Actor, request_id: str) -> Actor:
        """Point ``actor`` at ``request_id`` if it holds nothing yet.

        Promotes a requester to fulfiller in the same write. Raises
        :class:`StaleStateConflict` when the actor changed since it was read.
        """
        fields: dict[str, Any] = {"current_assignment_id": request_id}
        if actor.role is ActorRole.REQUESTER:
            fields["role"] = ActorRole.FULFILLER.value
        document = await self._store.save(
            ACTORS,
            actor.actor_id,
            fields,
            expected={"current_assignment_id": None, "role": actor.role.value},
        )
        bound = Actor.from_document(document)
        if bound.role is not actor.role:
            logger.info("actor_auto_promoted", actor_id=actor.actor_id, role=bound.role.value)
        return bound

    async def release_assignment(self, actor_id: str, request_id: str) -> Actor | None:
        """Clear the back-reference if it still points at ``request_id``."""
        try:
            document = await self._store.save(
                ACTORS,
                actor_id,
                {"current_assignment_id": None},
                expected={"current_assignment_id": request_id},
            )
        except (StaleStateConflict, NotFound):
            logger.warning("actor_assignment_release_skipped", actor_id=actor_id, request_id=request_id)
            return None
        return Actor.from_document(document)


__all__ = ["ActorDirectory"]
