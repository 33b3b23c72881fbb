from __future__ import annotations

from enum import Enum

from ..lifecycle.models import Actor, ActorRole
from .errors import PermissionDenied


class Capability(str, Enum):
    REQUEST = "can_request"
    FULFILL = "can_fulfill"
    REVIEW = "can_review"


# Requesters may take offers; the first successful take promotes them.
ROLE_CAPABILITY_MAP: dict[ActorRole, frozenset[Capability]] = {
    ActorRole.REQUESTER: frozenset({Capability.REQUEST, Capability.FULFILL}),
    ActorRole.FULFILLER: frozenset({Capability.REQUEST, Capability.FULFILL}),
    ActorRole.REVIEWER: frozenset({Capability.REQUEST, Capability.FULFILL, Capability.REVIEW}),
}


def resolve_capabilities(actor: Actor | None) -> frozenset[Capability]:
    """Single role-resolution step consumed by every conversation machine."""
    if actor is None or actor.banned:
        return frozenset()
    return ROLE_CAPABILITY_MAP.get(actor.role, frozenset())


def require_capability(actor: Actor | None, capability: Capability) -> None:
    if actor is not None and actor.banned:
        raise PermissionDenied("banned")
    if capability not in resolve_capabilities(actor):
        raise PermissionDenied("not_permitted")


__all__ = ["Capability", "ROLE_CAPABILITY_MAP", "require_capability", "resolve_capabilities"]
