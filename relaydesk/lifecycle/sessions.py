"""Ephemeral per-actor conversation state.

Sessions never carry durable facts: losing one degrades to "no active flow".
Each role has its own step enum and session variant; an absent session is the
idle state of every machine.
"""

from __future__ import annotations

import asyncio
import json
from contextlib import asynccontextmanager
from dataclasses import dataclass, replace
from enum import Enum
from typing import Any, AsyncIterator, Mapping, Union

from redis.asyncio import Redis

from ..core.config import Settings
from ..core.logging import get_logger
from ..core.metrics import set_active_sessions

logger = get_logger(name=__name__)


class RequesterStep(str, Enum):
    SELECTING_CATEGORY = "selecting_category"
    ENTERING_REQUEST = "entering_request"
    CONFIRMING_REQUEST = "confirming_request"


class FulfillerStep(str, Enum):
    WRITING_ANSWER = "writing_answer"
    CONFIRMING_ANSWER = "confirming_answer"


class ReviewerStep(str, Enum):
    ENTERING_DECLINE_REASON = "entering_decline_reason"
    ENTERING_ANSWER_DECLINE_REASON = "entering_answer_decline_reason"


@dataclass(slots=True, frozen=True)
class RequesterSession:
    step: RequesterStep
    category_id: str | None = None
    draft_text: str | None = None

    flow = "requester"


@dataclass(slots=True, frozen=True)
class FulfillerSession:
    step: FulfillerStep
    request_id: str
    draft_answer: str | None = None

    flow = "fulfiller"


@dataclass(slots=True, frozen=True)
class ReviewerSession:
    step: ReviewerStep
    request_id: str

    flow = "reviewer"


Session = Union[RequesterSession, FulfillerSession, ReviewerSession]

_VARIANTS: dict[str, tuple[type, type[Enum]]] = {
    "requester": (RequesterSession, RequesterStep),
    "fulfiller": (FulfillerSession, FulfillerStep),
    "reviewer": (ReviewerSession, ReviewerStep),
}


def session_to_payload(session: Session) -> dict[str, Any]:
    payload: dict[str, Any] = {"flow": session.flow, "step": session.step.value}
    if isinstance(session, RequesterSession):
        payload.update(category_id=session.category_id, draft_text=session.draft_text)
    elif isinstance(session, FulfillerSession):
        payload.update(request_id=session.request_id, draft_answer=session.draft_answer)
    else:
        payload.update(request_id=session.request_id)
    return payload


def session_from_payload(payload: Mapping[str, Any]) -> Session:
    flow = payload.get("flow")
    if flow not in _VARIANTS:
        raise ValueError(f"unknown session flow: {flow!r}")
    variant, steps = _VARIANTS[flow]
    fields = {key: value for key, value in payload.items() if key not in {"flow", "step"}}
    return variant(step=steps(payload["step"]), **fields)


def with_step(session: Session, step: Enum, **changes: Any) -> Session:
    return replace(session, step=step, **changes)


class SessionStore:
    """Contract for session backends.

    ``lock`` serializes overlapping events for one actor (double taps,
    duplicate deliveries) so a read-modify-write of that actor's session is
    never lost. Locks are per key; there is no global lock.
    """

    async def get(self, actor_id: str) -> Session | None:
        raise NotImplementedError

    async def set(self, actor_id: str, session: Session) -> None:
        raise NotImplementedError

    async def clear(self, actor_id: str) -> None:
        raise NotImplementedError

    def lock(self, actor_id: str):  # pragma: no cover - interface
        raise NotImplementedError

    async def compare_and_set(self, actor_id: str, expected: Session | None, new: Session | None) -> bool:
        async with self.lock(actor_id):
            return await self.swap(actor_id, expected, new)

    async def swap(self, actor_id: str, expected: Session | None, new: Session | None) -> bool:
        """Replace the session only if it still equals ``expected``.

        The caller must already hold ``lock(actor_id)``.
        """
        current = await self.get(actor_id)
        if current != expected:
            return False
        if new is None:
            await self.clear(actor_id)
        else:
            await self.set(actor_id, new)
        return True

    async def close(self) -> None:
        return None


class InMemorySessionStore(SessionStore):
    def __init__(self) -> None:
        self._sessions: dict[str, Session] = {}
        self._locks: dict[str, asyncio.Lock] = {}
        self._lock_users: dict[str, int] = {}

    async def get(self, actor_id: str) -> Session | None:
        return self._sessions.get(actor_id)

    async def set(self, actor_id: str, session: Session) -> None:
        self._sessions[actor_id] = session
        set_active_sessions(len(self._sessions))

    async def clear(self, actor_id: str) -> None:
        self._sessions.pop(actor_id, None)
        set_active_sessions(len(self._sessions))

    @asynccontextmanager
    async def lock(self, actor_id: str) -> AsyncIterator[None]:
        lock = self._locks.setdefault(actor_id, asyncio.Lock())
        self._lock_users[actor_id] = self._lock_users.get(actor_id, 0) + 1
        try:
            async with lock:
                yield
        finally:
            self._lock_users[actor_id] -= 1
            if not self._lock_users[actor_id]:
                del self._lock_users[actor_id]
                del self._locks[actor_id]

    def __len__(self) -> int:
        return len(self._sessions)


class RedisSessionStore(SessionStore):
    def __init__(self, client: Redis, *, namespace: str = "relaydesk:session", lock_timeout: float = 30.0) -> None:
        self._client = client
        self._namespace = namespace.rstrip(":")
        self._lock_timeout = lock_timeout

    @classmethod
    def from_settings(cls, settings: Settings) -> "RedisSessionStore":
        client = Redis.from_url(str(settings.sessions.redis_url))
        return cls(
            client,
            namespace=settings.sessions.namespace,
            lock_timeout=settings.sessions.lock_timeout_seconds,
        )

    def _key(self, actor_id: str) -> str:
        return f"{self._namespace}:{actor_id}"

    async def get(self, actor_id: str) -> Session | None:
        raw = await self._client.get(self._key(actor_id))
        if raw is None:
            return None
        try:
            return session_from_payload(json.loads(raw))
        except (ValueError, KeyError, TypeError) as exc:
            logger.warning("session_payload_invalid", actor_id=actor_id, error=str(exc))
            await self.clear(actor_id)
            return None

    async def set(self, actor_id: str, session: Session) -> None:
        await self._client.set(self._key(actor_id), json.dumps(session_to_payload(session)))

    async def clear(self, actor_id: str) -> None:
        await self._client.delete(self._key(actor_id))

    @asynccontextmanager
    async def lock(self, actor_id: str) -> AsyncIterator[None]:
        async with self._client.lock(f"{self._key(actor_id)}:lock", timeout=self._lock_timeout):
            yield

    async def close(self) -> None:
        await self._client.aclose()


def build_session_store(settings: Settings) -> SessionStore:
    if settings.sessions.backend == "redis" and settings.environment != "test":
        logger.info("session_store_redis_enabled", namespace=settings.sessions.namespace)
        return RedisSessionStore.from_settings(settings)
    logger.info("session_store_in_memory", environment=settings.environment)
    return InMemorySessionStore()


__all__ = [
    "FulfillerSession",
    "FulfillerStep",
    "InMemorySessionStore",
    "RedisSessionStore",
    "RequesterSession",
    "RequesterStep",
    "ReviewerSession",
    "ReviewerStep",
    "Session",
    "SessionStore",
    "build_session_store",
    "session_from_payload",
    "session_to_payload",
    "with_step",
]
