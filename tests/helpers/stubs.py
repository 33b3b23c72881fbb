from __future__ import annotations

import asyncio
import itertools
from typing import Any, Sequence

from relaydesk.core.config import Settings, get_settings
from relaydesk.dependencies import Services, build_services
from relaydesk.lifecycle.models import ActorRole, MessageRef, Request, RequestStatus
from relaydesk.lifecycle.sessions import InMemorySessionStore, SessionStore
from relaydesk.lifecycle.store import ACTORS, InMemoryStore, Store
from relaydesk.services.notifications import InlineAction

REQUEST_TEXT = (
    "Please review the supply contract draft attached to our previous message. "
    "We need to know whether the liability clause protects us if the supplier delivers late "
    "and what changes you would suggest before signing."
)
REVIEWER_CHANNEL = "reviewers"
FULFILLER_CHANNEL = "fulfillers"


class RecordingNotifier:
    """In-memory notifier that remembers every send and edit."""

    def __init__(self, *, fail_channels: Sequence[str] = (), fail_edits: bool = False) -> None:
        self.sent: list[tuple[str, str, tuple[InlineAction, ...]]] = []
        self.edited: list[tuple[MessageRef, str, tuple[InlineAction, ...]]] = []
        self.fail_channels = set(fail_channels)
        self.fail_edits = fail_edits
        self.closed = False
        self._sequence = itertools.count(100)

    async def send(self, channel: str, text: str, actions: Sequence[InlineAction] = ()) -> MessageRef:
        if channel in self.fail_channels:
            raise RuntimeError(f"channel {channel} unavailable")
        self.sent.append((channel, text, tuple(actions)))
        return MessageRef(channel=channel, message_id=str(next(self._sequence)))

    async def edit(self, ref: MessageRef, text: str, actions: Sequence[InlineAction] = ()) -> None:
        if self.fail_edits:
            raise RuntimeError("edit unavailable")
        self.edited.append((ref, text, tuple(actions)))

    async def close(self) -> None:
        self.closed = True

    def sent_to(self, channel: str) -> list[tuple[str, str, tuple[InlineAction, ...]]]:
        return [entry for entry in self.sent if entry[0] == channel]


class FailingStore(InMemoryStore):
    """InMemoryStore that raises backend errors on demand."""

    def __init__(self) -> None:
        super().__init__()
        self.fail_saves: set[str] = set()
        self.fail_reads = False

    async def _save(self, collection, record_id, fields, expected, create):  # type: ignore[override]
        if collection in self.fail_saves:
            raise ConnectionError(f"{collection} backend unavailable")
        return await super()._save(collection, record_id, fields, expected, create)

    async def _find_by_id(self, collection, record_id):  # type: ignore[override]
        if self.fail_reads:
            raise ConnectionError("backend unavailable")
        return await super()._find_by_id(collection, record_id)


class YieldingStore(InMemoryStore):
    """InMemoryStore that hands control back to the loop around every call.

    Concurrent events then interleave between their read and their guarded
    write instead of running each event to completion in turn.
    """

    async def _find_by_id(self, collection, record_id):  # type: ignore[override]
        await asyncio.sleep(0)
        return await super()._find_by_id(collection, record_id)

    async def _find_where(self, collection, criteria):  # type: ignore[override]
        await asyncio.sleep(0)
        return await super()._find_where(collection, criteria)

    async def _save(self, collection, record_id, fields, expected, create):  # type: ignore[override]
        await asyncio.sleep(0)
        return await super()._save(collection, record_id, fields, expected, create)


class _FakeRedisLock:
    def __init__(self, owner: "FakeRedis", name: str) -> None:
        self._owner = owner
        self._name = name

    async def __aenter__(self) -> "_FakeRedisLock":
        self._owner.lock_calls.append(self._name)
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        return None


class FakeRedis:
    """Implements the slice of redis.asyncio.Redis the session store uses."""

    def __init__(self) -> None:
        self.data: dict[str, str] = {}
        self.lock_calls: list[str] = []
        self.closed = False

    async def get(self, key: str) -> str | None:
        return self.data.get(key)

    async def set(self, key: str, value: str) -> None:
        self.data[key] = value

    async def delete(self, key: str) -> None:
        self.data.pop(key, None)

    def lock(self, name: str, timeout: float | None = None) -> _FakeRedisLock:  # noqa: ARG002
        return _FakeRedisLock(self, name)

    async def aclose(self) -> None:
        self.closed = True


def make_settings(*, reviewers: Sequence[str] = (), **conversation: Any) -> Settings:
    overrides: dict[str, Any] = {"environment": "test"}
    if conversation:
        overrides["conversation"] = conversation
    if reviewers:
        overrides["reviewers"] = {"bootstrap_ids": list(reviewers)}
    return get_settings(overrides)


def make_services(
    *,
    store: Store | None = None,
    notifier: RecordingNotifier | None = None,
    sessions: SessionStore | None = None,
    reviewers: Sequence[str] = (),
    **conversation: Any,
) -> tuple[Services, RecordingNotifier]:
    notifier = notifier or RecordingNotifier()
    services = build_services(
        make_settings(reviewers=reviewers, **conversation),
        store=store or InMemoryStore(),
        sessions=InMemorySessionStore() if sessions is None else sessions,
        notifier=notifier,
    )
    return services, notifier


async def promote(services: Services, actor_id: str, role: ActorRole) -> None:
    await services.actors.get_or_register(actor_id)
    await services.actors.set_role(actor_id, role)


async def seed_category(services: Services, name: str = "Contracts", tag: str = "contracts") -> str:
    category = await services.categories.create(name=name, tag=tag)
    return category.category_id


async def submit_request(services: Services, requester_id: str = "requester-1", category: str = "Contracts") -> Request:
    """Drive the requester flow end to end and return the pending request."""
    engine = services.engine
    await engine.handle_action("ask", None, requester_id)
    await engine.submit_text(requester_id, category)
    await engine.submit_text(requester_id, REQUEST_TEXT)
    outcome = await engine.handle_action("confirm", None, requester_id)
    assert outcome.result == "ok", outcome.result
    requests = await services.repository.list_for_requester(requester_id)
    return requests[0]


async def approved_request(
    services: Services,
    *,
    requester_id: str = "requester-1",
    reviewer_id: str = "reviewer-1",
) -> Request:
    if await services.actors.get(reviewer_id) is None:
        await promote(services, reviewer_id, ActorRole.REVIEWER)
    categories = await services.categories.list()
    if not categories:
        await seed_category(services)
    request = await submit_request(services, requester_id)
    outcome = await services.engine.handle_action("approve_request", request.request_id, reviewer_id)
    assert outcome.result == "ok", outcome.result
    return await services.repository.require(request.request_id)


async def answered_request(
    services: Services,
    *,
    fulfiller_id: str = "fulfiller-1",
    answer: str = "The liability clause is fine.",
) -> Request:
    request = await approved_request(services)
    engine = services.engine
    assert (await engine.handle_action("take_request", request.request_id, fulfiller_id)).result == "ok"
    await engine.submit_text(fulfiller_id, answer)
    outcome = await engine.handle_action("confirm", request.request_id, fulfiller_id)
    assert outcome.result == "ok", outcome.result
    stored = await services.repository.require(request.request_id)
    assert stored.status is RequestStatus.ANSWERED
    return stored


async def assert_assignment_invariant(services: Services) -> None:
    """current_assignment_id is set iff exactly one held request names the actor."""
    actors = await services.store.find_where(ACTORS)
    for document in actors:
        actor_id = document["actor_id"]
        held = await services.repository.list_held_by(actor_id)
        pointer = document.get("current_assignment_id")
        if pointer is None:
            assert held == [], f"{actor_id} holds {[request.request_id for request in held]} without a pointer"
        else:
            assert [request.request_id for request in held] == [pointer], f"{actor_id} pointer mismatch"


__all__ = [
    "FULFILLER_CHANNEL",
    "FailingStore",
    "FakeRedis",
    "REQUEST_TEXT",
    "REVIEWER_CHANNEL",
    "RecordingNotifier",
    "YieldingStore",
    "answered_request",
    "approved_request",
    "assert_assignment_invariant",
    "make_services",
    "make_settings",
    "promote",
    "seed_category",
    "submit_request",
]
