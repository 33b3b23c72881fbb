from __future__ import annotations

import itertools

import pytest

from relaydesk.core.errors import (
    AlreadyHandled,
    InvalidTransition,
    NotFound,
    StaleStateConflict,
    StoreFailure,
    ValidationFailure,
)
from relaydesk.lifecycle.models import ALLOWED_TRANSITIONS, RequestStatus
from relaydesk.lifecycle.repository import RequestRepository
from relaydesk.lifecycle.store import REQUESTS, InMemoryStore

from tests.helpers.stubs import FailingStore


@pytest.mark.asyncio
async def test_save_applies_only_when_expected_fields_match() -> None:
    store = InMemoryStore()
    created = await store.save(REQUESTS, "r1", {"request_id": "r1", "status": "pending"}, create=True)
    assert created["revision"] == 1

    updated = await store.save(REQUESTS, "r1", {"status": "approved"}, expected={"status": "pending"})
    assert updated["status"] == "approved"
    assert updated["revision"] == 2

    with pytest.raises(StaleStateConflict) as excinfo:
        await store.save(REQUESTS, "r1", {"status": "declined"}, expected={"status": "pending"})
    assert excinfo.value.reason == "precondition_failed"
    assert (await store.find_by_id(REQUESTS, "r1"))["status"] == "approved"


@pytest.mark.asyncio
async def test_create_refuses_existing_record_and_update_refuses_missing_one() -> None:
    store = InMemoryStore()
    await store.save(REQUESTS, "r1", {"request_id": "r1"}, create=True)
    with pytest.raises(StaleStateConflict):
        await store.save(REQUESTS, "r1", {"request_id": "r1"}, create=True)
    with pytest.raises(NotFound):
        await store.save(REQUESTS, "missing", {"status": "approved"})


@pytest.mark.asyncio
async def test_find_where_treats_collections_as_membership() -> None:
    store = InMemoryStore()
    for record_id, state in (("a", "pending"), ("b", "approved"), ("c", "closed")):
        await store.save(REQUESTS, record_id, {"request_id": record_id, "status": state}, create=True)

    found = await store.find_where(REQUESTS, status={"pending", "closed"})
    assert sorted(document["request_id"] for document in found) == ["a", "c"]


@pytest.mark.asyncio
async def test_returned_documents_are_copies() -> None:
    store = InMemoryStore()
    await store.save(REQUESTS, "r1", {"request_id": "r1", "status": "pending"}, create=True)
    document = await store.find_by_id(REQUESTS, "r1")
    document["status"] = "closed"
    assert (await store.find_by_id(REQUESTS, "r1"))["status"] == "pending"


@pytest.mark.asyncio
async def test_backend_errors_surface_as_store_failure() -> None:
    store = FailingStore()
    store.fail_saves.add(REQUESTS)
    with pytest.raises(StoreFailure) as excinfo:
        await store.save(REQUESTS, "r1", {"request_id": "r1"}, create=True)
    assert excinfo.value.tag == "failed:store"


@pytest.mark.asyncio
async def test_only_lifecycle_edges_are_applied() -> None:
    store = InMemoryStore()
    repository = RequestRepository(store)
    request = await repository.create(requester_id="u1", category_id="c1", text="help")

    for source, target in itertools.product(RequestStatus, RequestStatus):
        if target in ALLOWED_TRANSITIONS[source]:
            continue
        with pytest.raises(InvalidTransition):
            await repository.transition(request.request_id, source=source, target=target)

    stored = await repository.require(request.request_id)
    assert stored.status is RequestStatus.PENDING
    assert stored.revision == request.revision


@pytest.mark.asyncio
async def test_transition_from_stale_status_is_already_handled() -> None:
    repository = RequestRepository(InMemoryStore())
    request = await repository.create(requester_id="u1", category_id="c1", text="help")
    await repository.transition(request.request_id, source=RequestStatus.PENDING, target=RequestStatus.APPROVED)

    with pytest.raises(AlreadyHandled):
        await repository.transition(request.request_id, source=RequestStatus.PENDING, target=RequestStatus.DECLINED)
    assert (await repository.require(request.request_id)).status is RequestStatus.APPROVED


@pytest.mark.asyncio
async def test_held_status_requires_fulfiller_and_release_clears_it() -> None:
    repository = RequestRepository(InMemoryStore())
    request = await repository.create(requester_id="u1", category_id="c1", text="help")
    await repository.transition(request.request_id, source=RequestStatus.PENDING, target=RequestStatus.APPROVED)

    with pytest.raises(InvalidTransition):
        await repository.transition(request.request_id, source=RequestStatus.APPROVED, target=RequestStatus.ASSIGNED)

    assigned = await repository.transition(
        request.request_id,
        source=RequestStatus.APPROVED,
        target=RequestStatus.ASSIGNED,
        changes={"fulfiller_id": "f1"},
    )
    assert assigned.fulfiller_id == "f1"

    released = await repository.transition(
        request.request_id,
        source=RequestStatus.ASSIGNED,
        target=RequestStatus.APPROVED,
        expected={"fulfiller_id": "f1"},
    )
    assert released.fulfiller_id is None


@pytest.mark.asyncio
async def test_create_rejects_blank_text() -> None:
    repository = RequestRepository(InMemoryStore())
    with pytest.raises(ValidationFailure) as excinfo:
        await repository.create(requester_id="u1", category_id="c1", text="   ")
    assert excinfo.value.tag == "rejected:empty_text"


@pytest.mark.asyncio
async def test_fulfiller_history_survives_closing() -> None:
    repository = RequestRepository(InMemoryStore())
    request = await repository.create(requester_id="u1", category_id="c1", text="help")
    rid = request.request_id
    await repository.transition(rid, source=RequestStatus.PENDING, target=RequestStatus.APPROVED)
    await repository.transition(
        rid, source=RequestStatus.APPROVED, target=RequestStatus.ASSIGNED, changes={"fulfiller_id": "f1"}
    )
    await repository.transition(
        rid,
        source=RequestStatus.ASSIGNED,
        target=RequestStatus.ANSWERED,
        changes={"answer_text": "done", "answered_by": "f1"},
        expected={"fulfiller_id": "f1"},
    )
    await repository.transition(rid, source=RequestStatus.ANSWERED, target=RequestStatus.CLOSED)

    history = await repository.list_for_fulfiller("f1")
    assert [item.request_id for item in history] == [rid]
    assert history[0].fulfiller_id is None
    assert RequestRepository.count_by_status(history)[RequestStatus.CLOSED] == 1
