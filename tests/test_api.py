from __future__ import annotations

from contextlib import asynccontextmanager

import httpx
import pytest

from relaydesk.dependencies import get_services
from relaydesk.lifecycle.models import ActorRole
from relaydesk.main import app, settings

from tests.helpers.stubs import REQUEST_TEXT, make_services, promote

PREFIX = settings.api_v1_prefix


@asynccontextmanager
async def _client(services):
    async def override():
        yield services

    app.dependency_overrides[get_services] = override
    transport = httpx.ASGITransport(app=app)
    try:
        async with httpx.AsyncClient(transport=transport, base_url="http://testserver") as client:
            yield client
    finally:
        await transport.aclose()
        app.dependency_overrides.pop(get_services, None)


def _as(actor_id: str) -> dict[str, str]:
    return {"X-Actor-Id": actor_id}


@pytest.mark.asyncio
async def test_conversation_over_http() -> None:
    services, notifier = make_services()
    await promote(services, "admin", ActorRole.REVIEWER)

    async with _client(services) as client:
        created = await client.post(
            f"{PREFIX}/categories", json={"name": "Contracts", "tag": "contracts"}, headers=_as("admin")
        )
        assert created.status_code == 201
        assert created.json()["tag"] == "#contracts"

        started = await client.post(f"{PREFIX}/events/action", json={"action": "ask"}, headers=_as("u1"))
        assert started.status_code == 200
        body = started.json()
        assert body["result"] == "ok"
        assert body["session"]["flow"] == "requester"
        assert body["messages"][0]["channel"] == "u1"

        await client.post(f"{PREFIX}/events/text", json={"text": "Contracts"}, headers=_as("u1"))
        await client.post(f"{PREFIX}/events/text", json={"text": REQUEST_TEXT}, headers=_as("u1"))
        confirmed = await client.post(f"{PREFIX}/events/action", json={"action": "confirm"}, headers=_as("u1"))
        assert confirmed.json()["result"] == "ok"
        assert confirmed.json()["session"] is None

        mine = await client.get(f"{PREFIX}/requests", headers=_as("u1"))
        assert [item["status"] for item in mine.json()] == ["pending"]
        request_id = mine.json()[0]["request_id"]

        approved = await client.post(
            f"{PREFIX}/events/action",
            json={"action": "approve_request", "request_id": request_id},
            headers=_as("admin"),
        )
        assert approved.json()["result"] == "ok"

        pool = await client.get(f"{PREFIX}/requests", params={"status_filter": "approved"}, headers=_as("admin"))
        assert [item["request_id"] for item in pool.json()] == [request_id]

        hidden = await client.get(f"{PREFIX}/requests/{request_id}", headers=_as("stranger"))
        assert hidden.status_code == 404
        visible = await client.get(f"{PREFIX}/requests/{request_id}", headers=_as("u1"))
        assert visible.json()["status"] == "approved"

    assert notifier.sent_to("fulfillers")


@pytest.mark.asyncio
async def test_event_outcomes_carry_result_tags() -> None:
    services, _ = make_services()

    async with _client(services) as client:
        unknown = await client.post(
            f"{PREFIX}/events/action", json={"action": "launch_rocket", "request_id": "r1"}, headers=_as("u1")
        )
        assert unknown.status_code == 200
        assert unknown.json()["result"] == "ignored"
        assert unknown.json()["handled"] is False

        refused = await client.post(
            f"{PREFIX}/events/action",
            json={"action": "approve_request", "request_id": "r1"},
            headers=_as("u1"),
        )
        assert refused.json()["result"] == "rejected:not_permitted"

        missing_header = await client.post(f"{PREFIX}/events/text", json={"text": "hi"})
        assert missing_header.status_code == 422


@pytest.mark.asyncio
async def test_category_management_requires_reviewer() -> None:
    services, _ = make_services()
    await promote(services, "admin", ActorRole.REVIEWER)

    async with _client(services) as client:
        forbidden = await client.post(f"{PREFIX}/categories", json={"name": "Taxes"}, headers=_as("u1"))
        assert forbidden.status_code == 403
        assert forbidden.json()["detail"] == "rejected:not_permitted"

        created = await client.post(f"{PREFIX}/categories", json={"name": "Taxes"}, headers=_as("admin"))
        category_id = created.json()["category_id"]

        duplicate = await client.post(f"{PREFIX}/categories", json={"name": "Taxes"}, headers=_as("admin"))
        assert duplicate.status_code == 409

        renamed = await client.patch(
            f"{PREFIX}/categories/{category_id}", json={"name": "Tax law"}, headers=_as("admin")
        )
        assert renamed.json()["name"] == "Tax law"

        listed = await client.get(f"{PREFIX}/categories", headers=_as("u1"))
        assert [item["name"] for item in listed.json()] == ["Tax law"]

        deleted = await client.delete(f"{PREFIX}/categories/{category_id}", headers=_as("admin"))
        assert deleted.status_code == 204
        gone = await client.delete(f"{PREFIX}/categories/{category_id}", headers=_as("admin"))
        assert gone.status_code == 404


@pytest.mark.asyncio
async def test_actor_administration() -> None:
    services, _ = make_services()
    await promote(services, "admin", ActorRole.REVIEWER)
    await services.actors.get_or_register("u1")

    async with _client(services) as client:
        promoted = await client.patch(f"{PREFIX}/actors/u1", json={"role": "fulfiller"}, headers=_as("admin"))
        assert promoted.status_code == 200
        assert promoted.json()["role"] == "fulfiller"

        demoted = await client.patch(f"{PREFIX}/actors/u1", json={"role": "requester"}, headers=_as("admin"))
        assert demoted.status_code == 400
        assert demoted.json()["detail"] == "rejected:role_demotion_unsupported"

        banned = await client.patch(f"{PREFIX}/actors/u1", json={"banned": True}, headers=_as("admin"))
        assert banned.json()["banned"] is True

        missing = await client.patch(f"{PREFIX}/actors/nobody", json={"banned": True}, headers=_as("admin"))
        assert missing.status_code == 404

        refused = await client.post(f"{PREFIX}/events/text", json={"text": "Задать вопрос"}, headers=_as("u1"))
        assert refused.json()["result"] == "rejected:banned"


@pytest.mark.asyncio
async def test_root_and_metrics_endpoints() -> None:
    services, _ = make_services()
    await services.engine.handle_action("launch_rocket", None, "u1")

    async with _client(services) as client:
        root = await client.get("/")
        metrics = await client.get("/metrics")

    assert root.json() == {"message": "RelayDesk running"}
    assert metrics.status_code == 200
    assert "relaydesk_conversation_outcomes_total" in metrics.text


@pytest.mark.asyncio
async def test_actor_update_authorizes_the_caller_not_the_target() -> None:
    services, _ = make_services()
    await promote(services, "admin", ActorRole.REVIEWER)
    await services.actors.get_or_register("u1")

    async with _client(services) as client:
        refused = await client.patch(f"{PREFIX}/actors/admin", json={"banned": True}, headers=_as("u1"))
        assert refused.status_code == 403
        assert (await services.actors.require("admin")).banned is False

        allowed = await client.patch(f"{PREFIX}/actors/u1", json={"locale": "en"}, headers=_as("admin"))
        assert allowed.status_code == 200
        assert allowed.json()["locale"] == "en"
        assert (await services.actors.require("admin")).locale == "ru"
