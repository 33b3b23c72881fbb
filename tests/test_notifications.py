from __future__ import annotations

import json

import httpx
import pytest

from relaydesk.lifecycle.models import MessageRef, RequestStatus
from relaydesk.services.notifications import (
    ActionName,
    InlineAction,
    LoggingNotifier,
    NotificationError,
    TelegramNotifier,
    build_notifier,
)

from tests.helpers.stubs import (
    FULFILLER_CHANNEL,
    RecordingNotifier,
    approved_request,
    make_services,
    make_settings,
)


def _telegram(handler) -> tuple[TelegramNotifier, httpx.AsyncClient]:
    client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return TelegramNotifier(token="123:abc", api_base="https://bot.test/", client=client), client


@pytest.mark.asyncio
async def test_telegram_send_posts_inline_keyboard() -> None:
    seen: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(200, json={"ok": True, "result": {"message_id": 42}})

    notifier, client = _telegram(handler)
    action = InlineAction(ActionName.TAKE, "r1", "Take")

    ref = await notifier.send("-100", "New request", [action])

    assert ref == MessageRef(channel="-100", message_id="42")
    assert str(seen[0].url) == "https://bot.test/bot123:abc/sendMessage"
    payload = json.loads(seen[0].content)
    assert payload["chat_id"] == "-100"
    assert payload["reply_markup"] == {"inline_keyboard": [[{"text": "Take", "callback_data": "take_request:r1"}]]}
    await client.aclose()


@pytest.mark.asyncio
async def test_telegram_edit_clears_keyboard() -> None:
    seen: list[dict] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(json.loads(request.content))
        return httpx.Response(200, json={"ok": True, "result": True})

    notifier, client = _telegram(handler)

    await notifier.edit(MessageRef(channel="-100", message_id="42"), "Closed")

    assert seen[0]["message_id"] == 42
    assert seen[0]["reply_markup"] == {"inline_keyboard": []}
    await client.aclose()


@pytest.mark.asyncio
async def test_telegram_error_body_raises() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, json={"ok": False, "description": "Bad Request: chat not found"})

    notifier, client = _telegram(handler)

    with pytest.raises(NotificationError, match="chat not found"):
        await notifier.send("-100", "hello")
    await client.aclose()


@pytest.mark.asyncio
async def test_logging_notifier_issues_sequential_refs() -> None:
    notifier = LoggingNotifier()
    first = await notifier.send("chat", "one")
    second = await notifier.send("chat", "two")
    assert (first.message_id, second.message_id) == ("1", "2")
    await notifier.edit(first, "edited")
    await notifier.close()


def test_build_notifier_stays_local_in_tests() -> None:
    assert isinstance(build_notifier(make_settings()), LoggingNotifier)


@pytest.mark.asyncio
async def test_failed_broadcast_does_not_undo_approval() -> None:
    notifier = RecordingNotifier(fail_channels=[FULFILLER_CHANNEL])
    services, _ = make_services(notifier=notifier)

    request = await approved_request(services)

    assert request.status is RequestStatus.APPROVED
    assert request.offer_message is None


@pytest.mark.asyncio
async def test_failed_delivery_is_reported_on_outcome() -> None:
    notifier = RecordingNotifier(fail_channels=[FULFILLER_CHANNEL])
    services, _ = make_services(notifier=notifier)
    request = await approved_request(services)
    await services.engine.handle_action("take_request", request.request_id, "f1")

    outcome = await services.engine.handle_action("reject_assignment", request.request_id, "f1")

    assert outcome.result == "ok"
    undelivered = [message for message in outcome.messages if not message.delivered]
    assert [message.channel for message in undelivered] == [FULFILLER_CHANNEL]
    assert (await services.repository.require(request.request_id)).status is RequestStatus.APPROVED


@pytest.mark.asyncio
async def test_failed_edit_is_logged_and_ignored() -> None:
    notifier = RecordingNotifier(fail_edits=True)
    services, _ = make_services(notifier=notifier)
    request = await approved_request(services)

    outcome = await services.engine.handle_action("take_request", request.request_id, "f1")

    assert outcome.result == "ok"
    assert notifier.edited == []
    assert any(message.edit_of is not None and not message.delivered for message in outcome.messages)
