from __future__ import annotations

import pytest

from relaydesk.lifecycle.models import RequestStatus
from relaydesk.lifecycle.sessions import RequesterSession, RequesterStep

from tests.helpers.stubs import REQUEST_TEXT, REVIEWER_CHANNEL, make_services, seed_category


@pytest.mark.asyncio
async def test_requester_round_trip_creates_pending_request() -> None:
    services, notifier = make_services()
    category_id = await seed_category(services)
    engine = services.engine

    outcome = await engine.handle_action("ask", None, "u1")
    assert outcome.result == "ok"
    assert outcome.session == RequesterSession(step=RequesterStep.SELECTING_CATEGORY)
    assert "Contracts" in outcome.messages[0].text

    outcome = await engine.submit_text("u1", "Contracts")
    assert outcome.session.step is RequesterStep.ENTERING_REQUEST
    assert outcome.session.category_id == category_id

    outcome = await engine.submit_text("u1", REQUEST_TEXT)
    assert outcome.session.step is RequesterStep.CONFIRMING_REQUEST
    assert outcome.session.draft_text == REQUEST_TEXT

    outcome = await engine.handle_action("confirm", None, "u1")
    assert outcome.result == "ok"
    assert outcome.session is None
    assert await services.sessions.get("u1") is None

    requests = await services.repository.list_for_requester("u1")
    assert len(requests) == 1
    request = requests[0]
    assert request.status is RequestStatus.PENDING
    assert request.category_id == category_id
    assert request.text == REQUEST_TEXT

    review = notifier.sent_to(REVIEWER_CHANNEL)
    assert len(review) == 1
    assert [action.callback_data for action in review[0][2]] == [
        f"approve_request:{request.request_id}",
        f"decline_request:{request.request_id}",
    ]
    assert request.review_message is not None
    assert request.review_message.channel == REVIEWER_CHANNEL


@pytest.mark.asyncio
async def test_short_text_is_rejected_without_state_change() -> None:
    services, _ = make_services()
    await seed_category(services)
    engine = services.engine
    await engine.handle_action("ask", None, "u1")
    before = (await engine.submit_text("u1", "Contracts")).session

    outcome = await engine.submit_text("u1", "too short")

    assert outcome.result == "rejected:text_too_short"
    assert outcome.session == before
    assert await services.sessions.get("u1") == before
    assert "150" in outcome.messages[0].text


@pytest.mark.asyncio
async def test_minimum_length_is_configurable() -> None:
    services, _ = make_services(min_request_length=5)
    await seed_category(services)
    engine = services.engine
    await engine.handle_action("ask", None, "u1")
    await engine.submit_text("u1", "Contracts")

    outcome = await engine.submit_text("u1", "short text")
    assert outcome.session.step is RequesterStep.CONFIRMING_REQUEST


@pytest.mark.asyncio
async def test_edit_loop_always_returns_to_confirmation_with_latest_text() -> None:
    services, _ = make_services()
    category_id = await seed_category(services)
    engine = services.engine
    await engine.handle_action("ask", None, "u1")
    await engine.submit_text("u1", "Contracts")
    await engine.submit_text("u1", REQUEST_TEXT)

    latest = REQUEST_TEXT
    for cycle in range(3):
        outcome = await engine.handle_action("edit", None, "u1")
        assert outcome.session.step is RequesterStep.ENTERING_REQUEST
        assert outcome.session.category_id == category_id

        latest = f"{REQUEST_TEXT} Revision {cycle}."
        outcome = await engine.submit_text("u1", latest)
        assert outcome.session.step is RequesterStep.CONFIRMING_REQUEST
        assert outcome.session.draft_text == latest
        assert outcome.session.category_id == category_id

    await engine.handle_action("confirm", None, "u1")
    request = (await services.repository.list_for_requester("u1"))[0]
    assert request.text == latest


@pytest.mark.asyncio
async def test_back_moves_one_step_and_keeps_chosen_fields() -> None:
    services, _ = make_services()
    category_id = await seed_category(services)
    engine = services.engine
    await engine.handle_action("ask", None, "u1")
    await engine.submit_text("u1", "Contracts")
    await engine.submit_text("u1", REQUEST_TEXT)

    outcome = await engine.handle_action("back", None, "u1")
    assert outcome.session.step is RequesterStep.ENTERING_REQUEST
    assert outcome.session.category_id == category_id

    outcome = await engine.handle_action("back", None, "u1")
    assert outcome.session.step is RequesterStep.SELECTING_CATEGORY
    assert outcome.session.category_id == category_id

    outcome = await engine.handle_action("back", None, "u1")
    assert outcome.session is None


@pytest.mark.asyncio
async def test_typed_navigation_labels_are_recognized_in_actor_locale() -> None:
    services, _ = make_services()
    await seed_category(services)
    engine = services.engine
    await engine.handle_action("ask", None, "u1")
    await engine.submit_text("u1", "Contracts")
    await engine.submit_text("u1", REQUEST_TEXT)

    outcome = await engine.submit_text("u1", "Изменить")
    assert outcome.session.step is RequesterStep.ENTERING_REQUEST

    outcome = await engine.submit_text("u1", "Назад")
    assert outcome.session.step is RequesterStep.SELECTING_CATEGORY


@pytest.mark.asyncio
async def test_menu_label_starts_flow() -> None:
    services, _ = make_services()
    await seed_category(services)

    outcome = await services.engine.submit_text("u1", "Задать вопрос")

    assert outcome.session == RequesterSession(step=RequesterStep.SELECTING_CATEGORY)


@pytest.mark.asyncio
async def test_unknown_category_keeps_selection_step() -> None:
    services, _ = make_services()
    await seed_category(services)
    engine = services.engine
    await engine.handle_action("ask", None, "u1")

    outcome = await engine.submit_text("u1", "Taxes")

    assert outcome.result == "rejected:unknown_category"
    assert outcome.session.step is RequesterStep.SELECTING_CATEGORY


@pytest.mark.asyncio
async def test_ask_without_categories_is_rejected() -> None:
    services, _ = make_services()

    outcome = await services.engine.handle_action("ask", None, "u1")

    assert outcome.result == "rejected:no_categories"
    assert outcome.session is None


@pytest.mark.asyncio
async def test_unmatched_input_falls_through() -> None:
    services, _ = make_services()
    await seed_category(services)
    engine = services.engine

    idle = await engine.submit_text("u1", "hello there")
    assert idle.result == "ignored"
    assert idle.handled is False
    assert idle.messages == []

    await engine.handle_action("ask", None, "u1")
    await engine.submit_text("u1", "Contracts")
    await engine.submit_text("u1", REQUEST_TEXT)
    confirming = await engine.submit_text("u1", "what now?")
    assert confirming.result == "ignored"
    assert confirming.session.step is RequesterStep.CONFIRMING_REQUEST


@pytest.mark.asyncio
async def test_unknown_action_is_ignored() -> None:
    services, _ = make_services()

    outcome = await services.engine.handle_action("launch_rocket", "r1", "u1")

    assert outcome.result == "ignored"
    assert outcome.handled is False
