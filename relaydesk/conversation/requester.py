from __future__ import annotations

from typing import Awaitable, Callable

from ..core.capabilities import Capability, require_capability
from ..core.config import ConversationSettings
from ..core.logging import get_logger
from ..lifecycle.categories import CategoryCatalog
from ..lifecycle.models import Category
from ..lifecycle.repository import RequestRepository
from ..lifecycle.sessions import RequesterSession, RequesterStep, with_step
from ..services.notifications import NotificationRouter
from .base import Signal, Turn, TurnResult, ensure_exhaustive

logger = get_logger(name=__name__)


class RequesterFlow:
    """idle -> selecting_category -> entering_request -> confirming_request -> idle."""

    def __init__(
        self,
        *,
        settings: ConversationSettings,
        repository: RequestRepository,
        categories: CategoryCatalog,
        router: NotificationRouter,
    ) -> None:
        self._settings = settings
        self._repository = repository
        self._categories = categories
        self._router = router

    async def start(self, turn: Turn) -> TurnResult:
        require_capability(turn.actor, Capability.REQUEST)
        return await self._prompt_categories(turn, RequesterSession(step=RequesterStep.SELECTING_CATEGORY))

    async def handle(
        self,
        turn: Turn,
        session: RequesterSession,
        *,
        text: str | None = None,
        signal: Signal | None = None,
    ) -> TurnResult:
        handler = _STEP_HANDLERS[session.step]
        return await handler(self, turn, session, text, signal)

    async def _on_selecting_category(
        self, turn: Turn, session: RequesterSession, text: str | None, signal: Signal | None
    ) -> TurnResult:
        if signal is Signal.BACK:
            await self._router.reply(turn.outbox, turn.actor, "prompts.select_action")
            return TurnResult(session=None)
        if signal is not None or text is None:
            return TurnResult.ignored(session)
        category = await self._match_category(text)
        if category is None:
            await self._router.reply(turn.outbox, turn.actor, "errors.unknown_category")
            return TurnResult.rejected(session, "unknown_category")
        await self._prompt_text(turn)
        return TurnResult(
            session=with_step(session, RequesterStep.ENTERING_REQUEST, category_id=category.category_id)
        )

    async def _on_entering_request(
        self, turn: Turn, session: RequesterSession, text: str | None, signal: Signal | None
    ) -> TurnResult:
        if signal is Signal.BACK:
            return await self._prompt_categories(turn, with_step(session, RequesterStep.SELECTING_CATEGORY))
        if signal is not None or text is None:
            return TurnResult.ignored(session)
        draft = text.strip()
        minimum = self._settings.min_request_length
        if len(draft) < minimum:
            await self._router.reply(turn.outbox, turn.actor, "errors.text_too_short", min=minimum)
            return TurnResult.rejected(session, "text_too_short")
        await self._router.reply(turn.outbox, turn.actor, "prompts.confirm_request", text=draft)
        return TurnResult(session=with_step(session, RequesterStep.CONFIRMING_REQUEST, draft_text=draft))

    async def _on_confirming_request(
        self, turn: Turn, session: RequesterSession, text: str | None, signal: Signal | None
    ) -> TurnResult:
        if signal is Signal.CONFIRM:
            return await self._submit(turn, session)
        if signal in (Signal.EDIT, Signal.BACK):
            await self._prompt_text(turn)
            return TurnResult(session=with_step(session, RequesterStep.ENTERING_REQUEST))
        return TurnResult.ignored(session)

    async def _submit(self, turn: Turn, session: RequesterSession) -> TurnResult:
        require_capability(turn.actor, Capability.REQUEST)
        category = await self._categories.get(session.category_id) if session.category_id else None
        if category is None or not session.draft_text:
            # The category was deleted while the draft was open.
            await self._router.reply(turn.outbox, turn.actor, "errors.unknown_category")
            restarted = await self._prompt_categories(
                turn, with_step(session, RequesterStep.SELECTING_CATEGORY, category_id=None)
            )
            return TurnResult.rejected(restarted.session, "unknown_category")
        request = await self._repository.create(
            requester_id=turn.actor.actor_id,
            category_id=category.category_id,
            text=session.draft_text,
        )
        await self._router.reply(turn.outbox, turn.actor, "success.request_sent")
        await self._router.request_submitted(turn.outbox, request, category)
        logger.info("request_submitted", request_id=request.request_id, requester_id=turn.actor.actor_id)
        return TurnResult(session=None, request_id=request.request_id)

    async def _prompt_categories(self, turn: Turn, session: RequesterSession) -> TurnResult:
        categories = await self._categories.list()
        if not categories:
            await self._router.reply(turn.outbox, turn.actor, "errors.no_categories")
            return TurnResult.rejected(None, "no_categories")
        await self._router.reply(
            turn.outbox,
            turn.actor,
            "prompts.select_category",
            categories="\n".join(category.label for category in categories),
        )
        return TurnResult(session=session)

    async def _prompt_text(self, turn: Turn) -> None:
        await self._router.reply(
            turn.outbox, turn.actor, "prompts.enter_request", min=self._settings.min_request_length
        )

    async def _match_category(self, text: str) -> Category | None:
        wanted = text.strip().casefold()
        for category in await self._categories.list():
            candidates = {category.name, category.label, category.tag}
            if wanted in {candidate.casefold() for candidate in candidates if candidate}:
                return category
        return None


_StepHandler = Callable[..., Awaitable[TurnResult]]

_STEP_HANDLERS: dict[RequesterStep, _StepHandler] = {
    RequesterStep.SELECTING_CATEGORY: RequesterFlow._on_selecting_category,
    RequesterStep.ENTERING_REQUEST: RequesterFlow._on_entering_request,
    RequesterStep.CONFIRMING_REQUEST: RequesterFlow._on_confirming_request,
}

ensure_exhaustive("requester", RequesterStep, _STEP_HANDLERS)


__all__ = ["RequesterFlow"]
