from __future__ import annotations

from typing import Awaitable, Callable

from ..core.capabilities import Capability, require_capability
from ..core.config import ConversationSettings
from ..core.errors import AlreadyHandled
from ..core.logging import get_logger
from ..lifecycle.categories import CategoryCatalog
from ..lifecycle.models import Actor, Request, RequestStatus
from ..lifecycle.repository import RequestRepository
from ..lifecycle.sessions import FulfillerSession, FulfillerStep, with_step
from ..services.notifications import ActionName, InlineAction, NotificationRouter
from .assignment import AssignmentCoordinator
from .base import Signal, Turn, TurnResult, ensure_exhaustive

logger = get_logger(name=__name__)


class FulfillerFlow:
    """idle -> writing_answer -> confirming_answer -> idle, entered by a take."""

    def __init__(
        self,
        *,
        settings: ConversationSettings,
        repository: RequestRepository,
        categories: CategoryCatalog,
        router: NotificationRouter,
        coordinator: AssignmentCoordinator,
    ) -> None:
        self._settings = settings
        self._repository = repository
        self._categories = categories
        self._router = router
        self._coordinator = coordinator

    @staticmethod
    def is_current(session: FulfillerSession, request: Request | None, actor: Actor) -> bool:
        return (
            request is not None
            and request.status is RequestStatus.ASSIGNED
            and request.fulfiller_id == actor.actor_id
        )

    async def handle(
        self,
        turn: Turn,
        session: FulfillerSession,
        *,
        text: str | None = None,
        signal: Signal | None = None,
    ) -> TurnResult:
        if signal is Signal.REJECT:
            return await self._coordinator.reject_assignment(turn, session.request_id)
        handler = _STEP_HANDLERS[session.step]
        return await handler(self, turn, session, text, signal)

    async def edit_answer(self, turn: Turn, request_id: str) -> TurnResult:
        """Re-enter writing_answer for the held request, withdrawing a submitted answer."""
        session = turn.session
        if isinstance(session, FulfillerSession) and session.request_id == request_id:
            return await self.handle(turn, session, signal=Signal.EDIT)
        require_capability(turn.actor, Capability.FULFILL)
        request = await self._repository.require(request_id)
        if request.fulfiller_id != turn.actor.actor_id:
            raise AlreadyHandled(request_id=request_id, detail="request is held by someone else")
        if request.status is RequestStatus.ANSWERED:
            previous_answer = request.answer_text or ""
            request = await self._repository.transition(
                request_id,
                source=RequestStatus.ANSWERED,
                target=RequestStatus.ASSIGNED,
                changes={"answer_text": None},
                expected={"fulfiller_id": turn.actor.actor_id},
            )
            category = await self._categories.get(request.category_id)
            await self._router.answer_withdrawn(turn.outbox, request, category, turn.actor, previous_answer)
            logger.info("answer_withdrawn", request_id=request_id, fulfiller_id=turn.actor.actor_id)
        elif request.status is not RequestStatus.ASSIGNED:
            raise AlreadyHandled(request_id=request_id, detail=f"request is {request.status.value}")
        await self._prompt_answer(turn, request_id)
        return TurnResult(
            session=FulfillerSession(step=FulfillerStep.WRITING_ANSWER, request_id=request_id),
            request_id=request_id,
        )

    async def _on_writing_answer(
        self, turn: Turn, session: FulfillerSession, text: str | None, signal: Signal | None
    ) -> TurnResult:
        if signal in (Signal.EDIT, Signal.BACK):
            await self._prompt_answer(turn, session.request_id)
            return TurnResult(session=session, request_id=session.request_id)
        if signal is not None or text is None:
            return TurnResult.ignored(session)
        draft = text.strip()
        if len(draft) < self._settings.min_answer_length:
            await self._router.reply(
                turn.outbox, turn.actor, "errors.text_too_short", min=self._settings.min_answer_length
            )
            return TurnResult.rejected(session, "text_too_short")
        await self._router.reply(
            turn.outbox,
            turn.actor,
            "prompts.check_answer",
            actions=self._review_actions(turn.actor, session.request_id),
            text=draft,
        )
        return TurnResult(
            session=with_step(session, FulfillerStep.CONFIRMING_ANSWER, draft_answer=draft),
            request_id=session.request_id,
        )

    async def _on_confirming_answer(
        self, turn: Turn, session: FulfillerSession, text: str | None, signal: Signal | None
    ) -> TurnResult:
        if signal is Signal.CONFIRM:
            return await self._submit(turn, session)
        if signal in (Signal.EDIT, Signal.BACK):
            await self._prompt_answer(turn, session.request_id)
            return TurnResult(
                session=with_step(session, FulfillerStep.WRITING_ANSWER, draft_answer=None),
                request_id=session.request_id,
            )
        return TurnResult.ignored(session)

    async def _submit(self, turn: Turn, session: FulfillerSession) -> TurnResult:
        if not session.draft_answer:
            return TurnResult.ignored(session)
        request = await self._repository.transition(
            session.request_id,
            source=RequestStatus.ASSIGNED,
            target=RequestStatus.ANSWERED,
            changes={"answer_text": session.draft_answer, "answered_by": turn.actor.actor_id},
            expected={"fulfiller_id": turn.actor.actor_id},
        )
        category = await self._categories.get(request.category_id)
        await self._router.reply(turn.outbox, turn.actor, "success.answer_sent")
        await self._router.answer_submitted(turn.outbox, request, category, turn.actor)
        logger.info("answer_submitted", request_id=request.request_id, fulfiller_id=turn.actor.actor_id)
        return TurnResult(session=None, request_id=request.request_id)

    async def _prompt_answer(self, turn: Turn, request_id: str) -> None:
        await self._router.reply(turn.outbox, turn.actor, "prompts.write_answer", request_id=request_id)

    def _review_actions(self, actor: Actor, request_id: str) -> tuple[InlineAction, ...]:
        translator = self._router.translator
        return (
            InlineAction(ActionName.CONFIRM, request_id, translator.resolve("buttons.confirm_answer", actor.locale)),
            InlineAction(ActionName.EDIT, request_id, translator.resolve("buttons.edit_answer", actor.locale)),
            InlineAction(ActionName.REJECT, request_id, translator.resolve("buttons.reject_assignment", actor.locale)),
        )


_StepHandler = Callable[..., Awaitable[TurnResult]]

_STEP_HANDLERS: dict[FulfillerStep, _StepHandler] = {
    FulfillerStep.WRITING_ANSWER: FulfillerFlow._on_writing_answer,
    FulfillerStep.CONFIRMING_ANSWER: FulfillerFlow._on_confirming_answer,
}

ensure_exhaustive("fulfiller", FulfillerStep, _STEP_HANDLERS)


__all__ = ["FulfillerFlow"]
