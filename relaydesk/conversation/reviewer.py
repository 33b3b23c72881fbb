from __future__ import annotations

from typing import Awaitable, Callable

from ..core.capabilities import Capability, require_capability
from ..core.errors import AlreadyHandled
from ..core.logging import get_logger
from ..lifecycle.categories import CategoryCatalog
from ..lifecycle.models import Actor, Request, RequestStatus
from ..lifecycle.repository import RequestRepository
from ..lifecycle.sessions import ReviewerSession, ReviewerStep
from ..services.notifications import NotificationRouter
from .assignment import AssignmentCoordinator
from .base import Signal, Turn, TurnResult, ensure_exhaustive

logger = get_logger(name=__name__)

# Status the request must still be in while a reason is being typed.
_AWAITED_STATUS: dict[ReviewerStep, RequestStatus] = {
    ReviewerStep.ENTERING_DECLINE_REASON: RequestStatus.PENDING,
    ReviewerStep.ENTERING_ANSWER_DECLINE_REASON: RequestStatus.ANSWERED,
}


class ReviewerActions:
    """Single-shot reviewer decisions.

    A decline that arrives without a reason opens a one-step session; the
    reviewer's next text message becomes the reason.
    """

    def __init__(
        self,
        *,
        repository: RequestRepository,
        categories: CategoryCatalog,
        router: NotificationRouter,
        coordinator: AssignmentCoordinator,
    ) -> None:
        self._repository = repository
        self._categories = categories
        self._router = router
        self._coordinator = coordinator

    @staticmethod
    def is_current(session: ReviewerSession, request: Request | None, actor: Actor) -> bool:
        return request is not None and request.status is _AWAITED_STATUS[session.step]

    async def approve_request(self, turn: Turn, request_id: str) -> TurnResult:
        require_capability(turn.actor, Capability.REVIEW)
        approved = await self._repository.transition(
            request_id,
            source=RequestStatus.PENDING,
            target=RequestStatus.APPROVED,
        )
        category = await self._categories.get(approved.category_id)
        await self._router.request_approved(turn.outbox, approved, category, turn.actor)
        logger.info("request_approved", request_id=request_id, reviewer_id=turn.actor.actor_id)
        return TurnResult(session=self._released_session(turn, request_id), request_id=request_id)

    async def decline_request(self, turn: Turn, request_id: str, comment: str | None = None) -> TurnResult:
        require_capability(turn.actor, Capability.REVIEW)
        if not comment or not comment.strip():
            return await self._ask_reason(turn, request_id, ReviewerStep.ENTERING_DECLINE_REASON)
        declined = await self._repository.transition(
            request_id,
            source=RequestStatus.PENDING,
            target=RequestStatus.DECLINED,
            changes={"reviewer_comment": comment.strip()},
        )
        category = await self._categories.get(declined.category_id)
        await self._router.request_declined(turn.outbox, declined, category, turn.actor)
        logger.info("request_declined", request_id=request_id, reviewer_id=turn.actor.actor_id)
        return TurnResult(session=self._released_session(turn, request_id), request_id=request_id)

    async def approve_answer(self, turn: Turn, request_id: str) -> TurnResult:
        result = await self._coordinator.approve_answer(turn, request_id)
        result.session = self._released_session(turn, request_id)
        return result

    async def decline_answer(self, turn: Turn, request_id: str, comment: str | None = None) -> TurnResult:
        require_capability(turn.actor, Capability.REVIEW)
        if not comment or not comment.strip():
            return await self._ask_reason(turn, request_id, ReviewerStep.ENTERING_ANSWER_DECLINE_REASON)
        result = await self._coordinator.decline_answer(turn, request_id, comment.strip())
        result.session = self._released_session(turn, request_id)
        return result

    async def handle(
        self,
        turn: Turn,
        session: ReviewerSession,
        *,
        text: str | None = None,
        signal: Signal | None = None,
    ) -> TurnResult:
        if signal is Signal.BACK:
            await self._router.reply(turn.outbox, turn.actor, "prompts.select_action")
            return TurnResult(session=None, request_id=session.request_id)
        if signal is not None or not text or not text.strip():
            return TurnResult.ignored(session)
        handler = _STEP_HANDLERS[session.step]
        return await handler(self, turn, session.request_id, text)

    async def _ask_reason(self, turn: Turn, request_id: str, step: ReviewerStep) -> TurnResult:
        request = await self._repository.require(request_id)
        if request.status is not _AWAITED_STATUS[step]:
            raise AlreadyHandled(request_id=request_id, detail=f"request is {request.status.value}")
        key = "prompts.decline_reason" if step is ReviewerStep.ENTERING_DECLINE_REASON else "prompts.answer_decline_reason"
        await self._router.reply(turn.outbox, turn.actor, key, request_id=request_id)
        return TurnResult(session=ReviewerSession(step=step, request_id=request_id), request_id=request_id)

    @staticmethod
    def _released_session(turn: Turn, request_id: str):
        # A pending reason prompt for the same request is settled by the decision.
        session = turn.session
        if isinstance(session, ReviewerSession) and session.request_id == request_id:
            return None
        return session


_StepHandler = Callable[..., Awaitable[TurnResult]]

_STEP_HANDLERS: dict[ReviewerStep, _StepHandler] = {
    ReviewerStep.ENTERING_DECLINE_REASON: ReviewerActions.decline_request,
    ReviewerStep.ENTERING_ANSWER_DECLINE_REASON: ReviewerActions.decline_answer,
}

ensure_exhaustive("reviewer", ReviewerStep, _STEP_HANDLERS)


__all__ = ["ReviewerActions"]
