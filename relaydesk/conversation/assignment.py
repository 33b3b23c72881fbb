"""Take / reject / reassign protocol.

Each operation touches two records, the Request and the fulfiller's Actor.
The Request write always comes first and is guarded on status and
fulfiller, so exactly one concurrent caller wins it. Only that winner then
moves the Actor's back-reference, again with a guarded write. A take whose
Actor write fails reverts its Request write; a release that fails leaves a
dangling pointer that the next take by that actor clears.
"""

from __future__ import annotations

from ..core.capabilities import Capability, require_capability
from ..core.errors import AlreadyHandled, AssignmentConflict, LifecycleError, StaleStateConflict, StoreFailure
from ..core.logging import get_logger
from ..core.metrics import record_assignment_compensation, record_assignment_conflict
from ..lifecycle.actors import ActorDirectory
from ..lifecycle.categories import CategoryCatalog
from ..lifecycle.models import HELD_STATUSES, Actor, Request, RequestStatus
from ..lifecycle.repository import RequestRepository
from ..lifecycle.sessions import FulfillerSession, FulfillerStep
from ..services.notifications import NotificationRouter
from .base import Turn, TurnResult

logger = get_logger(name=__name__)


class AssignmentCoordinator:
    """Keeps at most one active assignment per actor."""

    def __init__(
        self,
        *,
        repository: RequestRepository,
        actors: ActorDirectory,
        categories: CategoryCatalog,
        router: NotificationRouter,
    ) -> None:
        self._repository = repository
        self._actors = actors
        self._categories = categories
        self._router = router

    async def take_request(self, turn: Turn, request_id: str) -> TurnResult:
        require_capability(turn.actor, Capability.FULFILL)
        actor = await self._clear_dangling_pointer(turn.actor)
        request = await self._repository.require(request_id)
        if request.status is not RequestStatus.APPROVED:
            record_assignment_conflict(operation="take", reason="already_handled")
            raise AlreadyHandled(request_id=request_id, detail=f"request is {request.status.value}")
        if actor.current_assignment_id is not None:
            record_assignment_conflict(operation="take", reason="assignment_held")
            raise AssignmentConflict(request_id=request_id, detail=f"holding {actor.current_assignment_id}")

        try:
            assigned = await self._repository.transition(
                request_id,
                source=RequestStatus.APPROVED,
                target=RequestStatus.ASSIGNED,
                changes={"fulfiller_id": actor.actor_id, "answer_text": None},
            )
        except AlreadyHandled:
            record_assignment_conflict(operation="take", reason="already_handled")
            raise

        try:
            bound = await self._actors.bind_assignment(actor, request_id)
        except (StaleStateConflict, StoreFailure) as exc:
            await self._revert_take(request_id, actor.actor_id)
            if isinstance(exc, StoreFailure):
                raise
            record_assignment_conflict(operation="take", reason="assignment_held")
            raise AssignmentConflict(request_id=request_id, detail=str(exc)) from exc

        turn.actor = bound
        category = await self._categories.get(assigned.category_id)
        await self._router.offer_taken(turn.outbox, assigned, category, bound)
        await self._router.assignment_delivered(turn.outbox, assigned, category, bound)
        logger.info("request_taken", request_id=request_id, fulfiller_id=actor.actor_id)
        return TurnResult(
            session=FulfillerSession(step=FulfillerStep.WRITING_ANSWER, request_id=request_id),
            request_id=request_id,
        )

    async def reject_assignment(self, turn: Turn, request_id: str) -> TurnResult:
        actor = turn.actor
        if actor.current_assignment_id != request_id:
            record_assignment_conflict(operation="reject", reason="no_active_assignment")
            raise StaleStateConflict("no_active_assignment", request_id=request_id)

        try:
            request = await self._repository.transition(
                request_id,
                source=RequestStatus.ASSIGNED,
                target=RequestStatus.APPROVED,
                changes={"answer_text": None},
                expected={"fulfiller_id": actor.actor_id},
            )
        except AlreadyHandled:
            record_assignment_conflict(operation="reject", reason="already_handled")
            await self._clear_dangling_pointer(actor)
            raise

        turn.actor = await self._release(actor.actor_id, request_id, operation="reject") or actor
        category = await self._categories.get(request.category_id)
        await self._router.reply(turn.outbox, turn.actor, "success.assignment_rejected")
        await self._router.offer_returned(turn.outbox, request, category)
        logger.info("assignment_rejected", request_id=request_id, fulfiller_id=actor.actor_id)
        return TurnResult(session=None, request_id=request_id)

    async def approve_answer(self, turn: Turn, request_id: str) -> TurnResult:
        require_capability(turn.actor, Capability.REVIEW)
        request = await self._answered(request_id)
        fulfiller_id = request.fulfiller_id
        closed = await self._repository.transition(
            request_id,
            source=RequestStatus.ANSWERED,
            target=RequestStatus.CLOSED,
            expected={"fulfiller_id": fulfiller_id},
        )
        if fulfiller_id:
            await self._release(fulfiller_id, request_id, operation="approve_answer")

        category = await self._categories.get(closed.category_id)
        await self._router.answer_approved(turn.outbox, closed, category, turn.actor)
        logger.info("answer_approved", request_id=request_id, reviewer_id=turn.actor.actor_id)
        return TurnResult(session=None, request_id=request_id)

    async def decline_answer(self, turn: Turn, request_id: str, comment: str) -> TurnResult:
        """Send an answered request back to the open pool with a comment."""
        require_capability(turn.actor, Capability.REVIEW)
        request = await self._answered(request_id)
        fulfiller_id = request.fulfiller_id
        reopened = await self._repository.transition(
            request_id,
            source=RequestStatus.ANSWERED,
            target=RequestStatus.APPROVED,
            changes={"reviewer_comment": comment},
            expected={"fulfiller_id": fulfiller_id},
        )
        if fulfiller_id:
            await self._release(fulfiller_id, request_id, operation="decline_answer")

        category = await self._categories.get(reopened.category_id)
        await self._router.answer_declined(turn.outbox, reopened, category, turn.actor)
        logger.info("answer_declined", request_id=request_id, reviewer_id=turn.actor.actor_id)
        return TurnResult(session=None, request_id=request_id)

    async def _answered(self, request_id: str) -> Request:
        request = await self._repository.require(request_id)
        if request.status is not RequestStatus.ANSWERED:
            raise AlreadyHandled(request_id=request_id, detail=f"request is {request.status.value}")
        return request

    async def _release(self, fulfiller_id: str, request_id: str, *, operation: str) -> Actor | None:
        # The request write already landed; a failed release is repaired on the actor's next take.
        try:
            return await self._actors.release_assignment(fulfiller_id, request_id)
        except StoreFailure:
            logger.exception(
                "assignment_release_failed", operation=operation, request_id=request_id, actor_id=fulfiller_id
            )
            return None

    async def _clear_dangling_pointer(self, actor: Actor) -> Actor:
        """Drop a back-reference whose request no longer names ``actor``."""
        held_id = actor.current_assignment_id
        if held_id is None:
            return actor
        held = await self._repository.get(held_id)
        if held is not None and held.status in HELD_STATUSES and held.fulfiller_id == actor.actor_id:
            return actor
        record_assignment_compensation(operation="clear_pointer")
        released = await self._actors.release_assignment(actor.actor_id, held_id)
        logger.warning(
            "assignment_pointer_cleared",
            actor_id=actor.actor_id,
            request_id=held_id,
            status=held.status.value if held else None,
        )
        return released or await self._actors.require(actor.actor_id)

    async def _revert_take(self, request_id: str, actor_id: str) -> None:
        record_assignment_compensation(operation="take")
        try:
            await self._repository.transition(
                request_id,
                source=RequestStatus.ASSIGNED,
                target=RequestStatus.APPROVED,
                expected={"fulfiller_id": actor_id},
            )
        except LifecycleError:
            logger.exception("assignment_compensation_failed", operation="take", request_id=request_id, actor_id=actor_id)
        else:
            logger.warning("assignment_take_reverted", request_id=request_id, actor_id=actor_id)


__all__ = ["AssignmentCoordinator"]
