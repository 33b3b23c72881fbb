from __future__ import annotations

from typing import Awaitable, Callable

from ..core.config import Settings
from ..core.errors import LifecycleError, PermissionDenied, StoreFailure, ValidationFailure
from ..core.logging import get_logger
from ..core.metrics import record_conversation_outcome, record_stale_session
from ..lifecycle.actors import ActorDirectory
from ..lifecycle.categories import CategoryCatalog
from ..lifecycle.models import Actor, ActorProfile
from ..lifecycle.repository import RequestRepository
from ..lifecycle.sessions import FulfillerSession, RequesterSession, ReviewerSession, Session, SessionStore
from ..services.notifications import ActionName, NotificationRouter, Outbox
from .assignment import AssignmentCoordinator
from .base import ACTION_SIGNALS, IGNORED, ConversationOutcome, Turn, TurnResult, read_signal
from .fulfiller import FulfillerFlow
from .requester import RequesterFlow
from .reviewer import ReviewerActions
from .views import MenuViews

logger = get_logger(name=__name__)

_Handler = Callable[[Turn], Awaitable[TurnResult]]

_REQUEST_ACTIONS = frozenset(
    {
        ActionName.TAKE,
        ActionName.REJECT,
        ActionName.APPROVE_REQUEST,
        ActionName.DECLINE_REQUEST,
        ActionName.APPROVE_ANSWER,
        ActionName.DECLINE_ANSWER,
        ActionName.EDIT_ANSWER,
    }
)


class ConversationEngine:
    """Entry point for transport events.

    Every event runs under the actor's session lock, so overlapping events
    from one actor are serialized while different actors proceed
    concurrently. Durable state is only ever changed through guarded writes.
    """

    def __init__(
        self,
        *,
        settings: Settings,
        sessions: SessionStore,
        repository: RequestRepository,
        actors: ActorDirectory,
        categories: CategoryCatalog,
        router: NotificationRouter,
    ) -> None:
        self._sessions = sessions
        self._repository = repository
        self._actors = actors
        self._router = router
        self._translator = router.translator
        conversation = settings.conversation
        self._supported_locales = frozenset(conversation.supported_locales)
        self._coordinator = AssignmentCoordinator(
            repository=repository, actors=actors, categories=categories, router=router
        )
        self._requester = RequesterFlow(
            settings=conversation, repository=repository, categories=categories, router=router
        )
        self._fulfiller = FulfillerFlow(
            settings=conversation,
            repository=repository,
            categories=categories,
            router=router,
            coordinator=self._coordinator,
        )
        self._reviewer = ReviewerActions(
            repository=repository, categories=categories, router=router, coordinator=self._coordinator
        )
        self._views = MenuViews(
            settings=conversation, repository=repository, categories=categories, router=router
        )
        self._menu: dict[str, _Handler] = {
            "buttons.ask_question": self._requester.start,
            "buttons.my_requests": self._views.my_requests,
            "buttons.current_assignment": self._views.current_assignment,
            "buttons.my_answers": self._views.my_answers,
            "buttons.statistics": self._views.statistics,
        }

    @property
    def sessions(self) -> SessionStore:
        return self._sessions

    async def submit_text(
        self, actor_id: str, text: str, profile: ActorProfile | None = None
    ) -> ConversationOutcome:
        async def handler(turn: Turn) -> TurnResult:
            return await self._on_text(turn, text)

        return await self._run("text", actor_id, profile, handler)

    async def handle_action(
        self,
        action: str,
        request_id: str | None,
        actor_id: str,
        comment: str | None = None,
        profile: ActorProfile | None = None,
    ) -> ConversationOutcome:
        try:
            name = ActionName(action)
        except ValueError:
            logger.info("conversation_action_unknown", action=action, actor_id=actor_id)
            record_conversation_outcome(entry_point="action", result=IGNORED)
            return ConversationOutcome(result=IGNORED, handled=False)

        async def handler(turn: Turn) -> TurnResult:
            return await self._on_action(turn, name, request_id, comment)

        return await self._run("action", actor_id, profile, handler)

    async def _run(
        self,
        entry_point: str,
        actor_id: str,
        profile: ActorProfile | None,
        handler: _Handler,
    ) -> ConversationOutcome:
        outbox = Outbox()
        session: Session | None = None
        actor: Actor | None = None
        try:
            async with self._sessions.lock(actor_id):
                session = await self._sessions.get(actor_id)
                try:
                    actor = await self._actors.get_or_register(actor_id, profile)
                    if actor.banned:
                        raise PermissionDenied("banned")
                    result = await handler(Turn(actor=actor, session=session, outbox=outbox))
                except LifecycleError as exc:
                    result = await self._on_error(exc, actor or self._anonymous(actor_id), session, outbox)
                await self._persist(actor_id, session, result.session)
        except Exception:
            logger.exception("conversation_event_failed", entry_point=entry_point, actor_id=actor_id)
            await self._router.reply(outbox, actor or self._anonymous(actor_id), "errors.internal")
            result = TurnResult(session=session, result="failed:internal")

        record_conversation_outcome(entry_point=entry_point, result=result.result)
        logger.info(
            "conversation_event_handled",
            entry_point=entry_point,
            actor_id=actor_id,
            result=result.result,
            request_id=result.request_id,
            messages=len(outbox.messages),
        )
        return ConversationOutcome(
            result=result.result,
            messages=outbox.messages,
            session=result.session,
            handled=result.handled,
        )

    async def _on_text(self, turn: Turn, text: str) -> TurnResult:
        session = turn.session
        menu = self._match_menu(text, turn.actor.locale)
        if menu is not None:
            return await menu(turn)
        signal = read_signal(self._translator, text, turn.actor.locale)
        if isinstance(session, FulfillerSession):
            stale = await self._reconcile(turn)
            return stale or await self._fulfiller.handle(turn, session, text=text, signal=signal)
        if isinstance(session, ReviewerSession):
            stale = await self._reconcile(turn)
            return stale or await self._reviewer.handle(turn, session, text=text, signal=signal)
        if isinstance(session, RequesterSession):
            return await self._requester.handle(turn, session, text=text, signal=signal)
        return TurnResult.ignored(session)

    async def _on_action(
        self, turn: Turn, name: ActionName, request_id: str | None, comment: str | None
    ) -> TurnResult:
        session = turn.session
        if name in (ActionName.REJECT, ActionName.EDIT_ANSWER) and not request_id:
            request_id = turn.actor.current_assignment_id
        if name in _REQUEST_ACTIONS and not request_id:
            return TurnResult.ignored(session)

        if name is ActionName.ASK:
            return await self._requester.start(turn)
        if name is ActionName.TAKE:
            return await self._coordinator.take_request(turn, request_id)
        if name is ActionName.REJECT:
            return await self._coordinator.reject_assignment(turn, request_id)
        if name is ActionName.APPROVE_REQUEST:
            return await self._reviewer.approve_request(turn, request_id)
        if name is ActionName.DECLINE_REQUEST:
            return await self._reviewer.decline_request(turn, request_id, comment)
        if name is ActionName.APPROVE_ANSWER:
            return await self._reviewer.approve_answer(turn, request_id)
        if name is ActionName.DECLINE_ANSWER:
            return await self._reviewer.decline_answer(turn, request_id, comment)
        if name is ActionName.EDIT_ANSWER:
            return await self._fulfiller.edit_answer(turn, request_id)
        if name is ActionName.LANGUAGE:
            return await self._change_locale(turn, comment or request_id)

        signal = ACTION_SIGNALS[name]
        if isinstance(session, FulfillerSession):
            if request_id and request_id != session.request_id:
                return TurnResult.ignored(session)
            stale = await self._reconcile(turn)
            return stale or await self._fulfiller.handle(turn, session, signal=signal)
        if isinstance(session, ReviewerSession):
            return await self._reviewer.handle(turn, session, signal=signal)
        if isinstance(session, RequesterSession):
            return await self._requester.handle(turn, session, signal=signal)
        return TurnResult.ignored(session)

    async def _change_locale(self, turn: Turn, locale: str | None) -> TurnResult:
        """Switch the actor's own locale; the active session is kept."""
        locale = (locale or "").strip().lower()
        if locale not in self._supported_locales:
            raise ValidationFailure("unsupported_locale", detail=locale or None)
        if locale != turn.actor.locale:
            turn.actor = await self._actors.set_locale(turn.actor.actor_id, locale)
            logger.info("actor_locale_changed", actor_id=turn.actor.actor_id, locale=locale)
        await self._router.reply(turn.outbox, turn.actor, "success.locale_changed")
        return TurnResult(session=turn.session)

    def _match_menu(self, text: str, locale: str) -> _Handler | None:
        for key, handler in self._menu.items():
            if self._translator.matches(text, key, locale):
                return handler
        return None

    async def _reconcile(self, turn: Turn) -> TurnResult | None:
        """Clear a session whose request moved on without it."""
        session = turn.session
        if isinstance(session, FulfillerSession):
            is_current = self._fulfiller.is_current
        elif isinstance(session, ReviewerSession):
            is_current = self._reviewer.is_current
        else:
            return None
        request = await self._repository.get(session.request_id)
        if is_current(session, request, turn.actor):
            return None
        logger.warning(
            "stale_session_cleared",
            actor_id=turn.actor.actor_id,
            flow=session.flow,
            step=session.step.value,
            request_id=session.request_id,
            status=request.status.value if request else None,
        )
        record_stale_session(flow=session.flow)
        await self._router.reply(turn.outbox, turn.actor, "errors.stale_session")
        return TurnResult(session=None, result="conflict:stale_session", request_id=session.request_id)

    async def _on_error(
        self, exc: LifecycleError, actor: Actor, session: Session | None, outbox: Outbox
    ) -> TurnResult:
        if isinstance(exc, StoreFailure):
            logger.exception("conversation_store_failure", actor_id=actor.actor_id, tag=exc.tag)
        else:
            logger.info(
                "conversation_event_refused",
                actor_id=actor.actor_id,
                tag=exc.tag,
                request_id=exc.request_id,
                detail=str(exc),
            )
        key = f"errors.{exc.reason}"
        if not self._translator.has(key, actor.locale):
            key = "errors.general"
        await self._router.reply(outbox, actor, key)
        next_session = session
        if exc.kind == "conflict" and exc.request_id and getattr(session, "request_id", None) == exc.request_id:
            next_session = None
        return TurnResult(session=next_session, result=exc.tag, request_id=exc.request_id)

    async def _persist(self, actor_id: str, before: Session | None, after: Session | None) -> None:
        if after == before:
            return
        # Called under lock(actor_id); a miss means the lock lapsed and another writer got in.
        if not await self._sessions.swap(actor_id, before, after):
            logger.warning("session_write_conflict", actor_id=actor_id, flow=getattr(after, "flow", None))

    def _anonymous(self, actor_id: str) -> Actor:
        return Actor(actor_id=actor_id, locale=self._translator.default_locale)


__all__ = ["ConversationEngine"]
