from __future__ import annotations

from ..core.capabilities import Capability, require_capability
from ..core.config import ConversationSettings
from ..lifecycle.categories import CategoryCatalog
from ..lifecycle.models import Request, RequestStatus
from ..lifecycle.repository import RequestRepository
from ..services.notifications import ActionName, InlineAction, NotificationRouter
from .base import Turn, TurnResult


class MenuViews:
    """Read-only menu queries: my requests, current assignment, my answers, statistics."""

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

    async def my_requests(self, turn: Turn) -> TurnResult:
        require_capability(turn.actor, Capability.REQUEST)
        requests = await self._repository.list_for_requester(turn.actor.actor_id)
        if not requests:
            await self._router.reply(turn.outbox, turn.actor, "lists.no_requests")
            return TurnResult(session=turn.session)
        body = await self._render_lines(turn, "lists.my_requests_title", requests)
        await self._send_text(turn, body)
        return TurnResult(session=turn.session)

    async def my_answers(self, turn: Turn) -> TurnResult:
        require_capability(turn.actor, Capability.FULFILL)
        requests = await self._repository.list_for_fulfiller(turn.actor.actor_id)
        if not requests:
            await self._router.reply(turn.outbox, turn.actor, "lists.no_answers")
            return TurnResult(session=turn.session)
        body = await self._render_lines(turn, "lists.my_answers_title", requests)
        await self._send_text(turn, body)
        return TurnResult(session=turn.session)

    async def current_assignment(self, turn: Turn) -> TurnResult:
        require_capability(turn.actor, Capability.FULFILL)
        request_id = turn.actor.current_assignment_id
        request = await self._repository.get(request_id) if request_id else None
        if request is None:
            await self._router.reply(turn.outbox, turn.actor, "errors.no_active_assignment")
            return TurnResult.rejected(turn.session, "no_active_assignment")
        category = await self._categories.get(request.category_id)
        translator = self._router.translator
        locale = turn.actor.locale
        actions: tuple[InlineAction, ...] = ()
        if request.status is RequestStatus.ASSIGNED:
            actions = (
                InlineAction(
                    ActionName.REJECT,
                    request.request_id,
                    translator.resolve("buttons.reject_assignment", locale),
                ),
            )
        elif request.status is RequestStatus.ANSWERED:
            actions = (
                InlineAction(
                    ActionName.EDIT_ANSWER,
                    request.request_id,
                    translator.resolve("buttons.edit_answer", locale),
                ),
            )
        await self._router.reply(
            turn.outbox,
            turn.actor,
            "lists.current_assignment",
            actions=actions,
            request_id=request.request_id,
            category=category.label if category else "-",
            status=translator.resolve(f"statuses.{request.status.value}", locale),
            text=request.text,
        )
        return TurnResult(session=turn.session, request_id=request.request_id)

    async def statistics(self, turn: Turn) -> TurnResult:
        require_capability(turn.actor, Capability.FULFILL)
        requests = await self._repository.list_for_fulfiller(turn.actor.actor_id)
        counts = self._repository.count_by_status(requests)
        total = len(requests)
        completed = counts[RequestStatus.CLOSED]
        translator = self._router.translator
        locale = turn.actor.locale
        lines = [
            translator.resolve(
                "lists.stats",
                locale,
                total=total,
                in_progress=counts[RequestStatus.ASSIGNED],
                under_review=counts[RequestStatus.ANSWERED],
                completed=completed,
            )
        ]
        if total:
            lines.append(translator.resolve("lists.completion_rate", locale, rate=round(completed * 100 / total)))
        await self._send_text(turn, "\n\n".join(lines))
        return TurnResult(session=turn.session)

    async def _render_lines(self, turn: Turn, title_key: str, requests: list[Request]) -> str:
        translator = self._router.translator
        locale = turn.actor.locale
        labels = {category.category_id: category.label for category in await self._categories.list()}
        lines = [translator.resolve(title_key, locale)]
        for index, request in enumerate(requests, start=1):
            entry = [
                translator.resolve(
                    "lists.request_line",
                    locale,
                    index=index,
                    category=labels.get(request.category_id, "-"),
                    status=translator.resolve(f"statuses.{request.status.value}", locale),
                    date=request.created_at.strftime("%d.%m.%Y"),
                )
            ]
            if request.status is RequestStatus.CLOSED and request.answer_text:
                entry.append(translator.resolve("lists.answer_label", locale, answer=self._preview(request.answer_text)))
            if request.status is RequestStatus.DECLINED and request.reviewer_comment:
                entry.append(translator.resolve("lists.comment_label", locale, comment=request.reviewer_comment))
            lines.append("\n".join(entry))
        return "\n\n".join(lines)

    def _preview(self, text: str) -> str:
        limit = self._settings.preview_length
        return text if len(text) <= limit else f"{text[:limit]}..."

    async def _send_text(self, turn: Turn, text: str) -> None:
        await self._router.reply_text(turn.outbox, turn.actor, text)


__all__ = ["MenuViews"]
