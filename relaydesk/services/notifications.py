from __future__ import annotations

import itertools
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Any, Protocol, Sequence

import httpx

from ..core.config import ChannelSettings, Settings
from ..core.logging import get_logger
from ..core.metrics import record_notification
from ..lifecycle.actors import ActorDirectory
from ..lifecycle.models import Actor, Category, MessageRef, Request, RequestStatus
from ..lifecycle.repository import RequestRepository
from .translator import Translator

logger = get_logger(name=__name__)


class ActionName(str, Enum):
    ASK = "ask"
    TAKE = "take_request"
    REJECT = "reject_assignment"
    APPROVE_REQUEST = "approve_request"
    DECLINE_REQUEST = "decline_request"
    APPROVE_ANSWER = "approve_answer"
    DECLINE_ANSWER = "decline_answer"
    CONFIRM = "confirm"
    EDIT = "edit"
    EDIT_ANSWER = "edit_answer"
    BACK = "back"
    LANGUAGE = "language"


@dataclass(slots=True, frozen=True)
class InlineAction:
    name: ActionName
    request_id: str
    label: str

    @property
    def callback_data(self) -> str:
        return f"{self.name.value}:{self.request_id}"


@dataclass(slots=True)
class OutgoingMessage:
    channel: str
    text: str
    actions: tuple[InlineAction, ...] = ()
    edit_of: MessageRef | None = None
    ref: MessageRef | None = None
    delivered: bool = True


@dataclass(slots=True)
class Outbox:
    messages: list[OutgoingMessage] = field(default_factory=list)

    def record(self, message: OutgoingMessage) -> None:
        self.messages.append(message)


class NotificationError(RuntimeError):
    """Raised when a notifier backend rejects a delivery."""


class Notifier(Protocol):
    async def send(self, channel: str, text: str, actions: Sequence[InlineAction] = ()) -> MessageRef:
        ...

    async def edit(self, ref: MessageRef, text: str, actions: Sequence[InlineAction] = ()) -> None:
        ...

    async def close(self) -> None:
        ...


class LoggingNotifier:
    """Notifier for local and test runs; messages only reach the log."""

    def __init__(self) -> None:
        self._sequence = itertools.count(1)

    async def send(self, channel: str, text: str, actions: Sequence[InlineAction] = ()) -> MessageRef:
        ref = MessageRef(channel=channel, message_id=str(next(self._sequence)))
        logger.info(
            "notification_sent",
            channel=channel,
            message_id=ref.message_id,
            actions=[action.callback_data for action in actions],
        )
        return ref

    async def edit(self, ref: MessageRef, text: str, actions: Sequence[InlineAction] = ()) -> None:
        logger.info("notification_edited", channel=ref.channel, message_id=ref.message_id)

    async def close(self) -> None:
        return None


class TelegramNotifier:
    def __init__(
        self,
        *,
        token: str,
        api_base: str = "https://api.telegram.org",
        timeout: float = 10.0,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self._endpoint = f"{api_base.rstrip('/')}/bot{token}"
        self._client = client or httpx.AsyncClient(timeout=timeout)
        self._owns_client = client is None

    @classmethod
    def from_settings(cls, settings: Settings) -> "TelegramNotifier":
        if not settings.telegram.bot_token:
            raise RuntimeError("telegram bot token is not configured")
        return cls(
            token=settings.telegram.bot_token,
            api_base=settings.telegram.api_base,
            timeout=settings.telegram.timeout_seconds,
        )

    async def send(self, channel: str, text: str, actions: Sequence[InlineAction] = ()) -> MessageRef:
        payload: dict[str, Any] = {"chat_id": channel, "text": text}
        if actions:
            payload["reply_markup"] = self._keyboard(actions)
        result = await self._call("sendMessage", payload)
        return MessageRef(channel=channel, message_id=str(result["message_id"]))

    async def edit(self, ref: MessageRef, text: str, actions: Sequence[InlineAction] = ()) -> None:
        message_id: int | str = int(ref.message_id) if ref.message_id.isdigit() else ref.message_id
        await self._call(
            "editMessageText",
            {
                "chat_id": ref.channel,
                "message_id": message_id,
                "text": text,
                "reply_markup": self._keyboard(actions),
            },
        )

    async def close(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    @staticmethod
    def _keyboard(actions: Sequence[InlineAction]) -> dict[str, Any]:
        row = [{"text": action.label, "callback_data": action.callback_data} for action in actions]
        return {"inline_keyboard": [row] if row else []}

    async def _call(self, method: str, payload: dict[str, Any]) -> dict[str, Any]:
        response = await self._client.post(f"{self._endpoint}/{method}", json=payload)
        response.raise_for_status()
        body = response.json()
        if not body.get("ok"):
            raise NotificationError(str(body.get("description") or f"{method} failed"))
        result = body.get("result")
        return result if isinstance(result, dict) else {}


def build_notifier(settings: Settings) -> Notifier:
    if settings.telegram.enabled and settings.environment != "test":
        logger.info("notifier_telegram_enabled", api_base=settings.telegram.api_base)
        return TelegramNotifier.from_settings(settings)
    logger.info("notifier_logging_only", environment=settings.environment)
    return LoggingNotifier()


class NotificationRouter:
    """Fans lifecycle changes out to the three channels.

    Deliveries happen after the state change they describe has been written;
    a failed delivery is logged and recorded on the outbox but never undoes
    that change.
    """

    def __init__(
        self,
        *,
        notifier: Notifier,
        translator: Translator,
        channels: ChannelSettings,
        repository: RequestRepository,
        actors: ActorDirectory,
    ) -> None:
        self._notifier = notifier
        self._translator = translator
        self._channels = channels
        self._repository = repository
        self._actors = actors

    @property
    def translator(self) -> Translator:
        return self._translator

    async def reply(
        self,
        outbox: Outbox,
        actor: Actor,
        key: str,
        *,
        actions: Sequence[InlineAction] = (),
        **params: Any,
    ) -> MessageRef | None:
        text = self._translator.resolve(key, actor.locale, **params)
        return await self._send(outbox, actor.actor_id, text, actions, operation="reply")

    async def reply_text(
        self, outbox: Outbox, actor: Actor, text: str, *, actions: Sequence[InlineAction] = ()
    ) -> MessageRef | None:
        return await self._send(outbox, actor.actor_id, text, actions, operation="reply")

    async def request_submitted(self, outbox: Outbox, request: Request, category: Category | None) -> None:
        text = self._review_text(request, category)
        ref = await self._send(
            outbox,
            self._channels.reviewer_chat_id,
            text,
            self._actions(
                request,
                (ActionName.APPROVE_REQUEST, "buttons.approve"),
                (ActionName.DECLINE_REQUEST, "buttons.decline"),
            ),
            operation="request_submitted",
        )
        if ref is not None:
            await self._repository.attach_message(
                request.request_id, slot="review_message", ref=ref, expected_status=RequestStatus.PENDING
            )

    async def request_approved(
        self, outbox: Outbox, request: Request, category: Category | None, reviewer: Actor
    ) -> None:
        await self._close_review(
            outbox,
            request,
            self._translator.resolve(
                "notifications.review_approved",
                text=self._review_text(request, category),
                reviewer=reviewer.mention,
            ),
        )
        await self._notify_actor(
            outbox, request.requester_id, "notifications.request_approved", request_id=request.request_id
        )
        await self._broadcast_offer(outbox, request, category, key="notifications.offer")

    async def request_declined(
        self, outbox: Outbox, request: Request, category: Category | None, reviewer: Actor
    ) -> None:
        comment = request.reviewer_comment or "-"
        await self._close_review(
            outbox,
            request,
            self._translator.resolve(
                "notifications.review_declined",
                text=self._review_text(request, category),
                reviewer=reviewer.mention,
                comment=comment,
            ),
        )
        await self._notify_actor(
            outbox,
            request.requester_id,
            "notifications.request_declined",
            request_id=request.request_id,
            comment=comment,
        )

    async def offer_taken(
        self, outbox: Outbox, request: Request, category: Category | None, fulfiller: Actor
    ) -> None:
        if request.offer_message is None:
            return
        text = self._translator.resolve(
            "notifications.offer_taken",
            text=self._offer_text(request, category, key="notifications.offer"),
            fulfiller=fulfiller.mention,
        )
        await self._edit(outbox, request.offer_message, text, operation="offer_taken")

    async def assignment_delivered(
        self, outbox: Outbox, request: Request, category: Category | None, fulfiller: Actor
    ) -> None:
        await self.reply(
            outbox,
            fulfiller,
            "notifications.assignment",
            actions=self._actions(request, (ActionName.REJECT, "buttons.reject_assignment"), locale=fulfiller.locale),
            request_id=request.request_id,
            category=self._category_label(category),
            text=request.text,
        )

    async def answer_submitted(
        self, outbox: Outbox, request: Request, category: Category | None, fulfiller: Actor
    ) -> None:
        text = self._answer_review_text(request, category, fulfiller)
        ref = await self._send(
            outbox,
            self._channels.reviewer_chat_id,
            text,
            self._actions(
                request,
                (ActionName.APPROVE_ANSWER, "buttons.approve"),
                (ActionName.DECLINE_ANSWER, "buttons.decline"),
            ),
            operation="answer_submitted",
        )
        if ref is not None:
            await self._repository.attach_message(
                request.request_id, slot="review_message", ref=ref, expected_status=RequestStatus.ANSWERED
            )

    async def answer_approved(
        self, outbox: Outbox, request: Request, category: Category | None, reviewer: Actor
    ) -> None:
        fulfiller = await self._lookup(request.answered_by)
        await self._close_review(
            outbox,
            request,
            self._translator.resolve(
                "notifications.review_approved",
                text=self._answer_review_text(request, category, fulfiller),
                reviewer=reviewer.mention,
            ),
        )
        await self._notify_actor(
            outbox,
            request.requester_id,
            "notifications.answer_approved_requester",
            request_id=request.request_id,
            answer=request.answer_text or "",
        )
        if fulfiller is not None:
            await self.reply(
                outbox, fulfiller, "notifications.answer_approved_fulfiller", request_id=request.request_id
            )

    async def answer_declined(
        self, outbox: Outbox, request: Request, category: Category | None, reviewer: Actor
    ) -> None:
        fulfiller = await self._lookup(request.answered_by)
        comment = request.reviewer_comment or "-"
        await self._close_review(
            outbox,
            request,
            self._translator.resolve(
                "notifications.review_declined",
                text=self._answer_review_text(request, category, fulfiller),
                reviewer=reviewer.mention,
                comment=comment,
            ),
        )
        if fulfiller is not None:
            await self.reply(
                outbox,
                fulfiller,
                "notifications.answer_declined_fulfiller",
                request_id=request.request_id,
                comment=comment,
            )
        await self._broadcast_offer(outbox, request, category, key="notifications.offer_returned")

    async def answer_withdrawn(
        self, outbox: Outbox, request: Request, category: Category | None, fulfiller: Actor, previous_answer: str
    ) -> None:
        withdrawn = replace(request, answer_text=previous_answer)
        await self._close_review(
            outbox,
            request,
            self._translator.resolve(
                "notifications.answer_withdrawn",
                text=self._answer_review_text(withdrawn, category, fulfiller),
            ),
        )

    async def offer_returned(self, outbox: Outbox, request: Request, category: Category | None) -> None:
        await self._broadcast_offer(outbox, request, category, key="notifications.offer_returned")

    # Rendering helpers --------------------------------------------------------------

    def _actions(
        self,
        request: Request,
        *pairs: tuple[ActionName, str],
        locale: str | None = None,
    ) -> tuple[InlineAction, ...]:
        return tuple(
            InlineAction(name=name, request_id=request.request_id, label=self._translator.resolve(key, locale))
            for name, key in pairs
        )

    def _category_label(self, category: Category | None) -> str:
        return category.label if category is not None else "-"

    def _review_text(self, request: Request, category: Category | None) -> str:
        return self._translator.resolve(
            "notifications.new_request",
            request_id=request.request_id,
            category=self._category_label(category),
            text=request.text,
        )

    def _answer_review_text(self, request: Request, category: Category | None, fulfiller: Actor | None) -> str:
        return self._translator.resolve(
            "notifications.answer_review",
            request_id=request.request_id,
            category=self._category_label(category),
            fulfiller=fulfiller.mention if fulfiller is not None else "-",
            text=request.text,
            answer=request.answer_text or "",
        )

    def _offer_text(self, request: Request, category: Category | None, *, key: str) -> str:
        return self._translator.resolve(
            key,
            request_id=request.request_id,
            category=self._category_label(category),
            text=request.text,
        )

    # Delivery helpers ---------------------------------------------------------------

    async def _broadcast_offer(self, outbox: Outbox, request: Request, category: Category | None, *, key: str) -> None:
        ref = await self._send(
            outbox,
            self._channels.fulfiller_chat_id,
            self._offer_text(request, category, key=key),
            self._actions(request, (ActionName.TAKE, "buttons.take_request")),
            operation="offer",
        )
        if ref is not None:
            await self._repository.attach_message(
                request.request_id, slot="offer_message", ref=ref, expected_status=RequestStatus.APPROVED
            )

    async def _close_review(self, outbox: Outbox, request: Request, text: str) -> None:
        if request.review_message is None:
            return
        await self._edit(outbox, request.review_message, text, operation="review_closed")

    async def _notify_actor(self, outbox: Outbox, actor_id: str, key: str, **params: Any) -> None:
        actor = await self._lookup(actor_id)
        locale = actor.locale if actor is not None else None
        text = self._translator.resolve(key, locale, **params)
        await self._send(outbox, actor_id, text, (), operation="notify_actor")

    async def _lookup(self, actor_id: str | None) -> Actor | None:
        if not actor_id:
            return None
        return await self._actors.get(actor_id)

    async def _send(
        self,
        outbox: Outbox,
        channel: str,
        text: str,
        actions: Sequence[InlineAction],
        *,
        operation: str,
    ) -> MessageRef | None:
        message = OutgoingMessage(channel=channel, text=text, actions=tuple(actions))
        try:
            message.ref = await self._notifier.send(channel, text, message.actions)
        except Exception as exc:
            message.delivered = False
            record_notification(channel=self._channel_kind(channel), operation=operation, outcome="failed")
            logger.warning("notification_send_failed", channel=channel, operation=operation, error=str(exc))
        else:
            record_notification(channel=self._channel_kind(channel), operation=operation, outcome="sent")
        outbox.record(message)
        return message.ref

    async def _edit(self, outbox: Outbox, ref: MessageRef, text: str, *, operation: str) -> None:
        message = OutgoingMessage(channel=ref.channel, text=text, edit_of=ref, ref=ref)
        try:
            await self._notifier.edit(ref, text, ())
        except Exception as exc:
            message.delivered = False
            record_notification(channel=self._channel_kind(ref.channel), operation=operation, outcome="failed")
            logger.warning("notification_edit_failed", channel=ref.channel, operation=operation, error=str(exc))
        else:
            record_notification(channel=self._channel_kind(ref.channel), operation=operation, outcome="edited")
        outbox.record(message)

    def _channel_kind(self, channel: str) -> str:
        if channel == self._channels.reviewer_chat_id:
            return "reviewer"
        if channel == self._channels.fulfiller_chat_id:
            return "fulfiller"
        return "private"


__all__ = [
    "ActionName",
    "InlineAction",
    "LoggingNotifier",
    "NotificationError",
    "NotificationRouter",
    "Notifier",
    "Outbox",
    "OutgoingMessage",
    "TelegramNotifier",
    "build_notifier",
]
