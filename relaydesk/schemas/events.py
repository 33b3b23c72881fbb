from __future__ import annotations

from datetime import datetime
from typing import Literal

from pydantic import BaseModel, Field

from ..conversation.base import ConversationOutcome
from ..lifecycle.models import Actor, ActorProfile, Category, MessageRef, Request
from ..lifecycle.sessions import Session, session_to_payload
from ..services.notifications import InlineAction, OutgoingMessage

RequestStatusLiteral = Literal["pending", "approved", "declined", "assigned", "answered", "closed"]
ActorRoleLiteral = Literal["requester", "fulfiller", "reviewer_admin"]


class ProfileFields(BaseModel):
    display_name: str | None = Field(default=None, max_length=256)
    username: str | None = Field(default=None, max_length=64)
    locale: str | None = Field(default=None, min_length=2, max_length=8)

    def to_profile(self) -> ActorProfile:
        return ActorProfile(display_name=self.display_name, username=self.username, locale=self.locale)


class TextEvent(ProfileFields):
    text: str = Field(min_length=1)


class ActionEvent(ProfileFields):
    action: str = Field(min_length=1)
    request_id: str | None = Field(default=None, min_length=1)
    comment: str | None = None


class MessageRefModel(BaseModel):
    channel: str
    message_id: str

    @classmethod
    def from_domain(cls, ref: MessageRef | None) -> "MessageRefModel | None":
        if ref is None:
            return None
        return cls(channel=ref.channel, message_id=ref.message_id)


class InlineActionModel(BaseModel):
    name: str
    request_id: str
    label: str
    callback_data: str

    @classmethod
    def from_domain(cls, action: InlineAction) -> "InlineActionModel":
        return cls(
            name=action.name.value,
            request_id=action.request_id,
            label=action.label,
            callback_data=action.callback_data,
        )


class OutgoingMessageModel(BaseModel):
    channel: str
    text: str
    actions: list[InlineActionModel] = Field(default_factory=list)
    edit_of: MessageRefModel | None = None
    ref: MessageRefModel | None = None
    delivered: bool = True

    @classmethod
    def from_domain(cls, message: OutgoingMessage) -> "OutgoingMessageModel":
        return cls(
            channel=message.channel,
            text=message.text,
            actions=[InlineActionModel.from_domain(action) for action in message.actions],
            edit_of=MessageRefModel.from_domain(message.edit_of),
            ref=MessageRefModel.from_domain(message.ref),
            delivered=message.delivered,
        )


class SessionModel(BaseModel):
    flow: str
    step: str
    request_id: str | None = None
    category_id: str | None = None
    draft_text: str | None = None
    draft_answer: str | None = None

    @classmethod
    def from_domain(cls, session: Session | None) -> "SessionModel | None":
        if session is None:
            return None
        return cls(**session_to_payload(session))


class ConversationOutcomeModel(BaseModel):
    result: str
    handled: bool
    session: SessionModel | None = None
    messages: list[OutgoingMessageModel] = Field(default_factory=list)

    @classmethod
    def from_domain(cls, outcome: ConversationOutcome) -> "ConversationOutcomeModel":
        return cls(
            result=outcome.result,
            handled=outcome.handled,
            session=SessionModel.from_domain(outcome.session),
            messages=[OutgoingMessageModel.from_domain(message) for message in outcome.messages],
        )


class RequestModel(BaseModel):
    request_id: str
    requester_id: str
    category_id: str
    text: str
    status: RequestStatusLiteral
    fulfiller_id: str | None
    answer_text: str | None
    reviewer_comment: str | None
    created_at: datetime
    updated_at: datetime
    revision: int

    @classmethod
    def from_domain(cls, request: Request) -> "RequestModel":
        return cls(
            request_id=request.request_id,
            requester_id=request.requester_id,
            category_id=request.category_id,
            text=request.text,
            status=request.status.value,
            fulfiller_id=request.fulfiller_id,
            answer_text=request.answer_text,
            reviewer_comment=request.reviewer_comment,
            created_at=request.created_at,
            updated_at=request.updated_at,
            revision=request.revision,
        )


class CategoryModel(BaseModel):
    category_id: str
    name: str
    tag: str

    @classmethod
    def from_domain(cls, category: Category) -> "CategoryModel":
        return cls(category_id=category.category_id, name=category.name, tag=category.tag)


class CategoryCreate(BaseModel):
    name: str = Field(min_length=1, max_length=128)
    tag: str = Field(default="", max_length=64)


class CategoryUpdate(BaseModel):
    name: str | None = Field(default=None, min_length=1, max_length=128)
    tag: str | None = Field(default=None, max_length=64)


class ActorModel(BaseModel):
    actor_id: str
    role: ActorRoleLiteral
    banned: bool
    current_assignment_id: str | None
    locale: str
    display_name: str | None
    username: str | None

    @classmethod
    def from_domain(cls, actor: Actor) -> "ActorModel":
        return cls(
            actor_id=actor.actor_id,
            role=actor.role.value,
            banned=actor.banned,
            current_assignment_id=actor.current_assignment_id,
            locale=actor.locale,
            display_name=actor.display_name,
            username=actor.username,
        )


class ActorUpdate(BaseModel):
    role: ActorRoleLiteral | None = None
    banned: bool | None = None
    locale: str | None = Field(default=None, min_length=2, max_length=8)


__all__ = [
    "ActionEvent",
    "ActorModel",
    "ActorUpdate",
    "CategoryCreate",
    "CategoryModel",
    "CategoryUpdate",
    "ConversationOutcomeModel",
    "OutgoingMessageModel",
    "RequestModel",
    "RequestStatusLiteral",
    "SessionModel",
    "TextEvent",
]
