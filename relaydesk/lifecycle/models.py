from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Mapping
from uuid import uuid4


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def new_id() -> str:
    return uuid4().hex


class ActorRole(str, Enum):
    REQUESTER = "requester"
    FULFILLER = "fulfiller"
    REVIEWER = "reviewer_admin"


# Promotion only ever moves up this ladder.
ROLE_RANK: dict[ActorRole, int] = {
    ActorRole.REQUESTER: 0,
    ActorRole.FULFILLER: 1,
    ActorRole.REVIEWER: 2,
}


class RequestStatus(str, Enum):
    PENDING = "pending"
    APPROVED = "approved"
    DECLINED = "declined"
    ASSIGNED = "assigned"
    ANSWERED = "answered"
    CLOSED = "closed"


ALLOWED_TRANSITIONS: dict[RequestStatus, frozenset[RequestStatus]] = {
    RequestStatus.PENDING: frozenset({RequestStatus.APPROVED, RequestStatus.DECLINED}),
    RequestStatus.APPROVED: frozenset({RequestStatus.ASSIGNED}),
    RequestStatus.ASSIGNED: frozenset({RequestStatus.ANSWERED, RequestStatus.APPROVED}),
    RequestStatus.ANSWERED: frozenset({RequestStatus.CLOSED, RequestStatus.APPROVED, RequestStatus.ASSIGNED}),
    RequestStatus.DECLINED: frozenset(),
    RequestStatus.CLOSED: frozenset(),
}

HELD_STATUSES = frozenset({RequestStatus.ASSIGNED, RequestStatus.ANSWERED})
TERMINAL_STATUSES = frozenset(status for status, targets in ALLOWED_TRANSITIONS.items() if not targets)


def can_transition(source: RequestStatus, target: RequestStatus) -> bool:
    return target in ALLOWED_TRANSITIONS.get(source, frozenset())


@dataclass(slots=True, frozen=True)
class MessageRef:
    channel: str
    message_id: str

    def to_dict(self) -> dict[str, str]:
        return {"channel": self.channel, "message_id": self.message_id}

    @classmethod
    def from_dict(cls, payload: Mapping[str, Any] | None) -> "MessageRef | None":
        if not payload:
            return None
        return cls(channel=str(payload["channel"]), message_id=str(payload["message_id"]))


@dataclass(slots=True)
class ActorProfile:
    display_name: str | None = None
    username: str | None = None
    locale: str | None = None


@dataclass(slots=True)
class Actor:
    actor_id: str
    role: ActorRole = ActorRole.REQUESTER
    banned: bool = False
    current_assignment_id: str | None = None
    locale: str = "ru"
    display_name: str | None = None
    username: str | None = None
    created_at: datetime = field(default_factory=utcnow)
    updated_at: datetime = field(default_factory=utcnow)

    @property
    def mention(self) -> str:
        if self.username:
            return f"@{self.username}"
        return self.display_name or f"ID:{self.actor_id}"

    def to_document(self) -> dict[str, Any]:
        return {
            "actor_id": self.actor_id,
            "role": self.role.value,
            "banned": self.banned,
            "current_assignment_id": self.current_assignment_id,
            "locale": self.locale,
            "display_name": self.display_name,
            "username": self.username,
            "created_at": self.created_at,
            "updated_at": self.updated_at,
        }

    @classmethod
    def from_document(cls, document: Mapping[str, Any]) -> "Actor":
        return cls(
            actor_id=str(document["actor_id"]),
            role=ActorRole(document.get("role", ActorRole.REQUESTER.value)),
            banned=bool(document.get("banned", False)),
            current_assignment_id=document.get("current_assignment_id"),
            locale=document.get("locale") or "ru",
            display_name=document.get("display_name"),
            username=document.get("username"),
            created_at=document.get("created_at") or utcnow(),
            updated_at=document.get("updated_at") or utcnow(),
        )


@dataclass(slots=True)
class Category:
    category_id: str
    name: str
    tag: str = ""

    @property
    def label(self) -> str:
        return f"{self.name} {self.tag}".strip()

    def to_document(self) -> dict[str, Any]:
        return {"category_id": self.category_id, "name": self.name, "tag": self.tag}

    @classmethod
    def from_document(cls, document: Mapping[str, Any]) -> "Category":
        return cls(
            category_id=str(document["category_id"]),
            name=str(document["name"]),
            tag=str(document.get("tag") or ""),
        )


@dataclass(slots=True)
class Request:
    request_id: str
    requester_id: str
    category_id: str
    text: str
    status: RequestStatus = RequestStatus.PENDING
    fulfiller_id: str | None = None
    answer_text: str | None = None
    reviewer_comment: str | None = None
    answered_by: str | None = None
    review_message: MessageRef | None = None
    offer_message: MessageRef | None = None
    created_at: datetime = field(default_factory=utcnow)
    updated_at: datetime = field(default_factory=utcnow)
    revision: int = 0

    def to_document(self) -> dict[str, Any]:
        return {
            "request_id": self.request_id,
            "requester_id": self.requester_id,
            "category_id": self.category_id,
            "text": self.text,
            "status": self.status.value,
            "fulfiller_id": self.fulfiller_id,
            "answer_text": self.answer_text,
            "reviewer_comment": self.reviewer_comment,
            "answered_by": self.answered_by,
            "review_message": self.review_message.to_dict() if self.review_message else None,
            "offer_message": self.offer_message.to_dict() if self.offer_message else None,
            "created_at": self.created_at,
            "updated_at": self.updated_at,
            "revision": self.revision,
        }

    @classmethod
    def from_document(cls, document: Mapping[str, Any]) -> "Request":
        return cls(
            request_id=str(document["request_id"]),
            requester_id=str(document["requester_id"]),
            category_id=str(document["category_id"]),
            text=str(document["text"]),
            status=RequestStatus(document["status"]),
            fulfiller_id=document.get("fulfiller_id"),
            answer_text=document.get("answer_text"),
            reviewer_comment=document.get("reviewer_comment"),
            answered_by=document.get("answered_by"),
            review_message=MessageRef.from_dict(document.get("review_message")),
            offer_message=MessageRef.from_dict(document.get("offer_message")),
            created_at=document.get("created_at") or utcnow(),
            updated_at=document.get("updated_at") or utcnow(),
            revision=int(document.get("revision", 0)),
        )


__all__ = [
    "ALLOWED_TRANSITIONS",
    "Actor",
    "ActorProfile",
    "ActorRole",
    "Category",
    "HELD_STATUSES",
    "MessageRef",
    "ROLE_RANK",
    "Request",
    "RequestStatus",
    "TERMINAL_STATUSES",
    "can_transition",
    "new_id",
    "utcnow",
]
