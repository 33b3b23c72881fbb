from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Mapping

from ..lifecycle.models import Actor
from ..lifecycle.sessions import Session
from ..services.notifications import ActionName, OutgoingMessage, Outbox
from ..services.translator import Translator

OK = "ok"
IGNORED = "ignored"


class Signal(str, Enum):
    CONFIRM = "confirm"
    EDIT = "edit"
    BACK = "back"
    REJECT = "reject"


SIGNAL_LABELS: dict[Signal, tuple[str, ...]] = {
    Signal.CONFIRM: ("buttons.confirm", "buttons.confirm_answer"),
    Signal.EDIT: ("buttons.edit", "buttons.edit_answer"),
    Signal.BACK: ("buttons.back",),
    Signal.REJECT: ("buttons.reject_assignment",),
}

ACTION_SIGNALS: dict[ActionName, Signal] = {
    ActionName.CONFIRM: Signal.CONFIRM,
    ActionName.EDIT: Signal.EDIT,
    ActionName.BACK: Signal.BACK,
}


def read_signal(translator: Translator, text: str, locale: str | None) -> Signal | None:
    """Recognize a typed navigation command in the actor's locale."""
    for signal, keys in SIGNAL_LABELS.items():
        if any(translator.matches(text, key, locale) for key in keys):
            return signal
    return None


@dataclass(slots=True)
class Turn:
    """One inbound event for one actor, handled under that actor's lock."""

    actor: Actor
    session: Session | None
    outbox: Outbox = field(default_factory=Outbox)


@dataclass(slots=True)
class TurnResult:
    session: Session | None
    result: str = OK
    handled: bool = True
    request_id: str | None = None

    @classmethod
    def ignored(cls, session: Session | None) -> "TurnResult":
        return cls(session=session, result=IGNORED, handled=False)

    @classmethod
    def rejected(cls, session: Session | None, reason: str) -> "TurnResult":
        return cls(session=session, result=f"rejected:{reason}")


@dataclass(slots=True)
class ConversationOutcome:
    """What the transport layer gets back for one event.

    ``messages`` lists every message already dispatched through the notifier
    while handling the event, replies to the actor included.
    """

    result: str
    messages: list[OutgoingMessage] = field(default_factory=list)
    session: Session | None = None
    handled: bool = True

    @property
    def ok(self) -> bool:
        return self.result == OK


def ensure_exhaustive(machine: str, steps: type[Enum], handlers: Mapping[Any, Any]) -> None:
    """Fail at import time when a step has no handler."""
    missing = [step.value for step in steps if step not in handlers]
    if missing:
        raise RuntimeError(f"{machine} machine has no handler for steps: {', '.join(missing)}")


__all__ = [
    "ACTION_SIGNALS",
    "ConversationOutcome",
    "IGNORED",
    "OK",
    "Signal",
    "Turn",
    "TurnResult",
    "ensure_exhaustive",
    "read_signal",
]
