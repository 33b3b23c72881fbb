from __future__ import annotations


class LifecycleError(RuntimeError):
    """Base class for failures raised by the request lifecycle."""

    kind = "rejected"

    def __init__(self, reason: str, *, request_id: str | None = None, detail: str | None = None) -> None:
        super().__init__(detail or reason)
        self.reason = reason
        self.request_id = request_id

    @property
    def tag(self) -> str:
        return f"{self.kind}:{self.reason}"


class ValidationFailure(LifecycleError):
    """Input from an actor was rejected; no state changed."""


class PermissionDenied(LifecycleError):
    """The actor's capability set does not cover the operation."""


class InvalidTransition(LifecycleError):
    """The requested status edge is not part of the lifecycle graph."""


class StaleStateConflict(LifecycleError):
    """A precondition no longer holds at write time."""

    kind = "conflict"


class AlreadyHandled(StaleStateConflict):
    """Another actor already moved the request out of the expected status."""

    def __init__(self, *, request_id: str | None = None, detail: str | None = None) -> None:
        super().__init__("already_handled", request_id=request_id, detail=detail)


class AssignmentConflict(StaleStateConflict):
    """The actor already holds an active assignment."""

    def __init__(self, *, request_id: str | None = None, detail: str | None = None) -> None:
        super().__init__("assignment_held", request_id=request_id, detail=detail)


class NotFound(LifecycleError):
    """A referenced request, actor or category no longer exists."""

    kind = "conflict"

    def __init__(self, entity: str, entity_id: str, *, request_id: str | None = None) -> None:
        super().__init__("not_found", request_id=request_id, detail=f"{entity} {entity_id} not found")
        self.entity = entity
        self.entity_id = entity_id


class StoreFailure(LifecycleError):
    """The persistence collaborator failed; the operation was aborted."""

    kind = "failed"

    def __init__(self, operation: str, *, detail: str | None = None) -> None:
        super().__init__("store", detail=detail or f"store operation {operation} failed")
        self.operation = operation


__all__ = [
    "AlreadyHandled",
    "AssignmentConflict",
    "InvalidTransition",
    "LifecycleError",
    "NotFound",
    "PermissionDenied",
    "StaleStateConflict",
    "StoreFailure",
    "ValidationFailure",
]
