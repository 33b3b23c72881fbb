from __future__ import annotations

from collections import Counter
from typing import Any, Iterable, Mapping

from ..core.errors import AlreadyHandled, InvalidTransition, NotFound, StaleStateConflict, ValidationFailure
from ..core.logging import get_logger
from ..core.metrics import record_transition, record_transition_rejected
from .models import HELD_STATUSES, MessageRef, Request, RequestStatus, can_transition, new_id
from .store import REQUESTS, Store

logger = get_logger(name=__name__)


class RequestRepository:
    """Owns Request documents and the status graph they move along."""

    def __init__(self, store: Store) -> None:
        self._store = store

    async def create(self, *, requester_id: str, category_id: str, text: str) -> Request:
        if not text.strip():
            raise ValidationFailure("empty_text")
        request = Request(
            request_id=new_id(),
            requester_id=requester_id,
            category_id=category_id,
            text=text,
            status=RequestStatus.PENDING,
        )
        document = await self._store.save(REQUESTS, request.request_id, request.to_document(), create=True)
        logger.info("request_created", request_id=request.request_id, requester_id=requester_id, category_id=category_id)
        return Request.from_document(document)

    async def get(self, request_id: str) -> Request | None:
        document = await self._store.find_by_id(REQUESTS, request_id)
        return None if document is None else Request.from_document(document)

    async def require(self, request_id: str) -> Request:
        request = await self.get(request_id)
        if request is None:
            raise NotFound("request", request_id, request_id=request_id)
        return request

    async def transition(
        self,
        request_id: str,
        *,
        source: RequestStatus,
        target: RequestStatus,
        changes: Mapping[str, Any] | None = None,
        expected: Mapping[str, Any] | None = None,
    ) -> Request:
        """Move a request along one edge with a single guarded write.

        Edges outside the lifecycle graph are refused before the store is
        touched. A request that is no longer in ``source`` (or no longer
        matches ``expected``) raises :class:`AlreadyHandled`.
        """
        if not can_transition(source, target):
            record_transition_rejected(reason="invalid_edge")
            raise InvalidTransition(
                "invalid_transition",
                request_id=request_id,
                detail=f"{source.value} -> {target.value} is not a lifecycle edge",
            )
        fields: dict[str, Any] = dict(changes or {})
        fields["status"] = target.value
        if target not in HELD_STATUSES:
            fields["fulfiller_id"] = None
        elif not (fields.get("fulfiller_id") or (expected or {}).get("fulfiller_id")):
            raise InvalidTransition(
                "missing_fulfiller",
                request_id=request_id,
                detail=f"{target.value} requires a fulfiller",
            )
        guard: dict[str, Any] = {"status": source.value}
        guard.update(expected or {})
        try:
            document = await self._store.save(REQUESTS, request_id, fields, expected=guard)
        except StaleStateConflict as exc:
            record_transition_rejected(reason="stale")
            logger.info(
                "request_transition_stale",
                request_id=request_id,
                source=source.value,
                target=target.value,
                detail=str(exc),
            )
            raise AlreadyHandled(request_id=request_id, detail=str(exc)) from exc
        record_transition(source=source.value, target=target.value)
        logger.info("request_transitioned", request_id=request_id, source=source.value, target=target.value)
        return Request.from_document(document)

    async def attach_message(
        self,
        request_id: str,
        *,
        slot: str,
        ref: MessageRef | None,
        expected_status: RequestStatus,
    ) -> bool:
        """Record where a request's actionable message lives.

        Returns ``False`` when the request already moved past
        ``expected_status``; the reference is stale in that case.
        """
        if slot not in {"review_message", "offer_message"}:
            raise ValueError(f"unknown message slot: {slot}")
        try:
            await self._store.save(
                REQUESTS,
                request_id,
                {slot: ref.to_dict() if ref else None},
                expected={"status": expected_status.value},
            )
        except (StaleStateConflict, NotFound):
            logger.info("request_message_ref_skipped", request_id=request_id, slot=slot)
            return False
        return True

    async def list_for_requester(self, requester_id: str) -> list[Request]:
        documents = await self._store.find_where(REQUESTS, requester_id=requester_id)
        return self._sorted(documents, key="created_at")

    async def list_for_fulfiller(self, fulfiller_id: str) -> list[Request]:
        # Closed requests keep no fulfiller_id, so the answer history is tracked via answered_by.
        documents = await self._store.find_where(REQUESTS, answered_by=fulfiller_id)
        held = await self._store.find_where(REQUESTS, fulfiller_id=fulfiller_id)
        seen: dict[str, dict[str, Any]] = {doc["request_id"]: doc for doc in documents}
        for doc in held:
            seen.setdefault(doc["request_id"], doc)
        return self._sorted(seen.values(), key="updated_at")

    async def list_by_status(self, *statuses: RequestStatus) -> list[Request]:
        criteria: dict[str, Any] = {}
        if statuses:
            criteria["status"] = {status.value for status in statuses}
        documents = await self._store.find_where(REQUESTS, **criteria)
        return self._sorted(documents, key="created_at")

    @staticmethod
    def count_by_status(requests: Iterable[Request]) -> Counter[RequestStatus]:
        return Counter(request.status for request in requests)

    async def list_held_by(self, fulfiller_id: str) -> list[Request]:
        documents = await self._store.find_where(
            REQUESTS,
            fulfiller_id=fulfiller_id,
            status={status.value for status in HELD_STATUSES},
        )
        return self._sorted(documents, key="created_at")

    @staticmethod
    def _sorted(documents: Iterable[Mapping[str, Any]], *, key: str) -> list[Request]:
        requests = [Request.from_document(document) for document in documents]
        return sorted(requests, key=lambda request: getattr(request, key), reverse=True)


__all__ = ["RequestRepository"]
