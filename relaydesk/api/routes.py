from __future__ import annotations

from fastapi import APIRouter, Depends, Header, HTTPException, Response, status

from ..conversation.engine import ConversationEngine
from ..core.capabilities import Capability, require_capability, resolve_capabilities
from ..core.errors import LifecycleError, NotFound, PermissionDenied, StaleStateConflict, StoreFailure
from ..core.logging import get_logger
from ..dependencies import Services, get_engine, get_services
from ..lifecycle.models import Actor, ActorRole, RequestStatus
from ..schemas.events import (
    ActionEvent,
    ActorModel,
    ActorUpdate,
    CategoryCreate,
    CategoryModel,
    CategoryUpdate,
    ConversationOutcomeModel,
    RequestModel,
    RequestStatusLiteral,
    TextEvent,
)

logger = get_logger(name=__name__)

router = APIRouter()

_CONFLICT_REASONS = {"category_in_use", "category_exists"}


def _http_error(exc: LifecycleError) -> HTTPException:
    if isinstance(exc, NotFound):
        code = status.HTTP_404_NOT_FOUND
    elif isinstance(exc, PermissionDenied):
        code = status.HTTP_403_FORBIDDEN
    elif isinstance(exc, StaleStateConflict) or exc.reason in _CONFLICT_REASONS:
        code = status.HTTP_409_CONFLICT
    elif isinstance(exc, StoreFailure):
        code = status.HTTP_503_SERVICE_UNAVAILABLE
    else:
        code = status.HTTP_400_BAD_REQUEST
    return HTTPException(status_code=code, detail=exc.tag)


async def get_current_actor(
    x_actor_id: str = Header(..., alias="X-Actor-Id", min_length=1),
    services: Services = Depends(get_services),
) -> Actor:
    try:
        return await services.actors.get_or_register(x_actor_id)
    except LifecycleError as exc:
        raise _http_error(exc) from exc


def require_actor_capability(capability: Capability):
    def _dependency(actor: Actor = Depends(get_current_actor)) -> Actor:
        try:
            require_capability(actor, capability)
        except PermissionDenied as exc:
            raise _http_error(exc) from exc
        return actor

    return _dependency


@router.post("/events/text", response_model=ConversationOutcomeModel, tags=["events"])
async def submit_text_event(
    payload: TextEvent,
    x_actor_id: str = Header(..., alias="X-Actor-Id", min_length=1),
    engine: ConversationEngine = Depends(get_engine),
) -> ConversationOutcomeModel:
    outcome = await engine.submit_text(x_actor_id, payload.text, profile=payload.to_profile())
    return ConversationOutcomeModel.from_domain(outcome)


@router.post("/events/action", response_model=ConversationOutcomeModel, tags=["events"])
async def submit_action_event(
    payload: ActionEvent,
    x_actor_id: str = Header(..., alias="X-Actor-Id", min_length=1),
    engine: ConversationEngine = Depends(get_engine),
) -> ConversationOutcomeModel:
    outcome = await engine.handle_action(
        payload.action,
        payload.request_id,
        x_actor_id,
        comment=payload.comment,
        profile=payload.to_profile(),
    )
    return ConversationOutcomeModel.from_domain(outcome)


@router.get("/requests", response_model=list[RequestModel], tags=["requests"])
async def list_requests(
    status_filter: RequestStatusLiteral | None = None,
    services: Services = Depends(get_services),
    actor: Actor = Depends(require_actor_capability(Capability.REQUEST)),
) -> list[RequestModel]:
    try:
        if Capability.REVIEW in resolve_capabilities(actor):
            statuses = (RequestStatus(status_filter),) if status_filter else ()
            requests = await services.repository.list_by_status(*statuses)
        else:
            requests = await services.repository.list_for_requester(actor.actor_id)
            if status_filter:
                requests = [request for request in requests if request.status.value == status_filter]
    except LifecycleError as exc:
        raise _http_error(exc) from exc
    return [RequestModel.from_domain(request) for request in requests]


@router.get("/requests/{request_id}", response_model=RequestModel, tags=["requests"])
async def get_request(
    request_id: str,
    services: Services = Depends(get_services),
    actor: Actor = Depends(require_actor_capability(Capability.REQUEST)),
) -> RequestModel:
    try:
        request = await services.repository.get(request_id)
    except LifecycleError as exc:
        raise _http_error(exc) from exc
    if request is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Request not found")
    involved = {request.requester_id, request.fulfiller_id, request.answered_by}
    if actor.actor_id not in involved and Capability.REVIEW not in resolve_capabilities(actor):
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Request not found")
    return RequestModel.from_domain(request)


@router.get("/categories", response_model=list[CategoryModel], tags=["categories"])
async def list_categories(
    services: Services = Depends(get_services),
    _: Actor = Depends(require_actor_capability(Capability.REQUEST)),
) -> list[CategoryModel]:
    try:
        categories = await services.categories.list()
    except LifecycleError as exc:
        raise _http_error(exc) from exc
    return [CategoryModel.from_domain(category) for category in categories]


@router.post(
    "/categories",
    response_model=CategoryModel,
    status_code=status.HTTP_201_CREATED,
    tags=["categories"],
)
async def create_category(
    payload: CategoryCreate,
    services: Services = Depends(get_services),
    actor: Actor = Depends(require_actor_capability(Capability.REVIEW)),
) -> CategoryModel:
    try:
        category = await services.categories.create(name=payload.name, tag=payload.tag)
    except LifecycleError as exc:
        raise _http_error(exc) from exc
    logger.info("category_created_via_api", category_id=category.category_id, actor_id=actor.actor_id)
    return CategoryModel.from_domain(category)


@router.patch("/categories/{category_id}", response_model=CategoryModel, tags=["categories"])
async def update_category(
    category_id: str,
    payload: CategoryUpdate,
    services: Services = Depends(get_services),
    _: Actor = Depends(require_actor_capability(Capability.REVIEW)),
) -> CategoryModel:
    try:
        category = await services.categories.rename(category_id, name=payload.name, tag=payload.tag)
    except LifecycleError as exc:
        raise _http_error(exc) from exc
    return CategoryModel.from_domain(category)


@router.delete(
    "/categories/{category_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    response_class=Response,
    tags=["categories"],
)
async def delete_category(
    category_id: str,
    services: Services = Depends(get_services),
    _: Actor = Depends(require_actor_capability(Capability.REVIEW)),
) -> Response:
    try:
        await services.categories.delete(category_id)
    except LifecycleError as exc:
        raise _http_error(exc) from exc
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.patch("/actors/{actor_id}", response_model=ActorModel, tags=["actors"])
async def update_actor(
    actor_id: str,
    payload: ActorUpdate,
    services: Services = Depends(get_services),
    reviewer: Actor = Depends(require_actor_capability(Capability.REVIEW)),
) -> ActorModel:
    try:
        actor = await services.actors.require(actor_id)
        if payload.role is not None:
            actor = await services.actors.set_role(actor_id, ActorRole(payload.role))
        if payload.banned is not None:
            actor = await services.actors.set_banned(actor_id, payload.banned)
        if payload.locale is not None:
            actor = await services.actors.set_locale(actor_id, payload.locale)
    except LifecycleError as exc:
        raise _http_error(exc) from exc
    logger.info("actor_updated_via_api", actor_id=actor_id, reviewer_id=reviewer.actor_id)
    return ActorModel.from_domain(actor)


__all__ = ["get_current_actor", "require_actor_capability", "router"]
