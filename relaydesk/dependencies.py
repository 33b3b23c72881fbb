from __future__ import annotations

from collections.abc import AsyncIterator
from dataclasses import dataclass

from fastapi import Depends

from .conversation.engine import ConversationEngine
from .core.config import Settings, get_settings
from .core.logging import get_logger
from .lifecycle.actors import ActorDirectory
from .lifecycle.categories import CategoryCatalog
from .lifecycle.repository import RequestRepository
from .lifecycle.sessions import SessionStore, build_session_store
from .lifecycle.store import Store, build_store
from .services.notifications import NotificationRouter, Notifier, build_notifier
from .services.translator import Translator

logger = get_logger(name=__name__)


@dataclass(slots=True)
class Services:
    settings: Settings
    store: Store
    sessions: SessionStore
    notifier: Notifier
    translator: Translator
    repository: RequestRepository
    actors: ActorDirectory
    categories: CategoryCatalog
    router: NotificationRouter
    engine: ConversationEngine

    async def close(self) -> None:
        await self.notifier.close()
        await self.sessions.close()
        await self.store.close()


def build_services(
    settings: Settings,
    *,
    store: Store | None = None,
    sessions: SessionStore | None = None,
    notifier: Notifier | None = None,
    translator: Translator | None = None,
) -> Services:
    """Wire the collaborators; any of them may be supplied by the caller."""
    if store is None:
        store = build_store(settings)
    if sessions is None:
        sessions = build_session_store(settings)
    notifier = notifier or build_notifier(settings)
    translator = translator or Translator(default_locale=settings.conversation.default_locale)
    repository = RequestRepository(store)
    actors = ActorDirectory(
        store,
        default_locale=settings.conversation.default_locale,
        bootstrap_reviewers=settings.reviewers.bootstrap_ids,
    )
    categories = CategoryCatalog(store)
    router = NotificationRouter(
        notifier=notifier,
        translator=translator,
        channels=settings.channels,
        repository=repository,
        actors=actors,
    )
    engine = ConversationEngine(
        settings=settings,
        sessions=sessions,
        repository=repository,
        actors=actors,
        categories=categories,
        router=router,
    )
    return Services(
        settings=settings,
        store=store,
        sessions=sessions,
        notifier=notifier,
        translator=translator,
        repository=repository,
        actors=actors,
        categories=categories,
        router=router,
        engine=engine,
    )


_services_singleton: Services | None = None


def get_services_singleton(settings: Settings) -> Services:
    global _services_singleton
    if _services_singleton is None:
        _services_singleton = build_services(settings)
        logger.info("services_initialized", environment=settings.environment)
    return _services_singleton


async def shutdown_services() -> None:
    global _services_singleton
    if _services_singleton is None:
        return
    services, _services_singleton = _services_singleton, None
    await services.close()
    logger.info("services_closed")


async def get_app_settings() -> AsyncIterator[Settings]:
    yield get_settings()


async def get_services(
    settings: Settings = Depends(get_app_settings),
) -> AsyncIterator[Services]:
    yield get_services_singleton(settings)


async def get_engine(
    services: Services = Depends(get_services),
) -> AsyncIterator[ConversationEngine]:
    yield services.engine
