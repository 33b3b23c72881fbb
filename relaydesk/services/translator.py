from __future__ import annotations

from typing import Any, Mapping

from ..core.logging import get_logger
from .catalog import CATALOGS

logger = get_logger(name=__name__)


class _SafeParams(dict):
    def __missing__(self, key: str) -> str:
        return "{" + key + "}"


class Translator:
    """Resolve message keys against per-locale catalogs.

    Lookup order is the requested locale, then the default locale, then the
    key itself, so a missing translation never breaks a conversation.
    """

    def __init__(
        self,
        catalogs: Mapping[str, Mapping[str, str]] | None = None,
        *,
        default_locale: str = "ru",
    ) -> None:
        self._catalogs = {locale: dict(entries) for locale, entries in (catalogs or CATALOGS).items()}
        self._default_locale = default_locale

    @property
    def default_locale(self) -> str:
        return self._default_locale

    @property
    def locales(self) -> tuple[str, ...]:
        return tuple(sorted(self._catalogs))

    def resolve(self, key: str, locale: str | None = None, **params: Any) -> str:
        template = self._lookup(key, locale or self._default_locale)
        if template is None:
            logger.debug("translation_missing", key=key, locale=locale)
            return key
        if not params:
            return template
        return template.format_map(_SafeParams(params))

    def has(self, key: str, locale: str | None = None) -> bool:
        return self._lookup(key, locale or self._default_locale) is not None

    def matches(self, text: str, key: str, locale: str | None = None) -> bool:
        """Return True when ``text`` is the label ``key`` renders to."""
        normalized = text.strip().casefold()
        candidates = {self.resolve(key, locale), self.resolve(key, self._default_locale)}
        return any(normalized == candidate.strip().casefold() for candidate in candidates)

    def _lookup(self, key: str, locale: str) -> str | None:
        for candidate in (locale, self._default_locale):
            catalog = self._catalogs.get(candidate)
            if catalog and key in catalog:
                return catalog[key]
        return None


__all__ = ["Translator"]
