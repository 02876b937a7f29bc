from __future__ import annotations

import contextlib
import threading
from collections.abc import Iterator, Mapping

from filemount.core.config import get_settings

DEFAULT_LOCALE = "en"

DEFAULT_MESSAGES: dict[str, str] = {
    "carrierwave_integrity_error": "is not an allowed file type",
    "carrierwave_processing_error": "failed to be processed",
    "blank": "can't be blank",
    "too_long": "is too long (maximum is {count})",
    "too_short": "is too short (minimum is {count})",
}


class MessageResolver:
    """Resolve validation message keys for the active locale.

    Lookups fall back to English, and unknown keys are returned verbatim so
    free-form messages can be passed straight through.
    """

    def __init__(self, translations: Mapping[str, Mapping[str, str]] | None = None):
        self._translations: dict[str, dict[str, str]] = {DEFAULT_LOCALE: dict(DEFAULT_MESSAGES)}
        for locale, messages in (translations or {}).items():
            self.store_translations(locale, messages)
        self._local = threading.local()

    @property
    def locale(self) -> str:
        override = getattr(self._local, "locale", None)
        if override:
            return override
        return get_settings().default_locale

    def store_translations(self, locale: str, messages: Mapping[str, str]) -> None:
        self._translations.setdefault(locale, {}).update(messages)

    @contextlib.contextmanager
    def use_locale(self, locale: str) -> Iterator[None]:
        previous = getattr(self._local, "locale", None)
        self._local.locale = locale
        try:
            yield
        finally:
            self._local.locale = previous

    def resolve(self, key: str, locale: str | None = None, **params: object) -> str:
        active = locale or self.locale
        template = self._translations.get(active, {}).get(key)
        if template is None:
            template = self._translations[DEFAULT_LOCALE].get(key, key)
        if params:
            return template.format(**params)
        return template


default_resolver = MessageResolver()


__all__ = [
    "DEFAULT_LOCALE",
    "DEFAULT_MESSAGES",
    "MessageResolver",
    "default_resolver",
]
