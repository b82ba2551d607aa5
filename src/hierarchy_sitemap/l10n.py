"""Locale handling: available locales and translated values."""

import logging
from typing import Iterable, List, Mapping, Optional

from .exceptions import ConfigError

logger = logging.getLogger(__name__)


class Translation:
    """A value with one text per locale."""

    def __init__(self, values: Mapping[str, str], fallback: Optional[str] = None):
        self.values = dict(values)
        self.fallback = fallback

    def get(self, locale: str) -> Optional[str]:
        if locale in self.values:
            return self.values[locale]
        if self.fallback is not None:
            return self.values.get(self.fallback)
        return None

    def __eq__(self, other) -> bool:
        if isinstance(other, Translation):
            return self.values == other.values
        return NotImplemented

    def __repr__(self) -> str:
        return f"Translation({self.values!r})"


def localize(value, locale: str):
    """Resolve a Translation to a single locale, pass anything else through."""
    if isinstance(value, Translation):
        return value.get(locale)
    return value


class LocaleContext:
    """The set of supported locales and the default one.

    The current locale is only a default: the builder threads the locale it
    renders in explicitly and never switches this value.
    """

    def __init__(self, locales: Iterable[str], current_locale: Optional[str] = None):
        self._locales: List[str] = [locale.strip() for locale in locales if locale and locale.strip()]
        if not self._locales:
            raise ConfigError("At least one locale must be available")

        self._current = current_locale or self._locales[0]
        if self._current not in self._locales:
            raise ConfigError(f"Current locale {self._current!r} is not an available locale")

    def available_locales(self) -> List[str]:
        return list(self._locales)

    def get_current_locale(self) -> str:
        return self._current

    def set_current_locale(self, locale: str) -> None:
        if locale not in self._locales:
            raise ConfigError(f"Unknown locale {locale!r}")
        logger.debug(f"Default locale changed from {self._current} to {locale}")
        self._current = locale
