# groomdesk/core/session_store.py
"""
Session store: the server-side stand-in for a browser's sessionStorage
(tab-scoped) and localStorage (durable).

Each concern owns its own keys, so writers never clobber each other, and
every accessor maps an absent key to a defined default.

Usage:

    store = SessionStore()
    store.set_impersonation("biz_1", "Acme Grooming")
    store.impersonation.active        # True
    store.clear_impersonation()
"""

import logging
from dataclasses import dataclass
from typing import Literal

from groomdesk.core.events import EventChannel
from groomdesk.models.session import ImpersonationRecord

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Keys
# ---------------------------------------------------------------------------

# Tab-scoped
IS_IMPERSONATING = "is_impersonating"
IMPERSONATING_BUSINESS_ID = "impersonating_business_id"
IMPERSONATING_BUSINESS_NAME = "impersonating_business_name"
AUTH_CONTEXT = "authContext"
DEMO_MODE = "demoMode"
BUSINESS_SLUG = "business_slug"

# Durable
LAST_ROUTE = "lastRoute"
LANGUAGE = "language"

IMPERSONATION_KEYS = (
    IS_IMPERSONATING,
    IMPERSONATING_BUSINESS_ID,
    IMPERSONATING_BUSINESS_NAME,
)

Language = Literal["en", "es"]
SUPPORTED_LANGUAGES: tuple[str, ...] = ("en", "es")
DEFAULT_LANGUAGE: Language = "en"


@dataclass(frozen=True)
class StoreChange:
    """A single mutation of a KeyValueStore (None = absent)."""

    key: str
    old: str | None
    new: str | None


class KeyValueStore:
    """
    In-memory string key/value store.

    Mutations are announced on `changes` only when the value actually
    changes, so subscribers can treat every event as meaningful.
    """

    def __init__(self) -> None:
        self._data: dict[str, str] = {}
        self.changes: EventChannel[StoreChange] = EventChannel()

    def get(self, key: str, default: str | None = None) -> str | None:
        return self._data.get(key, default)

    def set(self, key: str, value: str) -> None:
        old = self._data.get(key)
        self._data[key] = value
        if old != value:
            self.changes.publish(StoreChange(key, old, value))

    def clear(self, *keys: str) -> None:
        """Remove `keys`; with no arguments, remove everything."""
        targets = keys or tuple(self._data)
        for key in targets:
            if key in self._data:
                old = self._data.pop(key)
                self.changes.publish(StoreChange(key, old, None))

    def __contains__(self, key: object) -> bool:
        return key in self._data

    def __len__(self) -> int:
        return len(self._data)


class SessionStore:
    """
    Injected session context: a tab-scoped store plus a durable store.

    Typed accessors cover the impersonation record, the coarse auth
    context and the language preference. Lower-level helpers (route
    memory, demo mode, slug caching) use `tab` / `durable` directly with
    the key constants above.
    """

    def __init__(
        self,
        tab: KeyValueStore | None = None,
        durable: KeyValueStore | None = None,
    ) -> None:
        self.tab = tab if tab is not None else KeyValueStore()
        self.durable = durable if durable is not None else KeyValueStore()
        self.language_changes: EventChannel[str] = EventChannel()

    # ----- Impersonation -----

    @property
    def impersonation(self) -> ImpersonationRecord:
        if self.tab.get(IS_IMPERSONATING) != "true":
            return ImpersonationRecord()
        return ImpersonationRecord(
            active=True,
            business_id=self.tab.get(IMPERSONATING_BUSINESS_ID),
            business_name=self.tab.get(IMPERSONATING_BUSINESS_NAME),
        )

    def set_impersonation(self, business_id: str, business_name: str) -> None:
        self.tab.set(IS_IMPERSONATING, "true")
        self.tab.set(IMPERSONATING_BUSINESS_ID, business_id)
        self.tab.set(IMPERSONATING_BUSINESS_NAME, business_name)

    def clear_impersonation(self) -> None:
        self.tab.clear(*IMPERSONATION_KEYS)

    # ----- Language (durable) -----

    @property
    def language(self) -> str:
        value = self.durable.get(LANGUAGE)
        return value if value in SUPPORTED_LANGUAGES else DEFAULT_LANGUAGE

    def set_language(self, language: str) -> None:
        """
        Persist the display language and notify `language_changes`.

        Raises:
            ValueError: if `language` is not one of SUPPORTED_LANGUAGES.
        """
        if language not in SUPPORTED_LANGUAGES:
            raise ValueError(f"Unsupported language: {language!r}")
        previous = self.language
        self.durable.set(LANGUAGE, language)
        if previous != language:
            self.language_changes.publish(language)

    def close(self) -> None:
        """Release every subscriber attached to this session's channels."""
        self.tab.changes.clear()
        self.language_changes.clear()
