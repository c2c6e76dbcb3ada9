"""
Process-wide session registry keyed by phone number.

Lifecycle: a session is created on first contact (hydrated from durable
storage, or a fresh ``menu`` session when there is no record), mirrored in
memory for the lifetime of the process, and written through to storage on
every save. Sessions are never deleted, only reset to ``menu``.

Every read-modify-write of a session must happen while holding
``lock(phone)``; the dialogue controller and the reminder trigger both
go through it, so a reminder can't overwrite a turn in progress.
"""

import asyncio
import logging

from pydantic import ValidationError

from petcare.schemas.session_schema import Session
from petcare.storage.base import BookingStore, StorageError

logger = logging.getLogger(__name__)


class SessionStore:
    def __init__(self, store: BookingStore) -> None:
        self._store = store
        self._cache: dict[str, Session] = {}
        self._locks: dict[str, asyncio.Lock] = {}

    def lock(self, phone: str) -> asyncio.Lock:
        """Per-phone mutual exclusion for session read-modify-write."""
        return self._locks.setdefault(phone, asyncio.Lock())

    async def load(self, phone: str) -> Session:
        """Cached session, else hydrated from storage, else a fresh one. Never raises."""
        cached = self._cache.get(phone)
        if cached is not None:
            return cached.model_copy(deep=True)

        try:
            record = await self._store.load_session(phone)
        except StorageError:
            logger.error("Error loading session for %s, starting fresh", phone)
            record = None

        session = Session()
        if record is not None:
            try:
                session = Session.model_validate(record)
            except ValidationError:
                logger.warning("Discarding unreadable session record for %s", phone)

        self._cache[phone] = session
        return session.model_copy(deep=True)

    async def save(self, phone: str, session: Session) -> bool:
        """Update the cache, then upsert durably. Storage errors are logged, not raised."""
        self._cache[phone] = session.model_copy(deep=True)
        try:
            await self._store.save_session(phone, session.model_dump(mode="json"))
        except StorageError:
            logger.error("Error saving session for %s", phone)
            return False
        return True

    def cached_phones(self) -> list[str]:
        return list(self._cache)
