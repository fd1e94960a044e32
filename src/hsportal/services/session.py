"""Keeps an in-flight draft alive across the HydroShare login redirect.

Two string entries exist per contribution type: a JSON snapshot of the draft
carrying its own timestamp, and a bare timestamp marking that a login was
started. Both are short-lived continuation state, not a backup.
"""

from __future__ import annotations

import json
import time
from pathlib import Path
from typing import Callable, Protocol

import structlog
from pydantic import ValidationError as PydanticValidationError
from sqlmodel import Session

from hsportal.db import SessionEntry, create_engine_for_path, init_db, utcnow
from hsportal.models import SubmissionDraft

logger = structlog.get_logger(__name__)

DRAFT_TTL_MS = 30 * 60 * 1000
AUTH_PENDING_TTL_MS = 10 * 60 * 1000
LAST_TAB_KEY = "hydroshare-last-tab"


class KeyValueStore(Protocol):
    """String store that survives a full reload of the client."""

    def get(self, key: str) -> str | None:
        ...

    def set(self, key: str, value: str) -> None:
        ...

    def remove(self, key: str) -> None:
        ...


class MemoryStore(KeyValueStore):
    def __init__(self) -> None:
        self._items: dict[str, str] = {}

    def get(self, key: str) -> str | None:
        return self._items.get(key)

    def set(self, key: str, value: str) -> None:
        self._items[key] = value

    def remove(self, key: str) -> None:
        self._items.pop(key, None)


class SQLiteStore(KeyValueStore):
    """SQLite-backed store so state outlives the CLI process."""

    def __init__(self, db_path: Path) -> None:
        self._engine = create_engine_for_path(db_path)
        init_db(self._engine)

    def get(self, key: str) -> str | None:
        with Session(self._engine) as session:
            entry = session.get(SessionEntry, key)
            return entry.value if entry else None

    def set(self, key: str, value: str) -> None:
        with Session(self._engine) as session:
            entry = session.get(SessionEntry, key)
            if entry is None:
                entry = SessionEntry(key=key, value=value)
            entry.value = value
            entry.updated_at = utcnow()
            session.add(entry)
            session.commit()

    def remove(self, key: str) -> None:
        with Session(self._engine) as session:
            entry = session.get(SessionEntry, key)
            if entry is not None:
                session.delete(entry)
                session.commit()


class SessionContinuity:
    """Saves and restores one contribution type's draft around a login."""

    def __init__(
        self,
        store: KeyValueStore,
        contribution_type: str,
        *,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._store = store
        self._clock = clock
        self.form_key = f"hydroshare-form-{contribution_type}"
        self.auth_pending_key = f"hydroshare-auth-pending-{contribution_type}"
        self.contribution_type = contribution_type

    def _now_ms(self) -> int:
        return int(self._clock() * 1000)

    def save_draft(self, draft: SubmissionDraft) -> None:
        snapshot = draft.model_dump(mode="json")
        snapshot["timestamp"] = self._now_ms()
        self._store.set(self.form_key, json.dumps(snapshot))
        logger.info("session.draft_saved", key=self.form_key)

    def restore_draft(self) -> SubmissionDraft | None:
        raw = self._store.get(self.form_key)
        if not raw:
            return None
        try:
            snapshot = json.loads(raw)
            timestamp = int(snapshot.pop("timestamp"))
            draft = SubmissionDraft.model_validate(snapshot)
        except (ValueError, KeyError, TypeError, PydanticValidationError) as exc:
            logger.warning("session.restore_failed", key=self.form_key, error=str(exc))
            return None
        if self._now_ms() - timestamp >= DRAFT_TTL_MS:
            logger.info("session.draft_expired", key=self.form_key)
            return None
        return draft

    def clear_draft(self) -> None:
        self._store.remove(self.form_key)

    def mark_auth_pending(self) -> None:
        self._store.set(self.auth_pending_key, str(self._now_ms()))

    def is_returning_from_auth(self, has_token: bool) -> bool:
        raw = self._store.get(self.auth_pending_key)
        if not raw or not has_token:
            return False
        try:
            started = int(raw)
        except ValueError:
            return False
        return self._now_ms() - started < AUTH_PENDING_TTL_MS

    def clear_auth_pending(self) -> None:
        self._store.remove(self.auth_pending_key)

    def resume(self, has_token: bool) -> SubmissionDraft | None:
        """Restore the draft only when a login just completed, then drop the marker."""
        if not self.is_returning_from_auth(has_token):
            return None
        draft = self.restore_draft()
        self.clear_auth_pending()
        logger.info("session.resumed", key=self.form_key, restored=draft is not None)
        return draft

    def save_last_tab(self) -> None:
        self._store.set(LAST_TAB_KEY, self.contribution_type)

    def last_tab(self) -> str | None:
        return self._store.get(LAST_TAB_KEY)
