from __future__ import annotations

import json
import logging
import threading
from dataclasses import replace
from typing import Callable, List, Optional, TypeVar

from forkcast.errors import SessionNotFound, StorageError
from forkcast.sessions.models import ChatSession, Message, new_session, utcnow
from forkcast.sessions.storage import LocalStorage


logger = logging.getLogger("forkcast.sessions")

STORAGE_KEY = "forkcast-chat-sessions"

T = TypeVar("T")


class SessionStore:
    """Ordered chat sessions (newest first) mirrored to local storage.

    All writes go through ``_mutate``, which re-serializes the whole
    collection afterwards, so the persisted entry never lags behind memory.
    After construction there is always at least one session and a current one.
    """

    def __init__(self, storage: LocalStorage, key: str = STORAGE_KEY) -> None:
        self._lock = threading.RLock()
        self._storage = storage
        self._key = key
        self._sessions: List[ChatSession] = []
        self.current_session_id = ""
        self._load()

    # --- Loading / persistence ------------------------------------------------
    def _load(self) -> None:
        sessions: List[ChatSession] = []
        raw = self._storage.get_item(self._key)
        if raw:
            try:
                sessions = [ChatSession.from_dict(item) for item in json.loads(raw)]
            except (ValueError, TypeError, KeyError, AttributeError) as e:
                logger.warning("Discarding unreadable chat history in %s: %s", self._key, e)
                sessions = []
        if sessions:
            self._sessions = sessions
            self.current_session_id = sessions[0].id
        else:
            self.create_new_session()

    def _persist(self) -> None:
        payload = json.dumps([s.to_dict() for s in self._sessions], ensure_ascii=False)
        self._storage.set_item(self._key, payload)

    def _mutate(self, change: Callable[[List[ChatSession]], T]) -> T:
        with self._lock:
            result = change(self._sessions)
            try:
                self._persist()
            except StorageError:
                logger.exception("Failed to persist chat sessions")
                raise
            return result

    def _find(self, session_id: str) -> ChatSession:
        for s in self._sessions:
            if s.id == session_id:
                return s
        raise SessionNotFound(session_id)

    # --- Queries ----------------------------------------------------------------
    @property
    def sessions(self) -> List[ChatSession]:
        with self._lock:
            return list(self._sessions)

    @property
    def current_session(self) -> Optional[ChatSession]:
        with self._lock:
            for s in self._sessions:
                if s.id == self.current_session_id:
                    return s
            return None

    def get_session(self, session_id: str) -> ChatSession:
        with self._lock:
            return self._find(session_id)

    # --- Session operations -------------------------------------------------------
    def create_new_session(self) -> ChatSession:
        session = new_session()

        def change(sessions: List[ChatSession]) -> ChatSession:
            sessions.insert(0, session)
            self.current_session_id = session.id
            return session

        return self._mutate(change)

    def select_session(self, session_id: str) -> ChatSession:
        with self._lock:
            session = self._find(session_id)
            self.current_session_id = session.id
            return session

    def delete_session(self, session_id: str) -> None:
        def change(sessions: List[ChatSession]) -> None:
            sessions[:] = [s for s in sessions if s.id != session_id]

        with self._lock:
            self._find(session_id)
            self._mutate(change)
            if session_id != self.current_session_id:
                return
            if self._sessions:
                self.current_session_id = self._sessions[0].id
            else:
                self.create_new_session()

    # --- Message operations -------------------------------------------------------
    def append_message(self, session_id: str, message: Message, *, title: Optional[str] = None) -> Message:
        def change(sessions: List[ChatSession]) -> Message:
            session = self._find(session_id)
            session.messages.append(message)
            if title is not None:
                session.title = title
            session.updated_at = utcnow()
            return message

        return self._mutate(change)

    def append_to_message(self, session_id: str, message_id: str, text: str) -> Message:
        """Grow an in-flight assistant message; everything else stays immutable."""

        def change(sessions: List[ChatSession]) -> Message:
            session = self._find(session_id)
            for i, m in enumerate(session.messages):
                if m.id == message_id:
                    session.messages[i] = replace(m, content=m.content + text)
                    session.updated_at = utcnow()
                    return session.messages[i]
            raise KeyError(message_id)

        return self._mutate(change)
