"""
In-memory session store for the web adapter.

Why: The cookie carries only a random session id; the user id it belongs to
stays server-side. A user may hold several sessions (one per browser), and
all of them are revoked together when a teacher deactivates or deletes the
account.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, List, Optional
import secrets
import time


def _now() -> int:
    return int(time.time())


@dataclass
class SessionRecord:
    session_id: str
    user_id: str
    expires_at: int

    def expired(self, now: Optional[int] = None) -> bool:
        return self.expires_at < (_now() if now is None else now)


class SessionStore:
    def __init__(self):
        self._data: Dict[str, SessionRecord] = {}

    def create(self, *, user_id: str, ttl_seconds: int = 3600) -> SessionRecord:
        if not user_id:
            raise ValueError("user_id_required")
        rec = SessionRecord(session_id=secrets.token_urlsafe(24), user_id=user_id, expires_at=_now() + ttl_seconds)
        self._data[rec.session_id] = rec
        return rec

    def get(self, session_id: str) -> Optional[SessionRecord]:
        rec = self._data.get(session_id)
        if rec is None:
            return None
        if rec.expired():
            del self._data[session_id]
            return None
        return rec

    def delete(self, session_id: str) -> None:
        self._data.pop(session_id, None)

    def delete_for_user(self, user_id: str) -> List[str]:
        """Revoke every session of `user_id`; returns the removed session ids."""
        removed = [sid for sid, rec in self._data.items() if rec.user_id == user_id]
        for sid in removed:
            del self._data[sid]
        return removed
