"""
Shared helpers for API tests: seed profiles, open sessions, mint tokens.
"""
from __future__ import annotations

import time
from typing import Any, Dict, Optional
from uuid import uuid4

from jose import jwt

import main  # type: ignore
from identity_access.domain import User
from routes.common import _get_repo  # type: ignore

TEST_JWT_SECRET = "test-only-jwt-secret-0123456789abcdef"


def seed_user(
    *,
    role: str = "student",
    classroom: str = "A",
    year: int = 6,
    name: Optional[str] = None,
    is_active: bool = True,
    user_id: Optional[str] = None,
) -> User:
    uid = user_id or str(uuid4())
    user = User(
        id=uid,
        name=name or f"{role}-{uid[:6]}",
        email=f"{uid[:8]}@school.example",
        role=role,
        is_active=is_active,
        classroom=classroom,
        year=year,
    )
    return _get_repo().create_profile(user)


def login(client, user: User) -> str:
    """Open a server-side session for `user` and attach the cookie to `client`."""
    rec = main.SESSION_STORE.create(user_id=user.id)
    client.cookies.set(main.SESSION_COOKIE_NAME, rec.session_id)
    return rec.session_id


def mint_token(
    sub: str,
    *,
    email: str = "new.student@school.example",
    metadata: Optional[Dict[str, Any]] = None,
    expires_in: int = 300,
    audience: str = "authenticated",
    secret: str = TEST_JWT_SECRET,
) -> str:
    claims = {
        "sub": sub,
        "email": email,
        "aud": audience,
        "exp": int(time.time()) + expires_in,
        "user_metadata": metadata or {},
    }
    return jwt.encode(claims, secret, algorithm="HS256")


WRITE_HEADERS = {"Origin": "http://test"}
