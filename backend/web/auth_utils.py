"""
Session cookie policy.

Why:
    The portal cookie is set by `/auth/session` and expired by `/auth/logout`.
    Browsers only drop a cookie when name, path and flags match, so both
    routes take their keyword arguments from here.
"""

from __future__ import annotations

from typing import Optional


def session_cookie_opts(environment: str, *, max_age: Optional[int] = None) -> dict:
    """Keyword arguments for `Response.set_cookie` / `delete_cookie` (dev = prod).

    Returns a mapping with keys:
      - httponly: True
      - path: "/"
      - secure: True
      - samesite: "lax"  # Sent on the top-level navigation back from Supabase Auth
      - max_age: only when given (omit it for `delete_cookie`)
    """
    opts = {"httponly": True, "path": "/", "secure": True, "samesite": "lax"}
    if max_age is not None:
        opts["max_age"] = int(max_age)
    return opts
