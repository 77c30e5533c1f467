"""
syntora.api.deps — FastAPI dependency injection
=================================================
"""

from __future__ import annotations

import os
from functools import lru_cache
from typing import Annotated

import jwt
from fastapi import Depends, Header, HTTPException, status
from jwt.exceptions import InvalidTokenError
from sqlalchemy import Engine

from syntora.config import SyntoraConfig, load_config_or_default
from syntora.database.engine import create_db_engine
from syntora.services.gamification_service import GamificationService
from syntora.services.notifications import NotificationHub

_WEAK_SECRETS = frozenset({
    "super-secret-jwt-token-with-at-least-32-characters-long",
    "your-super-secret-jwt-token",
    "change-me",
    "secret",
    "dev",
    "",
})

_MIN_SECRET_LENGTH = 32

JWT_ALGORITHM = "HS256"
JWT_AUDIENCE = "authenticated"


def _load_jwt_secret() -> str:
    """Read SUPABASE_JWT_SECRET and refuse to start on a missing or weak value.

    Sessions are HS256 tokens signed by the auth provider, so this must be
    the provider's JWT secret (at least 32 characters).
    """
    secret = os.getenv("SUPABASE_JWT_SECRET", "")
    if not secret:
        problem = "is not set"
    elif secret in _WEAK_SECRETS:
        problem = f"is set to a known weak default ('{secret}')"
    elif len(secret) < _MIN_SECRET_LENGTH:
        problem = f"is too short ({len(secret)} chars, minimum {_MIN_SECRET_LENGTH})"
    else:
        return secret
    raise RuntimeError(
        f"SUPABASE_JWT_SECRET {problem}. "
        "Copy the JWT secret from the auth provider's API settings."
    )


JWT_SECRET: str = _load_jwt_secret()


@lru_cache(maxsize=1)
def get_engine() -> Engine:
    return create_db_engine()


@lru_cache(maxsize=1)
def get_config() -> SyntoraConfig:
    return load_config_or_default()


@lru_cache(maxsize=1)
def get_hub() -> NotificationHub:
    return NotificationHub(capacity=get_config().notification_buffer_size)


@lru_cache(maxsize=1)
def get_service() -> GamificationService:
    return GamificationService(get_engine(), get_config().gamification, hub=get_hub())


def get_current_user_id(
    authorization: Annotated[str | None, Header()] = None,
) -> str:
    """Validate the bearer JWT and return its subject.  Raises 401 if invalid."""
    if not authorization or not authorization.startswith("Bearer "):
        raise HTTPException(status.HTTP_401_UNAUTHORIZED, "Missing token")
    token = authorization.split(" ", 1)[1]
    try:
        payload = jwt.decode(
            token,
            JWT_SECRET,
            algorithms=[JWT_ALGORITHM],
            audience=JWT_AUDIENCE,
            options={"require": ["sub"]},
        )
    except InvalidTokenError:
        raise HTTPException(status.HTTP_401_UNAUTHORIZED, "Invalid token")
    user_id = str(payload["sub"]).strip()
    if not user_id:
        raise HTTPException(status.HTTP_401_UNAUTHORIZED, "Invalid token")
    return user_id


CurrentUser = Annotated[str, Depends(get_current_user_id)]
