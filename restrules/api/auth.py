"""
Authentication helper library for the core REST API
"""

import datetime
import logging
from typing import Optional

from argon2 import PasswordHasher, profiles
from argon2.exceptions import InvalidHashError, VerificationError
from jose import jwt

from . import base
from ..schemas import config
from ..settings import Settings


logger = logging.getLogger(__name__)

_password_check: Optional[PasswordHasher] = None
_weak_password_check: Optional[PasswordHasher] = None


def _get_password_check(weak: bool = False) -> PasswordHasher:
    global _password_check, _weak_password_check
    if weak:
        if _weak_password_check is None:
            _weak_password_check = PasswordHasher.from_parameters(profiles.CHEAPEST)
        return _weak_password_check
    if _password_check is None:
        _password_check = PasswordHasher.from_parameters(profiles.RFC_9106_LOW_MEMORY)
    return _password_check


def hash_password(password: str, weak: bool = False) -> str:
    return _get_password_check(weak).hash(password)


def check_client_credentials(name: str, password: str, settings: Settings) -> config.AuthClient:
    """
    Check the password of a configured client, raise ``Unauthorized`` otherwise
    """

    failure = base.Unauthorized("Invalid credentials", f"username={name!r}, password=?")
    clients = [c for c in settings.auth.clients if c.name == name]
    if len(clients) != 1:
        logger.debug(f"Login attempt for unknown client {name!r}")
        raise failure

    client = clients[0]
    checker = _get_password_check(settings.auth.allow_weak_insecure_password_hashes)
    try:
        checker.verify(client.password_hash, password)
    except (VerificationError, InvalidHashError) as exc:
        logger.debug(f"Login attempt for client {name!r} failed: {type(exc).__name__}")
        raise failure from exc
    if checker.check_needs_rehash(client.password_hash):
        logger.info(f"Password hash of client {name!r} should be renewed using 'hash-password'")
    return client


def create_access_token(
        subject: str,
        role: str,
        secret_key: Optional[str] = None,
        expiration_minutes: int = 120
) -> str:
    now = datetime.datetime.now(datetime.timezone.utc)
    return jwt.encode(
        {
            "exp": now + datetime.timedelta(minutes=expiration_minutes),
            "iat": now,
            "sub": subject,
            "role": role
        },
        secret_key or base.runtime_key,
        algorithm=jwt.ALGORITHMS.HS256
    )
