"""Password hashing and username/password authentication.

Hashes are argon2id strings (parameters and salt encoded inline), so a
hasher upgrade only needs ``check_needs_rehash`` at the next login.
"""

from __future__ import annotations

import logging

from argon2 import PasswordHasher
from argon2.exceptions import InvalidHash, VerificationError, VerifyMismatchError

from coursehub.models.user import User
from coursehub.repos.user_repo import UserRepo

logger = logging.getLogger(__name__)

_ph = PasswordHasher()

# Verified against when the username is unknown, so a miss costs the same
# as a wrong password.
_DUMMY_HASH = _ph.hash("coursehub-unknown-user")


def hash_password(plain_password: str) -> str:
    if not plain_password:
        raise ValueError("password must be non-empty")
    return _ph.hash(plain_password)


def verify_password(plain_password: str, password_hash: str) -> bool:
    if not plain_password or not password_hash:
        return False
    try:
        return _ph.verify(password_hash, plain_password)
    except (VerifyMismatchError, VerificationError, InvalidHash):
        return False


async def authenticate_user(
    repo: UserRepo, username: str, password: str
) -> User | None:
    user = await repo.get_by_username(username.strip())
    if user is None:
        verify_password(password, _DUMMY_HASH)
        return None
    if not verify_password(password, user.password_hash):
        return None

    if _ph.check_needs_rehash(user.password_hash):
        await repo.update_password_hash(user.id, _ph.hash(password))
        logger.info("Rehashed password for user=%s", user.id)

    return user
