from __future__ import annotations

import logging
from uuid import UUID

from coursehub.models.principal import Principal, Role
from coursehub.models.user import User
from coursehub.repos.user_repo import UserRepo
from coursehub.services import access, auth_service
from coursehub.services.errors import (
    ConflictError,
    NotFoundError,
    PermissionDeniedError,
    ValidationError,
)

logger = logging.getLogger(__name__)

SELF_REGISTER_ROLES = frozenset({Role.STUDENT, Role.TEACHER})


class UserValidationError(ValidationError):
    pass


class UserAlreadyExistsError(ConflictError):
    def __init__(self, username: str) -> None:
        super().__init__(f"username {username!r} is already taken")


class UserNotFoundError(NotFoundError):
    def __init__(self) -> None:
        super().__init__("User not found")


class UserPermissionError(PermissionDeniedError):
    pass


async def register_user(
    repo: UserRepo,
    *,
    username: str,
    password: str,
    first_name: str,
    last_name: str,
    role: Role = Role.STUDENT,
) -> User:
    username = username.strip()
    first_name = first_name.strip()
    last_name = last_name.strip()

    if not username:
        logger.warning("Rejected blank username")
        raise UserValidationError("username must be non-empty")
    if not first_name.isalpha() or not last_name.isalpha():
        logger.warning("Rejected non-alphabetic name username=%s", username)
        raise UserValidationError("first and last name must contain only letters")
    if role not in SELF_REGISTER_ROLES:
        logger.warning("Rejected self-registration as role=%s", role)
        raise UserValidationError(f"cannot self-register with role {role.value!r}")
    if await repo.get_by_username(username) is not None:
        logger.warning("Rejected duplicate username=%s", username)
        raise UserAlreadyExistsError(username)

    user = User.new(
        username=username,
        first_name=first_name,
        last_name=last_name,
        password_hash=auth_service.hash_password(password),
        role=role,
    )
    try:
        await repo.add(user)
    except ValueError:
        raise UserAlreadyExistsError(username) from None

    logger.info("Registered user id=%s username=%s role=%s", user.id, username, role)
    return user


async def get_user(repo: UserRepo, user_id: UUID) -> User:
    user = await repo.get_by_id(user_id)
    if user is None:
        raise UserNotFoundError()
    return user


async def delete_user(repo: UserRepo, principal: Principal, user_id: UUID) -> None:
    if not access.can_manage(principal.role, user_id, principal.user_id):
        logger.warning(
            "Delete denied: user=%s target=%s", principal.user_id, user_id
        )
        raise UserPermissionError("You can only delete your own account")
    if not await repo.delete(user_id):
        raise UserNotFoundError()
    logger.info("Deleted user id=%s by=%s", user_id, principal.user_id)
