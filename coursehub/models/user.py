from __future__ import annotations

from dataclasses import dataclass
from uuid import UUID, uuid4

from coursehub.models.principal import Role


@dataclass(frozen=True, slots=True)
class User:
    id: UUID
    username: str
    first_name: str
    last_name: str
    password_hash: str
    role: Role = Role.STUDENT

    @staticmethod
    def new(
        *,
        username: str,
        first_name: str,
        last_name: str,
        password_hash: str,
        role: Role = Role.STUDENT,
    ) -> User:
        return User(
            id=uuid4(),
            username=username,
            first_name=first_name,
            last_name=last_name,
            password_hash=password_hash,
            role=role,
        )
