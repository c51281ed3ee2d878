from __future__ import annotations

from dataclasses import replace
from typing import Protocol
from uuid import UUID

from coursehub.models.user import User


class UserRepo(Protocol):
    async def get_by_id(self, user_id: UUID) -> User | None: ...
    async def get_by_username(self, username: str) -> User | None: ...
    async def add(self, user: User) -> None: ...
    async def update_password_hash(self, user_id: UUID, password_hash: str) -> None: ...
    async def delete(self, user_id: UUID) -> bool: ...


class InMemoryUserRepo:
    def __init__(self) -> None:
        self._by_username: dict[str, User] = {}
        self._by_id: dict[UUID, User] = {}

    async def get_by_id(self, user_id: UUID) -> User | None:
        return self._by_id.get(user_id)

    async def get_by_username(self, username: str) -> User | None:
        return self._by_username.get(username)

    async def add(self, user: User) -> None:
        if user.username in self._by_username:
            raise ValueError("username already exists")
        self._by_username[user.username] = user
        self._by_id[user.id] = user

    async def update_password_hash(self, user_id: UUID, password_hash: str) -> None:
        u = self._by_id.get(user_id)
        if u is None:
            raise KeyError("user not found")

        updated = replace(u, password_hash=password_hash)
        self._by_id[user_id] = updated
        self._by_username[updated.username] = updated

    async def delete(self, user_id: UUID) -> bool:
        u = self._by_id.pop(user_id, None)
        if u is None:
            return False
        self._by_username.pop(u.username, None)
        return True
