from __future__ import annotations

import asyncio

import pytest
from argon2 import PasswordHasher

from coursehub.models.user import User
from coursehub.repos.user_repo import InMemoryUserRepo
from coursehub.services.auth_service import (
    authenticate_user,
    hash_password,
    verify_password,
)


def _user(password_hash: str) -> User:
    return User.new(
        username="tee",
        first_name="Tee",
        last_name="Dee",
        password_hash=password_hash,
    )


def test_hash_and_verify() -> None:
    stored = hash_password("pw123")
    assert stored != "pw123"
    assert verify_password("pw123", stored)
    assert not verify_password("pw124", stored)


def test_hash_rejects_empty_password() -> None:
    with pytest.raises(ValueError):
        hash_password("")


@pytest.mark.parametrize("plain,stored", [("", "x"), ("pw", ""), ("pw", "not-a-hash")])
def test_verify_false_for_missing_or_malformed_input(plain: str, stored: str) -> None:
    assert verify_password(plain, stored) is False


def test_authenticate_user_rehashes_when_needed() -> None:
    # Deliberately weak parameters, small memory for the test.
    old_ph = PasswordHasher(time_cost=1, memory_cost=8 * 1024, parallelism=1)
    password = "pw123"
    old_hash = old_ph.hash(password)

    async def scenario() -> None:
        repo = InMemoryUserRepo()
        await repo.add(_user(old_hash))

        authed = await authenticate_user(repo, "tee", password)
        assert authed is not None

        stored = await repo.get_by_username("tee")
        assert stored is not None
        assert stored.password_hash != old_hash
        assert verify_password(password, stored.password_hash)

    asyncio.run(scenario())


def test_authenticate_user_keeps_current_hash() -> None:
    current = hash_password("pw123")

    async def scenario() -> None:
        repo = InMemoryUserRepo()
        await repo.add(_user(current))

        assert await authenticate_user(repo, "tee", "pw123") is not None
        stored = await repo.get_by_username("tee")
        assert stored.password_hash == current

    asyncio.run(scenario())


@pytest.mark.parametrize("username,password", [("tee", "wrong"), ("ghost", "pw123")])
def test_authenticate_user_rejects(username: str, password: str) -> None:
    async def scenario() -> None:
        repo = InMemoryUserRepo()
        await repo.add(_user(hash_password("pw123")))
        assert await authenticate_user(repo, username, password) is None

    asyncio.run(scenario())
