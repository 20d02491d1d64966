"""Account store used to verify browser logins and to fill ID-token claims.

The gateway only needs ``authenticate`` and ``get_user``; the remaining
operations exist for seeding and administration.
"""

from __future__ import annotations

import asyncio
import time
from dataclasses import dataclass, field
from typing import Protocol

from argon2 import PasswordHasher
from argon2.exceptions import InvalidHashError, VerificationError

from indian_store_mcp.audit import get_logger

logger = get_logger("users")


class UserStoreError(Exception):
    pass


class InvalidCredentials(UserStoreError):
    """Unknown email or wrong password; callers must not tell them apart."""


class UserAlreadyExists(UserStoreError):
    pass


class UserNotFound(UserStoreError):
    pass


@dataclass(frozen=True)
class User:
    email: str
    name: str
    password_hash: str = field(repr=False)
    created_at: float = field(default_factory=time.time)


class UserStore(Protocol):
    async def authenticate(self, email: str, password: str) -> User: ...

    async def get_user(self, email: str) -> User | None: ...


class InMemoryUserStore:
    def __init__(self, hasher: PasswordHasher | None = None) -> None:
        self._hasher = hasher or PasswordHasher()
        self._users: dict[str, User] = {}
        self._lock = asyncio.Lock()

    async def add_user(self, email: str, password: str, name: str) -> User:
        key = _normalize(email)
        password_hash = self._hasher.hash(password)
        async with self._lock:
            if key in self._users:
                raise UserAlreadyExists(email)
            user = User(email=email.strip(), name=name, password_hash=password_hash)
            self._users[key] = user
        logger.info("user_created", email=user.email, name=name)
        return user

    async def authenticate(self, email: str, password: str) -> User:
        user = await self.get_user(email)
        if user is None:
            raise InvalidCredentials(email)
        try:
            self._hasher.verify(user.password_hash, password)
        except (VerificationError, InvalidHashError) as exc:
            raise InvalidCredentials(email) from exc
        return user

    async def get_user(self, email: str) -> User | None:
        async with self._lock:
            return self._users.get(_normalize(email))

    async def list_users(self) -> list[User]:
        async with self._lock:
            users = list(self._users.values())
        return sorted(users, key=lambda u: u.created_at, reverse=True)

    async def delete_user(self, email: str) -> None:
        async with self._lock:
            user = self._users.pop(_normalize(email), None)
        if user is None:
            raise UserNotFound(email)
        logger.info("user_deleted", email=user.email)

    async def seed_default(self, email: str, password: str, name: str) -> None:
        """Create the default account when the store holds no users."""
        async with self._lock:
            empty = not self._users
        if not empty or not email:
            return
        logger.info("seeding_default_user", email=email)
        try:
            await self.add_user(email, password, name)
        except UserAlreadyExists:
            logger.info("seed_user_exists", email=email)

    def __len__(self) -> int:
        return len(self._users)


def _normalize(email: str) -> str:
    return email.strip().lower()
