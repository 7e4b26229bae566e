# services/identity.py
"""Bearer token -> acting user.

Token validation belongs to the auth provider (fastapi-users in production);
the profile half of an actor (name, verified, admin) is read from the KV store
on every request, so there is no process-wide "current user".
"""
from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass
from datetime import datetime
from typing import List, Optional

from fastapi_users import exceptions as fu_exceptions
from sqlalchemy import select

from donosti import keys
from donosti.errors import Forbidden, Unauthenticated, ValidationFailed
from donosti.kv import KVStore
from donosti.schemas import UserCreate, UserProfile

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class AuthIdentity:
    id: str
    email: str
    created_at: Optional[datetime] = None


@dataclass(frozen=True)
class Actor:
    id: str
    email: str
    name: str = "Anonymous"
    verified: bool = False
    admin: bool = False

    def can_modify(self, author_id: str) -> bool:
        return self.admin or self.id == author_id


class AuthProvider:
    """What the site needs from an authentication backend."""

    async def get_user(self, token: str) -> Optional[AuthIdentity]:
        raise NotImplementedError

    async def get_by_email(self, email: str) -> Optional[AuthIdentity]:
        raise NotImplementedError

    async def create_user(self, email: str, password: str) -> AuthIdentity:
        raise NotImplementedError

    async def list_users(self) -> List[AuthIdentity]:
        raise NotImplementedError

    async def delete_user(self, user_id: str) -> None:
        raise NotImplementedError


class FastAPIUsersAuthProvider(AuthProvider):
    def __init__(self, user_manager, strategy):
        self.user_manager = user_manager
        self.strategy = strategy

    @staticmethod
    def _identity(user) -> AuthIdentity:
        return AuthIdentity(
            id=str(user.id),
            email=user.email,
            created_at=getattr(user, "created_at", None),
        )

    async def get_user(self, token: str) -> Optional[AuthIdentity]:
        user = await self.strategy.read_token(token, self.user_manager)
        if user is None or not user.is_active:
            return None
        return self._identity(user)

    async def get_by_email(self, email: str) -> Optional[AuthIdentity]:
        try:
            return self._identity(await self.user_manager.get_by_email(email))
        except fu_exceptions.UserNotExists:
            return None

    async def create_user(self, email: str, password: str) -> AuthIdentity:
        try:
            user = await self.user_manager.create(UserCreate(email=email, password=password))
        except fu_exceptions.UserAlreadyExists:
            raise ValidationFailed("A user with this email address has already been registered")
        except fu_exceptions.InvalidPasswordException as exc:
            raise ValidationFailed(str(exc.reason))
        return self._identity(user)

    async def list_users(self) -> List[AuthIdentity]:
        user_db = self.user_manager.user_db
        rows = (await user_db.session.execute(select(user_db.user_table))).scalars().all()
        return [self._identity(u) for u in rows]

    async def delete_user(self, user_id: str) -> None:
        try:
            user = await self.user_manager.get(uuid.UUID(user_id))
        except (ValueError, fu_exceptions.UserNotExists):
            logger.info("Auth user %s not found; nothing to delete", user_id)
            return
        await self.user_manager.delete(user)


async def load_profile(kv: KVStore, identity: AuthIdentity) -> UserProfile:
    raw = await kv.get(keys.user(identity.id)) or {}
    raw = {**raw, "id": identity.id}
    raw.setdefault("email", identity.email)
    return UserProfile.model_validate(raw)


class IdentityResolver:
    def __init__(self, provider: AuthProvider, kv: KVStore):
        self.provider = provider
        self.kv = kv

    async def resolve_optional(self, token: Optional[str]) -> Optional[Actor]:
        if not token:
            return None
        identity = await self.provider.get_user(token)
        if identity is None:
            return None
        profile = await load_profile(self.kv, identity)
        return Actor(
            id=identity.id,
            email=identity.email,
            name=profile.name or "Anonymous",
            verified=profile.verified,
            admin=profile.admin,
        )

    async def resolve(self, token: Optional[str]) -> Actor:
        actor = await self.resolve_optional(token)
        if actor is None:
            raise Unauthenticated()
        return actor


def require_admin(actor: Actor) -> Actor:
    if not actor.admin:
        raise Forbidden("Forbidden: Admin access required")
    return actor
