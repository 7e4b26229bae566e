# services/accounts.py
"""Signup, verification codes and admin user management.

Profile flags (name, verified, admin) live in ``users:<id>``; credentials
belong to the auth provider.
"""
from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import List, Optional

from donosti import keys
from donosti.errors import ValidationFailed
from donosti.kv import KVStore
from donosti.schemas import SignupRequest, UserListing, UserProfile
from donosti.services import analytics
from donosti.services.content import ContentStore
from donosti.services.identity import Actor, AuthIdentity, AuthProvider, load_profile
from donosti.services.ledger import VotingLedger

logger = logging.getLogger(__name__)


async def verification_codes(kv: KVStore) -> List[str]:
    codes = await kv.get(keys.VERIFICATION_CODES)
    return list(codes) if isinstance(codes, list) else []


async def ensure_verification_codes(kv: KVStore, defaults: List[str]) -> bool:
    """Seed the accepted codes once; an existing list is left alone."""
    if await kv.get(keys.VERIFICATION_CODES) is not None:
        return False
    await kv.set(keys.VERIFICATION_CODES, list(defaults))
    await kv.commit()
    logger.info("Seeded %d verification code(s)", len(defaults))
    return True


class AccountService:
    def __init__(self, kv: KVStore, provider: AuthProvider, *, admin_emails: List[str], admin_code: str):
        self.kv = kv
        self.provider = provider
        self.admin_emails = {e.lower() for e in admin_emails}
        self.admin_code = admin_code

    async def _save_profile(self, profile: UserProfile) -> None:
        await self.kv.set(keys.user(profile.id), profile.dump())

    async def signup(self, payload: SignupRequest) -> UserProfile:
        code = (payload.verification_code or "").strip()
        is_verified = bool(code) and code in await verification_codes(self.kv)
        is_admin = payload.email.lower() in self.admin_emails or (bool(code) and code == self.admin_code)

        identity = await self.provider.create_user(payload.email, payload.password)
        profile = UserProfile(
            id=identity.id,
            email=identity.email,
            name=payload.name.strip() or "Anonymous",
            verified=is_verified,
            admin=is_admin,
        )
        await self._save_profile(profile)
        if is_verified:
            await analytics.record_verified_user(self.kv)
        await self.kv.commit()
        logger.info("Signed up %s (verified=%s admin=%s)", identity.id, is_verified, is_admin)
        return profile

    async def current_user(self, actor: Actor) -> UserProfile:
        return await load_profile(self.kv, AuthIdentity(id=actor.id, email=actor.email))

    async def redeem_code(self, actor: Actor, code: Optional[str]) -> UserProfile:
        code = (code or "").strip()
        if not code:
            raise ValidationFailed("No code provided")

        profile = await self.current_user(actor)
        changed = False
        if code in await verification_codes(self.kv) and not profile.verified:
            profile.verified = True
            changed = True
            await analytics.record_verified_user(self.kv)
        if code == self.admin_code and not profile.admin:
            profile.admin = True
            changed = True
        if not changed:
            raise ValidationFailed("Invalid code or no change")

        await self._save_profile(profile)
        await self.kv.commit()
        return profile

    async def list_users(self) -> List[UserListing]:
        identities = await self.provider.list_users()
        users = []
        for identity in identities:
            profile = await load_profile(self.kv, identity)
            users.append(UserListing(**profile.model_dump(), created_at=identity.created_at))

        # newest first; accounts without a creation date go last
        oldest = datetime.min.replace(tzinfo=timezone.utc)

        def created(u: UserListing) -> datetime:
            if u.created_at is None:
                return oldest
            if u.created_at.tzinfo is None:
                return u.created_at.replace(tzinfo=timezone.utc)
            return u.created_at

        users.sort(key=created, reverse=True)
        return users

    async def delete_user(self, admin: Actor, user_id: str, content: ContentStore, ledger: VotingLedger) -> None:
        if user_id == admin.id:
            raise ValidationFailed("Cannot delete your own account")

        # markers first so counters on surviving records are decremented
        retracted = await ledger.retract_user_markers(user_id)
        photo_urls = await content.purge_author(user_id)
        await self.kv.delete(keys.user(user_id))
        await self.kv.commit()
        await content.remove_photos(photo_urls)
        logger.info("User %s removed by %s (%d marker(s) retracted)", user_id, admin.id, retracted)

        try:
            await self.provider.delete_user(user_id)
        except Exception:
            # profile and content are already gone
            logger.exception("Delete auth user %s failed", user_id)

    async def bootstrap_admin(self, email: str, password: str, name: str = "Admin") -> UserProfile:
        """Make sure an admin account exists for ``email``; used on startup."""
        identity = await self.provider.get_by_email(email)
        if identity is None:
            identity = await self.provider.create_user(email, password)
            logger.info("Admin user created: %s", email)
        else:
            logger.info("Admin user already exists: %s", email)

        profile = await load_profile(self.kv, identity)
        if not profile.admin or profile.name == "Anonymous":
            profile.admin = True
            if profile.name == "Anonymous":
                profile.name = name
            await self._save_profile(profile)
            await self.kv.commit()
        return profile
