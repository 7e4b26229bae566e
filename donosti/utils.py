import logging
from pathlib import Path
from typing import Optional

from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from .database import get_db
from .kv import KVStore, MemoryKVStore, SqlKVStore
from .services.accounts import AccountService
from .services.content import ContentStore
from .services.identity import Actor, FastAPIUsersAuthProvider, IdentityResolver, require_admin
from .services.ledger import VotingLedger
from .services.photos import PhotoStore
from .settings.config import settings
from .users import get_jwt_strategy, get_user_manager

logger = logging.getLogger(__name__)

bearer_scheme = HTTPBearer(auto_error=False)


# -------------------------
# Storage dependencies
# -------------------------
async def get_kv(session=Depends(get_db)) -> KVStore:
    if settings.KV_BACKEND == "memory":
        return MemoryKVStore()
    return SqlKVStore(session)


def get_photo_store() -> PhotoStore:
    return PhotoStore(Path(settings.UPLOAD_DIR), settings.UPLOAD_BASE_URL, settings.PHOTO_MAX_SIDE)


async def get_content_store(
    kv: KVStore = Depends(get_kv),
    photos: PhotoStore = Depends(get_photo_store),
) -> ContentStore:
    return ContentStore(kv, photos)


async def get_ledger(kv: KVStore = Depends(get_kv)) -> VotingLedger:
    return VotingLedger(kv)


# -------------------------
# Identity dependencies
# -------------------------
async def get_auth_provider(user_manager=Depends(get_user_manager)):
    return FastAPIUsersAuthProvider(user_manager, get_jwt_strategy())


async def get_identity_resolver(
    provider=Depends(get_auth_provider),
    kv: KVStore = Depends(get_kv),
) -> IdentityResolver:
    return IdentityResolver(provider, kv)


def _token(credentials: Optional[HTTPAuthorizationCredentials]) -> Optional[str]:
    return credentials.credentials if credentials else None


async def get_current_actor(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
    resolver: IdentityResolver = Depends(get_identity_resolver),
) -> Actor:
    return await resolver.resolve(_token(credentials))


async def get_optional_actor(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
    resolver: IdentityResolver = Depends(get_identity_resolver),
) -> Optional[Actor]:
    return await resolver.resolve_optional(_token(credentials))


async def require_admin_actor(actor: Actor = Depends(get_current_actor)) -> Actor:
    return require_admin(actor)


async def get_account_service(
    kv: KVStore = Depends(get_kv),
    provider=Depends(get_auth_provider),
) -> AccountService:
    return AccountService(kv, provider, admin_emails=settings.ADMIN_EMAILS, admin_code=settings.ADMIN_CODE)
