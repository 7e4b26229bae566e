from fastapi import APIRouter, Depends

from donosti.services.accounts import AccountService
from donosti.services.content import ContentStore
from donosti.services.identity import Actor
from donosti.services.ledger import VotingLedger
from donosti.utils import get_account_service, get_content_store, get_ledger, require_admin_actor

router = APIRouter(prefix="/admin", tags=["admin"])


@router.get("/users")
async def list_users(
    admin: Actor = Depends(require_admin_actor),
    accounts: AccountService = Depends(get_account_service),
):
    users = await accounts.list_users()
    return {"users": [u.dump() for u in users]}


@router.delete("/users/{user_id}")
async def delete_user(
    user_id: str,
    admin: Actor = Depends(require_admin_actor),
    accounts: AccountService = Depends(get_account_service),
    content: ContentStore = Depends(get_content_store),
    ledger: VotingLedger = Depends(get_ledger),
):
    await accounts.delete_user(admin, user_id, content, ledger)
    return {"success": True}
