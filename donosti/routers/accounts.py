from fastapi import APIRouter, Depends

from donosti.schemas import SignupRequest, VerifyCodeRequest
from donosti.services.accounts import AccountService
from donosti.services.identity import Actor
from donosti.utils import get_account_service, get_current_actor

router = APIRouter(tags=["accounts"])


@router.post("/signup")
async def signup(payload: SignupRequest, accounts: AccountService = Depends(get_account_service)):
    user = await accounts.signup(payload)
    return {"success": True, "user": user.dump()}


@router.get("/user")
async def current_user(
    actor: Actor = Depends(get_current_actor),
    accounts: AccountService = Depends(get_account_service),
):
    user = await accounts.current_user(actor)
    return {"user": user.dump()}


@router.post("/verify-code")
async def verify_code(
    payload: VerifyCodeRequest,
    actor: Actor = Depends(get_current_actor),
    accounts: AccountService = Depends(get_account_service),
):
    user = await accounts.redeem_code(actor, payload.code)
    return {"success": True, "user": user.dump()}
