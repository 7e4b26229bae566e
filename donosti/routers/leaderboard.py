from fastapi import APIRouter, Depends, Query

from donosti.kv import KVStore
from donosti.services.leaderboard import ScoreWeights, compute_leaderboard
from donosti.settings.config import settings
from donosti.utils import get_kv

router = APIRouter(tags=["leaderboard"])


@router.get("/leaderboard")
async def leaderboard(limit: int = Query(10, ge=1, le=100), kv: KVStore = Depends(get_kv)):
    board = await compute_leaderboard(kv, ScoreWeights.from_settings(settings), limit)
    return {"leaderboard": [s.dump() for s in board]}
