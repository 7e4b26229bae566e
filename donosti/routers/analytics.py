import logging

from fastapi import APIRouter, Depends

from donosti.kv import KVStore
from donosti.schemas import SearchQuery
from donosti.services import analytics
from donosti.utils import get_kv

logger = logging.getLogger(__name__)

router = APIRouter(tags=["analytics"])


@router.get("/analytics")
async def get_analytics(kv: KVStore = Depends(get_kv)):
    return {"analytics": (await analytics.load_analytics(kv)).dump()}


@router.post("/track-search")
async def track_search(payload: SearchQuery, kv: KVStore = Depends(get_kv)):
    # search counters are best effort; the caller never sees a failure
    try:
        await analytics.track_search(kv, payload.query)
    except Exception:
        logger.exception("Track search error")
        await kv.rollback()
    return {"success": True}
