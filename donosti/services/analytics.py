# services/analytics.py
from donosti import keys
from donosti.kv import KVStore
from donosti.schemas import Analytics


async def load_analytics(kv: KVStore) -> Analytics:
    return Analytics.model_validate(await kv.get(keys.ANALYTICS) or {})


async def record_post(kv: KVStore) -> None:
    analytics = await load_analytics(kv)
    analytics.total_posts += 1
    await kv.set(keys.ANALYTICS, analytics.dump())


async def record_verified_user(kv: KVStore) -> None:
    analytics = await load_analytics(kv)
    analytics.verified_users += 1
    await kv.set(keys.ANALYTICS, analytics.dump())


async def track_search(kv: KVStore, query: str | None) -> bool:
    """Count a search query (case-insensitive). Blank queries are ignored."""
    normalized = (query or "").strip().lower()
    if not normalized:
        return False
    analytics = await load_analytics(kv)
    analytics.top_searches[normalized] = analytics.top_searches.get(normalized, 0) + 1
    await kv.set(keys.ANALYTICS, analytics.dump())
    await kv.commit()
    return True
