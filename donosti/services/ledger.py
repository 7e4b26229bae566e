# services/ledger.py
"""Upvote / report markers and the counters derived from them.

A marker is a presence-only KV record (value ``true``). For every entity the
stored ``upvotes`` equals the number of its upvote markers: both change in the
same unit of work, and the entity row is read ``FOR UPDATE`` so two toggles on
the same entity serialise on Postgres.
"""
from __future__ import annotations

import logging
from typing import Optional, Tuple

from pydantic import BaseModel

from donosti import keys
from donosti.errors import AlreadyReported, Forbidden, NotFound
from donosti.kv import KVStore
from donosti.schemas import EntityKind, Thread, UpvoteResult, post_adapter
from donosti.services.content import find_reply, recompute_solved
from donosti.services.identity import Actor

logger = logging.getLogger(__name__)


class VotingLedger:
    def __init__(self, kv: KVStore):
        self.kv = kv

    async def _entity(self, kind: EntityKind, entity_id: str, *, for_update: bool = False) -> Tuple[str, BaseModel]:
        if kind == "post":
            key = keys.post(entity_id)
            raw = await self.kv.get(key, for_update=for_update)
            if raw:
                return key, post_adapter.validate_python(raw)
            raise NotFound("Post not found")
        if kind == "thread":
            key = keys.thread(entity_id)
            raw = await self.kv.get(key, for_update=for_update)
            if raw:
                return key, Thread.model_validate(raw)
            raise NotFound("Thread not found")
        reply = await find_reply(self.kv, entity_id, for_update=for_update)
        if reply is None:
            raise NotFound("Reply not found")
        return keys.reply(reply.thread_id, reply.id), reply

    async def toggle_upvote(self, kind: EntityKind, entity_id: str, actor: Actor) -> UpvoteResult:
        """Add the actor's upvote, or take it back if already present."""
        key, entity = await self._entity(kind, entity_id, for_update=True)
        marker = keys.upvote_marker(kind, entity_id, actor.id)

        if await self.kv.get(marker):
            await self.kv.delete(marker)
            entity.upvotes = max(0, entity.upvotes - 1)
            has_upvoted = False
        else:
            await self.kv.set(marker, True)
            entity.upvotes += 1
            has_upvoted = True

        await self.kv.set(key, entity.dump())
        await self.kv.commit()
        return UpvoteResult(upvotes=entity.upvotes, has_upvoted=has_upvoted)

    async def has_upvoted(self, kind: EntityKind, entity_id: str, actor: Optional[Actor]) -> bool:
        if actor is None:
            return False
        return bool(await self.kv.get(keys.upvote_marker(kind, entity_id, actor.id)))

    async def report(self, post_id: str, actor: Actor) -> None:
        """One-shot per (user, post); a repeat raises ``AlreadyReported``."""
        key, post = await self._entity("post", post_id, for_update=True)
        marker = keys.report(post_id, actor.id)
        if await self.kv.get(marker):
            raise AlreadyReported()

        await self.kv.set(marker, True)
        post.report_count += 1
        await self.kv.set(key, post.dump())
        await self.kv.commit()
        logger.info("Post %s reported by %s (total %d)", post_id, actor.id, post.report_count)

    async def mark_reply_helpful(self, reply_id: str, actor: Actor) -> bool:
        """Toggle ``helpful`` on a reply; only the thread author may do this."""
        reply = await find_reply(self.kv, reply_id, for_update=True)
        if reply is None:
            raise NotFound("Reply not found")
        raw_thread = await self.kv.get(keys.thread(reply.thread_id), for_update=True)
        if not raw_thread:
            raise NotFound("Thread not found")
        thread = Thread.model_validate(raw_thread)
        if thread.author_id != actor.id:
            raise Forbidden("Only thread author can mark helpful")

        reply.helpful = not reply.helpful
        await self.kv.set(keys.reply(reply.thread_id, reply.id), reply.dump())
        await recompute_solved(self.kv, thread)
        await self.kv.set(keys.thread(thread.id), thread.dump())
        await self.kv.commit()
        return reply.helpful

    async def retract_user_markers(self, user_id: str) -> int:
        """
        Stage removal of every upvote and report marker left by ``user_id`` and
        decrement the counters they contributed to. Does not commit.
        """
        removed = 0
        for kind, prefix in keys.UPVOTE_PREFIXES.items():
            for marker, _ in await self.kv.scan(prefix):
                if keys.marker_owner(marker) != user_id:
                    continue
                await self.kv.delete(marker)
                removed += 1
                try:
                    key, entity = await self._entity(kind, keys.marker_entity(marker), for_update=True)
                except NotFound:
                    continue
                entity.upvotes = max(0, entity.upvotes - 1)
                await self.kv.set(key, entity.dump())

        for marker, _ in await self.kv.scan(keys.REPORTS):
            if keys.marker_owner(marker) != user_id:
                continue
            await self.kv.delete(marker)
            removed += 1
            try:
                key, post = await self._entity("post", keys.marker_entity(marker), for_update=True)
            except NotFound:
                continue
            post.report_count = max(0, post.report_count - 1)
            await self.kv.set(key, post.dump())
        return removed


__all__ = ["VotingLedger"]
