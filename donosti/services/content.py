# services/content.py
"""Posts, comments, forum threads/replies and calendar events.

Each public mutating method is one unit of work: it stages every KV write and
commits once at the end, so a reader never sees a half-deleted post or thread.
"""
from __future__ import annotations

import logging
from datetime import date, datetime, timezone
from typing import Any, Iterable, List, Optional

from pydantic import BaseModel, TypeAdapter, ValidationError

from donosti import keys
from donosti.errors import Forbidden, NotFound, ValidationFailed
from donosti.kv import KVStore
from donosti.schemas import (
    Comment,
    CommentCreate,
    Event,
    EventCreate,
    Post,
    PostCreate,
    Reply,
    ReplyCreate,
    Thread,
    ThreadCreate,
    post_adapter,
)
from donosti.services import analytics
from donosti.services.identity import Actor
from donosti.services.photos import PhotoStore

logger = logging.getLogger(__name__)


def _now() -> datetime:
    return datetime.now(timezone.utc)


def parse_records(schema: Any, values: Iterable[Any]) -> list:
    """Validate raw KV values, skipping (and logging) records that don't fit the schema."""
    validate = schema.validate_python if isinstance(schema, TypeAdapter) else schema.model_validate
    out = []
    for raw in values:
        if not isinstance(raw, dict):
            continue
        try:
            out.append(validate(raw))
        except ValidationError as exc:
            logger.warning("Skipping malformed %s record %s: %s", getattr(schema, "__name__", "post"), raw.get("id"), exc.error_count())
    return out


def _wants_category(category: Optional[str]) -> bool:
    return bool(category) and category != "all"


async def find_reply(kv: KVStore, reply_id: str, *, for_update: bool = False) -> Optional[Reply]:
    thread_id = await kv.get(keys.reply_index(reply_id))
    if not thread_id:
        return None
    raw = await kv.get(keys.reply(thread_id, reply_id), for_update=for_update)
    return Reply.model_validate(raw) if raw else None


async def recompute_solved(kv: KVStore, thread: Thread) -> Thread:
    """``solved`` is true exactly while at least one reply of the thread is marked helpful."""
    replies = parse_records(Reply, await kv.values(keys.thread_replies(thread.id)))
    thread.solved = any(r.helpful for r in replies)
    return thread


class ContentStore:
    def __init__(self, kv: KVStore, photos: Optional[PhotoStore] = None):
        self.kv = kv
        self.photos = photos

    async def _load(self, key: str, schema: Any, missing: str, *, for_update: bool = False):
        raw = await self.kv.get(key, for_update=for_update)
        if not raw:
            raise NotFound(missing)
        if isinstance(schema, TypeAdapter):
            return schema.validate_python(raw)
        return schema.model_validate(raw)

    @staticmethod
    def _check_owner(actor: Actor, author_id: str, what: str) -> None:
        if not actor.can_modify(author_id):
            raise Forbidden(f"Forbidden: You can only delete your own {what}")

    async def _save(self, key: str, record: BaseModel) -> None:
        await self.kv.set(key, record.dump())

    # ---------------------------
    # POSTS
    # ---------------------------
    async def create_post(self, actor: Actor, payload: PostCreate) -> Post:
        post_id = keys.new_id("post")

        photo_url = None
        if payload.photo_data and self.photos is not None:
            try:
                photo_url = await self.photos.save(post_id, payload.photo_data)
            except Exception:
                # photo is optional; the post is still created without it
                logger.exception("Photo upload failed for %s", post_id)

        fields = payload.model_dump(exclude={"photo_data"})
        post = post_adapter.validate_python(
            {
                **fields,
                "id": post_id,
                "author_id": actor.id,
                "author_name": actor.name,
                "verified": actor.verified,
                "timestamp": _now(),
                "photo_url": photo_url,
                "upvotes": 0,
                "report_count": 0,
            }
        )
        try:
            await self._save(keys.post(post_id), post)
            await analytics.record_post(self.kv)
            await self.kv.commit()
        except Exception:
            # the record never landed; do not leave its photo behind
            await self.remove_photos([photo_url])
            raise
        logger.info("Post %s created by %s in %s", post_id, actor.id, post.category)
        return post

    async def list_posts(self, category: Optional[str] = None) -> List[Post]:
        posts = parse_records(post_adapter, await self.kv.values(keys.POSTS))
        if _wants_category(category):
            posts = [p for p in posts if p.category == category]
        posts.sort(key=lambda p: p.timestamp, reverse=True)
        return posts

    async def get_post(self, post_id: str) -> Post:
        return await self._load(keys.post(post_id), post_adapter, "Post not found")

    async def _purge_post(self, post: Post) -> None:
        await self.kv.delete(keys.post(post.id))
        await self.kv.delete_prefix(keys.post_comments(post.id))
        await self.kv.delete_prefix(keys.upvote_markers("post", post.id))
        await self.kv.delete_prefix(keys.post_reports(post.id))

    async def remove_photos(self, urls: Iterable[Optional[str]]) -> None:
        if self.photos is None:
            return
        for url in urls:
            if not url:
                continue
            try:
                await self.photos.remove(url)
            except OSError:
                logger.exception("Error deleting photo %s", url)

    async def delete_post(self, post_id: str, actor: Actor) -> None:
        post = await self.get_post(post_id)
        self._check_owner(actor, post.author_id, "posts")
        await self._purge_post(post)
        await self.kv.commit()
        await self.remove_photos([post.photo_url])
        logger.info("Post %s deleted by %s", post_id, actor.id)

    # ---------------------------
    # COMMENTS
    # ---------------------------
    async def add_comment(self, post_id: str, actor: Actor, payload: CommentCreate) -> Comment:
        await self.get_post(post_id)
        comment = Comment(
            id=keys.new_id("comment"),
            post_id=post_id,
            author_id=actor.id,
            author_name=actor.name,
            verified=actor.verified,
            content=payload.content,
            timestamp=_now(),
        )
        await self._save(keys.comment(post_id, comment.id), comment)
        await self.kv.commit()
        return comment

    async def list_comments(self, post_id: str) -> List[Comment]:
        comments = parse_records(Comment, await self.kv.values(keys.post_comments(post_id)))
        comments.sort(key=lambda c: c.timestamp)
        return comments

    async def comment_count(self, post_id: str) -> int:
        return len(await self.kv.scan(keys.post_comments(post_id)))

    async def delete_comment(self, post_id: str, comment_id: str, actor: Actor) -> None:
        comment = await self._load(keys.comment(post_id, comment_id), Comment, "Comment not found")
        self._check_owner(actor, comment.author_id, "comments")
        await self.kv.delete(keys.comment(post_id, comment_id))
        await self.kv.commit()

    # ---------------------------
    # THREADS
    # ---------------------------
    async def create_thread(self, actor: Actor, payload: ThreadCreate) -> Thread:
        now = _now()
        thread = Thread(
            id=keys.new_id("thread"),
            category=payload.category,
            title=payload.title,
            content=payload.content,
            author_id=actor.id,
            author_name=actor.name,
            verified=actor.verified,
            timestamp=now,
            upvotes=0,
            reply_count=0,
            last_activity=now,
            solved=False,
        )
        await self._save(keys.thread(thread.id), thread)
        await self.kv.commit()
        return thread

    async def list_threads(self, category: Optional[str] = None) -> List[Thread]:
        threads = parse_records(Thread, await self.kv.values(keys.THREADS))
        if _wants_category(category):
            threads = [t for t in threads if t.category == category]
        threads.sort(key=lambda t: t.last_activity, reverse=True)
        return threads

    async def get_thread(self, thread_id: str, *, for_update: bool = False) -> Thread:
        return await self._load(keys.thread(thread_id), Thread, "Thread not found", for_update=for_update)

    async def _purge_reply(self, reply: Reply) -> None:
        await self.kv.delete(keys.reply(reply.thread_id, reply.id))
        await self.kv.delete(keys.reply_index(reply.id))
        await self.kv.delete_prefix(keys.upvote_markers("reply", reply.id))

    async def _purge_thread(self, thread: Thread) -> None:
        for reply in parse_records(Reply, await self.kv.values(keys.thread_replies(thread.id))):
            await self._purge_reply(reply)
        # catches malformed leftovers the parse above skipped
        await self.kv.delete_prefix(keys.thread_replies(thread.id))
        await self.kv.delete_prefix(keys.upvote_markers("thread", thread.id))
        await self.kv.delete(keys.thread(thread.id))

    async def delete_thread(self, thread_id: str, actor: Actor) -> None:
        thread = await self.get_thread(thread_id)
        self._check_owner(actor, thread.author_id, "threads")
        await self._purge_thread(thread)
        await self.kv.commit()
        logger.info("Thread %s deleted by %s", thread_id, actor.id)

    # ---------------------------
    # REPLIES
    # ---------------------------
    async def add_reply(self, thread_id: str, actor: Actor, payload: ReplyCreate) -> Reply:
        thread = await self.get_thread(thread_id, for_update=True)
        now = _now()
        reply = Reply(
            id=keys.new_id("reply"),
            thread_id=thread_id,
            author_id=actor.id,
            author_name=actor.name,
            verified=actor.verified,
            content=payload.content,
            timestamp=now,
            upvotes=0,
            helpful=False,
        )
        await self._save(keys.reply(thread_id, reply.id), reply)
        await self.kv.set(keys.reply_index(reply.id), thread_id)

        thread.reply_count += 1
        thread.last_activity = now
        await self._save(keys.thread(thread_id), thread)
        await self.kv.commit()
        return reply

    async def list_replies(self, thread_id: str) -> List[Reply]:
        replies = parse_records(Reply, await self.kv.values(keys.thread_replies(thread_id)))
        replies.sort(key=lambda r: r.timestamp)
        return replies

    async def get_reply(self, reply_id: str) -> Reply:
        reply = await find_reply(self.kv, reply_id)
        if reply is None:
            raise NotFound("Reply not found")
        return reply

    async def _detach_reply(self, reply: Reply) -> None:
        """Remove a reply and fix up its parent thread's counters."""
        await self._purge_reply(reply)
        raw = await self.kv.get(keys.thread(reply.thread_id), for_update=True)
        if not raw:
            return
        thread = Thread.model_validate(raw)
        thread.reply_count = max(0, thread.reply_count - 1)
        thread.last_activity = _now()
        await recompute_solved(self.kv, thread)
        await self._save(keys.thread(thread.id), thread)

    async def delete_reply(self, reply_id: str, actor: Actor) -> None:
        reply = await self.get_reply(reply_id)
        self._check_owner(actor, reply.author_id, "replies")
        await self._detach_reply(reply)
        await self.kv.commit()

    # ---------------------------
    # EVENTS
    # ---------------------------
    async def create_event(self, actor: Actor, payload: EventCreate) -> Event:
        if not payload.title.strip():
            raise ValidationFailed("Please enter a title")
        today = payload.today or date.today()
        if payload.date < today:
            raise ValidationFailed("Please select a date that is today or in the future")
        event = Event(
            id=keys.new_id("event"),
            title=payload.title.strip(),
            date=payload.date,
            info=payload.info.strip(),
            author_id=actor.id,
            author_name=actor.name,
            verified=actor.verified,
            timestamp=_now(),
        )
        await self._save(keys.event(event.id), event)
        await self.kv.commit()
        return event

    async def list_events(self) -> List[Event]:
        events = parse_records(Event, await self.kv.values(keys.EVENTS))
        events.sort(key=lambda e: (e.date, e.timestamp))
        return events

    async def delete_event(self, event_id: str, actor: Actor) -> None:
        event = await self._load(keys.event(event_id), Event, "Event not found")
        self._check_owner(actor, event.author_id, "events")
        await self.kv.delete(keys.event(event_id))
        await self.kv.commit()

    # ---------------------------
    # USERS
    # ---------------------------
    async def purge_author(self, user_id: str) -> List[str]:
        """
        Stage removal of everything ``user_id`` authored, with cascades.
        Does not commit; returns photo URLs to remove once the caller has committed.
        """
        photo_urls: List[str] = []

        for post in parse_records(post_adapter, await self.kv.values(keys.POSTS)):
            if post.author_id == user_id:
                await self._purge_post(post)
                if post.photo_url:
                    photo_urls.append(post.photo_url)

        for thread in parse_records(Thread, await self.kv.values(keys.THREADS)):
            if thread.author_id == user_id:
                await self._purge_thread(thread)

        for key, raw in await self.kv.scan(keys.COMMENTS):
            if isinstance(raw, dict) and raw.get("authorId") == user_id:
                await self.kv.delete(key)

        # replies left on other people's threads
        for reply in parse_records(Reply, await self.kv.values(keys.REPLIES)):
            if reply.author_id == user_id:
                await self._detach_reply(reply)

        for event in parse_records(Event, await self.kv.values(keys.EVENTS)):
            if event.author_id == user_id:
                await self.kv.delete(keys.event(event.id))

        return photo_urls
