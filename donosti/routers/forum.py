from typing import Optional

from fastapi import APIRouter, Depends

from donosti.schemas import ReplyCreate, ThreadCreate
from donosti.services.content import ContentStore
from donosti.services.identity import Actor
from donosti.services.ledger import VotingLedger
from donosti.utils import get_content_store, get_current_actor, get_ledger, get_optional_actor

router = APIRouter(prefix="/forum", tags=["forum"])


# ---------------------------
# Threads
# ---------------------------
@router.post("/threads")
async def create_thread(
    payload: ThreadCreate,
    actor: Actor = Depends(get_current_actor),
    content: ContentStore = Depends(get_content_store),
):
    thread = await content.create_thread(actor, payload)
    return {"success": True, "thread": thread.dump()}


@router.get("/threads")
async def list_threads(category: Optional[str] = None, content: ContentStore = Depends(get_content_store)):
    threads = await content.list_threads(category)
    return {"threads": [t.dump() for t in threads]}


@router.get("/threads/{thread_id}")
async def get_thread(thread_id: str, content: ContentStore = Depends(get_content_store)):
    thread = await content.get_thread(thread_id)
    return {"thread": thread.dump()}


@router.delete("/threads/{thread_id}")
async def delete_thread(
    thread_id: str,
    actor: Actor = Depends(get_current_actor),
    content: ContentStore = Depends(get_content_store),
):
    await content.delete_thread(thread_id, actor)
    return {"success": True}


@router.post("/threads/{thread_id}/upvote")
async def upvote_thread(
    thread_id: str,
    actor: Actor = Depends(get_current_actor),
    ledger: VotingLedger = Depends(get_ledger),
):
    result = await ledger.toggle_upvote("thread", thread_id, actor)
    return {"success": True, **result.dump()}


@router.get("/threads/{thread_id}/upvote-status")
async def thread_upvote_status(
    thread_id: str,
    actor: Optional[Actor] = Depends(get_optional_actor),
    ledger: VotingLedger = Depends(get_ledger),
):
    return {"hasUpvoted": await ledger.has_upvoted("thread", thread_id, actor)}


# ---------------------------
# Replies
# ---------------------------
@router.post("/threads/{thread_id}/replies")
async def add_reply(
    thread_id: str,
    payload: ReplyCreate,
    actor: Actor = Depends(get_current_actor),
    content: ContentStore = Depends(get_content_store),
):
    reply = await content.add_reply(thread_id, actor, payload)
    return {"success": True, "reply": reply.dump()}


@router.get("/threads/{thread_id}/replies")
async def list_replies(thread_id: str, content: ContentStore = Depends(get_content_store)):
    replies = await content.list_replies(thread_id)
    return {"replies": [r.dump() for r in replies]}


@router.delete("/replies/{reply_id}")
async def delete_reply(
    reply_id: str,
    actor: Actor = Depends(get_current_actor),
    content: ContentStore = Depends(get_content_store),
):
    await content.delete_reply(reply_id, actor)
    return {"success": True}


@router.post("/replies/{reply_id}/upvote")
async def upvote_reply(
    reply_id: str,
    actor: Actor = Depends(get_current_actor),
    ledger: VotingLedger = Depends(get_ledger),
):
    result = await ledger.toggle_upvote("reply", reply_id, actor)
    return {"success": True, **result.dump()}


@router.get("/replies/{reply_id}/upvote-status")
async def reply_upvote_status(
    reply_id: str,
    actor: Optional[Actor] = Depends(get_optional_actor),
    ledger: VotingLedger = Depends(get_ledger),
):
    return {"hasUpvoted": await ledger.has_upvoted("reply", reply_id, actor)}


@router.post("/replies/{reply_id}/helpful")
async def mark_helpful(
    reply_id: str,
    actor: Actor = Depends(get_current_actor),
    ledger: VotingLedger = Depends(get_ledger),
):
    helpful = await ledger.mark_reply_helpful(reply_id, actor)
    return {"success": True, "helpful": helpful}
