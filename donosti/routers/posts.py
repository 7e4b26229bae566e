from typing import Annotated, Optional, Union

from fastapi import APIRouter, Body, Depends

from donosti.schemas import (
    ActivityPostCreate,
    ClubPostCreate,
    CommentCreate,
    CoursePostCreate,
    FoodPostCreate,
    TripPostCreate,
)
from donosti.services.content import ContentStore
from donosti.services.identity import Actor
from donosti.services.ledger import VotingLedger
from donosti.utils import get_content_store, get_current_actor, get_ledger, get_optional_actor

router = APIRouter(prefix="/posts", tags=["posts"])

# request body: one variant per category, picked by "category"
PostCreateBody = Annotated[
    Union[CoursePostCreate, FoodPostCreate, ClubPostCreate, ActivityPostCreate, TripPostCreate],
    Body(discriminator="category"),
]


@router.post("")
async def create_post(
    payload: PostCreateBody,
    actor: Actor = Depends(get_current_actor),
    content: ContentStore = Depends(get_content_store),
):
    post = await content.create_post(actor, payload)
    return {"success": True, "post": post.dump()}


@router.get("")
async def list_posts(category: Optional[str] = None, content: ContentStore = Depends(get_content_store)):
    posts = await content.list_posts(category)
    return {"posts": [p.dump() for p in posts]}


@router.get("/{post_id}")
async def get_post(post_id: str, content: ContentStore = Depends(get_content_store)):
    post = await content.get_post(post_id)
    return {"post": post.dump()}


@router.delete("/{post_id}")
async def delete_post(
    post_id: str,
    actor: Actor = Depends(get_current_actor),
    content: ContentStore = Depends(get_content_store),
):
    await content.delete_post(post_id, actor)
    return {"success": True}


# ---------------------------
# Votes / reports
# ---------------------------
@router.post("/{post_id}/upvote")
async def upvote_post(
    post_id: str,
    actor: Actor = Depends(get_current_actor),
    ledger: VotingLedger = Depends(get_ledger),
):
    result = await ledger.toggle_upvote("post", post_id, actor)
    return {"success": True, **result.dump()}


@router.get("/{post_id}/upvote-status")
async def post_upvote_status(
    post_id: str,
    actor: Optional[Actor] = Depends(get_optional_actor),
    ledger: VotingLedger = Depends(get_ledger),
):
    return {"hasUpvoted": await ledger.has_upvoted("post", post_id, actor)}


@router.post("/{post_id}/report")
async def report_post(
    post_id: str,
    actor: Actor = Depends(get_current_actor),
    ledger: VotingLedger = Depends(get_ledger),
):
    await ledger.report(post_id, actor)
    return {"success": True}


# ---------------------------
# Comments
# ---------------------------
@router.post("/{post_id}/comments")
async def add_comment(
    post_id: str,
    payload: CommentCreate,
    actor: Actor = Depends(get_current_actor),
    content: ContentStore = Depends(get_content_store),
):
    comment = await content.add_comment(post_id, actor, payload)
    return {"success": True, "comment": comment.dump()}


@router.get("/{post_id}/comments")
async def list_comments(post_id: str, content: ContentStore = Depends(get_content_store)):
    comments = await content.list_comments(post_id)
    return {"comments": [c.dump() for c in comments]}


@router.get("/{post_id}/comment-count")
async def comment_count(post_id: str, content: ContentStore = Depends(get_content_store)):
    return {"count": await content.comment_count(post_id)}


@router.delete("/{post_id}/comments/{comment_id}")
async def delete_comment(
    post_id: str,
    comment_id: str,
    actor: Actor = Depends(get_current_actor),
    content: ContentStore = Depends(get_content_store),
):
    await content.delete_comment(post_id, comment_id, actor)
    return {"success": True}
