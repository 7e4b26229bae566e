# services/leaderboard.py
"""Contributor leaderboard, recomputed from raw KV records on every request.

    totalScore = post_weight * posts
               + comment_weight * comments
               + thread_weight * threads
               + reply_weight * replies
               + upvote_weight * upvotesReceived

Defaults are 10 / 2 / 5 / 3 / 1 (``SCORE_WEIGHT_*`` settings). Ranking is by
``totalScore`` descending, then user id ascending.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, Iterable, List, Mapping, Optional

from donosti import keys
from donosti.kv import KVStore
from donosti.schemas import Comment, ContributorScore, Post, Reply, Thread, UserProfile, post_adapter
from donosti.services.content import parse_records


@dataclass(frozen=True)
class ScoreWeights:
    post: int = 10
    comment: int = 2
    thread: int = 5
    reply: int = 3
    upvote: int = 1

    @classmethod
    def from_settings(cls, settings) -> "ScoreWeights":
        return cls(
            post=settings.SCORE_WEIGHT_POST,
            comment=settings.SCORE_WEIGHT_COMMENT,
            thread=settings.SCORE_WEIGHT_THREAD,
            reply=settings.SCORE_WEIGHT_REPLY,
            upvote=settings.SCORE_WEIGHT_UPVOTE,
        )

    def score(self, s: ContributorScore) -> int:
        return (
            self.post * s.posts
            + self.comment * s.comments
            + self.thread * s.threads
            + self.reply * s.replies
            + self.upvote * s.upvotes_received
        )


def rank(scores: Iterable[ContributorScore], limit: Optional[int] = None) -> List[ContributorScore]:
    ordered = sorted(scores, key=lambda s: (-s.total_score, s.user_id))
    return ordered if limit is None else ordered[:limit]


def aggregate_contributors(
    posts: Iterable[Post] = (),
    comments: Iterable[Comment] = (),
    threads: Iterable[Thread] = (),
    replies: Iterable[Reply] = (),
    profiles: Optional[Mapping[str, UserProfile]] = None,
    weights: ScoreWeights = ScoreWeights(),
    limit: Optional[int] = None,
) -> List[ContributorScore]:
    profiles = profiles or {}
    board: Dict[str, ContributorScore] = {}
    # latest authorName seen per user, used when there is no profile
    seen_names: Dict[str, tuple] = {}

    def entry(record) -> ContributorScore:
        uid = record.author_id
        if uid not in board:
            board[uid] = ContributorScore(user_id=uid)
        prev = seen_names.get(uid)
        if prev is None or record.timestamp > prev[0]:
            seen_names[uid] = (record.timestamp, record.author_name)
        return board[uid]

    for post in posts:
        s = entry(post)
        s.posts += 1
        s.upvotes_received += post.upvotes
    for comment in comments:
        entry(comment).comments += 1
    for thread in threads:
        s = entry(thread)
        s.threads += 1
        s.upvotes_received += thread.upvotes
    for reply in replies:
        s = entry(reply)
        s.replies += 1
        s.upvotes_received += reply.upvotes

    for uid, s in board.items():
        profile = profiles.get(uid)
        s.name = profile.name if profile else seen_names[uid][1]
        s.total_score = weights.score(s)
    return rank(board.values(), limit)


async def compute_leaderboard(kv: KVStore, weights: ScoreWeights, limit: int = 10) -> List[ContributorScore]:
    profiles = {}
    for key, raw in await kv.scan(keys.USERS):
        if isinstance(raw, dict):
            uid = key[len(keys.USERS):]
            profiles[uid] = UserProfile.model_validate({**raw, "id": uid})
    return aggregate_contributors(
        posts=parse_records(post_adapter, await kv.values(keys.POSTS)),
        comments=parse_records(Comment, await kv.values(keys.COMMENTS)),
        threads=parse_records(Thread, await kv.values(keys.THREADS)),
        replies=parse_records(Reply, await kv.values(keys.REPLIES)),
        profiles=profiles,
        weights=weights,
        limit=limit,
    )
