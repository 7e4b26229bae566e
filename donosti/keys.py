"""Key layout of the KV namespace."""
import secrets
import time

ANALYTICS = "analytics"
VERIFICATION_CODES = "verification-codes"

USERS = "users:"
POSTS = "posts:"
COMMENTS = "comments:"
THREADS = "threads:"
REPLIES = "replies:"
REPLY_INDEX = "reply-index:"
EVENTS = "events:"
REPORTS = "reports:"


def new_id(kind: str) -> str:
    """``<kind>-<epoch ms>-<random>``; unique, not strictly monotonic."""
    return f"{kind}-{int(time.time() * 1000)}-{secrets.token_hex(5)}"


def user(user_id: str) -> str:
    return f"{USERS}{user_id}"


def post(post_id: str) -> str:
    return f"{POSTS}{post_id}"


def comment(post_id: str, comment_id: str) -> str:
    return f"{COMMENTS}{post_id}:{comment_id}"


def post_comments(post_id: str) -> str:
    return f"{COMMENTS}{post_id}:"


def thread(thread_id: str) -> str:
    return f"{THREADS}{thread_id}"


def reply(thread_id: str, reply_id: str) -> str:
    return f"{REPLIES}{thread_id}:{reply_id}"


def thread_replies(thread_id: str) -> str:
    return f"{REPLIES}{thread_id}:"


def reply_index(reply_id: str) -> str:
    return f"{REPLY_INDEX}{reply_id}"


def event(event_id: str) -> str:
    return f"{EVENTS}{event_id}"


def report(post_id: str, user_id: str) -> str:
    return f"{REPORTS}{post_id}:{user_id}"


def post_reports(post_id: str) -> str:
    return f"{REPORTS}{post_id}:"


def marker_owner(key: str) -> str:
    """User id of a ``<prefix>:<entityId>:<userId>`` marker key."""
    return key.rsplit(":", 1)[-1]


def marker_entity(key: str) -> str:
    """Entity id of a ``<prefix>:<entityId>:<userId>`` marker key."""
    return key.split(":")[1]


# upvote markers: "<prefix><entityId>:<userId>"
UPVOTE_PREFIXES = {
    "post": "upvotes:",
    "thread": "thread-upvotes:",
    "reply": "reply-upvotes:",
}


def upvote_marker(kind: str, entity_id: str, user_id: str) -> str:
    return f"{UPVOTE_PREFIXES[kind]}{entity_id}:{user_id}"


def upvote_markers(kind: str, entity_id: str) -> str:
    return f"{UPVOTE_PREFIXES[kind]}{entity_id}:"
