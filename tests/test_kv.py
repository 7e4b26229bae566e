import pytest

from donosti.kv import MemoryKVStore, SqlKVStore
from donosti.schemas import CommentCreate, ReplyCreate, SignupRequest, ThreadCreate, post_create_adapter
from donosti.services.accounts import AccountService
from donosti.services.content import ContentStore
from donosti.services.identity import Actor
from donosti.services.ledger import VotingLedger


@pytest.mark.asyncio
async def test_writes_are_invisible_until_commit():
    shared = {}
    writer = MemoryKVStore(shared)
    reader = MemoryKVStore(shared)

    await writer.set("posts:p1", {"id": "p1"})
    assert await writer.get("posts:p1") == {"id": "p1"}
    assert await reader.get("posts:p1") is None

    await writer.commit()
    assert await reader.get("posts:p1") == {"id": "p1"}


@pytest.mark.asyncio
async def test_rollback_discards_staged_writes():
    shared = {"a": 1}
    kv = MemoryKVStore(shared)
    await kv.set("a", 2)
    await kv.delete("a")
    await kv.rollback()
    assert await kv.get("a") == 1


@pytest.mark.asyncio
async def test_scan_is_prefix_scoped_and_sorted():
    kv = MemoryKVStore({"comments:p1:c2": 2, "comments:p1:c1": 1, "comments:p10:c1": 10, "posts:p1": 0})
    await kv.delete("comments:p1:c2")
    await kv.set("comments:p1:c3", 3)

    assert await kv.scan("comments:p1:") == [("comments:p1:c1", 1), ("comments:p1:c3", 3)]
    assert await kv.values("posts:") == [0]


@pytest.mark.asyncio
async def test_delete_prefix_counts_removed_keys():
    shared = {"upvotes:p1:a": True, "upvotes:p1:b": True, "upvotes:p2:a": True}
    kv = MemoryKVStore(shared)
    assert await kv.delete_prefix("upvotes:p1:") == 2
    await kv.commit()
    assert sorted(shared) == ["upvotes:p2:a"]


@pytest.mark.asyncio
async def test_returned_values_are_copies():
    kv = MemoryKVStore({"analytics": {"topSearches": {}}})
    value = await kv.get("analytics")
    value["topSearches"]["x"] = 1
    assert await kv.get("analytics") == {"topSearches": {}}


# ---------------------------
# SQL backend (sqlite + aiosqlite)
# ---------------------------
@pytest.mark.asyncio
async def test_sql_get_set_delete(sql_sessions):
    async with sql_sessions() as session:
        kv = SqlKVStore(session)
        assert await kv.get("posts:p1") is None

        await kv.set("posts:p1", {"id": "p1", "upvotes": 0})
        await kv.set("posts:p1", {"id": "p1", "upvotes": 1})
        assert await kv.get("posts:p1", for_update=True) == {"id": "p1", "upvotes": 1}

        await kv.delete("posts:p1")
        await kv.delete("posts:never-there")
        assert await kv.get("posts:p1") is None


@pytest.mark.asyncio
async def test_sql_scan_and_delete_prefix(sql_sessions):
    async with sql_sessions() as session:
        kv = SqlKVStore(session)
        for key, value in [("comments:p1:c2", 2), ("comments:p1:c1", 1), ("comments:p10:c1", 10), ("posts:p1", 0)]:
            await kv.set(key, value)
        await kv.set("comments:p_:c1", 99)

        assert await kv.scan("comments:p1:") == [("comments:p1:c1", 1), ("comments:p1:c2", 2)]
        # "_" is a LIKE wildcard; here it must only match itself
        assert await kv.scan("comments:p_:") == [("comments:p_:c1", 99)]
        assert await kv.values("posts:") == [0]

        assert await kv.delete_prefix("comments:p1:") == 2
        assert [key for key, _ in await kv.scan("comments:")] == ["comments:p10:c1", "comments:p_:c1"]


@pytest.mark.asyncio
async def test_sql_writes_are_invisible_until_commit(sql_sessions):
    async with sql_sessions() as writer_session, sql_sessions() as reader_session:
        writer, reader = SqlKVStore(writer_session), SqlKVStore(reader_session)

        await writer.set("posts:p1", {"id": "p1"})
        assert await writer.get("posts:p1") == {"id": "p1"}
        assert await reader.get("posts:p1") is None
        await reader.rollback()

        await writer.commit()
        assert await reader.get("posts:p1") == {"id": "p1"}


@pytest.mark.asyncio
async def test_sql_rollback_discards_writes(sql_sessions):
    async with sql_sessions() as session:
        kv = SqlKVStore(session)
        await kv.set("a", 1)
        await kv.commit()

        await kv.set("a", 2)
        await kv.set("b", 3)
        await kv.rollback()
        assert await kv.get("a") == 1
        assert await kv.get("b") is None

        await kv.delete_prefix("")
        await kv.rollback()

    async with sql_sessions() as session:
        assert await SqlKVStore(session).scan("") == [("a", 1)]


@pytest.mark.asyncio
async def test_sql_returned_values_are_copies(sql_sessions):
    async with sql_sessions() as session:
        kv = SqlKVStore(session)
        await kv.set("analytics", {"topSearches": {}})
        value = await kv.get("analytics")
        value["topSearches"]["x"] = 1
        assert await kv.get("analytics") == {"topSearches": {}}


@pytest.mark.asyncio
async def test_sql_cascading_deletes_leave_no_keys(sql_sessions, auth_provider, admin):
    provider, root = auth_provider, admin

    async with sql_sessions() as session:
        kv = SqlKVStore(session)
        store, ledger = ContentStore(kv), VotingLedger(kv)
        accounts = AccountService(kv, provider, admin_emails=[], admin_code="CASAPINA2025")

        profile = await accounts.signup(
            SignupRequest(email="ane@example.com", password="pw-123456", name="Ane", verification_code="")
        )
        ane = Actor(id=profile.id, email=profile.email, name=profile.name)

        # removed with its post / thread
        post = await store.create_post(root, post_create_adapter.validate_python({"category": "food", "title": "a"}))
        thread = await store.create_thread(root, ThreadCreate(title="t", category="general", content="c"))
        await store.add_comment(post.id, ane, CommentCreate(content="hi"))
        reply = await store.add_reply(thread.id, ane, ReplyCreate(content="yo"))
        await ledger.toggle_upvote("post", post.id, ane)
        await ledger.toggle_upvote("reply", reply.id, root)
        await ledger.report(post.id, ane)
        await ledger.mark_reply_helpful(reply.id, root)

        await store.delete_post(post.id, root)
        await store.delete_thread(thread.id, root)

        # removed with the user
        own = await store.create_post(ane, post_create_adapter.validate_python({"category": "trips", "title": "b"}))
        own_thread = await store.create_thread(ane, ThreadCreate(title="u", category="general", content="d"))
        await store.add_reply(own_thread.id, root, ReplyCreate(content="ok"))
        await ledger.toggle_upvote("post", own.id, root)

        await accounts.delete_user(root, ane.id, store, ledger)

    async with sql_sessions() as session:
        remaining = [key for key, _ in await SqlKVStore(session).scan("")]
    assert remaining == ["analytics"]
    assert ane.id not in provider.users
