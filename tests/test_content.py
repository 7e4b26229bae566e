import base64
import io
from datetime import date, timedelta

import pytest
from PIL import Image

from donosti.errors import Forbidden, NotFound, ValidationFailed
from donosti.kv import MemoryKVStore
from donosti.schemas import CommentCreate, EventCreate, ReplyCreate, ThreadCreate, post_create_adapter
from donosti.services.content import ContentStore
from donosti.services.identity import Actor
from donosti.services.ledger import VotingLedger


def food_tip(title="Pintxos at La Cuchara", **extra):
    return post_create_adapter.validate_python({"category": "food", "title": title, "content": "Go early", **extra})


def png_data_url() -> str:
    buf = io.BytesIO()
    Image.new("RGB", (200, 100), (200, 30, 30)).save(buf, "PNG")
    return "data:image/png;base64," + base64.b64encode(buf.getvalue()).decode()


@pytest.mark.asyncio
async def test_create_post_stamps_author_and_counts(kv, alice):
    store = ContentStore(kv)
    post = await store.create_post(alice, food_tip(restaurantName="La Cuchara", foodRating=4.5))

    assert post.id.startswith("post-")
    assert post.author_id == "alice"
    assert post.author_name == "Alice"
    assert post.verified is True
    assert post.restaurant_name == "La Cuchara"
    assert (post.upvotes, post.report_count) == (0, 0)
    assert (await kv.get("analytics"))["totalPosts"] == 1


@pytest.mark.asyncio
async def test_list_posts_filters_by_category_newest_first(kv, alice):
    store = ContentStore(kv)
    first = await store.create_post(alice, food_tip("first"))
    second = await store.create_post(alice, food_tip("second"))
    course = await store.create_post(
        alice, post_create_adapter.validate_python({"category": "courses", "title": "Basque 101", "ects": 6})
    )

    all_ids = [p.id for p in await store.list_posts("all")]
    assert set(all_ids) == {first.id, second.id, course.id}
    assert all_ids.index(second.id) < all_ids.index(first.id)
    assert [p.id for p in await store.list_posts("courses")] == [course.id]


@pytest.mark.asyncio
async def test_photo_is_stored_and_removed_with_post(kv, alice, photo_store):
    store = ContentStore(kv, photo_store)
    post = await store.create_post(alice, food_tip(photoData=png_data_url()))

    assert post.photo_url == f"/uploads/{post.id}.jpg"
    stored = photo_store.root / f"{post.id}.jpg"
    with Image.open(stored) as im:
        assert im.format == "JPEG"
        assert max(im.size) <= 64

    await store.delete_post(post.id, alice)
    assert not stored.exists()


class FailingCommitStore(MemoryKVStore):
    async def commit(self):
        raise RuntimeError("database went away")


@pytest.mark.asyncio
async def test_failed_save_removes_photo(kv_data, alice, photo_store):
    store = ContentStore(FailingCommitStore(kv_data), photo_store)
    with pytest.raises(RuntimeError):
        await store.create_post(alice, food_tip(photoData=png_data_url()))

    assert list(photo_store.root.glob("*.jpg")) == []
    assert not any(key.startswith("posts:") for key in kv_data)


@pytest.mark.asyncio
async def test_bad_photo_does_not_block_post(kv, alice, photo_store):
    store = ContentStore(kv, photo_store)
    post = await store.create_post(alice, food_tip(photoData="not base64 at all!!"))
    assert post.photo_url is None
    assert (await store.get_post(post.id)).id == post.id


@pytest.mark.asyncio
async def test_delete_post_cascades(kv, kv_data, alice, bob):
    store = ContentStore(kv)
    ledger = VotingLedger(kv)
    post = await store.create_post(alice, food_tip())
    await store.add_comment(post.id, bob, CommentCreate(content="Agreed"))
    await ledger.toggle_upvote("post", post.id, bob)
    await ledger.report(post.id, bob)

    await store.delete_post(post.id, alice)

    assert await store.list_comments(post.id) == []
    assert post.id not in [p.id for p in await store.list_posts()]
    assert not any(post.id in key for key in kv_data)


@pytest.mark.asyncio
async def test_non_owner_cannot_delete_post(kv, alice, bob):
    store = ContentStore(kv)
    post = await store.create_post(bob, food_tip())

    with pytest.raises(Forbidden):
        await store.delete_post(post.id, alice)
    assert (await store.get_post(post.id)).id == post.id


@pytest.mark.asyncio
async def test_admin_can_delete_any_post(kv, bob, admin):
    store = ContentStore(kv)
    post = await store.create_post(bob, food_tip())
    await store.delete_post(post.id, admin)
    with pytest.raises(NotFound):
        await store.get_post(post.id)


@pytest.mark.asyncio
async def test_comments_listed_oldest_first_and_counted(kv, alice, bob):
    store = ContentStore(kv)
    post = await store.create_post(alice, food_tip())
    c1 = await store.add_comment(post.id, bob, CommentCreate(content="one"))
    c2 = await store.add_comment(post.id, alice, CommentCreate(content="two"))

    assert [c.id for c in await store.list_comments(post.id)] == [c1.id, c2.id]
    assert await store.comment_count(post.id) == 2

    with pytest.raises(Forbidden):
        await store.delete_comment(post.id, c1.id, Actor(id="carol", email="carol@example.com"))
    await store.delete_comment(post.id, c1.id, bob)
    assert await store.comment_count(post.id) == 1


@pytest.mark.asyncio
async def test_comment_on_missing_post(kv, alice):
    with pytest.raises(NotFound):
        await ContentStore(kv).add_comment("post-missing", alice, CommentCreate(content="hi"))


@pytest.mark.asyncio
async def test_add_reply_updates_thread(kv, alice, bob):
    store = ContentStore(kv)
    thread = await store.create_thread(alice, ThreadCreate(title="Housing?", category="housing", content="Where?"))
    reply = await store.add_reply(thread.id, bob, ReplyCreate(content="Gros"))

    refreshed = await store.get_thread(thread.id)
    assert refreshed.reply_count == 1
    assert refreshed.last_activity >= thread.last_activity
    assert (await store.get_reply(reply.id)).thread_id == thread.id

    with pytest.raises(NotFound):
        await store.add_reply("thread-missing", bob, ReplyCreate(content="?"))


@pytest.mark.asyncio
async def test_delete_thread_removes_all_replies(kv, kv_data, alice, bob):
    store = ContentStore(kv)
    ledger = VotingLedger(kv)
    thread = await store.create_thread(alice, ThreadCreate(title="Surf", category="general", content="Zurriola?"))
    other = await store.create_thread(bob, ThreadCreate(title="Gym", category="general", content="Any?"))
    replies = [await store.add_reply(thread.id, bob, ReplyCreate(content=f"r{i}")) for i in range(3)]
    keep = await store.add_reply(other.id, alice, ReplyCreate(content="keep"))
    await ledger.toggle_upvote("reply", replies[0].id, alice)
    await ledger.toggle_upvote("thread", thread.id, bob)

    await store.delete_thread(thread.id, alice)

    assert await store.list_replies(thread.id) == []
    assert [r.id for r in await store.list_replies(other.id)] == [keep.id]
    for reply in replies:
        with pytest.raises(NotFound):
            await store.get_reply(reply.id)
    assert not any(thread.id in key or replies[0].id in key for key in kv_data)


@pytest.mark.asyncio
async def test_delete_reply_fixes_thread_counters(kv, alice, bob):
    store = ContentStore(kv)
    ledger = VotingLedger(kv)
    thread = await store.create_thread(alice, ThreadCreate(title="Q", category="questions", content="?"))
    reply = await store.add_reply(thread.id, bob, ReplyCreate(content="A"))
    await ledger.mark_reply_helpful(reply.id, alice)
    assert (await store.get_thread(thread.id)).solved is True

    await store.delete_reply(reply.id, bob)

    refreshed = await store.get_thread(thread.id)
    assert refreshed.reply_count == 0
    assert refreshed.solved is False


@pytest.mark.asyncio
async def test_threads_sorted_by_last_activity(kv, alice, bob):
    store = ContentStore(kv)
    old = await store.create_thread(alice, ThreadCreate(title="old", category="help", content="x"))
    new = await store.create_thread(alice, ThreadCreate(title="new", category="meetup", content="y"))
    await store.add_reply(old.id, bob, ReplyCreate(content="bump"))

    assert [t.id for t in await store.list_threads()] == [old.id, new.id]
    assert [t.id for t in await store.list_threads("meetup")] == [new.id]


@pytest.mark.asyncio
async def test_events_validate_date_and_title(kv, alice):
    store = ContentStore(kv)
    today = date(2025, 3, 1)

    with pytest.raises(ValidationFailed):
        await store.create_event(alice, EventCreate(title="Past", date=today - timedelta(days=1), today=today))
    with pytest.raises(ValidationFailed):
        await store.create_event(alice, EventCreate(title="   ", date=today, today=today))

    later = await store.create_event(alice, EventCreate(title="Tamborrada", date=date(2025, 3, 20), today=today))
    sooner = await store.create_event(alice, EventCreate(title="Pintxo pote", date=today, today=today))
    assert [e.id for e in await store.list_events()] == [sooner.id, later.id]
