"""Tests for response validation at the deserialization boundary."""
import pytest

from fc_archive.errors import PayloadError
from fc_archive.models import Cast, Conversation, FeedPage


def test_cast_from_dict_normalizes_fields(make_cast):
    payload = make_cast("0xabc", fid=3, parent_hash="0xdef", parent_fid=4, thread_hash="0xroot",
                        channel={"id": "dev", "name": "Dev", "image_url": "https://c"})

    cast = Cast.from_dict(payload)

    assert cast.hash == "0xabc"
    assert cast.fid == 3
    assert cast.author.bio == "bio 3"
    assert cast.parent_fid == 4
    assert cast.is_reply
    assert cast.channel.name == "Dev"
    assert cast.raw is payload


def test_cast_without_parent(make_cast):
    cast = Cast.from_dict(make_cast("0xabc"))

    assert cast.parent_fid is None
    assert not cast.is_reply
    assert cast.channel is None


@pytest.mark.parametrize("payload", [
    {},
    {"hash": "0x1"},
    {"hash": "0x1", "author": {"username": "nofid"}},
    "not a dict",
])
def test_cast_rejects_incomplete_payload(payload):
    with pytest.raises(PayloadError):
        Cast.from_dict(payload)


def test_feed_page_reads_cursor(make_cast):
    page = FeedPage.from_dict({"casts": [make_cast("0x1")], "next": {"cursor": "abc"}})

    assert page.next_cursor == "abc"
    assert FeedPage.from_dict({"casts": [], "next": None}).next_cursor is None


def test_feed_page_requires_casts():
    with pytest.raises(PayloadError):
        FeedPage.from_dict({"result": {}})


def test_conversation_all_casts_order(make_cast):
    root = make_cast("0xroot")
    root["direct_replies"] = [make_cast("0xr1"), make_cast("0xr2")]
    payload = {"conversation": {"cast": root, "chronological_parent_casts": [make_cast("0xp1")]}}

    convo = Conversation.from_dict(payload)

    assert [c.hash for c in convo.all_casts()] == ["0xroot", "0xp1", "0xr1", "0xr2"]
    assert convo.next_cursor is None


def test_conversation_requires_root():
    with pytest.raises(PayloadError):
        Conversation.from_dict({"conversation": {}})
