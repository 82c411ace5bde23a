"""Tests for Conversation, Message and content parsing."""

import pytest
from pydantic import ValidationError

from src.chat.models import ConnectionState, Conversation, Message, parse_content, parse_messages

# -- Conversation ------------------------------------------------------------


def test_conversation_accepts_camel_case() -> None:
    c = Conversation.model_validate(
        {
            "id": "5511999@s.whatsapp.net",
            "name": "Ana",
            "isGroup": False,
            "lastMessage": "hi",
            "lastMessageFromMe": True,
            "timestamp": 1_700_000_000,
            "unreadCount": 3,
        }
    )
    assert c.last_message == "hi"
    assert c.last_message_from_me is True
    assert c.unread_count == 3
    assert c.last_activity == 1_700_000_000_000


def test_display_name_falls_back_to_id() -> None:
    c = Conversation(id="5511999@s.whatsapp.net")
    assert c.display_name == "5511999"


def test_preview_prefixes() -> None:
    mine = Conversation(id="a", last_message="ok", last_message_from_me=True)
    group = Conversation(id="g", is_group=True, last_message="yo", last_message_sender="Bia")
    plain = Conversation(id="b", last_message="hey")
    assert mine.preview == "You: ok"
    assert group.preview == "Bia: yo"
    assert plain.preview == "hey"


@pytest.mark.parametrize(
    ("last_message", "timestamp", "listable"),
    [
        ("hi", 1_700_000_000, True),
        ("   ", 1_700_000_000, False),
        ("hi", 0, False),
        ("hi", None, False),
    ],
)
def test_is_listable(last_message, timestamp, listable) -> None:
    c = Conversation(id="x", last_message=last_message, timestamp=timestamp)
    assert c.is_listable is listable


# -- parse_content -----------------------------------------------------------


def test_plain_and_extended_text() -> None:
    assert parse_content({"conversation": "hello"}).text == "hello"
    assert parse_content({"extendedTextMessage": {"text": "link"}}).text == "link"


def test_image_caption() -> None:
    content = parse_content({"imageMessage": {"caption": "look"}})
    assert content.kind == "media"
    assert content.media_type == "image"
    assert content.caption == "look"


def test_document_caption_is_file_name() -> None:
    content = parse_content({"documentMessage": {"fileName": "report.pdf"}})
    assert content.media_type == "document"
    assert content.caption == "report.pdf"


def test_contact_and_location_fixed_captions() -> None:
    assert parse_content({"contactMessage": {}}).caption == "Shared contact"
    assert parse_content({"locationMessage": {}}).caption == "Shared location"


def test_interactive_and_poll() -> None:
    assert parse_content({"buttonsMessage": {}}).kind == "interactive"
    assert parse_content({"templateMessage": {}}).kind == "interactive"
    assert parse_content({"pollCreationMessage": {}}).kind == "poll"


def test_unknown_shape_is_unsupported() -> None:
    content = parse_content({"protocolMessage": {}})
    assert content.kind == "unsupported"
    assert content.renderable is False
    assert parse_content(None).kind == "unsupported"


# -- Message -----------------------------------------------------------------


def test_message_from_host() -> None:
    raw = {
        "key": {"id": "M1", "fromMe": True},
        "message": {"conversation": "hi"},
        "messageTimestamp": 1_700_000_000,
        "isAIMessage": True,
        "isFollowUp": True,
        "pushName": "Ana",
    }
    msg = Message.from_host(raw)
    assert msg.id == "M1"
    assert msg.from_me is True
    assert msg.content.text == "hi"
    assert msg.instant == 1_700_000_000_000
    assert msg.is_ai is True
    assert msg.is_follow_up is True
    assert msg.push_name == "Ana"


def test_message_without_key_id_uses_position() -> None:
    msg = Message.from_host({"message": {"conversation": "x"}}, position=4)
    assert msg.id == "msg-4"


def test_message_invalid_timestamp_is_none() -> None:
    msg = Message.from_host({"key": {"id": "a"}, "messageTimestamp": "garbage"})
    assert msg.instant is None


def test_message_is_immutable() -> None:
    msg = Message.from_host({"key": {"id": "a"}})
    with pytest.raises(ValidationError):
        msg.id = "b"


def test_parse_messages_skips_non_objects() -> None:
    messages = parse_messages([{"key": {"id": "a"}}, "junk", None, {"key": {"id": "b"}}])
    assert [m.id for m in messages] == ["a", "b"]
    assert parse_messages(None) == []


def test_parse_messages_skips_malformed_records() -> None:
    messages = parse_messages([
        {"key": "junk"},
        {"key": {"id": "a"}, "message": "text"},
        {"key": {"id": 5}},
        {"key": {"id": "b"}, "message": {"conversation": "hi"}},
    ])
    assert [m.id for m in messages] == ["b"]
    assert messages[0].content.text == "hi"


def test_connection_state_defaults() -> None:
    state = ConnectionState()
    assert state.connected is False
    assert state.last_update == 0
