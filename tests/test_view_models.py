"""
Tests for mapping raw liveChatMessage resources to UI payloads.
"""
from app.view_models import ChatMessagePayload, messages_to_view_models, super_chat_color

AUTHOR = {
    "channelId": "UCauthor",
    "displayName": "Viewer",
    "profileImageUrl": "https://yt3.ggpht.com/a.jpg",
    "isChatOwner": False,
    "isChatModerator": True,
    "isChatSponsor": True,
    "isVerified": False,
}


def _message(snippet):
    return {"id": "msg-1", "snippet": {"publishedAt": "2026-10-19T10:00:00Z", **snippet}, "authorDetails": AUTHOR}


def test_text_message():
    payload = ChatMessagePayload.from_raw_message(_message({
        "type": "textMessageEvent",
        "textMessageDetails": {"messageText": "hello chat"},
    }))

    assert payload.message == "hello chat"
    assert payload.authorName == "Viewer"
    assert payload.badges == ["moderator", "member"]
    assert payload.isSuperChat is False
    assert payload.superChatColor is None


def test_super_chat_uses_tier_color():
    payload = ChatMessagePayload.from_raw_message(_message({
        "type": "superChatEvent",
        "superChatDetails": {"userComment": "great stream", "amountDisplayString": "$5.00", "tier": 3},
    }))

    assert payload.isSuperChat is True
    assert payload.message == "great stream"
    assert payload.superChatAmount == "$5.00"
    assert payload.superChatColor == "#ffca28"


def test_super_sticker_describes_sticker():
    payload = ChatMessagePayload.from_raw_message(_message({
        "type": "superStickerEvent",
        "superStickerDetails": {"superStickerMetadata": {"altText": "Party parrot"}, "tier": 2},
    }))

    assert payload.message == "[Super Sticker: Party parrot]"
    assert payload.superChatColor == "#00bfa5"


def test_other_events_fall_back_to_display_message():
    payload = ChatMessagePayload.from_raw_message(_message({
        "type": "newSponsorEvent",
        "displayMessage": "Viewer just became a member!",
    }))

    assert payload.message == "Viewer just became a member!"
    assert payload.messageType == "newSponsorEvent"


def test_unknown_tier_defaults_to_lowest_color():
    assert super_chat_color(None) == super_chat_color(1)
    assert super_chat_color(99) == super_chat_color(1)


def test_messages_to_view_models_returns_dicts():
    items = messages_to_view_models([_message({"type": "textMessageEvent", "textMessageDetails": {"messageText": "hi"}})])
    assert items[0]["id"] == "msg-1"
    assert items[0]["message"] == "hi"
