"""
View Models for chat rendering
Strict mapping layer that converts YouTube liveChatMessage resources into
presentation-ready payloads.
"""
from dataclasses import asdict, dataclass, field
from typing import Any, Dict, List, Optional


# =============================================================================
# PAYLOAD CONTRACTS (UI-Stable View Models)
# =============================================================================
# The browser only consumes these payloads, never raw API responses.


# Super Chat tier colours (tier 1 is the smallest amount)
SUPER_CHAT_COLORS = {
    1: "#1565c0",  # Blue
    2: "#00bfa5",  # Teal
    3: "#ffca28",  # Yellow
    4: "#f57c00",  # Orange
    5: "#e91e63",  # Pink
    6: "#e62117",  # Red
    7: "#e62117",  # Red (highest)
}


def super_chat_color(tier: Optional[int]) -> str:
    """Get the highlight colour for a Super Chat tier."""
    return SUPER_CHAT_COLORS.get(tier or 1, SUPER_CHAT_COLORS[1])


def get_badges(author: Dict[str, Any]) -> List[str]:
    """Get badges for a chat author, in display order."""
    badges = []
    if author.get("isChatOwner"):
        badges.append("owner")
    if author.get("isChatModerator"):
        badges.append("moderator")
    if author.get("isChatSponsor"):
        badges.append("member")
    if author.get("isVerified"):
        badges.append("verified")
    return badges


@dataclass
class ChatMessagePayload:
    """
    Stable payload for one chat line.
    UI relies on these exact field names.
    """
    id: str
    authorName: str
    authorAvatarUrl: str
    authorChannelId: str
    message: str
    publishedAt: str
    messageType: str
    badges: List[str] = field(default_factory=list)
    isSuperChat: bool = False
    superChatAmount: Optional[str] = None
    superChatColor: Optional[str] = None

    @classmethod
    def from_raw_message(cls, raw: Dict[str, Any]) -> "ChatMessagePayload":
        """Map a raw liveChatMessage resource to a stable payload."""
        snippet = raw.get("snippet") or {}
        author = raw.get("authorDetails") or {}
        message_type = snippet.get("type", "")

        is_super_chat = False
        amount = None
        color = None

        if message_type == "textMessageEvent":
            message = (snippet.get("textMessageDetails") or {}).get("messageText", "")
        elif message_type == "superChatEvent":
            details = snippet.get("superChatDetails") or {}
            message = details.get("userComment", "")
            is_super_chat = True
            amount = details.get("amountDisplayString")
            color = super_chat_color(details.get("tier"))
        elif message_type == "superStickerEvent":
            details = snippet.get("superStickerDetails") or {}
            alt_text = (details.get("superStickerMetadata") or {}).get("altText") or "Sticker"
            message = f"[Super Sticker: {alt_text}]"
            is_super_chat = True
            amount = details.get("amountDisplayString")
            color = super_chat_color(details.get("tier"))
        else:
            message = snippet.get("displayMessage", "")

        return cls(
            id=raw.get("id", ""),
            authorName=author.get("displayName", ""),
            authorAvatarUrl=author.get("profileImageUrl", ""),
            authorChannelId=author.get("channelId", ""),
            message=message or "",
            publishedAt=snippet.get("publishedAt", ""),
            messageType=message_type,
            badges=get_badges(author),
            isSuperChat=is_super_chat,
            superChatAmount=amount,
            superChatColor=color,
        )

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


def messages_to_view_models(items: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
    """Convert a page of raw messages to UI payload dicts."""
    return [ChatMessagePayload.from_raw_message(item).to_dict() for item in items]
