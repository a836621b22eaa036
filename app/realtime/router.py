"""Audience computation for routed frames."""

from dataclasses import dataclass

from .protocol import FrameKind


@dataclass(frozen=True)
class ChatRecord:
    """Membership of a two-party chat, as seen by the hub."""

    chat_id: str
    user1_id: str
    user2_id: str

    @property
    def members(self) -> frozenset[str]:
        return frozenset((self.user1_id, self.user2_id))

    def counterpart(self, user_id: str) -> str:
        return self.user2_id if self.user1_id == user_id else self.user1_id


@dataclass(frozen=True)
class RoutingInstruction:
    recipients: frozenset[str]
    payload: str


def audience(chat: ChatRecord, sender_id: str, kind: FrameKind) -> frozenset[str]:
    """
    Who should receive a frame of ``kind`` sent by ``sender_id`` in ``chat``.

    Messages go to both members so the sender's other views stay in sync;
    typing and offline signals only concern the counterpart. A sender that
    is not a member gets no audience.
    """
    if sender_id not in chat.members:
        return frozenset()
    if kind is FrameKind.MESSAGE:
        return chat.members
    return frozenset({chat.counterpart(sender_id)})
