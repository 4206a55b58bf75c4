"""Local message state for polling clients.

Messages are shown as soon as they are typed. Each one stays PENDING until the
server confirms it (SENT) or the attempt fails (FAILED), and polls fold the
server's page into that local view without losing unconfirmed work.
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass
from datetime import UTC, datetime, timedelta
from enum import StrEnum
from uuid import UUID

from huddle.models.enums import MemberRole
from huddle.schemas.message import MessageOut

# A page fetched just before one of our writes committed will not contain it yet.
ECHO_GRACE = timedelta(seconds=10)


class MessageStatus(StrEnum):
    PENDING = "PENDING"
    SENT = "SENT"
    FAILED = "FAILED"


@dataclass(slots=True)
class LocalMessage:
    client_id: UUID
    content: str
    sent_at: datetime
    sequence: int
    status: MessageStatus
    id: UUID | None = None
    member_id: UUID | None = None
    author_role: MemberRole | None = None
    author_name: str | None = None
    created_at: datetime | None = None
    edited_at: datetime | None = None
    error: str | None = None
    retry_count: int = 0
    # Client time at which our own POST was confirmed; None for copies read from a page.
    confirmed_at: datetime | None = None

    @classmethod
    def from_server(cls, message: MessageOut) -> LocalMessage:
        return cls(
            client_id=message.client_id,
            content=message.content,
            sent_at=message.sent_at,
            sequence=message.sequence,
            status=MessageStatus.SENT,
            id=message.id,
            member_id=message.member.id,
            author_role=message.member.role,
            author_name=message.member.user.display_name,
            created_at=message.created_at,
            edited_at=message.edited_at,
        )

    @property
    def is_confirmed(self) -> bool:
        return self.status == MessageStatus.SENT

    def awaiting_echo(self, now: datetime, grace: timedelta = ECHO_GRACE) -> bool:
        """Confirmed by our own POST recently enough that a poll may predate it."""
        return self.is_confirmed and self.confirmed_at is not None and now - self.confirmed_at <= grace


def order_key(message: LocalMessage) -> tuple[datetime, int, str]:
    return message.sent_at, message.sequence, str(message.client_id)


def sort_messages(messages: Iterable[LocalMessage]) -> list[LocalMessage]:
    return sorted(messages, key=order_key)


def merge_page(
    local: Iterable[LocalMessage],
    page: Iterable[MessageOut],
    *,
    covers_history: bool = False,
    now: datetime | None = None,
    echo_grace: timedelta = ECHO_GRACE,
) -> list[LocalMessage]:
    """Fold the newest server page into the local view.

    Unconfirmed (PENDING or FAILED) local messages survive every poll. When the
    same ``client_id`` appears on both sides the server copy wins, since it
    carries the authoritative id. Confirmed messages older than the page are
    history loaded earlier and are kept; confirmed messages inside the page's
    window that the server no longer returns were deleted and are dropped,
    unless we confirmed them ourselves within ``echo_grace`` of ``now`` and
    the page may simply predate the write.
    ``covers_history`` says the page holds every message of the server.
    """
    now = now or datetime.now(UTC)
    confirmed = [LocalMessage.from_server(message) for message in page]
    confirmed_ids = {message.client_id for message in confirmed}
    floor = None if covers_history or not confirmed else min(order_key(message) for message in confirmed)

    kept = []
    for message in local:
        if message.client_id in confirmed_ids:
            continue
        if not message.is_confirmed or message.awaiting_echo(now, echo_grace):
            kept.append(message)
        elif floor is not None and order_key(message) < floor:
            kept.append(message)

    return sort_messages([*kept, *confirmed])


def merge_older(local: Iterable[LocalMessage], page: Iterable[MessageOut]) -> list[LocalMessage]:
    """Prepend an older page, ignoring messages that are already known."""
    current = list(local)
    known = {message.client_id for message in current}
    older = [LocalMessage.from_server(message) for message in page if message.client_id not in known]
    return sort_messages([*older, *current])
