"""Message write and read paths.

Messages carry a client-chosen ``sent_at`` and ``sequence`` so that optimistic
local copies and server-confirmed ones interleave the same way on every
client. Within a server the total order is ``(sent_at, sequence, id)``
ascending and it is applied when reading, never when writing. Writes are
idempotent on ``client_id``: resubmitting the same payload returns the stored
message, reusing the key for a different payload is a conflict.
"""

import logging
from datetime import UTC, datetime, timedelta
from uuid import UUID

from sqlalchemy import ColumnElement, and_, or_, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from huddle.core.config import get_settings
from huddle.core.errors import ClockSkewError, IdempotencyConflictError
from huddle.models import Message, ServerMember
from huddle.schemas.message import CreateMessageIn

logger = logging.getLogger(__name__)


def check_clock_skew(sent_at: datetime, now: datetime | None = None) -> None:
    now = now or datetime.now(UTC)
    limit = timedelta(seconds=get_settings().max_clock_skew_seconds)
    skew = now - sent_at
    if abs(skew) > limit:
        raise ClockSkewError(sent_at, skew, limit)


def is_safe_retry(existing: Message, member_id: UUID, server_id: UUID, payload: CreateMessageIn) -> bool:
    return (
        existing.server_id == server_id
        and existing.member_id == member_id
        and existing.content == payload.content
        and existing.sequence == payload.sequence
    )


async def get_message(db: AsyncSession, message_id: UUID) -> Message | None:
    stmt = select(Message).where(Message.id == message_id).execution_options(populate_existing=True)
    return (await db.execute(stmt)).scalar_one_or_none()


async def get_server_message(db: AsyncSession, server_id: UUID, message_id: UUID) -> Message | None:
    stmt = select(Message).where(Message.id == message_id, Message.server_id == server_id)
    return (await db.execute(stmt)).scalar_one_or_none()


async def get_message_by_client_id(db: AsyncSession, client_id: UUID) -> Message | None:
    stmt = select(Message).where(Message.client_id == client_id)
    return (await db.execute(stmt)).scalar_one_or_none()


def _replay(existing: Message, member_id: UUID, server_id: UUID, payload: CreateMessageIn) -> Message:
    if not is_safe_retry(existing, member_id, server_id, payload):
        logger.warning(
            "Idempotency conflict on client_id %s from member %s (stored message %s)",
            payload.client_id,
            member_id,
            existing.id,
        )
        raise IdempotencyConflictError(payload.client_id)
    logger.info("Replayed message %s for client_id %s", existing.id, payload.client_id)
    return existing


async def create_message(
    db: AsyncSession,
    member: ServerMember,
    payload: CreateMessageIn,
    now: datetime | None = None,
) -> tuple[Message, bool]:
    """Persist ``payload`` as written by ``member``.

    Returns the stored message and whether this call created it. Raises
    :class:`ClockSkewError` when ``sent_at`` is too far from server time and
    :class:`IdempotencyConflictError` when ``client_id`` already belongs to a
    different message.
    """
    # Rollback expires loaded instances, keep plain copies of what a replay needs.
    member_id, server_id = member.id, member.server_id

    try:
        check_clock_skew(payload.sent_at, now)
    except ClockSkewError:
        logger.info("Rejected message %s from member %s: clock skew", payload.client_id, member_id)
        raise

    existing = await get_message_by_client_id(db, payload.client_id)
    if existing is not None:
        return _replay(existing, member_id, server_id, payload), False

    message = Message(
        client_id=payload.client_id,
        content=payload.content,
        sent_at=payload.sent_at,
        sequence=payload.sequence,
        member_id=member_id,
        server_id=server_id,
    )
    db.add(message)
    try:
        await db.commit()
    except IntegrityError:
        # Lost a race against a writer using the same client_id.
        await db.rollback()
        existing = await get_message_by_client_id(db, payload.client_id)
        if existing is None:
            raise
        return _replay(existing, member_id, server_id, payload), False

    stored = await get_message(db, message.id)
    logger.info("Member %s posted message %s in server %s", member_id, stored.id, server_id)
    return stored, True


def _before_cursor(cursor: Message) -> ColumnElement[bool]:
    return or_(
        Message.sent_at < cursor.sent_at,
        and_(Message.sent_at == cursor.sent_at, Message.sequence < cursor.sequence),
        and_(Message.sent_at == cursor.sent_at, Message.sequence == cursor.sequence, Message.id < cursor.id),
    )


async def list_messages(
    db: AsyncSession,
    server_id: UUID,
    limit: int,
    before: Message | None = None,
) -> list[Message]:
    """Return up to ``limit`` messages strictly older than ``before``, oldest first."""
    limit = max(1, min(limit, get_settings().message_page_size))
    stmt = (
        select(Message)
        .where(Message.server_id == server_id)
        .order_by(Message.sent_at.desc(), Message.sequence.desc(), Message.id.desc())
        .limit(limit)
    )
    if before is not None:
        stmt = stmt.where(_before_cursor(before))

    rows = list((await db.execute(stmt)).scalars().all())
    rows.reverse()
    return rows


async def edit_message(db: AsyncSession, message: Message, content: str) -> Message:
    message.content = content
    message.edited_at = datetime.now(UTC)
    await db.commit()
    return await get_message(db, message.id)


async def delete_message(db: AsyncSession, message: Message) -> None:
    message_id, server_id = message.id, message.server_id
    await db.delete(message)
    await db.commit()
    logger.info("Deleted message %s in server %s", message_id, server_id)
