import logging
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from huddle.models import MemberRole, Server, ServerMember

logger = logging.getLogger(__name__)


async def get_server_by_invite_code(db: AsyncSession, code: str) -> Server | None:
    return (await db.execute(select(Server).where(Server.invite_code == code))).scalar_one_or_none()


async def _find_membership(db: AsyncSession, server_id: UUID, user_id: UUID) -> ServerMember | None:
    stmt = select(ServerMember).where(ServerMember.server_id == server_id, ServerMember.user_id == user_id)
    return (await db.execute(stmt)).scalar_one_or_none()


async def join_server(db: AsyncSession, server: Server, user_id: UUID) -> tuple[ServerMember, bool]:
    """Make ``user_id`` a guest of ``server``.

    Returns the membership and whether it was created by this call. Joining a
    server twice is a no-op that hands back the existing membership.
    """
    server_id = server.id
    existing = await _find_membership(db, server_id, user_id)
    if existing is not None:
        return existing, False

    membership = ServerMember(server_id=server_id, user_id=user_id, role=MemberRole.GUEST)
    db.add(membership)
    try:
        await db.commit()
    except IntegrityError:
        await db.rollback()
        existing = await _find_membership(db, server_id, user_id)
        if existing is None:
            raise
        return existing, False

    await db.refresh(membership)
    logger.info("User %s joined server %s as %s", user_id, server_id, MemberRole.GUEST)
    return membership, True
