import logging
import secrets
import string
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import joinedload

from huddle.core.config import get_settings
from huddle.core.errors import InviteCodeExhaustedError
from huddle.models import MemberRole, Server, ServerMember, User

logger = logging.getLogger(__name__)

INVITE_ALPHABET = string.ascii_letters + string.digits + "-_"
INVITE_CODE_ATTEMPTS = 5


def generate_invite_code(length: int | None = None) -> str:
    # 64-symbol alphabet: 6 bits per character, 60 bits at the default length.
    length = length or get_settings().invite_code_length
    return "".join(secrets.choice(INVITE_ALPHABET) for _ in range(length))


async def create_server(db: AsyncSession, owner: User, name: str, is_restricted: bool) -> tuple[Server, ServerMember]:
    # Rollback expires loaded instances, so keep the plain id around.
    owner_id = owner.id

    for _ in range(INVITE_CODE_ATTEMPTS):
        server = Server(name=name, owner_id=owner_id, is_restricted=is_restricted, invite_code=generate_invite_code())
        membership = ServerMember(server=server, user_id=owner_id, role=MemberRole.OWNER)
        db.add_all([server, membership])

        try:
            await db.commit()
        except IntegrityError:
            await db.rollback()
            logger.warning("Invite code collision while creating server for user %s, retrying", owner_id)
            continue

        await db.refresh(server)
        await db.refresh(membership)
        logger.info("User %s created server %s", owner_id, server.id)
        return server, membership

    raise InviteCodeExhaustedError(INVITE_CODE_ATTEMPTS)


async def list_servers_for_user(db: AsyncSession, user_id: UUID) -> list[tuple[Server, ServerMember]]:
    stmt = (
        select(Server, ServerMember)
        .join(ServerMember, ServerMember.server_id == Server.id)
        .where(ServerMember.user_id == user_id)
        .order_by(Server.created_at.desc())
    )
    return [(server, member) for server, member in (await db.execute(stmt)).all()]


async def update_server(db: AsyncSession, server: Server, name: str | None, is_restricted: bool | None) -> Server:
    if name is not None:
        server.name = name
    if is_restricted is not None:
        server.is_restricted = is_restricted
    await db.commit()
    return server


async def delete_server(db: AsyncSession, server: Server) -> None:
    server_id = server.id
    await db.delete(server)
    await db.commit()
    logger.info("Deleted server %s", server_id)


async def list_members(db: AsyncSession, server_id: UUID) -> list[ServerMember]:
    stmt = select(ServerMember).where(ServerMember.server_id == server_id).order_by(ServerMember.created_at.asc())
    members = list((await db.execute(stmt)).scalars().all())
    # Stable sort keeps join order within a role.
    members.sort(key=lambda member: member.role.authority, reverse=True)
    return members


async def get_member(db: AsyncSession, server_id: UUID, member_id: UUID) -> ServerMember | None:
    stmt = (
        select(ServerMember)
        .options(joinedload(ServerMember.server))
        .where(ServerMember.id == member_id, ServerMember.server_id == server_id)
    )
    return (await db.execute(stmt)).scalar_one_or_none()


async def change_member_role(db: AsyncSession, member: ServerMember, role: MemberRole) -> ServerMember:
    previous = member.role
    member.role = role
    await db.commit()
    logger.info("Member %s role changed %s -> %s in server %s", member.id, previous, role, member.server_id)
    return member


async def kick_member(db: AsyncSession, member: ServerMember) -> None:
    member_id, server_id = member.id, member.server_id
    await db.delete(member)
    await db.commit()
    logger.info("Kicked member %s from server %s", member_id, server_id)
