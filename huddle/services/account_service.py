import logging
from datetime import UTC, datetime

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from huddle.models import Message, Server, ServerMember, User
from huddle.schemas.account import (
    AccountExportOut,
    ExportMembershipOut,
    ExportMessageOut,
    ExportOwnedServerOut,
)
from huddle.schemas.common import UserOut

logger = logging.getLogger(__name__)


async def export_account(db: AsyncSession, user: User) -> AccountExportOut:
    message_counts = (
        select(Message.member_id, func.count(Message.id).label("message_count"))
        .group_by(Message.member_id)
        .subquery()
    )
    membership_rows = (
        await db.execute(
            select(ServerMember, Server, func.coalesce(message_counts.c.message_count, 0))
            .join(Server, Server.id == ServerMember.server_id)
            .outerjoin(message_counts, message_counts.c.member_id == ServerMember.id)
            .where(ServerMember.user_id == user.id)
            .order_by(ServerMember.created_at.asc())
        )
    ).all()

    member_counts = (
        select(ServerMember.server_id, func.count(ServerMember.id).label("member_count"))
        .group_by(ServerMember.server_id)
        .subquery()
    )
    server_message_counts = (
        select(Message.server_id, func.count(Message.id).label("message_count"))
        .group_by(Message.server_id)
        .subquery()
    )
    owned_rows = (
        await db.execute(
            select(
                Server,
                func.coalesce(member_counts.c.member_count, 0),
                func.coalesce(server_message_counts.c.message_count, 0),
            )
            .outerjoin(member_counts, member_counts.c.server_id == Server.id)
            .outerjoin(server_message_counts, server_message_counts.c.server_id == Server.id)
            .where(Server.owner_id == user.id)
            .order_by(Server.created_at.asc())
        )
    ).all()

    message_rows = (
        await db.execute(
            select(Message.content, Message.sent_at, Server.id, Server.name)
            .join(ServerMember, ServerMember.id == Message.member_id)
            .join(Server, Server.id == Message.server_id)
            .where(ServerMember.user_id == user.id)
            .order_by(Message.sent_at.asc(), Message.sequence.asc())
        )
    ).all()

    logger.info("Exported account data for user %s", user.id)
    return AccountExportOut(
        export_date=datetime.now(UTC),
        user=UserOut.model_validate(user, from_attributes=True),
        memberships=[
            ExportMembershipOut(
                server_id=server.id,
                server_name=server.name,
                role=member.role,
                joined_at=member.created_at,
                message_count=count,
            )
            for member, server, count in membership_rows
        ],
        owned_servers=[
            ExportOwnedServerOut(
                id=server.id,
                name=server.name,
                is_restricted=server.is_restricted,
                created_at=server.created_at,
                member_count=members,
                message_count=messages,
            )
            for server, members, messages in owned_rows
        ],
        messages=[
            ExportMessageOut(server_id=server_id, server_name=server_name, content=content, sent_at=sent_at)
            for content, sent_at, server_id, server_name in message_rows
        ],
    )


async def delete_account(db: AsyncSession, user: User) -> None:
    user_id = user.id
    await db.delete(user)
    await db.commit()
    logger.info("Deleted account %s with its memberships, messages and owned servers", user_id)
