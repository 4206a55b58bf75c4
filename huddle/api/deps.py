from uuid import UUID

from fastapi import Depends, HTTPException, Request, status
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import joinedload

from huddle.core.config import get_settings
from huddle.core.security import decode_client_principal
from huddle.db.session import get_db
from huddle.models import ServerMember, User
from huddle.services.identity_service import resolve_user
from huddle.services.permissions import Decision

# Denials and absent servers look the same to callers that are not members.
NOT_A_MEMBER = "You are not a member of this server"


async def get_current_user(request: Request, db: AsyncSession = Depends(get_db)) -> User:
    principal = decode_client_principal(request.headers.get(get_settings().principal_header))
    if principal is None:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Unauthorized: No valid session")
    return await resolve_user(db, principal)


async def get_server_member(db: AsyncSession, server_id: UUID, user_id: UUID) -> ServerMember | None:
    stmt = (
        select(ServerMember)
        .options(joinedload(ServerMember.server))
        .where(ServerMember.server_id == server_id, ServerMember.user_id == user_id)
    )
    return (await db.execute(stmt)).scalar_one_or_none()


async def require_server_member(db: AsyncSession, server_id: UUID, user_id: UUID) -> ServerMember:
    member = await get_server_member(db, server_id, user_id)
    if member is None:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=NOT_A_MEMBER)
    return member


def ensure_allowed(decision: Decision, detail: str) -> None:
    if not decision:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=f"Forbidden: {detail}")
