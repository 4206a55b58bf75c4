from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession

from huddle.api.deps import ensure_allowed, get_current_user, require_server_member
from huddle.db.session import get_db
from huddle.models import User
from huddle.schemas.server import ServerMemberOut, UpdateMemberRoleIn
from huddle.services import permissions, server_service

router = APIRouter(prefix="/servers/{server_id}/members", tags=["members"])


@router.get("", response_model=list[ServerMemberOut])
async def list_members(
    server_id: UUID,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user),
) -> list[ServerMemberOut]:
    await require_server_member(db, server_id, current_user.id)
    members = await server_service.list_members(db, server_id)
    return [ServerMemberOut.model_validate(member, from_attributes=True) for member in members]


@router.patch("/{member_id}", response_model=ServerMemberOut)
async def update_member_role(
    server_id: UUID,
    member_id: UUID,
    payload: UpdateMemberRoleIn,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user),
) -> ServerMemberOut:
    actor = await require_server_member(db, server_id, current_user.id)
    target = await server_service.get_member(db, server_id, member_id)
    if target is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Member not found")

    ensure_allowed(permissions.can_change_role(actor, target, payload.role), "You cannot change this member's role")
    updated = await server_service.change_member_role(db, target, payload.role)
    return ServerMemberOut.model_validate(updated, from_attributes=True)


@router.delete("/{member_id}", status_code=status.HTTP_204_NO_CONTENT)
async def kick_member(
    server_id: UUID,
    member_id: UUID,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user),
) -> None:
    actor = await require_server_member(db, server_id, current_user.id)
    target = await server_service.get_member(db, server_id, member_id)
    if target is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Member not found")

    ensure_allowed(permissions.can_kick_member(actor, target), "You do not have permission to kick this member")
    await server_service.kick_member(db, target)
