from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession

from huddle.api.deps import ensure_allowed, get_current_user, require_server_member
from huddle.core.errors import InviteCodeExhaustedError
from huddle.db.session import get_db
from huddle.models import Server, ServerMember, User
from huddle.schemas.invite import InviteOut
from huddle.schemas.server import CreateServerIn, ServerOut, UpdateServerIn
from huddle.services import permissions, server_service

router = APIRouter(prefix="/servers", tags=["servers"])


def to_server_out(server: Server, member: ServerMember) -> ServerOut:
    return ServerOut(
        id=server.id,
        name=server.name,
        owner_id=server.owner_id,
        is_restricted=server.is_restricted,
        created_at=server.created_at,
        role=member.role,
        # Guests can see the server but not hand out its invite.
        invite_code=server.invite_code if permissions.can_generate_invite(member) else None,
    )


@router.post("", response_model=ServerOut, status_code=status.HTTP_201_CREATED)
async def create_server(
    payload: CreateServerIn,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user),
) -> ServerOut:
    try:
        server, membership = await server_service.create_server(db, current_user, payload.name, payload.is_restricted)
    except InviteCodeExhaustedError as exc:
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=str(exc)) from exc
    return to_server_out(server, membership)


@router.get("", response_model=list[ServerOut])
async def list_servers(
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user),
) -> list[ServerOut]:
    rows = await server_service.list_servers_for_user(db, current_user.id)
    return [to_server_out(server, member) for server, member in rows]


@router.get("/{server_id}", response_model=ServerOut)
async def get_server(
    server_id: UUID,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user),
) -> ServerOut:
    member = await require_server_member(db, server_id, current_user.id)
    return to_server_out(member.server, member)


@router.patch("/{server_id}", response_model=ServerOut)
async def update_server(
    server_id: UUID,
    payload: UpdateServerIn,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user),
) -> ServerOut:
    member = await require_server_member(db, server_id, current_user.id)
    ensure_allowed(permissions.can_manage_server(member, member.server), "Only the server owner can edit the server")

    server = await server_service.update_server(db, member.server, payload.name, payload.is_restricted)
    return to_server_out(server, member)


@router.delete("/{server_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_server(
    server_id: UUID,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user),
) -> None:
    member = await require_server_member(db, server_id, current_user.id)
    ensure_allowed(permissions.can_manage_server(member, member.server), "Only the server owner can delete the server")
    await server_service.delete_server(db, member.server)


@router.get("/{server_id}/invite", response_model=InviteOut)
async def get_invite(
    server_id: UUID,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user),
) -> InviteOut:
    member = await require_server_member(db, server_id, current_user.id)
    ensure_allowed(permissions.can_generate_invite(member), "Only owners and moderators can share invites")
    return InviteOut(server_id=member.server.id, invite_code=member.server.invite_code)
