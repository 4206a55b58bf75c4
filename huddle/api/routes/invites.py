from fastapi import APIRouter, Depends, HTTPException, Response, status
from sqlalchemy.ext.asyncio import AsyncSession

from huddle.api.deps import get_current_user
from huddle.db.session import get_db
from huddle.models import User
from huddle.schemas.invite import InviteJoinOut
from huddle.services.invite_service import get_server_by_invite_code, join_server

router = APIRouter(prefix="/invites", tags=["invites"])


@router.post("/{code}", response_model=InviteJoinOut, status_code=status.HTTP_201_CREATED)
async def accept_invite(
    code: str,
    response: Response,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user),
) -> InviteJoinOut:
    server = await get_server_by_invite_code(db, code)
    if server is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Invalid invite")

    server_id, server_name = server.id, server.name
    membership, joined = await join_server(db, server, current_user.id)
    if not joined:
        response.status_code = status.HTTP_200_OK

    return InviteJoinOut(
        server_id=server_id,
        server_name=server_name,
        member_id=membership.id,
        role=membership.role,
        joined=joined,
    )
