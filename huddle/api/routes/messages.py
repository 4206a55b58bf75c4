from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from huddle.api.deps import ensure_allowed, get_current_user, require_server_member
from huddle.core.errors import ClockSkewError, IdempotencyConflictError
from huddle.db.session import get_db
from huddle.models import User
from huddle.schemas.message import CreateMessageIn, MessageOut, UpdateMessageIn
from huddle.services import permissions
from huddle.services.message_service import (
    create_message,
    delete_message,
    edit_message,
    get_server_message,
    list_messages,
)

router = APIRouter(prefix="/servers/{server_id}/messages", tags=["messages"])


@router.post("", response_model=MessageOut, status_code=status.HTTP_201_CREATED)
async def create_message_route(
    server_id: UUID,
    payload: CreateMessageIn,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user),
) -> MessageOut:
    member = await require_server_member(db, server_id, current_user.id)
    ensure_allowed(permissions.can_post(member, member.server), "You do not have permission to post in this server")

    try:
        message, _ = await create_message(db, member, payload)
    except ClockSkewError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc
    except IdempotencyConflictError as exc:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(exc)) from exc

    # A safe retry answers exactly like the original write.
    return MessageOut.model_validate(message, from_attributes=True)


@router.get("", response_model=list[MessageOut])
async def list_server_messages(
    server_id: UUID,
    before: UUID | None = Query(default=None),
    limit: int = Query(default=100, ge=1),
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user),
) -> list[MessageOut]:
    await require_server_member(db, server_id, current_user.id)

    cursor = None
    if before is not None:
        cursor = await get_server_message(db, server_id, before)
        if cursor is None:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Message not found")

    rows = await list_messages(db, server_id, limit, cursor)
    return [MessageOut.model_validate(item, from_attributes=True) for item in rows]


@router.patch("/{message_id}", response_model=MessageOut)
async def update_message_route(
    server_id: UUID,
    message_id: UUID,
    payload: UpdateMessageIn,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user),
) -> MessageOut:
    member = await require_server_member(db, server_id, current_user.id)
    message = await get_server_message(db, server_id, message_id)
    if message is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Message not found")
    ensure_allowed(permissions.can_edit_message(member, message), "Cannot edit another member's message")

    updated = await edit_message(db, message, payload.content)
    return MessageOut.model_validate(updated, from_attributes=True)


@router.delete("/{message_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_message_route(
    server_id: UUID,
    message_id: UUID,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user),
) -> None:
    member = await require_server_member(db, server_id, current_user.id)
    message = await get_server_message(db, server_id, message_id)
    if message is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Message not found")
    ensure_allowed(permissions.can_delete_message(member, message), "You do not have permission to delete this message")

    await delete_message(db, message)
