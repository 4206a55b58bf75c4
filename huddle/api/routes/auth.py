from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from huddle.api.deps import get_current_user
from huddle.db.session import get_db
from huddle.models import User
from huddle.schemas.account import AccountExportOut
from huddle.schemas.common import UserOut
from huddle.services.account_service import delete_account, export_account

router = APIRouter(prefix="/me", tags=["auth"])


@router.get("", response_model=UserOut)
async def me(current_user: User = Depends(get_current_user)) -> UserOut:
    return UserOut.model_validate(current_user, from_attributes=True)


@router.get("/export", response_model=AccountExportOut)
async def export_me(
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user),
) -> AccountExportOut:
    return await export_account(db, current_user)


@router.delete("", status_code=status.HTTP_204_NO_CONTENT)
async def delete_me(
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user),
) -> None:
    await delete_account(db, current_user)
