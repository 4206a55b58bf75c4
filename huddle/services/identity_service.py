import logging

from sqlalchemy import or_, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from huddle.core.security import ClientPrincipal
from huddle.models import User

logger = logging.getLogger(__name__)


async def _find_user(db: AsyncSession, principal: ClientPrincipal) -> User | None:
    stmt = select(User).where(or_(User.email == principal.email, User.external_id == principal.external_id))
    candidates = (await db.execute(stmt)).scalars().all()
    # Email is the natural key; the external id only finds accounts whose email changed upstream.
    by_email = next((user for user in candidates if user.email == principal.email), None)
    return by_email or next(iter(candidates), None)


async def resolve_user(db: AsyncSession, principal: ClientPrincipal) -> User:
    """Upsert the account behind ``principal`` and return it.

    Users are provisioned on first sight. Later calls refresh the linked
    provider id, email and display name so that signing in through another
    identity provider with the same email keeps a single account.
    """
    user = await _find_user(db, principal)

    if user is None:
        user = User(
            external_id=principal.external_id,
            email=principal.email,
            display_name=principal.display_name,
        )
        db.add(user)
        try:
            await db.commit()
        except IntegrityError:
            # A concurrent first request provisioned the same account.
            await db.rollback()
            user = await _find_user(db, principal)
            if user is None:
                raise
        else:
            logger.info("Provisioned user %s via %s", user.id, principal.identity_provider or "unknown provider")
            await db.refresh(user)
            return user

    changed = (
        user.external_id != principal.external_id
        or user.email != principal.email
        or user.display_name != principal.display_name
    )
    if changed:
        if user.external_id != principal.external_id:
            await _release_external_id(db, user, principal.external_id)
        user.external_id = principal.external_id
        user.email = principal.email
        user.display_name = principal.display_name
        await db.commit()
        await db.refresh(user)
    return user


async def _release_external_id(db: AsyncSession, user: User, external_id: str) -> None:
    # Another account holding this provider id would trip the unique constraint.
    stmt = select(User).where(User.external_id == external_id, User.id != user.id)
    holder = (await db.execute(stmt)).scalar_one_or_none()
    if holder is not None:
        logger.warning("Provider id moved from user %s to user %s", holder.id, user.id)
        holder.external_id = f"unlinked:{holder.id}"
        await db.flush()
