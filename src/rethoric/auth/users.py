"""User records mirrored from the identity provider."""

import logging

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from rethoric.db.models import User, UserRole
from rethoric.errors import NotFoundError, UnauthenticatedError

logger = logging.getLogger(__name__)


def display_name(first_name: str | None, last_name: str | None) -> str | None:
    """'First Last' when both are known, otherwise whichever exists."""
    first = (first_name or "").strip()
    last = (last_name or "").strip()
    if first and last:
        return f"{first} {last}"
    return first or last or None


async def get_user_by_external_id(session: AsyncSession, external_id: str) -> User | None:
    result = await session.execute(select(User).where(User.external_id == external_id))
    return result.scalars().first()


async def get_current_user(session: AsyncSession, subject: str | None) -> User:
    """Resolve the authenticated subject to a user record.

    Raises:
        UnauthenticatedError: No subject, or no user provisioned for it
    """
    if not subject:
        raise UnauthenticatedError("Not authenticated!")
    user = await get_user_by_external_id(session, subject)
    if user is None:
        raise UnauthenticatedError("User not found!")
    return user


async def provision_user(
    session: AsyncSession,
    external_id: str,
    email: str,
    name: str | None = None,
) -> tuple[User, bool]:
    """Create a user on first sight; repeat deliveries return the existing one.

    Returns:
        Tuple of (User, created)
    """
    existing = await get_user_by_external_id(session, external_id)
    if existing is not None:
        logger.info(f"User already exists for external ID: {external_id}")
        return existing, False

    user = User(external_id=external_id, email=email, name=name, role=UserRole.USER)
    session.add(user)
    try:
        await session.commit()
    except IntegrityError:
        # A concurrent delivery inserted the same subject first.
        await session.rollback()
        existing = await get_user_by_external_id(session, external_id)
        if existing is None:
            raise
        logger.info(f"User for external ID {external_id} was provisioned concurrently")
        return existing, False
    await session.refresh(user)
    logger.info(f"Created user {user.id} for external ID: {external_id}")
    return user, True


async def update_display_name(session: AsyncSession, user: User, name: str | None) -> User:
    user.name = (name or "").strip() or None
    await session.commit()
    await session.refresh(user)
    return user


async def set_role(session: AsyncSession, external_id: str, role: UserRole) -> User:
    user = await get_user_by_external_id(session, external_id)
    if user is None:
        raise NotFoundError(f"No user with external ID {external_id}")
    user.role = role
    await session.commit()
    return user
