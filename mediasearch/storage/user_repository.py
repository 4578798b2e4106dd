"""
User Repository for MediaSearch

Account lookups and mutations over an async SQLAlchemy session.
"""

from typing import Optional
from uuid import uuid4

from loguru import logger
from sqlalchemy import select, or_
from sqlalchemy.ext.asyncio import AsyncSession

from .models import User, utcnow


class UserRepository:
    """Repository for user accounts."""

    # Columns a profile update may touch
    PROFILE_FIELDS = ("username", "email", "first_name", "last_name")

    def __init__(self, session: AsyncSession):
        self.session = session

    async def get(self, user_id: str) -> Optional[User]:
        return await self.session.get(User, user_id)

    async def get_by_email(self, email: str) -> Optional[User]:
        stmt = select(User).where(User.email == email.lower())
        return (await self.session.execute(stmt)).scalar_one_or_none()

    async def find_conflict(
        self,
        email: Optional[str] = None,
        username: Optional[str] = None,
        exclude_id: Optional[str] = None,
    ) -> Optional[User]:
        """Return a user already holding ``email`` or ``username``, if any."""
        conditions = []
        if email:
            conditions.append(User.email == email.lower())
        if username:
            conditions.append(User.username == username)
        if not conditions:
            return None

        stmt = select(User).where(or_(*conditions))
        if exclude_id:
            stmt = stmt.where(User.id != exclude_id)
        return (await self.session.execute(stmt.limit(1))).scalar_one_or_none()

    async def create(
        self,
        username: str,
        email: str,
        hashed_password: str,
        first_name: Optional[str] = None,
        last_name: Optional[str] = None,
    ) -> User:
        now = utcnow()
        user = User(
            id=str(uuid4()),
            username=username,
            email=email.lower(),
            hashed_password=hashed_password,
            first_name=first_name,
            last_name=last_name,
            is_active=True,
            last_login=now,
            created_at=now,
            updated_at=now,
        )
        self.session.add(user)
        await self.session.commit()
        await self.session.refresh(user)

        logger.info(f"Registered user {user.id} ({user.username})")
        return user

    async def touch_login(self, user: User) -> User:
        user.last_login = utcnow()
        await self.session.commit()
        await self.session.refresh(user)
        return user

    async def update_profile(self, user: User, **changes) -> User:
        """Apply profile changes; unknown or ``None`` values are ignored."""
        for key, value in changes.items():
            if key not in self.PROFILE_FIELDS or value is None:
                continue
            if key == "email":
                value = value.lower()
            setattr(user, key, value)

        user.updated_at = utcnow()
        await self.session.commit()
        await self.session.refresh(user)
        return user

    async def set_password(self, user: User, hashed_password: str) -> None:
        user.hashed_password = hashed_password
        user.updated_at = utcnow()
        await self.session.commit()
