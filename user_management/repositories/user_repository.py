"""Repository for user persistence and retrieval."""
from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Iterable, List, Optional, Tuple

from sqlalchemy import delete, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from user_management.errors import DuplicateEmailError
from user_management.models.user_model import User, UserStatus

LOGGER = logging.getLogger(__name__)

UNIQUE_VIOLATION = "23505"


def is_unique_violation(exc: IntegrityError) -> bool:
    """True when the driver reports a unique-constraint failure."""
    orig = exc.orig
    code = getattr(orig, "sqlstate", None) or getattr(orig, "pgcode", None)
    if code is not None:
        return code == UNIQUE_VIOLATION
    return "unique" in str(orig).lower()


class UserRepository:
    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def create(self, name: str, email: str, password_hash: str) -> User:
        user = User(name=name, email=email, password=password_hash, status=UserStatus.UNVERIFIED)
        self.session.add(user)
        try:
            await self.session.commit()
        except IntegrityError as exc:
            await self.session.rollback()
            if is_unique_violation(exc):
                raise DuplicateEmailError() from exc
            raise
        await self.session.refresh(user)
        return user

    def _select(self):
        # bulk statements below skip the identity map, so reads always take the fresh row
        return select(User).execution_options(populate_existing=True)

    async def find_by_email(self, email: str) -> Optional[User]:
        result = await self.session.execute(self._select().where(User.email == email))
        return result.scalar_one_or_none()

    async def find_by_id(self, user_id: int) -> Optional[User]:
        result = await self.session.execute(self._select().where(User.id == user_id))
        return result.scalar_one_or_none()

    async def refresh(self, user: User) -> User:
        await self.session.refresh(user)
        return user

    async def list_all(self) -> List[User]:
        stmt = self._select().order_by(User.last_login.desc().nulls_last(), User.id)
        result = await self.session.execute(stmt)
        return list(result.scalars().all())

    async def update_status(self, ids: Iterable[int], new_status: UserStatus) -> List[Tuple[int, str]]:
        stmt = (
            update(User)
            .where(User.id.in_(set(ids)))
            .values(status=new_status)
            .returning(User.id, User.email)
            .execution_options(synchronize_session=False)
        )
        result = await self.session.execute(stmt)
        rows = [(row.id, row.email) for row in result.all()]
        await self.session.commit()
        return rows

    async def activate_unverified(self, user_id: int, email: str) -> Optional[Tuple[int, str, UserStatus]]:
        # One conditional statement: a second click on the same link updates nothing
        stmt = (
            update(User)
            .where(
                User.id == user_id,
                User.email == email,
                User.status == UserStatus.UNVERIFIED,
            )
            .values(status=UserStatus.ACTIVE)
            .returning(User.id, User.email, User.status)
            .execution_options(synchronize_session=False)
        )
        result = await self.session.execute(stmt)
        row = result.first()
        await self.session.commit()
        if row is None:
            return None
        return row.id, row.email, row.status

    async def update_last_login(self, user_id: int) -> datetime:
        now = datetime.now(timezone.utc)
        await self.session.execute(
            update(User)
            .where(User.id == user_id)
            .values(last_login=now)
            .execution_options(synchronize_session=False)
        )
        await self.session.commit()
        return now

    async def delete_by_ids(self, ids: Iterable[int]) -> List[Tuple[int, str]]:
        stmt = (
            delete(User)
            .where(User.id.in_(set(ids)))
            .returning(User.id, User.email)
            .execution_options(synchronize_session=False)
        )
        result = await self.session.execute(stmt)
        rows = [(row.id, row.email) for row in result.all()]
        await self.session.commit()
        LOGGER.info("Deleted %d user(s)", len(rows))
        return rows

    async def delete_where(self, status: UserStatus) -> List[Tuple[int, str]]:
        stmt = (
            delete(User)
            .where(User.status == status)
            .returning(User.id, User.email)
            .execution_options(synchronize_session=False)
        )
        result = await self.session.execute(stmt)
        rows = [(row.id, row.email) for row in result.all()]
        await self.session.commit()
        LOGGER.info("Deleted %d user(s) with status=%s", len(rows), status.value)
        return rows
