"""Account lifecycle: registration, login, verification and the admin bulk actions."""
from __future__ import annotations

import logging
from typing import Iterable, List, Optional, Set, Tuple

from user_management.config import VERIFICATION_TOKEN_MAX_AGE
from user_management.email_service import NotificationDispatcher, VerificationEmailJob
from user_management.errors import (
    AccountBlockedError,
    InvalidCredentialsError,
    MalformedVerificationTokenError,
    NoUsersSelectedError,
    VerificationFailedError,
)
from user_management.models.user_model import User, UserStatus
from user_management.repositories.user_repository import UserRepository
from user_management.schemas.user_schemas import normalize_email
from user_management.utils.email_token_utils import generate_verification_token, parse_verification_token
from user_management.utils.token_utils import create_access_token, hash_password, verify_password

LOGGER = logging.getLogger(__name__)

RESEND_MESSAGE = "If an unverified account exists for this email, a new verification link has been sent."


def _require_ids(ids: Optional[Iterable[int]]) -> Set[int]:
    selected = set(ids or ())
    if not selected:
        raise NoUsersSelectedError()
    return selected


class AccountService:
    def __init__(self, users: UserRepository, dispatcher: NotificationDispatcher) -> None:
        self.users = users
        self.dispatcher = dispatcher

    def _queue_verification(self, user: User) -> None:
        token = generate_verification_token(user.id, user.email)
        self.dispatcher.enqueue(VerificationEmailJob(to_email=user.email, name=user.name, token=token))

    async def register(self, name: str, email: str, password: str) -> User:
        email = normalize_email(email)
        password_hash = await hash_password(password)
        # No existence pre-check: the unique index decides, even under concurrent signups
        user = await self.users.create(name=name.strip(), email=email, password_hash=password_hash)
        LOGGER.info("Registered user id=%s", user.id)
        self._queue_verification(user)
        return user

    async def login(self, email: str, password: str) -> Tuple[str, User]:
        user = await self.users.find_by_email(normalize_email(email))
        if user is None:
            LOGGER.info("Login rejected: unknown email")
            raise InvalidCredentialsError()

        if user.status == UserStatus.BLOCKED:
            LOGGER.info("Login rejected: user id=%s is blocked", user.id)
            raise AccountBlockedError()

        if not await verify_password(password, user.password):
            LOGGER.info("Login rejected: bad password for user id=%s", user.id)
            raise InvalidCredentialsError()

        await self.users.update_last_login(user.id)
        await self.users.refresh(user)
        token = create_access_token(user.id, user.email)
        return token, user

    async def verify(self, token: Optional[str]) -> Tuple[int, str, UserStatus]:
        try:
            claims = parse_verification_token(token, max_age=VERIFICATION_TOKEN_MAX_AGE)
        except MalformedVerificationTokenError as e:
            LOGGER.info("Verification rejected: %s", e)
            raise VerificationFailedError() from e

        row = await self.users.activate_unverified(claims.user_id, claims.email)
        if row is None:
            # already active, blocked, deleted or mismatched: all look the same to the caller
            raise VerificationFailedError()
        LOGGER.info("Verified user id=%s", claims.user_id)
        return row

    async def resend_verification(self, email: str) -> str:
        user = await self.users.find_by_email(normalize_email(email))
        if user is not None and user.status == UserStatus.UNVERIFIED:
            self._queue_verification(user)
        return RESEND_MESSAGE

    async def list_users(self) -> List[User]:
        return await self.users.list_all()

    async def block(self, ids: Iterable[int]) -> List[Tuple[int, str]]:
        rows = await self.users.update_status(_require_ids(ids), UserStatus.BLOCKED)
        LOGGER.info("Blocked %d user(s)", len(rows))
        return rows

    async def unblock(self, ids: Iterable[int]) -> List[Tuple[int, str]]:
        # Unblocked users become active, never unverified again
        rows = await self.users.update_status(_require_ids(ids), UserStatus.ACTIVE)
        LOGGER.info("Unblocked %d user(s)", len(rows))
        return rows

    async def delete(self, ids: Iterable[int]) -> List[Tuple[int, str]]:
        return await self.users.delete_by_ids(_require_ids(ids))

    async def delete_unverified(self) -> List[Tuple[int, str]]:
        return await self.users.delete_where(UserStatus.UNVERIFIED)
