from fastapi import Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from user_management.database import get_async_session
from user_management.email_service import NotificationDispatcher
from user_management.errors import BlockedSessionError, NotAuthenticatedError, UserNotFoundError
from user_management.models.user_model import User, UserStatus
from user_management.repositories.user_repository import UserRepository
from user_management.services.account_service import AccountService
from user_management.utils.token_utils import decode_access_token


def get_user_repository(session: AsyncSession = Depends(get_async_session)) -> UserRepository:
    return UserRepository(session)


def get_dispatcher(request: Request) -> NotificationDispatcher:
    return request.app.state.dispatcher


def get_account_service(
    users: UserRepository = Depends(get_user_repository),
    dispatcher: NotificationDispatcher = Depends(get_dispatcher),
) -> AccountService:
    return AccountService(users, dispatcher)


def _bearer_token(request: Request) -> str:
    auth_header = request.headers.get("Authorization", "")
    scheme, _, token = auth_header.partition(" ")
    if scheme.lower() != "bearer" or not token.strip():
        raise NotAuthenticatedError()
    return token.strip()


async def get_current_user(
    request: Request,
    users: UserRepository = Depends(get_user_repository),
) -> User:
    """
    Runs before every protected route. The token only proves a past login;
    the live row decides, so a block or delete applies to the very next request.
    """
    claims = decode_access_token(_bearer_token(request))

    user = await users.find_by_id(claims.user_id)
    if user is None:
        raise UserNotFoundError()
    if user.status == UserStatus.BLOCKED:
        raise BlockedSessionError()

    request.state.user = {"id": user.id, "email": user.email}
    return user
