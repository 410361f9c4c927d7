from fastapi import APIRouter, Depends

from user_management.deps.auth import get_account_service, get_current_user
from user_management.models.user_model import User
from user_management.schemas.user_schemas import (
    BlockResponse,
    DeleteResponse,
    UnblockResponse,
    UserDetailOut,
    UserIdsRequest,
    UserRef,
    UsersResponse,
)
from user_management.services.account_service import AccountService

# Every route here goes through the auth gate
router = APIRouter(tags=["users"])


def _refs(rows):
    return [UserRef(id=user_id, email=email) for user_id, email in rows]


@router.get("", response_model=UsersResponse)
async def list_users(
    current_user: User = Depends(get_current_user),
    service: AccountService = Depends(get_account_service),
):
    users = await service.list_users()
    return UsersResponse(users=[UserDetailOut.model_validate(u) for u in users])


@router.post("/block", response_model=BlockResponse)
async def block_users(
    payload: UserIdsRequest,
    current_user: User = Depends(get_current_user),
    service: AccountService = Depends(get_account_service),
):
    rows = await service.block(payload.user_ids)
    return BlockResponse(
        message=f"{len(rows)} user(s) blocked successfully",
        blocked_users=_refs(rows),
    )


@router.post("/unblock", response_model=UnblockResponse)
async def unblock_users(
    payload: UserIdsRequest,
    current_user: User = Depends(get_current_user),
    service: AccountService = Depends(get_account_service),
):
    rows = await service.unblock(payload.user_ids)
    return UnblockResponse(
        message=f"{len(rows)} user(s) unblocked successfully",
        unblocked_users=_refs(rows),
    )


@router.post("/delete", response_model=DeleteResponse)
async def delete_users(
    payload: UserIdsRequest,
    current_user: User = Depends(get_current_user),
    service: AccountService = Depends(get_account_service),
):
    # Deleting yourself is allowed; your token stops working on the next request
    rows = await service.delete(payload.user_ids)
    return DeleteResponse(
        message=f"{len(rows)} user(s) deleted successfully",
        deleted_users=_refs(rows),
    )


@router.post("/delete-unverified", response_model=DeleteResponse)
async def delete_unverified_users(
    current_user: User = Depends(get_current_user),
    service: AccountService = Depends(get_account_service),
):
    rows = await service.delete_unverified()
    return DeleteResponse(
        message=f"{len(rows)} unverified user(s) deleted successfully",
        deleted_users=_refs(rows),
    )
