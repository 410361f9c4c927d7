from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, EmailStr, Field, field_validator

from user_management.models.user_model import UserStatus


def normalize_email(value: str) -> str:
    return str(value).strip().lower()


class _EmailIn(BaseModel):
    email: EmailStr

    @field_validator("email", mode="before")
    @classmethod
    def strip_email(cls, v):
        return v.strip() if isinstance(v, str) else v

    @field_validator("email")
    @classmethod
    def lower_email(cls, v):
        return normalize_email(v)


class RegisterRequest(_EmailIn):
    name: str = Field(min_length=1, max_length=255)
    password: str = Field(min_length=1)  # any non-empty password is allowed

    @field_validator("name", mode="before")
    @classmethod
    def strip_name(cls, v):
        return v.strip() if isinstance(v, str) else v


class LoginRequest(_EmailIn):
    password: str = Field(min_length=1)


class ResendVerificationRequest(_EmailIn):
    pass


class UserIdsRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    user_ids: List[int] = Field(default_factory=list, alias="userIds")


class UserOut(BaseModel):
    model_config = ConfigDict(from_attributes=True, use_enum_values=True)

    id: int
    name: str
    email: str
    status: UserStatus


class UserDetailOut(UserOut):
    last_login: Optional[datetime] = None
    created_at: Optional[datetime] = None


class UserRef(BaseModel):
    id: int
    email: str


class VerifiedUserOut(UserRef):
    model_config = ConfigDict(use_enum_values=True)

    status: UserStatus


class RegisterResponse(BaseModel):
    message: str
    user: UserOut


class LoginResponse(BaseModel):
    message: str
    token: str
    user: UserDetailOut


class VerifyResponse(BaseModel):
    message: str
    user: VerifiedUserOut


class MessageResponse(BaseModel):
    message: str


class UsersResponse(BaseModel):
    users: List[UserDetailOut]


class BlockResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    message: str
    blocked_users: List[UserRef] = Field(alias="blockedUsers")


class UnblockResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    message: str
    unblocked_users: List[UserRef] = Field(alias="unblockedUsers")


class DeleteResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    message: str
    deleted_users: List[UserRef] = Field(alias="deletedUsers")
