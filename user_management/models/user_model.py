import enum

from sqlalchemy import Column, Integer, String, DateTime, Enum as SqlEnum, Index
from sqlalchemy.sql import func

from user_management.database import Base


class UserStatus(str, enum.Enum):
    UNVERIFIED = "unverified"
    ACTIVE = "active"
    BLOCKED = "blocked"


class User(Base):
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String(255), nullable=False)
    email = Column(String(255), nullable=False)
    password = Column(String(255), nullable=False)  # bcrypt hash
    status = Column(
        SqlEnum(
            UserStatus,
            name="user_status",
            values_callable=lambda e: [member.value for member in e],
            validate_strings=True,
        ),
        nullable=False,
        default=UserStatus.UNVERIFIED,
        server_default=UserStatus.UNVERIFIED.value,
    )

    last_login = Column(DateTime(timezone=True), nullable=True)  # null = never logged in
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)

    __table_args__ = (
        # the database, not the application, guarantees one row per email
        Index("idx_users_email_unique", "email", unique=True),
        Index("idx_users_last_login", last_login.desc()),
    )
