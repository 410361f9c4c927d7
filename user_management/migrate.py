"""Create the users table and its indexes, optionally seeding an admin account.

    python -m user_management.migrate [--reset] [--seed-admin]
"""
import argparse
import asyncio
import logging
from typing import Optional

from sqlalchemy.ext.asyncio import AsyncEngine

from user_management import config
from user_management.database import Base, make_engine, make_session_factory
from user_management.errors import DuplicateEmailError
from user_management.models.user_model import User, UserStatus
from user_management.repositories.user_repository import UserRepository
from user_management.utils.token_utils import hash_password

LOGGER = logging.getLogger("user_management.migrate")


async def migrate(engine: AsyncEngine, reset: bool = False) -> None:
    async with engine.begin() as conn:
        if reset:
            await conn.run_sync(Base.metadata.drop_all)
            LOGGER.info("Dropped existing tables")
        await conn.run_sync(Base.metadata.create_all)
    LOGGER.info("Users table ready (unique index on email, index on last_login)")


async def seed_admin(
    engine: AsyncEngine,
    name: str = config.ADMIN_NAME,
    email: str = config.ADMIN_EMAIL,
    password: str = config.ADMIN_PASSWORD,
) -> Optional[User]:
    session_factory = make_session_factory(engine)
    async with session_factory() as session:
        users = UserRepository(session)
        try:
            user = await users.create(name=name, email=email, password_hash=await hash_password(password))
        except DuplicateEmailError:
            LOGGER.info("Admin user %s already exists; leaving it untouched", email)
            return None
        await users.update_status([user.id], UserStatus.ACTIVE)
        await users.update_last_login(user.id)
        await session.refresh(user)
    LOGGER.info("Admin user created (email: %s)", email)
    return user


async def _main(reset: bool, with_admin: bool) -> None:
    engine = make_engine()
    try:
        await migrate(engine, reset=reset)
        if with_admin:
            await seed_admin(engine)
    finally:
        await engine.dispose()


def main(argv=None) -> None:
    parser = argparse.ArgumentParser(description="Create the user management schema.")
    parser.add_argument("--reset", action="store_true", help="drop the users table before creating it")
    parser.add_argument("--seed-admin", action="store_true", help="insert an active admin user")
    args = parser.parse_args(argv)

    logging.basicConfig(level=config.LOG_LEVEL, format="%(asctime)s [%(levelname)s] %(message)s")
    asyncio.run(_main(args.reset, args.seed_admin))


if __name__ == "__main__":
    main()
