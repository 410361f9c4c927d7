from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Optional

from jose import ExpiredSignatureError, JWTError, jwt
from passlib.hash import bcrypt_sha256
from starlette.concurrency import run_in_threadpool

from user_management.config import ACCESS_TOKEN_EXPIRE_MINUTES, ALGORITHM, BCRYPT_ROUNDS, get_secret_key
from user_management.errors import InvalidTokenError, TokenExpiredError

# sha256 pre-hash: no 72-byte truncation and NUL bytes are fine
_hasher = bcrypt_sha256.using(rounds=BCRYPT_ROUNDS)


@dataclass(frozen=True)
class TokenClaims:
    user_id: int
    email: str


async def hash_password(password: str) -> str:
    # bcrypt is CPU-bound; keep it off the event loop
    return await run_in_threadpool(_hasher.hash, password)


async def verify_password(password: str, password_hash: str) -> bool:
    try:
        return await run_in_threadpool(_hasher.verify, password, password_hash)
    except ValueError:
        # malformed stored hash
        return False


def create_access_token(user_id: int, email: str, expires_delta: Optional[timedelta] = None) -> str:
    expire = datetime.now(timezone.utc) + (expires_delta or timedelta(minutes=ACCESS_TOKEN_EXPIRE_MINUTES))
    to_encode = {
        "id": user_id,        # what the auth gate looks up
        "email": email,
        "sub": str(user_id),
        "exp": expire,
    }
    try:
        return jwt.encode(to_encode, get_secret_key(), algorithm=ALGORITHM)
    except JWTError as e:
        raise RuntimeError(f"JWT encode failed: {e}") from e


def decode_access_token(token: str) -> TokenClaims:
    try:
        payload = jwt.decode(token, get_secret_key(), algorithms=[ALGORITHM])
    except ExpiredSignatureError as e:
        raise TokenExpiredError() from e
    except JWTError as e:
        raise InvalidTokenError() from e

    user_id = payload.get("id")
    email = payload.get("email")
    if not isinstance(user_id, int) or not isinstance(email, str):
        raise InvalidTokenError()
    return TokenClaims(user_id=user_id, email=email)
