from dataclasses import dataclass
from typing import Optional

from itsdangerous import BadData, URLSafeTimedSerializer

from user_management.config import get_secret_key
from user_management.errors import MalformedVerificationTokenError

SALT = "email-verification"


@dataclass(frozen=True)
class VerificationClaims:
    user_id: int
    email: str


def _serializer() -> URLSafeTimedSerializer:
    return URLSafeTimedSerializer(get_secret_key(), salt=SALT)


def generate_verification_token(user_id: int, email: str) -> str:
    """Signed, URL-safe token for the email link; the issue time is embedded by the serializer."""
    return _serializer().dumps({"uid": user_id, "email": email})


def parse_verification_token(token: str, max_age: Optional[int] = None) -> VerificationClaims:
    """Decode a verification link token.

    Raises ``MalformedVerificationTokenError`` for a bad signature, an expired
    token (only when ``max_age`` is given) or a payload missing its claims.
    """
    if not token or not isinstance(token, str):
        raise MalformedVerificationTokenError("empty token")
    try:
        data = _serializer().loads(token, max_age=max_age)
    except BadData as e:
        raise MalformedVerificationTokenError(str(e)) from e

    if not isinstance(data, dict):
        raise MalformedVerificationTokenError("unexpected payload")
    user_id = data.get("uid")
    email = data.get("email")
    if not isinstance(user_id, int) or not isinstance(email, str):
        raise MalformedVerificationTokenError("missing claims")
    return VerificationClaims(user_id=user_id, email=email)
