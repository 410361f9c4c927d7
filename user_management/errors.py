"""Domain errors raised by the account services and the auth gate.

Each error carries the HTTP status it maps to; ``main.py`` turns them into
JSON responses so the services never build HTTP responses themselves.
"""
from typing import Optional

from fastapi import status


class AccountError(Exception):
    status_code = status.HTTP_400_BAD_REQUEST
    detail = "Request failed"
    redirect = False

    def __init__(self, detail: Optional[str] = None) -> None:
        if detail is not None:
            self.detail = detail
        super().__init__(self.detail)

    def to_dict(self) -> dict:
        body = {"detail": self.detail}
        if self.redirect:
            body["redirect"] = True
        return body


class DuplicateEmailError(AccountError):
    detail = "This email is already registered. Please use a different email or login."


class InvalidCredentialsError(AccountError):
    status_code = status.HTTP_401_UNAUTHORIZED
    detail = "Invalid email or password"


class AccountBlockedError(AccountError):
    status_code = status.HTTP_403_FORBIDDEN
    detail = "Your account has been blocked. Please contact administrator."


class VerificationFailedError(AccountError):
    # Covers bad tokens, already-verified, blocked and unknown users alike
    detail = "Verification failed. The link is invalid or has already been used."


class NoUsersSelectedError(AccountError):
    detail = "No users selected"


class NotAuthenticatedError(AccountError):
    status_code = status.HTTP_401_UNAUTHORIZED
    detail = "No token provided. Please login."


class InvalidTokenError(AccountError):
    status_code = status.HTTP_401_UNAUTHORIZED
    detail = "Invalid token. Please login again."
    redirect = True


class TokenExpiredError(InvalidTokenError):
    detail = "Session expired. Please login again."


class UserNotFoundError(AccountError):
    status_code = status.HTTP_401_UNAUTHORIZED
    detail = "User account not found. Please login again."
    redirect = True


class BlockedSessionError(AccountBlockedError):
    redirect = True


class MalformedVerificationTokenError(ValueError):
    """Raised by the verification codec; never reaches the client as-is."""
