from slowapi import Limiter
from slowapi.util import get_remote_address

from user_management.config import RATE_LIMIT_ENABLED

limiter = Limiter(key_func=get_remote_address, enabled=RATE_LIMIT_ENABLED)
