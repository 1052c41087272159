"""Per-client rate limiting (slowapi), shared by every router."""

from slowapi import Limiter
from slowapi.util import get_remote_address

limiter = Limiter(key_func=get_remote_address)
