from slowapi import Limiter
from slowapi.util import get_remote_address

from config import LOGIN_RATE_LIMIT

limiter = Limiter(key_func=get_remote_address)

# applied to the user and seller login routes
login_limit = limiter.limit(LOGIN_RATE_LIMIT)
