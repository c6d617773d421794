import logging
import random
import secrets
import string
import time
from typing import Callable

from config import ID_MAX_ATTEMPTS
from database import Repository
from errors import IdGenerationError

logger = logging.getLogger(__name__)

TRACKING_ALPHABET = string.ascii_uppercase + string.digits


def user_id() -> str:
    return secrets.token_hex(8)


def seller_id() -> str:
    return f"MBSLR{random.randint(10000, 99999)}"


def six_digits() -> str:
    return str(random.randint(100000, 999999))


def tracking_id() -> str:
    return "".join(secrets.choice(TRACKING_ALPHABET) for _ in range(12))


def fallback_complaint_number() -> str:
    return f"C{int(time.time() * 1000)}{random.randint(0, 999):03d}"


def unique_id(repo: Repository, field: str, factory: Callable[[], str], max_attempts: int = ID_MAX_ATTEMPTS) -> str:
    """Draw ids from factory until one is not present in repo.field."""
    for _ in range(max_attempts):
        candidate = factory()
        if not repo.exists({field: candidate}):
            return candidate
    logger.error("No free %s.%s after %d attempts", repo.name, field, max_attempts)
    raise IdGenerationError(f"Could not generate a unique {field}")
