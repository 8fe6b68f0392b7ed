"""
Password hashing utilities using bcrypt.

The work factor is the module constant BCRYPT_ROUNDS and cannot be chosen per call, so
callers cannot make verification cheaper. Hashing and verification are CPU-bound: code
running on the event loop must use the *_async variants, which run bcrypt on the
thread pool instead of blocking other requests.
"""

import logging

import bcrypt
from fastapi.concurrency import run_in_threadpool

logger = logging.getLogger(__name__)

BCRYPT_ROUNDS = 10


def hash_password(password: str) -> str:
    """
    Hash a plain text password using bcrypt.

    Raises:
        ValueError: If password is empty
    """
    if not password:
        raise ValueError("Password cannot be empty")

    hashed = bcrypt.hashpw(password.encode(), bcrypt.gensalt(rounds=BCRYPT_ROUNDS))
    return hashed.decode()


def verify_password(plain_password: str, hashed_password: str) -> bool:
    """
    Verify a plain text password against its hash.

    Returns False for empty inputs and for hashes bcrypt cannot parse.
    """
    if not plain_password or not hashed_password:
        return False

    try:
        return bcrypt.checkpw(plain_password.encode(), hashed_password.encode())
    except ValueError as e:
        logger.warning("Password verification failed: %s", e)
        return False


async def hash_password_async(password: str) -> str:
    return await run_in_threadpool(hash_password, password)


async def verify_password_async(plain_password: str, hashed_password: str) -> bool:
    return await run_in_threadpool(verify_password, plain_password, hashed_password)
