"""
Token revocation checks backed by Redis.

The account/session provider blacklists tokens and blocked staff accounts
in Redis; booking actions refuse any token that has been revoked.
"""

import logging

from redis.exceptions import RedisError

logger = logging.getLogger("rental.auth")

# Redis key prefixes shared with the session provider
TOKEN_BLACKLIST_PREFIX = "blacklist:token:"
USER_TOKENS_PREFIX = "user:tokens:"


def user_revocation_key(user_id: int) -> str:
    return f"{USER_TOKENS_PREFIX}{user_id}:revoked"


async def is_token_revoked(redis, token: str) -> bool:
    """
    Check if a token has been revoked.

    Args:
        redis: Async Redis client
        token: JWT token string to check

    Returns:
        True if token is revoked, False otherwise
    """
    try:
        exists = await redis.exists(f"{TOKEN_BLACKLIST_PREFIX}{token}")
        return exists > 0
    except RedisError as e:
        # Fail open: Redis outage must not lock every admin out of settlement
        logger.warning("Token revocation check unavailable: %s", e)
        return False


async def are_user_tokens_revoked(redis, user_id: int) -> bool:
    """
    Check if all tokens for a user have been revoked (account blocked).

    Args:
        redis: Async Redis client
        user_id: User ID to check

    Returns:
        True if all user tokens are revoked, False otherwise
    """
    try:
        exists = await redis.exists(user_revocation_key(user_id))
        return exists > 0
    except RedisError as e:
        logger.warning("User revocation check unavailable for user %s: %s", user_id, e)
        return False
