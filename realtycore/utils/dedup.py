"""
Lead deduplication - Redis-based with 30-minute window.
Prevents duplicate leads from double-submitted inquiry forms.
"""
import hashlib
import logging

logger = logging.getLogger(__name__)

# Dedup window in seconds (30 minutes)
DEDUP_WINDOW_SECONDS = 1800

# Redis client (lazily initialized)
_redis_client = None


async def get_redis():
    """Get or create Redis connection."""
    global _redis_client
    if _redis_client is None:
        import redis.asyncio as aioredis
        from realtycore.config import get_settings
        _redis_client = aioredis.from_url(
            get_settings().redis_url,
            decode_responses=True,
        )
    return _redis_client


def make_dedup_key(listing_id: str, email: str) -> str:
    """
    Create a deduplication key from listing_id + email.
    Uses SHA-256 hash for consistent key length.
    """
    raw = f"{listing_id}:{email.strip().lower()}"
    hash_val = hashlib.sha256(raw.encode()).hexdigest()[:16]
    return f"realtycore:dedup:{hash_val}"


async def is_duplicate(listing_id: str, email: str) -> bool:
    """
    Check if this inquiry is a duplicate (same listing + email within 30 minutes).
    If not a duplicate, marks it in Redis to prevent future duplicates.

    Returns True if duplicate, False if new.
    """
    key = make_dedup_key(listing_id, email)

    try:
        redis = await get_redis()
        # SET NX = only set if not exists. Returns True if set (new), None if exists (dupe).
        was_set = await redis.set(key, "1", nx=True, ex=DEDUP_WINDOW_SECONDS)
        if was_set:
            return False
        logger.info(
            "Duplicate lead detected: listing=%s email=%s",
            str(listing_id)[:8], email[:3] + "***",
        )
        return True
    except Exception as e:
        # Redis failure should NOT block lead intake - assume not duplicate
        logger.warning("Redis dedup check failed: %s. Assuming not duplicate.", str(e))
        return False
