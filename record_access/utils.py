"""
Utility functions for the record access system.
"""

from typing import Optional

from .caching import AccessDecisionCache

# Explicit identity used when the caller supplies none. It is resolved like
# any other requester and holds no privileges.
ANONYMOUS_REQUESTER_ID = "00000000-0000-0000-0000-000000000000"


def resolve_requester_id(requester_id: Optional[str]) -> str:
    """Return the requester ID, or the anonymous sentinel when missing."""
    return requester_id or ANONYMOUS_REQUESTER_ID


def access_cache_key(requester_id: str, record_id: str) -> str:
    """
    Build the decision cache key for a (requester, record) pair.

    The requester ID is length-prefixed so the key stays unambiguous even
    when either ID contains the separator: ("a:b", "c") and ("a", "b:c")
    map to different keys.
    """
    return f"access:{len(requester_id)}:{requester_id}:{record_id}"


def requester_tag(requester_id: str) -> str:
    return f"requester:{requester_id}"


def record_tag(record_id: str) -> str:
    return f"record:{record_id}"


async def purge_expired_decisions(
    cache: AccessDecisionCache,
    logger=None
) -> int:
    """
    Background job to drop expired access decisions.

    Expired entries are never served, so this only reclaims memory. Run it
    periodically (e.g., every minute) via a scheduler.

    Args:
        cache: The decision cache to sweep
        logger: Optional structlog logger

    Returns:
        Number of entries removed
    """
    removed = cache.purge_expired()
    if logger and removed:
        logger.info("expired_decisions_purged", removed=removed, remaining=len(cache))
    return removed
