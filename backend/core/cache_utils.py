"""
Caching utilities for list endpoints that are polled by clients.

List payloads are cached under a key that embeds a generation counter, so
bumping the generation invalidates every cached page at once on any cache
backend. With Redis the old keys are also removed by pattern.
"""
from django.conf import settings
from django.core.cache import cache
import hashlib
import logging

logger = logging.getLogger(__name__)

PARTS_ISSUE_LIST_PREFIX = 'parts_issue_list'
PARTS_ISSUE_GENERATION_KEY = 'parts_issue_generation'


def make_cache_key(prefix, *args, **kwargs):
    """Generate a unique cache key from arguments"""
    key_data = f"{prefix}:{args}:{sorted(kwargs.items())}"
    key_hash = hashlib.md5(key_data.encode()).hexdigest()
    return f"{prefix}:{key_hash}"


def invalidate_cache_pattern(pattern):
    """
    Invalidate all cache keys matching a pattern
    Note: This requires Redis with SCAN command support
    """
    try:
        from django_redis import get_redis_connection
        redis_conn = get_redis_connection("default")

        keys = []
        cursor = 0
        while True:
            cursor, partial_keys = redis_conn.scan(cursor, match=f"*{pattern}*", count=100)
            keys.extend(partial_keys)
            if cursor == 0:
                break

        if keys:
            redis_conn.delete(*keys)
            logger.info(f"Invalidated {len(keys)} cache keys matching pattern: {pattern}")
    except Exception as e:
        # Not a Redis backend (local memory in development)
        logger.debug(f"Could not invalidate cache pattern {pattern}: {str(e)}")


def _parts_issue_generation():
    generation = cache.get(PARTS_ISSUE_GENERATION_KEY)
    if generation is None:
        generation = 1
        cache.set(PARTS_ISSUE_GENERATION_KEY, generation, None)
    return generation


def get_cached_parts_issue_list(user_id, filters_dict):
    """
    Get a cached parts-issue list page for a user and filter set
    Returns tuple: (cached_data, cache_key)
    """
    cache_key = make_cache_key(
        f"{PARTS_ISSUE_LIST_PREFIX}:{_parts_issue_generation()}", user_id, **filters_dict
    )
    return cache.get(cache_key), cache_key


def cache_parts_issue_list(cache_key, data, ttl=None):
    if ttl is None:
        ttl = getattr(settings, 'PARTS_ISSUE_LIST_CACHE_TTL', 10)
    cache.set(cache_key, data, ttl)
    logger.debug(f"Cached parts issue list: {cache_key}")


def invalidate_parts_issue_cache():
    """Drop every cached parts-issue list page; called after each workflow mutation"""
    try:
        cache.incr(PARTS_ISSUE_GENERATION_KEY)
    except ValueError:
        cache.set(PARTS_ISSUE_GENERATION_KEY, 2, None)
    invalidate_cache_pattern(PARTS_ISSUE_LIST_PREFIX + ':')
    logger.debug("Invalidated parts issue list cache")
