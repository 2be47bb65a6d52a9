"""
Caching service for API responses using Redis.

This module provides:
- Response caching for list and detail reads
- Invalidation by resource type, including the resources whose responses
  embed data from the mutated one
- Cache key management
"""

import json
import hashlib
import logging
from typing import Any, Optional, Dict, List
from functools import wraps
import redis
from flask import request, jsonify, current_app, make_response

logger = logging.getLogger(__name__)

# Resource types whose cached responses embed data from the key resource
RESOURCE_DEPENDENTS = {
    'clients': ['tasks', 'finances', 'works', 'dashboard'],
    'tasks': ['dashboard'],
    'finances': ['dashboard'],
    'team_members': ['tasks', 'works', 'dashboard'],
    'works': ['dashboard'],
    'dashboard': [],
}


class CacheService:
    """Redis-based caching service for API responses."""

    def __init__(self, redis_url: str = None, enabled: bool = True):
        """Initialize the cache service."""
        self.redis_url = redis_url or current_app.config.get('REDIS_URL', 'redis://localhost:6379/0')
        self.enabled = enabled
        self.redis_client = None
        if self.enabled:
            self._connect()

    def _connect(self):
        """Connect to Redis."""
        try:
            self.redis_client = redis.from_url(self.redis_url, decode_responses=True)
            # Test connection
            self.redis_client.ping()
            logger.info("Successfully connected to Redis")
        except redis.RedisError as e:
            logger.error(f"Failed to connect to Redis: {str(e)}")
            self.redis_client = None

    def generate_cache_key(self, resource: str, *parts) -> str:
        """Generate a cache key scoped to a resource type and the current request."""
        key_data = ':'.join(str(part) for part in parts if part is not None)
        request_data = {
            'path': request.path,
            'args': dict(request.args)
        }
        args_hash = hashlib.md5(json.dumps(request_data, sort_keys=True).encode()).hexdigest()
        if key_data:
            return f"api:{resource}:{key_data}:{args_hash}"
        return f"api:{resource}:{args_hash}"

    def get(self, key: str) -> Optional[Any]:
        """Get a value from cache."""
        if not self.redis_client:
            return None

        try:
            value = self.redis_client.get(key)
            if value:
                return json.loads(value)
            return None
        except redis.RedisError as e:
            logger.error(f"Error getting cache key {key}: {str(e)}")
            return None

    def set(self, key: str, value: Any, ttl: int = 300) -> bool:
        """Set a value in cache with TTL."""
        if not self.redis_client:
            return False

        try:
            serialized_value = json.dumps(value)
            return bool(self.redis_client.setex(key, ttl, serialized_value))
        except (redis.RedisError, TypeError) as e:
            logger.error(f"Error setting cache key {key}: {str(e)}")
            return False

    def delete_pattern(self, pattern: str) -> int:
        """Delete all keys matching a pattern."""
        if not self.redis_client:
            return 0

        try:
            keys = list(self.redis_client.scan_iter(match=pattern))
            if keys:
                return self.redis_client.delete(*keys)
            return 0
        except redis.RedisError as e:
            logger.error(f"Error deleting cache pattern {pattern}: {str(e)}")
            return 0

    def invalidate_resource(self, resource: str) -> int:
        """Invalidate cached responses of a resource type and its dependents."""
        deleted_count = 0
        for name in [resource] + RESOURCE_DEPENDENTS.get(resource, []):
            deleted_count += self.delete_pattern(f"api:{name}:*")
        if deleted_count:
            logger.info(f"Invalidated {deleted_count} cache entries for {resource}")
        return deleted_count

    def get_cache_stats(self) -> Dict[str, Any]:
        """Get cache statistics."""
        if not self.redis_client:
            return {"connected": False}

        try:
            info = self.redis_client.info()
            return {
                "connected": True,
                "memory_usage": info.get('used_memory_human', 'N/A'),
                "uptime": info.get('uptime_in_seconds', 0),
                "connected_clients": info.get('connected_clients', 0)
            }
        except redis.RedisError as e:
            logger.error(f"Error getting cache stats: {str(e)}")
            return {"connected": False, "error": str(e)}


def get_cache_service() -> CacheService:
    """Get the cache service bound to the current application."""
    cache = current_app.extensions.get('cache_service')
    if cache is None:
        cache = CacheService(
            redis_url=current_app.config.get('REDIS_URL'),
            enabled=current_app.config.get('CACHE_ENABLED', True)
        )
        current_app.extensions['cache_service'] = cache
    return cache


def cache_response(resource: str, ttl: int = None, key_args: List[str] = None):
    """
    Decorator to cache successful JSON responses.

    Args:
        resource: Resource type, used as the key prefix and for invalidation
        ttl: Time to live in seconds (defaults to CACHE_DEFAULT_TTL)
        key_args: View arguments to include in the cache key
    """
    def decorator(func):
        @wraps(func)
        def wrapper(*args, **kwargs):
            cache = get_cache_service()
            if not cache.redis_client:
                return func(*args, **kwargs)

            key_values = [kwargs.get(name) for name in (key_args or [])]
            cache_key = cache.generate_cache_key(resource, *key_values)

            cached_response = cache.get(cache_key)
            if cached_response is not None:
                logger.debug(f"Cache hit for key: {cache_key}")
                return jsonify(cached_response)

            logger.debug(f"Cache miss for key: {cache_key}")
            response = make_response(func(*args, **kwargs))

            # Cache successful responses only
            if response.status_code == 200 and response.is_json:
                cache.set(cache_key, response.get_json(), ttl or current_app.config.get('CACHE_DEFAULT_TTL', 300))

            return response
        return wrapper
    return decorator


def invalidate_cache_on_change(resource: str):
    """
    Decorator to invalidate cache when data changes.

    Args:
        resource: Resource type whose cached reads become stale
    """
    def decorator(func):
        @wraps(func)
        def wrapper(*args, **kwargs):
            # Execute the function first
            response = make_response(func(*args, **kwargs))

            # Invalidate cache if operation was successful
            if response.status_code in (200, 201):
                get_cache_service().invalidate_resource(resource)

            return response
        return wrapper
    return decorator
