"""
Cache invalidation coordinator.

A thread-safe TTL cache for derived, list-shaped values (ingredient list,
product list, low stock report...) plus a static table describing which
keys go stale when something changes. Services receive a coordinator
through a ``cache=`` argument; ``get_cache_coordinator()`` supplies the
process-wide instance when none is injected.

Derived values are never recomputed on invalidation. The next reader
recomputes through ``get_or_compute``.
"""

import threading
import time
from typing import Any, Callable, Dict, FrozenSet, Iterable, List, Optional, Set, Tuple

from .logging_utils import get_service_logger
from ..utils.constants import (
    CACHE_KEY_INGREDIENTS,
    CACHE_KEY_INVENTORY,
    CACHE_KEY_LOW_STOCK,
    CACHE_KEY_MONTHLY_STATS,
    CACHE_KEY_PRODUCTS,
    CACHE_KEY_RECIPES,
)

logger = get_service_logger(__name__)

# Events understood by CacheCoordinator.invalidate_for
EVENT_INGREDIENT_COST = "ingredient_cost"
EVENT_INGREDIENT = "ingredient"
EVENT_RECIPE = "recipe"
EVENT_PRODUCT = "product"
EVENT_STOCK = "stock"
EVENT_PURCHASE = "purchase"

# event -> (keys invalidated always, keys invalidated only when a value changed)
INVALIDATION_RULES: Dict[str, Tuple[FrozenSet[str], FrozenSet[str]]] = {
    EVENT_INGREDIENT_COST: (
        frozenset({CACHE_KEY_INGREDIENTS}),
        frozenset({CACHE_KEY_PRODUCTS, CACHE_KEY_RECIPES}),
    ),
    EVENT_INGREDIENT: (
        frozenset({CACHE_KEY_INGREDIENTS, CACHE_KEY_INVENTORY, CACHE_KEY_LOW_STOCK}),
        frozenset({CACHE_KEY_RECIPES}),
    ),
    EVENT_RECIPE: (
        frozenset({CACHE_KEY_RECIPES}),
        frozenset({CACHE_KEY_PRODUCTS}),
    ),
    EVENT_PRODUCT: (
        frozenset({CACHE_KEY_PRODUCTS}),
        frozenset(),
    ),
    EVENT_STOCK: (
        frozenset({CACHE_KEY_INVENTORY, CACHE_KEY_LOW_STOCK, CACHE_KEY_INGREDIENTS}),
        frozenset(),
    ),
    EVENT_PURCHASE: (
        frozenset({CACHE_KEY_MONTHLY_STATS}),
        frozenset(),
    ),
}

Listener = Callable[[FrozenSet[str]], None]


class CacheCoordinator:
    """
    Thread-safe TTL cache with dependency-driven invalidation.

    Entries are stored as (value, expires_at). All access to the internal
    map happens under a re-entrant lock, so a compute function passed to
    get_or_compute may itself read the cache.

    Every key carries a generation that invalidation bumps. get_or_compute
    only stores its result when the generation it started from is still
    current, so a value computed from data that changed mid-compute is
    returned to its caller but never cached.
    """

    def __init__(
        self,
        default_ttl: float = 300,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.default_ttl = default_ttl
        self._clock = clock
        self._entries: Dict[str, Tuple[Any, float]] = {}
        self._listeners: List[Listener] = []
        self._generations: Dict[str, int] = {}
        self._epoch = 0
        self._lock = threading.RLock()

    def get(self, key: str) -> Optional[Any]:
        """Get cached value if not expired."""
        with self._lock:
            if key in self._entries:
                value, expires_at = self._entries[key]
                if self._clock() < expires_at:
                    return value
                # Expired, remove from cache
                del self._entries[key]
            return None

    def set(self, key: str, value: Any, ttl: Optional[float] = None) -> None:
        """Store value under key for ttl seconds (default_ttl when None)."""
        lifetime = self.default_ttl if ttl is None else ttl
        with self._lock:
            self._entries[key] = (value, self._clock() + lifetime)

    def get_or_compute(self, key: str, ttl: Optional[float], compute_fn: Callable[[], Any]) -> Any:
        """
        Return the fresh cached value for key, or compute, store and return it.

        Exceptions from compute_fn propagate and nothing is stored. Nothing is
        stored either when key is invalidated (or the cache cleared) while
        compute_fn runs; the computed value is still returned.
        """
        with self._lock:
            if key in self._entries:
                value, expires_at = self._entries[key]
                if self._clock() < expires_at:
                    logger.debug(f"Cache hit: {key}")
                    return value
                del self._entries[key]
            started_at = self._generation(key)

        logger.debug(f"Cache miss: {key}")
        value = compute_fn()

        lifetime = self.default_ttl if ttl is None else ttl
        with self._lock:
            if self._generation(key) == started_at:
                self._entries[key] = (value, self._clock() + lifetime)
            else:
                logger.debug(f"Cache store skipped, {key} invalidated during compute")
        return value

    def _generation(self, key: str) -> Tuple[int, int]:
        return self._epoch, self._generations.get(key, 0)

    def invalidate(self, key: str) -> None:
        """Remove key. Invalidating an absent key is a no-op."""
        self.invalidate_many([key])

    def invalidate_many(self, keys: Iterable[str]) -> None:
        """Remove every key in keys and notify listeners once."""
        key_set = frozenset(keys)
        if not key_set:
            return
        with self._lock:
            for key in key_set:
                self._entries.pop(key, None)
                self._generations[key] = self._generations.get(key, 0) + 1
        logger.debug(f"Cache invalidated: {sorted(key_set)}")
        self._notify(key_set)

    def invalidate_for(self, event: str, value_changed: bool = True) -> Set[str]:
        """
        Invalidate the keys that depend on an event.

        Args:
            event: One of the INVALIDATION_RULES events (e.g. "ingredient_cost")
            value_changed: Whether the underlying value actually changed; the
                           on-change keys are skipped when False

        Returns:
            Set of keys invalidated

        Raises:
            KeyError: If event is not in INVALIDATION_RULES
        """
        always, on_change = INVALIDATION_RULES[event]
        keys = set(always)
        if value_changed:
            keys |= on_change
        self.invalidate_many(keys)
        return keys

    def clear(self) -> None:
        """Remove every entry."""
        with self._lock:
            keys = frozenset(self._entries)
            self._entries.clear()
            self._epoch += 1
        if keys:
            self._notify(keys)

    def cleanup_expired(self) -> int:
        """
        Drop expired entries.

        Returns:
            Number of entries removed
        """
        with self._lock:
            now = self._clock()
            expired_keys = [k for k, (_, expires_at) in self._entries.items() if now >= expires_at]
            for key in expired_keys:
                del self._entries[key]
            return len(expired_keys)

    def size(self) -> int:
        """Get current cache size, ignoring expired entries."""
        with self._lock:
            self.cleanup_expired()
            return len(self._entries)

    def keys(self) -> List[str]:
        """Keys of the live entries, sorted."""
        with self._lock:
            self.cleanup_expired()
            return sorted(self._entries)

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """
        Register a listener called with the frozenset of invalidated keys.

        Returns:
            A function that unsubscribes the listener
        """
        with self._lock:
            self._listeners.append(listener)

        def unsubscribe() -> None:
            with self._lock:
                if listener in self._listeners:
                    self._listeners.remove(listener)

        return unsubscribe

    def _notify(self, keys: FrozenSet[str]) -> None:
        with self._lock:
            listeners = list(self._listeners)
        for listener in listeners:
            try:
                listener(keys)
            except Exception:
                logger.exception(f"Cache listener failed for keys {sorted(keys)}")

    def __repr__(self) -> str:
        return f"CacheCoordinator(entries={len(self._entries)}, default_ttl={self.default_ttl})"


def invalidate_after_write(
    cache: CacheCoordinator,
    event: str,
    warnings: List[str],
    value_changed: bool = True,
) -> Set[str]:
    """
    Invalidate the keys of an event once the write behind it has committed.

    A coordinator error is logged and appended to warnings instead of being
    raised.

    Returns:
        Set of keys invalidated (empty when invalidation failed)
    """
    try:
        return cache.invalidate_for(event, value_changed=value_changed)
    except Exception as e:
        warnings.append(f"Cache not invalidated: {e}")
        logger.warning(f"Cache invalidation for event '{event}' failed: {e}")
        return set()


_cache_instance: Optional[CacheCoordinator] = None
_cache_instance_lock = threading.Lock()


def get_cache_coordinator() -> CacheCoordinator:
    """
    Get the process-wide cache coordinator.

    Created on first use with the configured default TTL.
    """
    global _cache_instance

    with _cache_instance_lock:
        if _cache_instance is None:
            from ..utils.config import get_config

            _cache_instance = CacheCoordinator(default_ttl=get_config().cache_ttl_seconds)
        return _cache_instance


def reset_cache_coordinator() -> None:
    """
    Drop the process-wide coordinator.

    Useful for testing.
    """
    global _cache_instance
    with _cache_instance_lock:
        _cache_instance = None
