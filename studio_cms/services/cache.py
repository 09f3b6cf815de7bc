"""
Cache invalidation for public content reads.

Admin mutations publish an InvalidationEvent for the (collection, region)
they touched. Readers subscribe to the bus instead of guessing which cached
keys to drop; the event's version token is also handed to clients so they can
bust their own session caches.
"""
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional, Tuple
import logging
import time

from studio_cms.config import settings

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class InvalidationEvent:
    collection: str
    region_code: str
    version: int

    @property
    def token(self) -> str:
        return f"{self.collection}:{self.region_code}:{self.version}"


Subscriber = Callable[[InvalidationEvent], None]


class InvalidationBus:
    """In-process publish/subscribe for content invalidation events."""

    def __init__(self):
        self._subscribers: List[Subscriber] = []
        self._versions: Dict[Tuple[str, str], int] = {}

    def subscribe(self, subscriber: Subscriber) -> Callable[[], None]:
        """Register a subscriber. Returns a callable that unsubscribes it."""
        self._subscribers.append(subscriber)

        def unsubscribe():
            if subscriber in self._subscribers:
                self._subscribers.remove(subscriber)

        return unsubscribe

    def version(self, collection: str, region_code: str) -> int:
        return self._versions.get((collection, region_code), 0)

    def publish(self, collection: str, region_code: str) -> InvalidationEvent:
        """Bump the (collection, region) version and notify every subscriber."""
        key = (collection, region_code)
        self._versions[key] = self._versions.get(key, 0) + 1
        event = InvalidationEvent(collection, region_code, self._versions[key])

        for subscriber in list(self._subscribers):
            try:
                subscriber(event)
            except Exception as e:
                # One failing reader must not block the others or the mutation
                logger.error(f"Invalidation subscriber failed for {event.token}: {str(e)}", exc_info=True)

        logger.debug(f"Published invalidation {event.token}")
        return event


class PublicContentCache:
    """
    Cache of public collection listings keyed by (collection, region, variant).
    Entries are dropped on invalidation events and after the TTL.
    """

    def __init__(self, bus: InvalidationBus, ttl_seconds: Optional[int] = None):
        self.ttl_seconds = settings.PUBLIC_CACHE_TTL_SECONDS if ttl_seconds is None else ttl_seconds
        self._entries: Dict[Tuple[str, str, str], Tuple[float, Any]] = {}
        bus.subscribe(self.handle_invalidation)

    def get(self, collection: str, region_code: str, variant: str = "") -> Optional[Any]:
        entry = self._entries.get((collection, region_code, variant))
        if entry is None:
            return None
        stored_at, value = entry
        if time.monotonic() - stored_at > self.ttl_seconds:
            self._entries.pop((collection, region_code, variant), None)
            return None
        return value

    def set(self, collection: str, region_code: str, value: Any, variant: str = "") -> None:
        self._entries[(collection, region_code, variant)] = (time.monotonic(), value)

    def handle_invalidation(self, event: InvalidationEvent) -> None:
        for key in [k for k in self._entries if k[0] == event.collection and k[1] == event.region_code]:
            del self._entries[key]

    def clear(self) -> None:
        self._entries.clear()


# Process-wide bus and public cache
invalidation_bus = InvalidationBus()
public_cache = PublicContentCache(invalidation_bus)
