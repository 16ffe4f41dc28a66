from __future__ import annotations

import datetime as dt
import logging
from dataclasses import dataclass
from threading import RLock
from typing import Dict, Optional, Tuple

logger = logging.getLogger(__name__)

CacheKey = Tuple[int, str, str]


@dataclass(slots=True)
class RoutePrice:
    departure: str
    destination: str
    unit_price: float
    last_used: dt.date


class RoutePriceCache:
    """Recently used unit prices per (user, departure, destination)."""

    def __init__(self) -> None:
        self._lock = RLock()
        self._entries: Dict[CacheKey, RoutePrice] = {}

    @staticmethod
    def _key(user_id: int, departure: str, destination: str) -> CacheKey:
        return user_id, departure, destination

    def get(self, user_id: int, departure: str, destination: str) -> Optional[RoutePrice]:
        with self._lock:
            return self._entries.get(self._key(user_id, departure, destination))

    def put(self, user_id: int, price: RoutePrice) -> None:
        with self._lock:
            self._entries[self._key(user_id, price.departure, price.destination)] = price

    def invalidate_user(self, user_id: int) -> None:
        with self._lock:
            stale = [key for key in self._entries if key[0] == user_id]
            for key in stale:
                del self._entries[key]
        if stale:
            logger.debug("Dropped %d cached route prices for user %s", len(stale), user_id)

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)


route_price_cache = RoutePriceCache()
