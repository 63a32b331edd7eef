"""
Best-effort Mapbox geocoding for stops that arrive without coordinates.

Failures never raise: a failed lookup returns None and the stop simply
stays without coordinates.
"""

import logging
from typing import Any, Dict, List, Optional

from geopy.adapters import AioHTTPAdapter
from geopy.exc import GeopyError
from geopy.geocoders import MapBox

from reise.core.cache import CacheStore, InMemoryTTLCache
from reise.core.trips.stops import to_number

logger = logging.getLogger(__name__)

_MISS = object()


class MapboxGeocoder:
    """Free-text place -> {lng, lat} with an injected TTL cache (misses are cached too)."""

    def __init__(
        self,
        token: str,
        cache: Optional[CacheStore] = None,
        timeout: float = 12.0,
        cache_ttl: Optional[float] = None,
        geolocator: Optional[MapBox] = None,
    ):
        self.token = token
        self.cache = cache if cache is not None else InMemoryTTLCache()
        self.timeout = timeout
        self.cache_ttl = cache_ttl
        self._geolocator = geolocator
        self._owns_geolocator = geolocator is None

    @property
    def enabled(self) -> bool:
        return bool(self.token)

    @property
    def geolocator(self) -> MapBox:
        if self._geolocator is None:
            self._geolocator = MapBox(
                api_key=self.token,
                timeout=self.timeout,
                adapter_factory=AioHTTPAdapter,
            )
        return self._geolocator

    async def close(self) -> None:
        """Close the aiohttp session of a geolocator this instance created."""
        if self._owns_geolocator and self._geolocator is not None:
            await self._geolocator.__aexit__(None, None, None)
            self._geolocator = None

    async def geocode(self, query: str) -> Optional[Dict[str, float]]:
        query = " ".join((query or "").split())
        if not query or not self.enabled:
            return None

        key = f"geo:{query.lower()}"
        cached = self.cache.get(key, _MISS)
        if cached is not _MISS:
            return cached

        result = await self._lookup(query)
        self.cache.set(key, result, self.cache_ttl)
        return result

    async def _lookup(self, query: str) -> Optional[Dict[str, float]]:
        try:
            location = await self.geolocator.geocode(query, exactly_one=True)
        except GeopyError as e:
            logger.warning(f"Geocoding failed for '{query}': {type(e).__name__}")
            return None

        if location is None:
            return None
        lat, lng = to_number(location.latitude), to_number(location.longitude)
        if lat is None or lng is None:
            return None
        return {"lng": lng, "lat": lat}


def geocode_query(stop: Dict[str, Any], trip_title: str = "") -> str:
    parts = [stop.get("name"), stop.get("location"), trip_title]
    return ", ".join(p for p in parts if isinstance(p, str) and p.strip())


async def fill_missing_coordinates(stops: List[Dict[str, Any]], geocoder: Optional[MapboxGeocoder],
                                   trip_title: str = "") -> int:
    """Geocode stops without coordinates in place. Returns how many were filled."""
    if geocoder is None or not geocoder.enabled:
        return 0
    filled = 0
    for stop in stops:
        if stop.get("coordinates"):
            continue
        try:
            hit = await geocoder.geocode(geocode_query(stop, trip_title))
        except Exception as e:
            logger.warning(f"Geocoder error for stop '{stop.get('name')}': {e}")
            continue
        if hit:
            stop["coordinates"] = {"lat": hit["lat"], "lng": hit["lng"]}
            filled += 1
    return filled
