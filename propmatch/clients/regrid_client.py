"""
Singleton Regrid parcel client with rate limiting using aiolimiter.
"""
import time
from typing import Any, Dict, Optional, Tuple
from aiohttp import ClientSession, ClientTimeout
from aiolimiter import AsyncLimiter
from loguru import logger

from propmatch.config import REGRID_API_KEY, REGRID_URL, CONCURRENCY, REQUEST_TIMEOUT, PARCEL_CACHE_TTL


class RegridClient:
    """
    Singleton client for the Regrid parcel point lookup.
    Responses are cached per coordinate for PARCEL_CACHE_TTL seconds.
    """
    _instance = None
    _initialized = False

    def __new__(cls):
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __init__(self):
        if not RegridClient._initialized:
            self.api_key = REGRID_API_KEY
            self.base_url = REGRID_URL
            self.rate_limiter = AsyncLimiter(max_rate=CONCURRENCY, time_period=1.0)
            self._session: Optional[ClientSession] = None
            self._cache: Dict[str, Tuple[float, Dict[str, Any]]] = {}
            if not self.api_key:
                logger.debug("REGRID_API_KEY not set, parcel lookup disabled")
            RegridClient._initialized = True

    @property
    def enabled(self) -> bool:
        return bool(self.api_key)

    async def _get_session(self) -> ClientSession:
        """Get or create the aiohttp session."""
        if self._session is None or self._session.closed:
            self._session = ClientSession(timeout=ClientTimeout(total=REQUEST_TIMEOUT))
        return self._session

    def _cached(self, key: str) -> Optional[Dict[str, Any]]:
        entry = self._cache.get(key)
        if entry is None:
            return None
        stored_at, data = entry
        if time.monotonic() - stored_at > PARCEL_CACHE_TTL:
            del self._cache[key]
            return None
        return data

    def _store(self, key: str, data: Dict[str, Any]) -> None:
        """Cache a response and drop entries older than PARCEL_CACHE_TTL."""
        now = time.monotonic()
        self._cache.pop(key, None)
        self._cache[key] = (now, data)
        # Entries are kept in insertion order, so expired ones sit at the front.
        while self._cache:
            oldest_key = next(iter(self._cache))
            if now - self._cache[oldest_key][0] <= PARCEL_CACHE_TTL:
                break
            del self._cache[oldest_key]

    async def parcel_lookup(self, latitude: float, longitude: float) -> Dict[str, Any]:
        """
        Look up the parcel containing a coordinate.

        Args:
            latitude: Decimal latitude.
            longitude: Decimal longitude.

        Returns:
            Parsed GeoJSON body with a ``features`` list.

        Raises:
            Exception: On a non-200 HTTP response.
        """
        key = f"{latitude:.6f},{longitude:.6f}"
        cached = self._cached(key)
        if cached is not None:
            logger.debug(f"📦 Parcel cache hit for {key}")
            return cached

        async with self.rate_limiter:
            session = await self._get_session()
            headers = {
                "Authorization": f"Bearer {self.api_key}",
                "Accept": "application/json",
            }
            try:
                async with session.get(f"{self.base_url}/{key}", headers=headers) as resp:
                    if resp.status != 200:
                        raise Exception(f"Regrid API error: {resp.status}")
                    data = await resp.json()
            except Exception as e:
                logger.debug(f"⚠️ Parcel lookup failed for {key}: {e}")
                raise

        self._store(key, data)
        return data

    async def close(self):
        """Close the aiohttp session."""
        if self._session and not self._session.closed:
            await self._session.close()
            self._session = None
