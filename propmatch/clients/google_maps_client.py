"""
Singleton Google Maps reverse-geocoding client with rate limiting using aiolimiter.
"""
from typing import Any, Dict, Optional
from aiohttp import ClientSession, ClientTimeout
from aiolimiter import AsyncLimiter
from loguru import logger

from propmatch.config import GOOGLE_MAPS_API_KEY, GEOCODE_URL, CONCURRENCY, REQUEST_TIMEOUT


class GoogleMapsClient:
    """
    Singleton client for the Google Geocoding API.
    A missing API key leaves the client disabled rather than failing.
    """
    _instance = None
    _initialized = False

    def __new__(cls):
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __init__(self):
        if not GoogleMapsClient._initialized:
            self.api_key = GOOGLE_MAPS_API_KEY
            self.base_url = GEOCODE_URL
            self.rate_limiter = AsyncLimiter(max_rate=CONCURRENCY, time_period=1.0)
            self._session: Optional[ClientSession] = None
            if not self.api_key:
                logger.debug("GOOGLE_MAPS_API_KEY not set, reverse geocoding disabled")
            GoogleMapsClient._initialized = True

    @property
    def enabled(self) -> bool:
        return bool(self.api_key)

    async def _get_session(self) -> ClientSession:
        """Get or create the aiohttp session."""
        if self._session is None or self._session.closed:
            self._session = ClientSession(timeout=ClientTimeout(total=REQUEST_TIMEOUT))
        return self._session

    async def reverse_geocode(self, latitude: float, longitude: float) -> Dict[str, Any]:
        """
        Reverse-geocode a coordinate.

        Args:
            latitude: Decimal latitude.
            longitude: Decimal longitude.

        Returns:
            Parsed JSON body, ``{"status": ..., "results": [...]}``.

        Raises:
            Exception: On a non-200 HTTP response.
        """
        async with self.rate_limiter:
            session = await self._get_session()
            params = {"latlng": f"{latitude},{longitude}", "key": self.api_key}
            try:
                async with session.get(self.base_url, params=params) as resp:
                    if resp.status != 200:
                        raise Exception(f"Google Maps API error: {resp.status}")
                    return await resp.json()
            except Exception as e:
                logger.debug(f"⚠️ Reverse geocode request failed for {latitude},{longitude}: {e}")
                raise

    async def close(self):
        """Close the aiohttp session."""
        if self._session and not self._session.closed:
            await self._session.close()
            self._session = None
