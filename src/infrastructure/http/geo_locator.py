"""
infrastructure.http.geo_locator - City lookup from a client IP address.

Loopback and missing addresses resolve to None without a request.
Lookup failures are logged and also resolve to None; the weather tool
reports the failed geolocation to the user.
"""

from __future__ import annotations

import logging
from typing import Optional

from domain.exceptions import ToolExecutionError
from domain.ports import HttpClientPort

logger = logging.getLogger(__name__)

_LOCAL_ADDRESSES = frozenset({"::1", "127.0.0.1", "localhost", "testclient"})


class IpGeoLocator:
    """Implements GeoLocatorPort over an ipapi.co style endpoint."""

    def __init__(self, http: HttpClientPort, url_template: str = "https://ipapi.co/{ip}/json/"):
        self._http = http
        self._url_template = url_template

    async def resolve_city(self, ip: Optional[str]) -> Optional[str]:
        if not ip or ip in _LOCAL_ADDRESSES:
            logger.debug("Skipping geolocation for local address %r", ip)
            return None
        try:
            data = await self._http.get_json(self._url_template.format(ip=ip))
        except ToolExecutionError as e:
            logger.warning("Geo IP lookup failed: %s", e)
            return None

        city = data.get("city") if isinstance(data, dict) else None
        if not isinstance(city, str) or not city.strip():
            return None
        return city.strip()
