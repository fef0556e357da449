"""
agent.tools.weather - Current conditions and a short forecast.

Geocodes the city name, then reads the forecast for its coordinates
(Open-Meteo compatible endpoints, no key required).
"""

from __future__ import annotations

from typing import Any, Optional

from pydantic import BaseModel, Field

from agent.tools.base import BaseTool, ToolResult
from domain.exceptions import ToolExecutionError
from domain.ports import HttpClientPort

# WMO weather interpretation codes, grouped.
_CONDITIONS = {
    0: "clear sky",
    1: "mainly clear", 2: "partly cloudy", 3: "overcast",
    45: "fog", 48: "rime fog",
    51: "light drizzle", 53: "drizzle", 55: "dense drizzle",
    61: "light rain", 63: "rain", 65: "heavy rain",
    71: "light snow", 73: "snow", 75: "heavy snow",
    80: "rain showers", 81: "rain showers", 82: "violent rain showers",
    95: "thunderstorm", 96: "thunderstorm with hail", 99: "thunderstorm with hail",
}


class WeatherInput(BaseModel):
    """Input schema for the weather tool."""
    text: str = ""
    city: Optional[str] = Field(default=None, description="City name")
    was_geolocation_attempt: bool = False
    days: int = Field(default=5, ge=1, le=7)


class WeatherTool(BaseTool):
    """Report weather for a city."""

    name = "weather"
    description = "Current weather and a short forecast for a city."

    def __init__(self, http: HttpClientPort, geocoding_url: str, forecast_url: str):
        self._http = http
        self._geocoding_url = geocoding_url
        self._forecast_url = forecast_url

    def get_schema(self) -> type[BaseModel]:
        return WeatherInput

    async def invoke(self, input: Any, context: dict[str, Any]) -> ToolResult:
        params = self.parse_params(input, context)
        if not params.city:
            if params.was_geolocation_attempt:
                return ToolResult.fail("Could not determine your location; please name a city")
            return ToolResult.fail("No city provided; ask like 'weather in Paris'")

        try:
            place = await self._geocode(params.city)
            if place is None:
                return ToolResult.fail(f"Unknown city: {params.city}")
            forecast = await self._http.get_json(
                self._forecast_url,
                params={
                    "latitude": place["latitude"],
                    "longitude": place["longitude"],
                    "current": "temperature_2m,relative_humidity_2m,wind_speed_10m,weather_code",
                    "daily": "temperature_2m_max,temperature_2m_min,weather_code",
                    "forecast_days": params.days,
                    "timezone": "auto",
                },
            )
        except ToolExecutionError as e:
            return ToolResult.fail(str(e))

        return ToolResult.ok(_shape(place, forecast))

    async def _geocode(self, city: str) -> Optional[dict[str, Any]]:
        payload = await self._http.get_json(
            self._geocoding_url, params={"name": city, "count": 1},
        )
        results = (payload or {}).get("results") or []
        return results[0] if results else None


def _shape(place: dict[str, Any], forecast: dict[str, Any]) -> dict[str, Any]:
    current = forecast.get("current") or {}
    daily = forecast.get("daily") or {}
    days = []
    for i, day in enumerate(daily.get("time") or []):
        days.append({
            "date": day,
            "max_c": _at(daily.get("temperature_2m_max"), i),
            "min_c": _at(daily.get("temperature_2m_min"), i),
            "conditions": _CONDITIONS.get(_at(daily.get("weather_code"), i), "unknown"),
        })
    return {
        "city": place.get("name"),
        "country": place.get("country"),
        "current": {
            "temperature_c": current.get("temperature_2m"),
            "humidity": current.get("relative_humidity_2m"),
            "wind_kmh": current.get("wind_speed_10m"),
            "conditions": _CONDITIONS.get(current.get("weather_code"), "unknown"),
        },
        "forecast": days,
    }


def _at(values: Optional[list[Any]], index: int) -> Any:
    return values[index] if values and index < len(values) else None
