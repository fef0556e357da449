"""Outbound HTTP adapters (search, weather, finance, geolocation)."""
