"""
Geocoding Adapter - place lookups for location resolution.
"""

from .client import PlacesClient, PlaceSuggestion

__all__ = ["PlacesClient", "PlaceSuggestion"]
