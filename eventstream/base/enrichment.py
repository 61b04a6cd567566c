# ==============================================================================
# Enrichment Stage Abstract Base Class
# ==============================================================================
"""
Abstract interface for best-effort event enrichment.

Both operations are stateless and side-effect free. They never raise: any
lookup failure is absorbed and reported as an empty result, because missing
enrichment must never block ingestion.
"""

from abc import ABC, abstractmethod

from eventstream.core.models import DeviceData, GeoData


class EnrichmentStage(ABC):
    """Geo and device enrichment for raw event metadata."""

    @abstractmethod
    def enrich_geo(self, ip_address: str | None) -> GeoData:
        """
        Resolve an IP address to country and city.

        Returns:
            GeoData, empty for a missing or unresolvable address
        """
        ...

    @abstractmethod
    def enrich_device(self, user_agent: str | None) -> DeviceData:
        """
        Parse a user-agent string.

        Returns:
            DeviceData whose device_type is always one of desktop, mobile,
            tablet (desktop when the signal is absent or unrecognized)
        """
        ...
