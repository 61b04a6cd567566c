# ==============================================================================
# Enrichment Stage
# ==============================================================================
"""
Concrete enrichment stage composed of the GeoIP and user-agent enrichers.
"""

from eventstream.base.enrichment import EnrichmentStage
from eventstream.core.models import DeviceData, GeoData
from eventstream.enrichers.geoip import GeoIPEnricher
from eventstream.enrichers.useragent import UserAgentEnricher, normalize_device_type
from eventstream.utils.config import EnrichmentSettings, get_settings


class EventEnricher(EnrichmentStage):
    """Enrichment stage delegating to one geo and one device enricher."""

    def __init__(
        self,
        geo: GeoIPEnricher | None = None,
        device: UserAgentEnricher | None = None,
    ):
        self._geo = geo or GeoIPEnricher(None)
        self._device = device or UserAgentEnricher()

    @classmethod
    def from_settings(cls, settings: EnrichmentSettings | None = None) -> "EventEnricher":
        settings = settings or get_settings().enrichment
        return cls(geo=GeoIPEnricher.from_path(settings.geoip_database))

    def enrich_geo(self, ip_address: str | None) -> GeoData:
        return self._geo.enrich(ip_address)

    def enrich_device(self, user_agent: str | None) -> DeviceData:
        return self._device.enrich(user_agent)

    def close(self) -> None:
        """Release the geo database."""
        self._geo.close()


__all__ = [
    "EventEnricher",
    "GeoIPEnricher",
    "UserAgentEnricher",
    "normalize_device_type",
]
