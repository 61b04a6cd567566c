# ==============================================================================
# GeoIP Enricher
# ==============================================================================
"""
IP address to country/city lookup backed by a MaxMind GeoIP2 City database.

Without a configured database every lookup returns an empty GeoData.
"""

import logging
from pathlib import Path

import geoip2.database
from geoip2.errors import AddressNotFoundError
from maxminddb.errors import InvalidDatabaseError

from eventstream.core.models import GeoData
from eventstream.errors import EnrichmentError

logger = logging.getLogger(__name__)


class GeoIPEnricher:
    """Resolves IP addresses with a geoip2 database reader."""

    def __init__(self, reader: geoip2.database.Reader | None = None):
        """
        Args:
            reader: Open geoip2 reader, or None to disable geo lookups
        """
        self._reader = reader

    @classmethod
    def from_path(cls, database_path: Path | None) -> "GeoIPEnricher":
        """Open the database at database_path (None disables lookups)."""
        if database_path is None:
            logger.info("No GeoIP database configured, geo enrichment disabled")
            return cls(None)
        return cls(geoip2.database.Reader(str(database_path)))

    def lookup(self, ip_address: str) -> GeoData:
        """
        Look up an address.

        Raises:
            EnrichmentError: If the address is malformed, the database is
                unreadable, or the reader fails in any other way (e.g. a
                Country database opened where a City one is expected)
        """
        if self._reader is None:
            return GeoData()
        try:
            response = self._reader.city(ip_address)
        except AddressNotFoundError:
            return GeoData()
        except (ValueError, InvalidDatabaseError) as e:
            raise EnrichmentError(f"Failed to lookup IP {ip_address}: {e}") from e
        except Exception as e:
            raise EnrichmentError(
                f"GeoIP reader error for {ip_address} ({type(e).__name__}): {e}"
            ) from e

        return GeoData(
            country_code=response.country.iso_code or None,
            city=response.city.name or None,
        )

    def enrich(self, ip_address: str | None) -> GeoData:
        """Best-effort lookup: never raises, empty result on any failure."""
        if not ip_address:
            return GeoData()
        try:
            return self.lookup(ip_address)
        except EnrichmentError as e:
            logger.warning("%s", e)
            return GeoData()

    def close(self) -> None:
        """Close the database reader."""
        if self._reader is not None:
            self._reader.close()
