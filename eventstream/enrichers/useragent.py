# ==============================================================================
# User-Agent Enricher
# ==============================================================================
"""
User-agent parsing into device class, OS, and browser.

Device class is normalized to desktop, mobile or tablet. Unknown or missing
signals map to desktop.
"""

import logging

from user_agents import parse

from eventstream.core.models import DeviceData, DeviceType
from eventstream.errors import EnrichmentError

logger = logging.getLogger(__name__)

# ua-parser's placeholder for "no match"
UNKNOWN_FAMILY = "Other"


def normalize_device_type(raw: str | None) -> DeviceType:
    """Map a free-form device class onto desktop/mobile/tablet."""
    if not raw:
        return DeviceType.DESKTOP
    raw = raw.strip().lower()
    if raw in (DeviceType.MOBILE.value, "phone", "smartphone"):
        return DeviceType.MOBILE
    if raw == DeviceType.TABLET.value:
        return DeviceType.TABLET
    return DeviceType.DESKTOP


def _family(value: str) -> str | None:
    return value if value and value != UNKNOWN_FAMILY else None


class UserAgentEnricher:
    """Parses user-agent strings with the user-agents library."""

    def parse(self, user_agent: str) -> DeviceData:
        """
        Parse a user-agent string.

        Raises:
            EnrichmentError: If the parser fails
        """
        try:
            ua = parse(user_agent)
        except Exception as e:
            raise EnrichmentError(f"Failed to parse UA: {e}") from e

        if ua.is_tablet:
            device_class = DeviceType.TABLET.value
        elif ua.is_mobile:
            device_class = DeviceType.MOBILE.value
        else:
            device_class = None

        return DeviceData(
            device_type=normalize_device_type(device_class),
            os_name=_family(ua.os.family),
            os_version=ua.os.version_string or None,
            browser_name=_family(ua.browser.family),
            browser_version=ua.browser.version_string or None,
        )

    def enrich(self, user_agent: str | None) -> DeviceData:
        """Best-effort parse: never raises, desktop-only result on failure."""
        if not user_agent:
            return DeviceData()
        try:
            return self.parse(user_agent)
        except EnrichmentError as e:
            logger.warning("%s", e)
            return DeviceData()
