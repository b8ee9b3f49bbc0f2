# Federation Registry - fetch and cache federation discovery documents.
# Created: 2026-10-15

from __future__ import annotations

import logging

import httpx

from pelicanclient.errors import DiscoveryError
from pelicanclient.inflight import InFlightTable
from pelicanclient.models import Federation, FederationConfiguration
from pelicanclient.session import Session

logger = logging.getLogger(__name__)

WELL_KNOWN_PATH = "/.well-known/pelican-configuration"


def configuration_url(hostname: str) -> str:
    return f"https://{hostname}{WELL_KNOWN_PATH}"


class FederationRegistry:
    """Federation lookups backed by the session cache.

    A federation is fetched at most once per session; concurrent first
    lookups of the same hostname share a single request. Failures are raised
    as DiscoveryError and never retried here.
    """

    def __init__(self, session: Session, http: httpx.AsyncClient):
        self.session = session
        self.http = http
        self._in_flight: InFlightTable[Federation] = InFlightTable()

    def get_cached(self, hostname: str) -> Federation | None:
        return self.session.federations.get(hostname)

    async def get_federation(self, hostname: str) -> Federation:
        cached = self.session.federations.get(hostname)
        if cached is not None:
            return cached
        return await self._in_flight.join(hostname, lambda: self._fetch(hostname))

    async def _fetch(self, hostname: str) -> Federation:
        url = configuration_url(hostname)
        try:
            resp = await self.http.get(url, follow_redirects=True)
        except httpx.HTTPError as e:
            raise DiscoveryError(f"Metadata endpoint unreachable: {url}: {e}") from e

        if resp.status_code != 200:
            raise DiscoveryError(f"Metadata endpoint returned {resp.status_code}: {url}")

        try:
            configuration = FederationConfiguration.model_validate(resp.json())
        except ValueError as e:
            raise DiscoveryError(f"Metadata endpoint returned an invalid document: {url}") from e

        federation = self.session.add_federation(
            Federation(hostname=hostname, configuration=configuration)
        )
        self.session.save()
        logger.info("Registered federation %s", hostname)
        return federation
