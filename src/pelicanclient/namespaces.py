# Namespace Resolver - director probe, issuer discovery, dynamic client registration.
# Created: 2026-10-15
#
# Resolution for one (federation hostname, object path) pair is in flight at
# most once: concurrent callers await the same task.

from __future__ import annotations

import logging

import httpx

from pelicanclient.address import ObjectAddress
from pelicanclient.config import Settings, get_settings
from pelicanclient.errors import AmbiguousNamespaceError, DiscoveryError, NamespaceResolutionError
from pelicanclient.inflight import InFlightTable
from pelicanclient.models import (
    AuthorizationClient,
    DirectorNamespaceMetadata,
    DynamicClientPayload,
    Federation,
    Namespace,
    NamespaceInfo,
    OidcConfiguration,
    TokenGeneration,
)
from pelicanclient.session import Session
from pelicanclient.util.headers import parse_record_header, record_get

logger = logging.getLogger(__name__)

AUTHORIZATION_HEADER = "X-Pelican-Authorization"
NAMESPACE_HEADER = "X-Pelican-Namespace"
TOKEN_GENERATION_HEADER = "X-Pelican-Token-Generation"


def _as_int(value: str | None) -> int | None:
    if value is None:
        return None
    try:
        return int(value)
    except ValueError:
        return None


def parse_director_headers(headers: httpx.Headers) -> DirectorNamespaceMetadata:
    """Build namespace metadata from a director's no-redirect response headers."""
    auth = parse_record_header(headers.get(AUTHORIZATION_HEADER))
    ns = parse_record_header(headers.get(NAMESPACE_HEADER))
    gen = parse_record_header(headers.get(TOKEN_GENERATION_HEADER))

    prefix = record_get(ns, "namespace")
    if not prefix:
        raise NamespaceResolutionError(
            f"Director response is missing the {NAMESPACE_HEADER} namespace record"
        )

    require_token = (record_get(ns, "requireToken", "require-token") or "").lower() == "true"
    return DirectorNamespaceMetadata(
        issuer=record_get(auth, "issuer"),
        namespace=NamespaceInfo(
            namespace=prefix,
            require_token=require_token,
            collection_url=record_get(ns, "collectionUrl", "collections-url", "collectionsUrl"),
        ),
        token_generation=TokenGeneration(
            issuer=record_get(gen, "issuer"),
            max_scope_depth=_as_int(record_get(gen, "maxScopeDepth", "max-scope-depth")),
            strategy=record_get(gen, "strategy"),
            base_path=record_get(gen, "basePath", "base-path"),
        ),
    )


def _normalize_prefix(prefix: str) -> str:
    return "/" + prefix.strip("/")


def _covers(prefix: str, path: str) -> bool:
    prefix = _normalize_prefix(prefix)
    if prefix == "/":
        return True
    return path == prefix or path.startswith(prefix + "/")


class NamespaceResolver:
    """Resolves which namespace owns an object path and prepares its OAuth client.

    Usage:
        resolver = NamespaceResolver(session, http)
        namespace = await resolver.resolve(address, federation)
    """

    def __init__(
        self,
        session: Session,
        http: httpx.AsyncClient,
        settings: Settings | None = None,
    ):
        self.session = session
        self.http = http
        self.settings = settings or get_settings()
        self._in_flight: InFlightTable[Namespace] = InFlightTable()

    @property
    def in_flight(self) -> InFlightTable[Namespace]:
        return self._in_flight

    async def resolve(self, address: ObjectAddress, federation: Federation) -> Namespace:
        """Namespace owning *address*, from cache or a single shared discovery."""
        key = address.cache_key
        if key not in self._in_flight:
            prefix = self.session.prefix_to_namespace.get(key)
            cached = federation.namespaces.get(prefix) if prefix is not None else None
            if cached is not None:
                return cached
        return await self._in_flight.join(key, lambda: self._resolve(address, federation))

    def best_match(self, object_path: str, federation: Federation) -> Namespace | None:
        """Most specific cached namespace covering *object_path*, without network."""
        matches = [ns for ns in federation.namespaces.values() if _covers(ns.prefix, object_path)]
        if not matches:
            return None

        longest = max(len(_normalize_prefix(ns.prefix)) for ns in matches)
        best = [ns for ns in matches if len(_normalize_prefix(ns.prefix)) == longest]
        if len(best) > 1:
            raise AmbiguousNamespaceError(
                f"Namespaces {sorted(ns.prefix for ns in best)} all match {object_path}"
            )
        return best[0]

    async def _resolve(self, address: ObjectAddress, federation: Federation) -> Namespace:
        hostname = federation.hostname
        try:
            metadata = await self.fetch_namespace_metadata(address.object_path, federation)
            prefix = metadata.namespace.namespace

            namespace = federation.namespaces.get(prefix)
            if namespace is None:
                namespace = await self._build_namespace(metadata)
                namespace = self.session.add_namespace(federation, namespace)
                logger.info("Discovered namespace %s on %s", prefix, hostname)
        except NamespaceResolutionError:
            raise
        except DiscoveryError as e:
            raise NamespaceResolutionError(
                f"Could not resolve namespace for {address}: {e}"
            ) from e

        self.session.map_path(address.cache_key, namespace.prefix)
        self.session.save()
        return namespace

    async def _build_namespace(self, metadata: DirectorNamespaceMetadata) -> Namespace:
        info = metadata.namespace
        if not metadata.issuer:
            # Public namespace: nothing to authorize against
            return Namespace(
                prefix=info.namespace,
                require_token=info.require_token,
                collection_url=info.collection_url,
            )

        oidc = await self.fetch_openid_configuration(metadata.issuer)
        client = await self.register_client(oidc)
        return Namespace(
            prefix=info.namespace,
            oidc_configuration=oidc,
            client_id=client.client_id,
            client_secret=client.client_secret,
            require_token=info.require_token,
            collection_url=info.collection_url,
        )

    # -- network sub-steps --------------------------------------------------

    async def fetch_namespace_metadata(
        self, object_path: str, federation: Federation
    ) -> DirectorNamespaceMetadata:
        """Probe the director without following its redirect and read the metadata headers."""
        director = federation.configuration.director_endpoint
        if not director:
            raise NamespaceResolutionError(
                f"Federation {federation.hostname} does not advertise a director endpoint"
            )

        url = f"{director.rstrip('/')}{object_path}"
        try:
            resp = await self.http.head(url, params={"redirect": "false"})
        except httpx.HTTPError as e:
            raise NamespaceResolutionError(f"Director endpoint unreachable: {url}: {e}") from e

        if not resp.is_success:
            raise NamespaceResolutionError(f"Director endpoint returned {resp.status_code}: {url}")
        return parse_director_headers(resp.headers)

    async def fetch_openid_configuration(self, issuer: str) -> OidcConfiguration:
        url = f"{issuer.rstrip('/')}/.well-known/openid-configuration"
        try:
            resp = await self.http.get(url, follow_redirects=True)
        except httpx.HTTPError as e:
            raise DiscoveryError(f"Issuer endpoint unreachable: {url}: {e}") from e

        if resp.status_code != 200:
            raise DiscoveryError(f"Issuer endpoint returned {resp.status_code}: {url}")
        try:
            return OidcConfiguration.model_validate(resp.json())
        except ValueError as e:
            raise DiscoveryError(f"Issuer endpoint returned an invalid document: {url}") from e

    async def register_client(self, oidc: OidcConfiguration) -> AuthorizationClient:
        """Dynamically register this client with the issuer."""
        if not oidc.registration_endpoint:
            raise NamespaceResolutionError(
                f"Issuer {oidc.issuer} has no dynamic client registration endpoint"
            )

        payload = DynamicClientPayload(
            redirect_uris=[self.settings.redirect_uri],
            client_name=self.settings.client_name,
            scope=self.settings.registration_scope,
        )
        try:
            resp = await self.http.post(oidc.registration_endpoint, json=payload.model_dump())
        except httpx.HTTPError as e:
            raise NamespaceResolutionError(
                f"Registration endpoint unreachable: {oidc.registration_endpoint}: {e}"
            ) from e

        if resp.status_code not in (200, 201):
            raise NamespaceResolutionError(
                f"Was not able to register client at {oidc.registration_endpoint} "
                f"({resp.status_code})"
            )
        try:
            client = AuthorizationClient.model_validate(resp.json())
        except ValueError as e:
            raise NamespaceResolutionError(
                f"Registration endpoint returned an invalid document: {oidc.registration_endpoint}"
            ) from e
        logger.debug("Registered client %s with %s", client.client_id, oidc.issuer)
        return client
