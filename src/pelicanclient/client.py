# Pelican client facade - one object owning session, caches and components.
# Created: 2026-10-16
#
# Changes:
#   - 2026-10-17: Added queued request replay after the authorization redirect.
#   - 2026-10-16: Initial facade over registry, resolver, flow and storage.

from __future__ import annotations

import logging
from pathlib import Path

import httpx

from pelicanclient.address import ObjectAddress, parse_object_address
from pelicanclient.cache import ObjectListCache
from pelicanclient.config import Settings, get_settings
from pelicanclient.errors import PelicanError
from pelicanclient.federation import FederationRegistry
from pelicanclient.models import (
    AuthorizationRequest,
    Collection,
    Federation,
    FlowResult,
    Namespace,
    ObjectListEntry,
    Operation,
    Permission,
    QueuedRequest,
    Token,
)
from pelicanclient.namespaces import NamespaceResolver
from pelicanclient.security.flow import AuthorizationFlowController
from pelicanclient.session import FileSessionStore, Session
from pelicanclient.storage import StorageOperations
from pelicanclient.tokens import clear_expired_tokens, derive_collections, get_usable_token
from pelicanclient.tokens import permissions_for as _permissions_for

logger = logging.getLogger(__name__)


def _address(url: str | ObjectAddress) -> ObjectAddress:
    return url if isinstance(url, ObjectAddress) else parse_object_address(url)


class PelicanClient:
    """Client for a Pelican federation.

    Usage:
        async with PelicanClient() as client:
            entries = await client.list("pelican://osg-htc.org/ospool/data/")
    """

    def __init__(
        self,
        settings: Settings | None = None,
        session: Session | None = None,
        http: httpx.AsyncClient | None = None,
    ):
        self.settings = settings or get_settings()
        self.session = session or Session.load(FileSessionStore(self.settings.get_session_path()))
        self._owns_http = http is None
        self.http = http or httpx.AsyncClient(timeout=self.settings.http_timeout)

        self.federations = FederationRegistry(self.session, self.http)
        self.resolver = NamespaceResolver(self.session, self.http, self.settings)
        self.flow = AuthorizationFlowController(self.session, self.http, self.settings)
        self.storage = StorageOperations(self.federations, self.resolver, self.http)
        self.listings = ObjectListCache(ttl=self.settings.list_cache_ttl)

    async def __aenter__(self) -> PelicanClient:
        return self

    async def __aexit__(self, *exc) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        if self._owns_http:
            await self.http.aclose()

    # -- metadata -----------------------------------------------------------

    async def ensure_metadata(self, url: str | ObjectAddress) -> tuple[Federation, Namespace]:
        """Federation and namespace for *url*, discovering them if needed."""
        address = _address(url)
        federation = await self.federations.get_federation(address.federation_hostname)
        namespace = await self.resolver.resolve(address, federation)
        return federation, namespace

    def cached_namespace(self, url: str | ObjectAddress) -> Namespace | None:
        """Best cached namespace for *url* without touching the network."""
        address = _address(url)
        federation = self.federations.get_cached(address.federation_hostname)
        if federation is None:
            return None
        namespace = self.session.lookup(address.cache_key, federation.hostname)
        return namespace or self.resolver.best_match(address.object_path, federation)

    async def token_for(self, url: str | ObjectAddress) -> Token | None:
        _, namespace = await self.ensure_metadata(url)
        return get_usable_token(namespace)

    # -- storage ------------------------------------------------------------

    async def list(self, url: str | ObjectAddress, use_cache: bool = True) -> list[ObjectListEntry]:
        """List a collection. Only successful listings are cached, and a listing
        invalidated while its request was in flight is returned but not cached.
        """
        address = _address(url)
        if use_cache:
            cached = self.listings.get(address)
            if cached is not None:
                logger.debug("Listing cache hit for %s", address)
                return cached

        generation = self.listings.generation(address)
        entries = await self.storage.list(address)
        self.listings.set(address, entries, generation=generation)
        return entries

    async def get(self, url: str | ObjectAddress) -> httpx.Response:
        return await self.storage.get(_address(url))

    async def download(self, url: str | ObjectAddress, destination: Path) -> Path:
        """Download an object to *destination* (a directory or file path)."""
        address = _address(url)
        resp = await self.storage.get(address)
        target = Path(destination).expanduser()
        if target.is_dir():
            target = target / (address.object_path.rstrip("/").rsplit("/", 1)[-1] or "object")
        target.write_bytes(resp.content)
        logger.info("Downloaded %s (%d bytes) to %s", address, len(resp.content), target)
        return target

    async def put(self, url: str | ObjectAddress, content: bytes | str) -> httpx.Response:
        """Upload *content*, then invalidate the parent collection's cached listing."""
        address = _address(url)
        resp = await self.storage.put(address, content)
        self.listings.invalidate_collection_of(address)
        return resp

    async def upload(self, path: Path, url: str | ObjectAddress) -> ObjectAddress:
        """Upload a local file. A collection URL (trailing ``/``) gets the file name appended."""
        local = Path(path).expanduser()
        if not local.is_file():
            raise FileNotFoundError(f"File not found: {local}")
        address = _address(url)
        if address.object_path.endswith("/"):
            address = address.child(local.name)
        await self.put(address, local.read_bytes())
        logger.info("Uploaded %s to %s", local, address)
        return address

    def invalidate_listing(self, url: str | ObjectAddress) -> bool:
        return self.listings.invalidate(_address(url))

    # -- permissions (best effort) --------------------------------------------

    async def collections(self, url: str | ObjectAddress) -> list[Collection]:
        try:
            _, namespace = await self.ensure_metadata(url)
        except PelicanError as e:
            logger.debug("No collections for %s: %s", url, e)
            return []
        return derive_collections(namespace)

    async def permissions(self, url: str | ObjectAddress) -> list[Permission]:
        try:
            address = _address(url)
            _, namespace = await self.ensure_metadata(address)
        except PelicanError as e:
            logger.debug("No permissions for %s: %s", url, e)
            return []
        return _permissions_for(address, namespace)

    # -- authorization --------------------------------------------------------

    async def login(
        self,
        url: str | ObjectAddress,
        operation: Operation | None = None,
        scope: str | None = None,
    ) -> AuthorizationRequest:
        """Start the authorization flow for the namespace owning *url*.

        If *operation* is given it is queued so it can be replayed once the
        redirect completes (see ``resume_queued_request``).
        """
        address = _address(url)
        federation, namespace = await self.ensure_metadata(address)
        request = self.flow.start_flow(
            namespace, federation, {"objectUrl": str(address)}, scope=scope
        )
        if operation is not None:
            self.session.queued_request = QueuedRequest(
                object_url=str(address),
                federation_hostname=federation.hostname,
                path=address.object_path,
                namespace=namespace.prefix,
                operation=operation,
            )
            self.session.save()
        return request

    async def complete_login(self, redirect_url: str) -> FlowResult:
        """Finish the flow from the issuer's redirect URL."""
        return await self.flow.complete_from_redirect(redirect_url)

    async def complete_flow(self, code: str, state: str) -> FlowResult:
        return await self.flow.complete_flow(code, state)

    async def refresh(self, url: str | ObjectAddress) -> Token:
        _, namespace = await self.ensure_metadata(url)
        return await self.flow.refresh(namespace)

    def logout(self, url: str | ObjectAddress) -> bool:
        """Forget the token of the cached namespace owning *url*."""
        address = _address(url)
        namespace = self.cached_namespace(address)
        if namespace is None or namespace.token is None:
            return False
        namespace.token = None
        self.session.save()
        self.listings.invalidate_federation(address.federation_hostname)
        logger.info("Cleared token for namespace %s", namespace.prefix)
        return True

    def clear_expired_tokens(self) -> int:
        cleared = sum(clear_expired_tokens(fed) for fed in self.session.federations.values())
        if cleared:
            self.session.save()
        return cleared

    async def resume_queued_request(
        self,
    ) -> tuple[QueuedRequest, list[ObjectListEntry] | httpx.Response] | None:
        """Replay the request queued before the redirect, if any.

        The queue is cleared before replaying so a failing request is not
        retried on every start. PUT requests need their content again, so
        they are returned to the caller unreplayed.
        """
        queued = self.session.queued_request
        if queued is None:
            return None

        self.session.queued_request = None
        self.session.save()
        logger.info("Resuming queued %s of %s", queued.operation.value, queued.object_url)

        if queued.operation is Operation.PROPFIND:
            return queued, await self.list(queued.object_url, use_cache=False)
        if queued.operation is Operation.GET:
            return queued, await self.get(queued.object_url)
        return queued, []
