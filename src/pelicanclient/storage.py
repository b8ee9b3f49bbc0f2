# Storage Operations - list (PROPFIND), get and put against the director.
# Created: 2026-10-15
#
# Every response goes through classify(), which returns a StorageResult
# variant; call sites only decide which status codes count as success.

from __future__ import annotations

import logging
import xml.etree.ElementTree as ET
from dataclasses import dataclass
from enum import Enum
from urllib.parse import unquote

import httpx

from pelicanclient.address import ObjectAddress, parse_object_address
from pelicanclient.errors import TransportError, UnauthenticatedError, UnauthorizedError
from pelicanclient.federation import FederationRegistry
from pelicanclient.models import Federation, Namespace, ObjectListEntry, Token
from pelicanclient.namespaces import NamespaceResolver
from pelicanclient.tokens import get_usable_token
from pelicanclient.util.webdav import parse_multistatus

logger = logging.getLogger(__name__)

LIST_SUCCESS = (200, 207)
GET_SUCCESS = (200,)
PUT_SUCCESS = (200, 201)
MAX_REDIRECTS = 5


class Outcome(str, Enum):
    OK = "ok"
    UNAUTHENTICATED = "unauthenticated"
    UNAUTHORIZED = "unauthorized"
    FAILED = "failed"


@dataclass
class StorageResult:
    """Classified outcome of one storage request."""

    outcome: Outcome
    url: str
    response: httpx.Response | None = None
    message: str = ""

    @property
    def ok(self) -> bool:
        return self.outcome is Outcome.OK

    @property
    def status_code(self) -> int | None:
        return self.response.status_code if self.response is not None else None

    def unwrap(self) -> httpx.Response:
        """The response on success, else the matching StorageError."""
        if self.outcome is Outcome.OK and self.response is not None:
            return self.response
        if self.outcome is Outcome.UNAUTHENTICATED:
            raise UnauthenticatedError(self.message, self.status_code, self.url)
        if self.outcome is Outcome.UNAUTHORIZED:
            raise UnauthorizedError(self.message, self.status_code, self.url)
        raise TransportError(self.message, self.status_code, self.url)


def classify(
    response: httpx.Response,
    success: tuple[int, ...],
    token: Token | None,
    url: str = "",
) -> StorageResult:
    status = response.status_code
    if status in success:
        return StorageResult(Outcome.OK, url, response)
    if status == 403 and token is None:
        return StorageResult(
            Outcome.UNAUTHENTICATED, url, response, "Access token required to access the object"
        )
    if status == 403:
        return StorageResult(
            Outcome.UNAUTHORIZED, url, response, "Provided token does not have access to the object"
        )
    return StorageResult(
        Outcome.FAILED, url, response, f"Storage request failed: {status} {response.reason_phrase}"
    )


def object_url(federation: Federation, address: ObjectAddress) -> str:
    director = federation.configuration.director_endpoint
    if not director:
        raise TransportError(
            f"Federation {federation.hostname} does not advertise a director endpoint"
        )
    return f"{director.rstrip('/')}{address.object_path}"


def parent_entry(object_path: str) -> ObjectListEntry | None:
    """Synthetic "navigate up" entry, or None at the federation root."""
    parts = [p for p in unquote(object_path).split("/") if p]
    if not parts:
        return None
    return ObjectListEntry(
        href="/" + "/".join(parts[:-1]),
        content_length=0,
        last_modified="",
        is_collection=True,
        resource_type="collection",
    )


def shape_listing(object_path: str, entries: list[ObjectListEntry]) -> list[ObjectListEntry]:
    """Drop the self entry, append the parent entry and reverse (collections first).

    Entry hrefs are already percent-decoded, so *object_path* is decoded to match.
    """
    self_href = unquote(object_path).rstrip("/")
    shaped = [e for e in entries if e.href and e.href.rstrip("/") != self_href]
    parent = parent_entry(object_path)
    if parent is not None:
        shaped.append(parent)
    shaped.reverse()
    return shaped


class StorageOperations:
    """list/get/put with token lookup and failure classification.

    None of the operations retry. UnauthenticatedError tells the caller to
    run the authorization flow and re-issue the operation.
    """

    def __init__(
        self,
        registry: FederationRegistry,
        resolver: NamespaceResolver,
        http: httpx.AsyncClient,
    ):
        self.registry = registry
        self.resolver = resolver
        self.http = http

    async def prepare(
        self, url: str | ObjectAddress
    ) -> tuple[ObjectAddress, Federation, Namespace, Token | None]:
        """Parse, then federation, namespace and usable token (may be None)."""
        address = url if isinstance(url, ObjectAddress) else parse_object_address(url)
        federation = await self.registry.get_federation(address.federation_hostname)
        namespace = await self.resolver.resolve(address, federation)
        return address, federation, namespace, get_usable_token(namespace)

    async def send(
        self,
        method: str,
        federation: Federation,
        address: ObjectAddress,
        token: Token | None,
        success: tuple[int, ...],
        headers: dict[str, str] | None = None,
        **kwargs,
    ) -> StorageResult:
        url = object_url(federation, address)
        request_headers = dict(headers or {})
        if token is not None:
            request_headers["Authorization"] = f"Bearer {token.value}"

        # Follow redirects by hand so Authorization reaches the cache/origin host.
        # The bearer is never sent over plain http.
        try:
            resp = await self.http.request(method, url, headers=request_headers, **kwargs)
            hops = 0
            while resp.is_redirect and "location" in resp.headers and hops < MAX_REDIRECTS:
                hops += 1
                target = resp.url.join(resp.headers["location"])
                url = str(target)
                if target.scheme != "https" and token is not None:
                    logger.warning("Not forwarding the access token to insecure %s", url)
                    request_headers.pop("Authorization", None)
                    token = None
                resp = await self.http.request(method, url, headers=request_headers, **kwargs)
        except httpx.HTTPError as e:
            return StorageResult(Outcome.FAILED, url, message=f"{method} {url} failed: {e}")

        result = classify(resp, success, token, url)
        logger.debug("%s %s -> %s (%s)", method, url, resp.status_code, result.outcome.value)
        return result

    async def list(self, url: str | ObjectAddress) -> list[ObjectListEntry]:
        """Enumerate a collection."""
        address, federation, _, token = await self.prepare(url)
        resp = (
            await self.send("PROPFIND", federation, address, token, LIST_SUCCESS, {"Depth": "1"})
        ).unwrap()
        try:
            entries = parse_multistatus(resp.text)
        except ET.ParseError as e:
            raise TransportError(
                f"Malformed multistatus response: {e}", resp.status_code, str(resp.url)
            ) from e
        return shape_listing(address.object_path, entries)

    async def get(self, url: str | ObjectAddress) -> httpx.Response:
        """Download an object; the returned response holds the body."""
        address, federation, _, token = await self.prepare(url)
        return (await self.send("GET", federation, address, token, GET_SUCCESS)).unwrap()

    async def put(self, url: str | ObjectAddress, content: bytes | str) -> httpx.Response:
        """Upload *content* to the object address.

        Invalidating cached listings of the parent collection is the caller's job.
        """
        address, federation, _, token = await self.prepare(url)
        return (
            await self.send("PUT", federation, address, token, PUT_SUCCESS, content=content)
        ).unwrap()
