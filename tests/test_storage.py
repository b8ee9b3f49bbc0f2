# Tests for storage.py (list/get/put and failure classification)
# Created: 2026-10-16

import httpx
import pytest

from pelicanclient.address import parse_object_address
from pelicanclient.errors import TransportError, UnauthenticatedError, UnauthorizedError
from pelicanclient.federation import FederationRegistry
from pelicanclient.models import ObjectListEntry, Token
from pelicanclient.namespaces import NamespaceResolver
from pelicanclient.storage import (
    Outcome,
    StorageOperations,
    classify,
    parent_entry,
    shape_listing,
)
from pelicanclient.util.webdav import parse_multistatus
from tests.fakes import FED, multistatus


@pytest.fixture
def storage(session, http, settings):
    return StorageOperations(
        FederationRegistry(session, http), NamespaceResolver(session, http, settings), http
    )


async def _login(storage, fake, url=f"pelican://{FED}/ns/dir/", **claims):
    """Resolve *url* and give its namespace a valid token."""
    _, _, namespace, _ = await storage.prepare(url)
    namespace.token = Token(value=fake.issue_token(**claims))
    return namespace


def _response(status: int) -> httpx.Response:
    return httpx.Response(status, request=httpx.Request("GET", "https://origin/x"))


class TestClassify:
    def test_success(self):
        assert classify(_response(207), (200, 207), None).ok

    def test_forbidden_without_token(self):
        result = classify(_response(403), (200,), None)
        assert result.outcome is Outcome.UNAUTHENTICATED
        with pytest.raises(UnauthenticatedError):
            result.unwrap()

    def test_forbidden_with_token(self):
        result = classify(_response(403), (200,), Token(value="t"))
        assert result.outcome is Outcome.UNAUTHORIZED
        with pytest.raises(UnauthorizedError):
            result.unwrap()

    @pytest.mark.parametrize("status", [401, 404, 500, 207])
    def test_other_failures(self, status):
        result = classify(_response(status), (200,), None, "https://origin/x")
        assert result.outcome is Outcome.FAILED
        with pytest.raises(TransportError) as excinfo:
            result.unwrap()
        assert excinfo.value.status_code == status
        assert excinfo.value.url == "https://origin/x"

    def test_response_without_request(self):
        result = classify(httpx.Response(403), (200,), None)
        assert result.outcome is Outcome.UNAUTHENTICATED
        assert result.url == ""


class TestShapeListing:
    def test_filters_self_appends_parent_and_reverses(self):
        entries = [
            ObjectListEntry(href="/ns/dir/", is_collection=True),
            ObjectListEntry(href="/ns/dir/a.txt"),
            ObjectListEntry(href="/ns/dir/sub", is_collection=True),
        ]
        shaped = shape_listing("/ns/dir/", entries)

        assert [e.href for e in shaped] == ["/ns", "/ns/dir/sub", "/ns/dir/a.txt"]
        parent = shaped[0]
        assert parent.is_collection
        assert parent.last_modified == ""

    def test_filters_self_without_trailing_slash(self):
        shaped = shape_listing("/ns/dir", [ObjectListEntry(href="/ns/dir/")])
        assert [e.href for e in shaped] == ["/ns"]

    def test_filters_percent_encoded_self(self):
        body = multistatus("/ns/my dir/", {"a.txt": 5})
        shaped = shape_listing("/ns/my%20dir/", parse_multistatus(body))
        assert [e.href for e in shaped] == ["/ns", "/ns/my dir/a.txt"]

    def test_parent_of_encoded_path_is_decoded(self):
        assert parent_entry("/ns/my%20dir/sub/").href == "/ns/my dir"

    def test_root_has_no_parent(self):
        assert parent_entry("/") is None
        shaped = shape_listing("/", [ObjectListEntry(href="/ns/", is_collection=True)])
        assert [e.href for e in shaped] == ["/ns/"]

    def test_top_level_parent_is_root(self):
        assert parent_entry("/ns/").href == "/"

    def test_drops_empty_hrefs(self):
        assert shape_listing("/", [ObjectListEntry(href="")]) == []


class TestStorageOperations:
    async def test_list_without_token_is_unauthenticated(self, storage):
        with pytest.raises(UnauthenticatedError):
            await storage.list(f"pelican://{FED}/ns/dir/")

    async def test_list_with_rejected_token_is_unauthorized(self, storage, fake):
        namespace = await _login(storage, fake)
        fake.valid_tokens.discard(namespace.token.value)
        with pytest.raises(UnauthorizedError):
            await storage.list(f"pelican://{FED}/ns/dir/")

    async def test_list(self, storage, fake):
        await _login(storage, fake)
        entries = await storage.list(f"pelican://{FED}/ns/dir/")
        assert [e.href for e in entries] == ["/ns", "/ns/dir/b.txt", "/ns/dir/a.txt"]
        assert entries[1].content_length == 4

    async def test_bearer_survives_cross_host_redirect(self, storage, fake):
        namespace = await _login(storage, fake)
        resp = await storage.get(f"pelican://{FED}/ns/dir/a.txt")
        assert resp.content == b"alpha"
        assert resp.request.headers["Authorization"] == f"Bearer {namespace.token.value}"
        assert fake.calls["GET director.example.org/ns/dir/a.txt"] == 1
        assert fake.calls["GET origin.example.org/ns/dir/a.txt"] == 1

    async def test_bearer_not_sent_to_plain_http(self, session, settings, fake):
        seen = []

        def handler(request):
            if request.url.host == "director.example.org" and request.method == "GET":
                return httpx.Response(
                    307, headers={"Location": f"http://origin.example.org{request.url.path}"}
                )
            if request.url.host == "origin.example.org":
                seen.append(request)
            return fake(request)

        async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as http:
            storage = StorageOperations(
                FederationRegistry(session, http), NamespaceResolver(session, http, settings), http
            )
            await _login(storage, fake)
            with pytest.raises(UnauthenticatedError):
                await storage.get(f"pelican://{FED}/ns/dir/a.txt")

        assert seen[0].url.scheme == "http"
        assert "Authorization" not in seen[0].headers

    async def test_public_namespace_sends_no_token(self, storage, fake):
        fake.issuer = None
        fake.require_token = False
        resp = await storage.get(f"pelican://{FED}/ns/dir/b.txt")
        assert resp.content == b"beta"
        assert "Authorization" not in resp.request.headers

    async def test_expired_token_not_sent(self, storage, fake):
        namespace = await _login(storage, fake)
        namespace.token = Token(value=namespace.token.value, expiry=1)
        with pytest.raises(UnauthenticatedError):
            await storage.get(f"pelican://{FED}/ns/dir/a.txt")

    async def test_get_missing(self, storage, fake):
        await _login(storage, fake)
        with pytest.raises(TransportError) as excinfo:
            await storage.get(f"pelican://{FED}/ns/dir/nope.txt")
        assert excinfo.value.status_code == 404

    async def test_put(self, storage, fake):
        await _login(storage, fake)
        resp = await storage.put(f"pelican://{FED}/ns/dir/c.txt", b"gamma")
        assert resp.status_code == 201
        assert fake.objects["/ns/dir/c.txt"] == b"gamma"

    async def test_transport_failure(self, session, settings, fake):
        def handler(request):
            if request.url.host == "origin.example.org":
                raise httpx.ReadTimeout("slow", request=request)
            return fake(request)

        async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as http:
            storage = StorageOperations(
                FederationRegistry(session, http), NamespaceResolver(session, http, settings), http
            )
            with pytest.raises(TransportError, match="slow"):
                await storage.get(f"pelican://{FED}/ns/dir/a.txt")

    async def test_malformed_listing(self, session, settings, fake):
        fake.issuer = None
        fake.require_token = False

        def handler(request):
            if request.url.host == "origin.example.org":
                return httpx.Response(207, text="<multistatus><response>")
            return fake(request)

        async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as http:
            storage = StorageOperations(
                FederationRegistry(session, http), NamespaceResolver(session, http, settings), http
            )
            with pytest.raises(TransportError, match="Malformed"):
                await storage.list(f"pelican://{FED}/ns/dir/")
