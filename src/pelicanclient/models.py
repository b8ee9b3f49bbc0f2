# Pelican client data models.
# Created: 2026-10-15
#
# Wire documents (federation / OIDC discovery, registration, token responses)
# are pydantic models; client-side state is plain dataclasses.

from __future__ import annotations

import time
from dataclasses import asdict, dataclass, field
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict

# ---------------------------------------------------------------------------
# Wire documents
# ---------------------------------------------------------------------------


class FederationConfiguration(BaseModel):
    """``/.well-known/pelican-configuration`` document."""

    model_config = ConfigDict(extra="ignore", frozen=True)

    director_endpoint: str | None = None
    namespace_registration_endpoint: str | None = None
    jwks_uri: str | None = None


class OidcConfiguration(BaseModel):
    """Subset of an issuer's ``/.well-known/openid-configuration`` document."""

    model_config = ConfigDict(extra="ignore", frozen=True)

    issuer: str
    authorization_endpoint: str | None = None
    token_endpoint: str | None = None
    registration_endpoint: str | None = None
    jwks_uri: str | None = None


class DynamicClientPayload(BaseModel):
    """Dynamic client registration request body."""

    redirect_uris: list[str]
    token_endpoint_auth_method: str = "client_secret_basic"
    grant_types: list[str] = ["refresh_token", "authorization_code"]
    response_types: list[str] = ["code"]
    client_name: str
    scope: str


class AuthorizationClient(BaseModel):
    """Dynamic client registration response (the parts we keep)."""

    model_config = ConfigDict(extra="ignore")

    client_id: str
    client_secret: str | None = None


class TokenResponse(BaseModel):
    """Token endpoint success response."""

    model_config = ConfigDict(extra="ignore")

    access_token: str
    token_type: str = "Bearer"
    refresh_token: str | None = None
    expires_in: int | None = None
    scope: str | None = None
    id_token: str | None = None


# ---------------------------------------------------------------------------
# Director metadata
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class NamespaceInfo:
    namespace: str
    require_token: bool = False
    collection_url: str | None = None


@dataclass(frozen=True)
class TokenGeneration:
    issuer: str | None = None
    max_scope_depth: int | None = None
    strategy: str | None = None
    base_path: str | None = None


@dataclass(frozen=True)
class DirectorNamespaceMetadata:
    """Namespace metadata read from a director's no-redirect response headers."""

    issuer: str | None
    namespace: NamespaceInfo
    token_generation: TokenGeneration = field(default_factory=TokenGeneration)


# ---------------------------------------------------------------------------
# Client state
# ---------------------------------------------------------------------------


class Permission(str, Enum):
    READ = "read"
    CREATE = "create"
    MODIFY = "modify"


PERMISSION_ORDER = (Permission.READ, Permission.CREATE, Permission.MODIFY)


@dataclass(frozen=True)
class Token:
    """A bearer token plus the claims we care about.

    ``expiry`` and ``issued_at`` are epoch seconds. A token without an expiry
    never expires.
    """

    value: str
    issuer: str | None = None
    subject: str | None = None
    audience: str | list[str] | None = None
    expiry: int | None = None
    issued_at: int | None = None
    scope: str | None = None
    refresh_token: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Token:
        return cls(**data)


@dataclass(frozen=True)
class Collection:
    """A path-scoped permission grant derived from a token's scope."""

    path_prefix: str
    object_path: str
    permissions: frozenset[Permission]


@dataclass
class Namespace:
    """A namespace within a federation.

    ``token`` is the only field that changes after discovery.
    """

    prefix: str
    oidc_configuration: OidcConfiguration | None = None
    client_id: str | None = None
    client_secret: str | None = None
    require_token: bool = False
    collection_url: str | None = None
    token: Token | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "prefix": self.prefix,
            "oidc_configuration": (
                self.oidc_configuration.model_dump() if self.oidc_configuration else None
            ),
            "client_id": self.client_id,
            "client_secret": self.client_secret,
            "require_token": self.require_token,
            "collection_url": self.collection_url,
            "token": self.token.to_dict() if self.token else None,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Namespace:
        oidc = data.get("oidc_configuration")
        token = data.get("token")
        return cls(
            prefix=data["prefix"],
            oidc_configuration=OidcConfiguration.model_validate(oidc) if oidc else None,
            client_id=data.get("client_id"),
            client_secret=data.get("client_secret"),
            require_token=data.get("require_token", False),
            collection_url=data.get("collection_url"),
            token=Token.from_dict(token) if token else None,
        )


@dataclass
class Federation:
    """A federation and the namespaces discovered in it so far."""

    hostname: str
    configuration: FederationConfiguration
    namespaces: dict[str, Namespace] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return {
            "hostname": self.hostname,
            "configuration": self.configuration.model_dump(),
            "namespaces": {k: ns.to_dict() for k, ns in self.namespaces.items()},
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Federation:
        return cls(
            hostname=data["hostname"],
            configuration=FederationConfiguration.model_validate(data.get("configuration", {})),
            namespaces={
                k: Namespace.from_dict(v) for k, v in data.get("namespaces", {}).items()
            },
        )


@dataclass(frozen=True)
class ObjectListEntry:
    """One entry of a collection listing."""

    href: str
    content_length: int = 0
    last_modified: str = ""
    is_collection: bool = False
    resource_type: str = ""
    executable: str = ""
    status: str = ""

    @property
    def name(self) -> str:
        return self.href.rstrip("/").rsplit("/", 1)[-1] or "/"


class Operation(str, Enum):
    GET = "GET"
    PUT = "PUT"
    PROPFIND = "PROPFIND"


@dataclass
class QueuedRequest:
    """An operation to replay once the authorization redirect completes."""

    object_url: str
    federation_hostname: str
    path: str
    namespace: str
    operation: Operation = Operation.GET
    created_at: float = field(default_factory=time.time)

    def to_dict(self) -> dict[str, Any]:
        data = asdict(self)
        data["operation"] = self.operation.value
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> QueuedRequest:
        return cls(
            object_url=data["object_url"],
            federation_hostname=data["federation_hostname"],
            path=data["path"],
            namespace=data["namespace"],
            operation=Operation(data.get("operation", "GET")),
            created_at=data.get("created_at", time.time()),
        )


@dataclass(frozen=True)
class AuthorizationRequest:
    """Everything the caller needs to send the user to the issuer."""

    url: str
    state: str
    code_verifier: str


@dataclass(frozen=True)
class FlowResult:
    """Outcome of a completed authorization code exchange."""

    federation_hostname: str
    namespace_prefix: str
    token: Token
    state: dict[str, str] = field(default_factory=dict)
