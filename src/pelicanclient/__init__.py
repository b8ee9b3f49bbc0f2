"""Pelican federated object storage client."""

from pelicanclient.address import ObjectAddress, parse_object_address
from pelicanclient.client import PelicanClient
from pelicanclient.config import Settings, get_settings
from pelicanclient.errors import (
    AmbiguousNamespaceError,
    DiscoveryError,
    FlowConfigurationError,
    NamespaceResolutionError,
    ParseError,
    PelicanError,
    StorageError,
    TokenExchangeError,
    TransportError,
    UnauthenticatedError,
    UnauthorizedError,
)
from pelicanclient.session import FileSessionStore, MemorySessionStore, Session

__version__ = "0.1.0"

__all__ = [
    "AmbiguousNamespaceError",
    "DiscoveryError",
    "FileSessionStore",
    "FlowConfigurationError",
    "MemorySessionStore",
    "NamespaceResolutionError",
    "ObjectAddress",
    "ParseError",
    "PelicanClient",
    "PelicanError",
    "Session",
    "Settings",
    "StorageError",
    "TokenExchangeError",
    "TransportError",
    "UnauthenticatedError",
    "UnauthorizedError",
    "get_settings",
    "parse_object_address",
]
