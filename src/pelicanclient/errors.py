# Pelican client error taxonomy.
# Created: 2026-10-15
#
# UnauthenticatedError is the only error a caller is expected to act on
# automatically (start the authorization flow). Everything else is terminal
# for the attempted operation.

from __future__ import annotations


class PelicanError(Exception):
    """Base class for all client errors."""


class ParseError(PelicanError, ValueError):
    """Malformed object address."""


class DiscoveryError(PelicanError):
    """Federation or issuer metadata could not be fetched."""


class NamespaceResolutionError(DiscoveryError):
    """Director probe, issuer discovery or client registration failed."""


class AmbiguousNamespaceError(NamespaceResolutionError):
    """More than one cached namespace matches a path equally well."""


class FlowConfigurationError(PelicanError):
    """The namespace lacks the OIDC fields needed to start a code flow."""


class TokenExchangeError(PelicanError):
    """The authorization code (or refresh token) exchange was rejected."""


class StorageError(PelicanError):
    """A storage operation (list/get/put) failed."""

    def __init__(self, message: str, status_code: int | None = None, url: str = ""):
        super().__init__(message)
        self.status_code = status_code
        self.url = url


class UnauthenticatedError(StorageError):
    """403 without a token: the caller should authenticate."""


class UnauthorizedError(StorageError):
    """403 with a token: the token's scope does not cover the object."""


class TransportError(StorageError):
    """Any other non-success response or transport failure."""
