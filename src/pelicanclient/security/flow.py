# Authorization Flow Controller - PKCE code flow against a namespace's issuer.
# Created: 2026-10-15
#
# The browser redirect is a hard suspension point, so the flow has two entry
# points: start_flow() builds the authorization URL (persisting the verifier),
# complete_flow() runs later, often in a fresh process, with the returned
# code and state.

from __future__ import annotations

import logging
import time
import urllib.parse
from enum import Enum

import httpx

from pelicanclient.config import Settings, get_settings
from pelicanclient.errors import FlowConfigurationError, TokenExchangeError
from pelicanclient.models import (
    AuthorizationRequest,
    Federation,
    FlowResult,
    Namespace,
    Token,
)
from pelicanclient.security.pkce import generate_code_challenge, generate_code_verifier
from pelicanclient.session import Session
from pelicanclient.tokens import token_from_response
from pelicanclient.util.oauth_state import build_oauth_state, parse_oauth_state

logger = logging.getLogger(__name__)


class FlowState(str, Enum):
    IDLE = "idle"
    REDIRECTING = "redirecting"
    CODE_PRESENT = "code_present"
    EXCHANGING = "exchanging"
    TOKEN_ACQUIRED = "token_acquired"
    EXCHANGE_FAILED = "exchange_failed"


class AuthorizationFlowController:
    """Drives the authorization code + PKCE flow and stores the resulting token.

    Supports:
    - Authorization URL generation (``start_flow``)
    - Code exchange from explicit code/state or a redirect URL
    - Explicit token refresh (never automatic)
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
        self.state = FlowState.IDLE

    # -- verifier -----------------------------------------------------------

    def ensure_code_verifier(self) -> str:
        """Return the session's PKCE verifier, generating and persisting one if needed."""
        if not self.session.code_verifier:
            self.session.code_verifier = generate_code_verifier()
            self.session.save()
        return self.session.code_verifier

    # -- start --------------------------------------------------------------

    def start_flow(
        self,
        namespace: Namespace,
        federation: Federation,
        return_state: dict[str, str] | None = None,
        scope: str | None = None,
    ) -> AuthorizationRequest:
        """Build the authorization URL for *namespace*.

        Args:
            namespace: Namespace whose issuer will authorize the user.
            federation: Federation the namespace belongs to.
            return_state: Extra key/value pairs round-tripped through ``state``
                (e.g. the object URL to resume).
            scope: Requested scope; defaults to ``settings.authorization_scope``.

        Returns:
            AuthorizationRequest with the URL to send the user to.
        """
        oidc = namespace.oidc_configuration
        if oidc is None or not oidc.authorization_endpoint:
            raise FlowConfigurationError(
                f"Issuer for namespace {namespace.prefix} has no authorization endpoint"
            )
        if not namespace.client_id:
            raise FlowConfigurationError(
                f"Namespace {namespace.prefix} has no registered client id"
            )

        code_verifier = self.ensure_code_verifier()
        state = build_oauth_state(namespace.prefix, federation.hostname, return_state)
        params = {
            "client_id": namespace.client_id,
            "response_type": "code",
            "scope": scope or self.settings.authorization_scope,
            "redirect_uri": self.settings.redirect_uri,
            "code_challenge": generate_code_challenge(code_verifier),
            "code_challenge_method": "S256",
            "state": state,
            "action": "",
        }
        separator = "&" if "?" in oidc.authorization_endpoint else "?"
        url = f"{oidc.authorization_endpoint}{separator}{urllib.parse.urlencode(params)}"

        self.state = FlowState.REDIRECTING
        logger.info(
            "Starting authorization for namespace %s on %s", namespace.prefix, federation.hostname
        )
        return AuthorizationRequest(url=url, state=state, code_verifier=code_verifier)

    # -- complete -----------------------------------------------------------

    async def complete_from_redirect(self, redirect_url: str) -> FlowResult:
        """Complete the flow from the URL the issuer redirected the browser to."""
        query = urllib.parse.parse_qs(urllib.parse.urlparse(redirect_url).query)
        error = (query.get("error") or [""])[0]
        if error:
            description = (query.get("error_description") or [""])[0]
            self.state = FlowState.EXCHANGE_FAILED
            raise TokenExchangeError(f"Authorization failed: {error} {description}".strip())

        code = (query.get("code") or query.get("CODE") or [""])[0]
        state = (query.get("state") or [""])[0]
        return await self.complete_flow(code, state)

    async def complete_flow(
        self,
        authorization_code: str,
        state: str,
        code_verifier: str | None = None,
    ) -> FlowResult:
        """Exchange *authorization_code* for a token and store it on the namespace.

        The namespace is left untouched if anything fails.
        """
        if not authorization_code:
            self.state = FlowState.EXCHANGE_FAILED
            raise TokenExchangeError("No authorization code to exchange")
        self.state = FlowState.CODE_PRESENT

        params = parse_oauth_state(state)
        hostname = params.pop("federation", "")
        prefix = params.pop("namespace", "")
        if not hostname or not prefix:
            self.state = FlowState.EXCHANGE_FAILED
            raise TokenExchangeError(f"State does not name a namespace and federation: {state!r}")

        namespace = self.session.get_namespace(hostname, prefix)
        if namespace is None:
            self.state = FlowState.EXCHANGE_FAILED
            raise TokenExchangeError(
                f"Cannot exchange code: namespace metadata not found for {prefix} on {hostname}"
            )

        verifier = code_verifier or self.session.code_verifier
        if not verifier:
            self.state = FlowState.EXCHANGE_FAILED
            raise TokenExchangeError("Cannot exchange code: no PKCE code verifier in session")

        try:
            token_endpoint, client_id, client_secret = self._client_credentials(namespace)
            self.state = FlowState.EXCHANGING
            token = await self._request_token(
                token_endpoint,
                {
                    "grant_type": "authorization_code",
                    "code": authorization_code,
                    "redirect_uri": self.settings.redirect_uri,
                    "code_verifier": verifier,
                    "client_id": client_id,
                    "client_secret": client_secret,
                },
            )
        except TokenExchangeError:
            self.state = FlowState.EXCHANGE_FAILED
            raise

        namespace.token = token
        self.session.save()
        self.state = FlowState.TOKEN_ACQUIRED
        logger.info("Obtained token for namespace %s on %s", prefix, hostname)
        return FlowResult(
            federation_hostname=hostname,
            namespace_prefix=prefix,
            token=token,
            state=params,
        )

    # -- refresh ------------------------------------------------------------

    async def refresh(self, namespace: Namespace) -> Token:
        """Exchange the namespace's refresh token for a new access token."""
        current = namespace.token
        if current is None or not current.refresh_token:
            raise TokenExchangeError(f"No refresh token for namespace {namespace.prefix}")

        token_endpoint, client_id, client_secret = self._client_credentials(namespace)
        token = await self._request_token(
            token_endpoint,
            {
                "grant_type": "refresh_token",
                "refresh_token": current.refresh_token,
                "client_id": client_id,
                "client_secret": client_secret,
            },
            previous=current,
        )
        namespace.token = token
        self.session.save()
        logger.info("Refreshed token for namespace %s", namespace.prefix)
        return token

    # -- helpers ------------------------------------------------------------

    @staticmethod
    def _client_credentials(namespace: Namespace) -> tuple[str, str, str]:
        oidc = namespace.oidc_configuration
        if oidc is None or not oidc.token_endpoint:
            raise TokenExchangeError(
                f"Cannot exchange code: missing token endpoint for namespace {namespace.prefix}"
            )
        if not namespace.client_id or not namespace.client_secret:
            raise TokenExchangeError(
                f"Cannot exchange code: missing client credentials for namespace {namespace.prefix}"
            )
        return oidc.token_endpoint, namespace.client_id, namespace.client_secret

    async def _request_token(
        self,
        token_endpoint: str,
        form: dict[str, str],
        previous: Token | None = None,
    ) -> Token:
        try:
            resp = await self.http.post(
                token_endpoint,
                data=form,
                headers={"Accept": "application/json"},
            )
        except httpx.HTTPError as e:
            raise TokenExchangeError(f"Token endpoint unreachable: {e}") from e

        if not resp.is_success:
            raise TokenExchangeError(
                f"Failed to get token: {resp.status_code} {resp.reason_phrase} ({token_endpoint})"
            )
        try:
            payload = resp.json()
        except ValueError as e:
            raise TokenExchangeError(f"Token endpoint returned invalid JSON: {e}") from e
        if not isinstance(payload, dict):
            raise TokenExchangeError("Token endpoint returned an unexpected document")

        return token_from_response(payload, now=time.time(), previous=previous)
