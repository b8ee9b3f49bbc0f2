# OAuth2 authorization code flow with PKCE (RFC 7636) for namespace issuers.
# Created: 2026-10-15

from pelicanclient.security.flow import AuthorizationFlowController, FlowState
from pelicanclient.security.pkce import generate_code_challenge, generate_code_verifier

__all__ = [
    "AuthorizationFlowController",
    "FlowState",
    "generate_code_challenge",
    "generate_code_verifier",
]
