# Callback server - local FastAPI endpoint the issuer redirects the browser to.
# Created: 2026-10-16
#
# Runs only for the duration of one login: the server task is stopped as soon
# as a callback has been handled (successfully or not).

from __future__ import annotations

import asyncio
import html
import logging

import uvicorn
from fastapi import FastAPI, Query
from fastapi.responses import HTMLResponse

from pelicanclient.client import PelicanClient
from pelicanclient.errors import PelicanError
from pelicanclient.models import FlowResult

logger = logging.getLogger(__name__)


class CallbackOutcome:
    """Result slot shared between the route and the waiting coroutine."""

    def __init__(self) -> None:
        self.done = asyncio.Event()
        self.result: FlowResult | None = None
        self.error: str | None = None

    def succeed(self, result: FlowResult) -> None:
        self.result = result
        self.done.set()

    def fail(self, error: str) -> None:
        self.error = error
        self.done.set()


def _page(title: str, body: str) -> HTMLResponse:
    return HTMLResponse(
        f"<h2>{html.escape(title)}</h2><p>{html.escape(body)}</p>"
        "<p>You can close this window.</p>"
    )


def create_callback_app(client: PelicanClient, outcome: CallbackOutcome) -> FastAPI:
    app = FastAPI(title="Pelican Client Callback", docs_url=None, redoc_url=None)

    @app.get("/callback")
    async def callback(
        code: str = Query(""),
        state: str = Query(""),
        error: str = Query(""),
        error_description: str = Query(""),
    ):
        """Exchange the authorization code for a token."""
        if error:
            message = f"{error} {error_description}".strip()
            outcome.fail(message)
            return _page("Authorization Error", message)

        if not code:
            outcome.fail("Missing authorization code")
            return _page("Authorization Error", "Missing authorization code")

        try:
            result = await client.complete_flow(code, state)
        except PelicanError as e:
            logger.error("Callback exchange failed: %s", e)
            outcome.fail(str(e))
            return _page("Authorization Error", str(e))

        outcome.succeed(result)
        return _page(
            "Authorization Successful",
            f"Token saved for {result.namespace_prefix} on {result.federation_hostname}.",
        )

    return app


async def run_callback_server(
    client: PelicanClient,
    host: str | None = None,
    port: int | None = None,
    timeout: float | None = None,
) -> CallbackOutcome:
    """Serve ``/callback`` until one redirect has been handled (or *timeout* passes).

    The port is not negotiated: it must match the redirect URI registered
    with the issuer.
    """
    outcome = CallbackOutcome()
    app = create_callback_app(client, outcome)

    config = uvicorn.Config(
        app,
        host=host or client.settings.callback_host,
        port=port or client.settings.callback_port,
        log_level="warning",
    )
    server = uvicorn.Server(config)
    server_task = asyncio.create_task(server.serve())
    logger.info("Waiting for authorization callback on %s:%s", config.host, config.port)

    try:
        await asyncio.wait_for(outcome.done.wait(), timeout)
        # Let the response reach the browser before shutting down
        await asyncio.sleep(0.5)
    except asyncio.TimeoutError:
        outcome.fail("Timed out waiting for the authorization callback")
    finally:
        server.should_exit = True
        await server_task

    return outcome
