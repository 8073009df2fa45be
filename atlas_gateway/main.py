from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import Mapping

import httpx
from fastapi import FastAPI

from atlas_gateway.config import Settings, get_settings
from atlas_gateway.core.gate import AuthMode, FirebaseTokenVerifier, RequestGate
from atlas_gateway.core.router import ProviderRouter
from atlas_gateway.core.types import ProviderId
from atlas_gateway.dependencies import register_exception_handlers
from atlas_gateway.logging_config import configure_logging
from atlas_gateway.middleware import CorrelationMiddleware
from atlas_gateway.providers.base import ProviderClient
from atlas_gateway.providers.registry import build_candidates, build_clients, build_priority
from atlas_gateway.routers import generate, health

logger = logging.getLogger(__name__)


def resolve_auth_mode(settings: Settings) -> AuthMode:
    project_id = settings.resolve_project_id()
    if project_id:
        logger.info("Identity verification enabled for project %s", project_id)
        return AuthMode.verified(FirebaseTokenVerifier(project_id))

    logger.warning(
        "No identity credentials found at %s; all callers are treated as anonymous",
        settings.credentials_file,
    )
    return AuthMode.anonymous()


def create_app(
    settings: Settings | None = None,
    *,
    auth_mode: AuthMode | None = None,
    clients: Mapping[ProviderId, ProviderClient] | None = None,
    http_client: httpx.AsyncClient | None = None,
) -> FastAPI:
    """Build the application.

    Injected ``clients`` or ``http_client`` are wired immediately and belong
    to the caller. Otherwise the lifespan opens the shared HTTP client,
    builds the provider clients on it and closes it on shutdown.
    """

    settings = settings or get_settings()
    candidates = build_candidates(settings)
    priority = build_priority(settings)

    def install_router(app: FastAPI, lookup: Mapping[ProviderId, ProviderClient]) -> None:
        app.state.provider_router = ProviderRouter(
            candidates=candidates,
            clients=lookup,
            priority=priority,
            deadline=settings.deadline_seconds,
        )

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        configure_logging(settings.log_level.upper(), json_format=settings.log_json)
        if hasattr(app.state, "provider_router"):
            yield
            return

        async with httpx.AsyncClient() as owned_client:
            app.state.http_client = owned_client
            install_router(app, build_clients(settings, candidates, owned_client))
            yield

    app = FastAPI(
        title="atlas-gateway",
        version="0.1.0",
        docs_url="/docs",
        redoc_url=None,
        lifespan=lifespan,
    )

    app.state.settings = settings
    app.state.gate = RequestGate(auth_mode or resolve_auth_mode(settings))
    if clients is None and http_client is not None:
        clients = build_clients(settings, candidates, http_client)
    if clients is not None:
        install_router(app, clients)

    app.add_middleware(CorrelationMiddleware)
    register_exception_handlers(app)

    app.include_router(health.router)
    app.include_router(generate.router)

    return app


app = create_app()
