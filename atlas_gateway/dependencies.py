from __future__ import annotations

import json
import logging
from typing import Any

from fastapi import Depends, FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from atlas_gateway.core.errors import GatewayError, PayloadValidationError
from atlas_gateway.core.gate import RequestGate
from atlas_gateway.core.router import ProviderRouter
from atlas_gateway.core.types import Identity

logger = logging.getLogger(__name__)

SCRIPT_PATH = "/generate/script"


def get_gate(request: Request) -> RequestGate:
    return request.app.state.gate


def get_provider_router(request: Request) -> ProviderRouter:
    return request.app.state.provider_router


async def authenticate(
    request: Request,
    gate: RequestGate = Depends(get_gate),
) -> Identity:
    return await gate.authenticate(request.headers.get("Authorization"))


async def read_json_body(request: Request) -> Any:
    body = await request.body()
    try:
        return json.loads(body) if body else None
    except ValueError as exc:
        raise PayloadValidationError() from exc


def error_content(path: str, exc: GatewayError) -> dict[str, str]:
    if path.startswith(SCRIPT_PATH):
        error = "Generation Failed" if exc.status_code >= 500 else exc.message
        return {"error": error, "message": exc.message}
    return {"error": exc.message}


def register_exception_handlers(app: FastAPI) -> None:
    @app.exception_handler(GatewayError)
    async def handle_gateway_error(
        request: Request,
        exc: GatewayError,
    ) -> JSONResponse:
        if exc.status_code >= 500:
            logger.error(
                "%s failed [%s]: %s",
                request.url.path,
                exc.code,
                exc.message,
            )
        return JSONResponse(
            status_code=exc.status_code,
            content=error_content(request.url.path, exc),
        )

    @app.exception_handler(RequestValidationError)
    async def handle_validation_error(
        request: Request,
        _exc: RequestValidationError,
    ) -> JSONResponse:
        compat_error = PayloadValidationError()
        return JSONResponse(
            status_code=compat_error.status_code,
            content=error_content(request.url.path, compat_error),
        )

    @app.exception_handler(Exception)
    async def handle_unexpected_error(
        request: Request,
        exc: Exception,
    ) -> JSONResponse:
        logger.error("%s failed unexpectedly", request.url.path, exc_info=exc)
        internal_error = GatewayError(
            status_code=500,
            message="Internal Server Error",
            code="internal_error",
        )
        return JSONResponse(
            status_code=internal_error.status_code,
            content=error_content(request.url.path, internal_error),
        )
