from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Request

router = APIRouter(tags=["internal"])


@router.get("/health")
async def health(request: Request) -> dict[str, Any]:
    return {
        "status": "ok",
        "providers": [pid.value for pid in request.app.state.provider_router.available()],
        "auth": request.app.state.gate.auth_mode.name,
    }
