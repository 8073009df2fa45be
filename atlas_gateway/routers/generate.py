from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse

from atlas_gateway.core.gate import RequestGate
from atlas_gateway.core.router import ProviderRouter
from atlas_gateway.core.types import Identity
from atlas_gateway.dependencies import (
    authenticate,
    get_gate,
    get_provider_router,
    read_json_body,
)
from atlas_gateway.schemas import ChatRequest, ScriptRequest, SimpleRequest

router = APIRouter(prefix="/generate", tags=["generate"])


@router.post("/chat")
async def generate_chat(
    request: Request,
    _identity: Identity = Depends(authenticate),
    gate: RequestGate = Depends(get_gate),
    provider_router: ProviderRouter = Depends(get_provider_router),
):
    payload = gate.validate(await read_json_body(request), ChatRequest)
    reply = await provider_router.route_chat(payload)
    return JSONResponse(content=reply.payload)


@router.post("/simple")
async def generate_simple(
    request: Request,
    _identity: Identity = Depends(authenticate),
    gate: RequestGate = Depends(get_gate),
    provider_router: ProviderRouter = Depends(get_provider_router),
) -> dict[str, Any]:
    payload = gate.validate(await read_json_body(request), SimpleRequest)
    reply = await provider_router.route_simple(payload)
    return {
        "choices": [
            {
                "index": 0,
                "message": {"role": "assistant", "content": reply.text},
                "finish_reason": "stop",
            }
        ],
        "provider": reply.provider.value,
    }


@router.post("/script")
async def generate_script(
    request: Request,
    _identity: Identity = Depends(authenticate),
    gate: RequestGate = Depends(get_gate),
    provider_router: ProviderRouter = Depends(get_provider_router),
) -> dict[str, Any]:
    task = gate.validate(await read_json_body(request), ScriptRequest)
    result = await provider_router.route_script(task)
    return {
        "script": [turn.model_dump() for turn in result.turns],
        "provider": result.provider.value,
    }
