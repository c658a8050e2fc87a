"""Usage, client config and credential endpoints."""

from fastapi import APIRouter, Depends, Request
from fastapi.responses import Response

from worldwiki.api.dependencies import get_gateway
from worldwiki.api.gateway import GenerationGateway

from .generate import read_json, to_response

router = APIRouter()


@router.get("/api/usage")
async def usage(request: Request, gateway: GenerationGateway = Depends(get_gateway)) -> Response:
    return to_response(await gateway.usage(request.headers))


@router.get("/api/config")
async def client_config(request: Request, gateway: GenerationGateway = Depends(get_gateway)) -> Response:
    return to_response(await gateway.config(request.headers))


@router.api_route("/api/store-key", methods=["GET", "POST", "DELETE"])
async def store_key(request: Request, gateway: GenerationGateway = Depends(get_gateway)) -> Response:
    payload = await read_json(request) if request.method == "POST" else None
    client_host = request.client.host if request.client else None
    return to_response(await gateway.store_key(request.method, payload, request.headers, client_host))
