import logging
from typing import Optional

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse

from ..config import AVAILABLE_MODELS, get_config
from ..proxy import GENERIC_FAILURE, ChatProxy

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/chat", tags=["chat"])

_proxy: Optional[ChatProxy] = None


def get_proxy() -> ChatProxy:
    global _proxy
    if _proxy is None:
        _proxy = ChatProxy(get_config())
    return _proxy


async def reset_proxy() -> None:
    global _proxy
    if _proxy is not None:
        await _proxy.aclose()
    _proxy = None


@router.post("")
async def chat(request: Request, proxy: ChatProxy = Depends(get_proxy)):
    # Body is validated by the proxy so malformed input still gets {"error": ...}
    try:
        body = await request.json()
    except ValueError as e:
        logger.warning("Unreadable chat request body: %s", e)
        return JSONResponse(content={"error": GENERIC_FAILURE}, status_code=500)
    result = await proxy.forward(body)
    return JSONResponse(content=result.body(), status_code=result.status_code)


@router.get("/models")
async def list_models():
    return {
        "models": [m.model_dump() for m in AVAILABLE_MODELS],
        "default": get_config().default_model,
    }
