"""Assistant configuration proxy endpoint."""

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse

from konsole.api.dependencies import require_api_key
from konsole.services.backend_proxy import BackendProxy, get_backend_proxy

router = APIRouter(prefix="/api/assistant", tags=["Assistant"])


@router.get("/{assistant_id}")
async def get_assistant(
    assistant_id: str,
    api_key: str = Depends(require_api_key),
    proxy: BackendProxy = Depends(get_backend_proxy),
) -> JSONResponse:
    """Fetch assistant configuration from the backend."""
    upstream = await proxy.forward("GET", f"assistant/{assistant_id}", api_key)
    return JSONResponse(content=upstream.body, status_code=upstream.status_code)
