"""Evaluation proxy endpoints.

Thin forwarding layer over the evaluation backend. Every endpoint requires
``X-API-KEY`` and mirrors the upstream status code and body.
"""

from typing import Any, Optional

import structlog
from fastapi import APIRouter, Body, Depends, File, Form, UploadFile
from fastapi.responses import JSONResponse

from konsole.api.dependencies import require_api_key
from konsole.config import Settings, get_settings
from konsole.services.backend_proxy import BackendProxy, UpstreamResponse, get_backend_proxy
from konsole.services.fixtures import load_evaluation_fixture

logger = structlog.get_logger(__name__)

router = APIRouter(prefix="/api/evaluations", tags=["Evaluations"])


def _mirror(upstream: UpstreamResponse) -> JSONResponse:
    return JSONResponse(content=upstream.body, status_code=upstream.status_code)


# ---------------------------------------------------------------------------
# GET /api/evaluations
# ---------------------------------------------------------------------------


@router.get("")
async def list_evaluations(
    api_key: str = Depends(require_api_key),
    proxy: BackendProxy = Depends(get_backend_proxy),
) -> JSONResponse:
    """List evaluation jobs (bare array or ``{data: [...]}``, as upstream sends it)."""
    return _mirror(await proxy.forward("GET", "evaluations", api_key))


# ---------------------------------------------------------------------------
# POST /api/evaluations
# ---------------------------------------------------------------------------


@router.post("")
async def create_evaluation(
    payload: dict[str, Any] = Body(...),
    api_key: str = Depends(require_api_key),
    proxy: BackendProxy = Depends(get_backend_proxy),
) -> JSONResponse:
    """Start an evaluation run."""
    logger.info(
        "evaluation_create_forward",
        dataset_id=payload.get("dataset_id"),
        experiment_name=payload.get("experiment_name"),
    )
    return _mirror(await proxy.forward("POST", "evaluations", api_key, json_body=payload))


# ---------------------------------------------------------------------------
# POST /api/evaluations/datasets
# ---------------------------------------------------------------------------


@router.post("/datasets")
async def upload_dataset(
    file: UploadFile = File(...),
    dataset_name: str = Form(...),
    description: Optional[str] = Form(default=None),
    duplication_factor: Optional[str] = Form(default=None),
    api_key: str = Depends(require_api_key),
    proxy: BackendProxy = Depends(get_backend_proxy),
) -> JSONResponse:
    """Upload a QnA dataset as multipart form data."""
    content = await file.read()

    form: dict[str, str] = {"dataset_name": dataset_name}
    if description:
        form["description"] = description
    if duplication_factor:
        form["duplication_factor"] = duplication_factor

    logger.info(
        "dataset_upload_forward",
        dataset_name=dataset_name,
        file_name=file.filename,
        size=len(content),
    )
    upstream = await proxy.forward(
        "POST",
        "evaluations/datasets",
        api_key,
        data=form,
        files={
            "file": (
                file.filename or "dataset.csv",
                content,
                file.content_type or "text/csv",
            )
        },
    )
    return _mirror(upstream)


# ---------------------------------------------------------------------------
# GET /api/evaluations/{evaluation_id}
# ---------------------------------------------------------------------------


@router.get("/{evaluation_id}")
async def get_evaluation(
    evaluation_id: str,
    api_key: str = Depends(require_api_key),
    proxy: BackendProxy = Depends(get_backend_proxy),
    settings: Settings = Depends(get_settings),
) -> JSONResponse:
    """Fetch one evaluation job, or a canned fixture in mock mode."""
    if settings.use_mock_data:
        data = load_evaluation_fixture(evaluation_id, settings.mock_data_dir)
        return JSONResponse(content=data, status_code=200)

    return _mirror(await proxy.forward("GET", f"evaluations/{evaluation_id}", api_key))
