"""FastAPI service exposing CleanShare analyze/redact workflows.

* ``POST /analyze`` uploads a document and returns its detections.
* ``POST /redact`` uploads the same document with the detections and actions
  to apply, and streams back the redacted file. The report travels in the
  ``X-CleanShare-Report`` header.
* ``/health``, ``/livez`` and ``/readyz`` serve probes.

Run locally::

    uvicorn cleanshare.api:app --host 0.0.0.0 --port 8000

Or via console script::

    cleanshare-api --host 0.0.0.0 --port 8000
"""

from __future__ import annotations

from typing import List, Literal, Optional, Type, TypeVar

import orjson
from fastapi import (
    APIRouter,
    Depends,
    FastAPI,
    File,
    Form,
    HTTPException,
    Response,
    Security,
    UploadFile,
    status,
)
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from pydantic import BaseModel, Field, ValidationError

from . import __version__
from .errors import FatalIOError
from .health import run_readiness_checks
from .logging import get_logger
from .pipeline import (
    AnalyzeOptions,
    ApplyOptions,
    DocumentInput,
    analyze_document,
    apply_redactions,
    default_actions,
)
from .presets import load_preset
from .settings import ServiceSettings, get_settings
from .types import AnalyzeResult, RedactionAction, RedactionReport, RedactionStyle

settings: ServiceSettings = get_settings()
logger = get_logger(__name__)

auth_scheme = HTTPBearer(auto_error=False)

M = TypeVar("M", bound=BaseModel)


class RedactRequest(BaseModel):
    """JSON body of the ``payload`` form field of ``/redact``.

    When ``actions`` is empty one action per detection is generated from
    ``style`` or, failing that, the preset's per-kind styles.
    """

    actions: List[RedactionAction] = Field(default_factory=list)
    options: ApplyOptions = Field(default_factory=ApplyOptions)
    preset_id: Optional[str] = None
    style: Optional[RedactionStyle] = None


class HealthResponse(BaseModel):
    status: Literal["ok"] = "ok"
    version: str = __version__


class ReadinessCheckModel(BaseModel):
    name: str
    status: Literal["pass", "warn", "fail"]
    detail: Optional[str] = None
    required: bool


class ReadyResponse(BaseModel):
    ready: bool
    checks: List[ReadinessCheckModel]


app = FastAPI(
    title="CleanShare API",
    description="Detect and redact sensitive tokens in images and PDFs.",
    version=__version__,
    openapi_tags=[
        {"name": "health", "description": "Service health and readiness probes."},
        {"name": "redaction", "description": "Analyze documents and apply redactions."},
    ],
)

if settings.cors_origins:
    allow_origins = ["*"] if "*" in settings.cors_origins else settings.cors_origins
    app.add_middleware(
        CORSMiddleware,
        allow_origins=allow_origins,
        allow_credentials=False,
        allow_methods=["*"],
        allow_headers=["*"],
        expose_headers=["X-CleanShare-Report"],
    )

health_router = APIRouter(tags=["health"])
redaction_router = APIRouter(tags=["redaction"])


def require_auth(
    credentials: HTTPAuthorizationCredentials = Security(auth_scheme),
) -> None:
    """Bearer-token protection when ``CLEANSHARE_API_TOKEN`` is set."""

    token = settings.api_token
    if token is None:
        return
    if credentials is None or credentials.credentials != token:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Unauthorized",
        )


def _parse_form(raw: Optional[str], model: Type[M]) -> M:
    text = (raw or "").strip()
    if not text or text.lower() in {"null", "none", "string"}:
        return model()
    try:
        return model.model_validate_json(text)
    except ValidationError as exc:
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail=orjson.loads(exc.json()),
        ) from exc


async def _read_document(file: UploadFile) -> DocumentInput:
    data = await file.read()
    if len(data) > settings.max_upload_mb * 1024 * 1024:
        raise HTTPException(
            status_code=status.HTTP_413_REQUEST_ENTITY_TOO_LARGE,
            detail=f"Upload exceeds {settings.max_upload_mb} MB",
        )
    try:
        return DocumentInput.from_bytes(data, name=file.filename or "document")
    except FatalIOError as exc:
        raise HTTPException(
            status_code=status.HTTP_415_UNSUPPORTED_MEDIA_TYPE, detail=str(exc)
        ) from exc


@health_router.get("/health", response_model=HealthResponse)
def health() -> HealthResponse:
    return HealthResponse()


@health_router.get("/livez", response_model=HealthResponse)
def livez() -> HealthResponse:
    return HealthResponse(status="ok")


@health_router.get("/readyz", response_model=ReadyResponse)
def readyz():
    checks = run_readiness_checks(settings)
    payload = [
        ReadinessCheckModel(
            name=check.name,
            status=check.status,
            detail=check.detail,
            required=check.required,
        )
        for check in checks
    ]
    ready = not any(c.required and c.status == "fail" for c in checks)
    response = ReadyResponse(ready=ready, checks=payload)
    status_code = status.HTTP_200_OK if ready else status.HTTP_503_SERVICE_UNAVAILABLE
    return JSONResponse(status_code=status_code, content=response.model_dump())


@redaction_router.post("/analyze", response_model=AnalyzeResult)
async def analyze_upload(
    file: UploadFile = File(...),
    options: Optional[str] = Form(
        None,
        description="JSON-encoded analyze options",
        examples=['{"preset_id": "finance"}'],
    ),
    auth: None = Depends(require_auth),
) -> AnalyzeResult:
    parsed = _parse_form(options, AnalyzeOptions)
    if parsed.preset_id is None and settings.default_preset:
        parsed.preset_id = settings.default_preset
    doc = await _read_document(file)
    try:
        return await analyze_document(doc, parsed)
    except FatalIOError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc


@redaction_router.post("/redact")
async def redact_upload(
    file: UploadFile = File(...),
    payload: Optional[str] = Form(
        None,
        description="JSON-encoded actions, detections and output options",
    ),
    auth: None = Depends(require_auth),
) -> Response:
    request = _parse_form(payload, RedactRequest)
    doc = await _read_document(file)
    actions = request.actions or default_actions(
        request.options.detections, load_preset(request.preset_id), request.style
    )
    try:
        result = await apply_redactions(doc, actions, request.options)
    except FatalIOError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc
    report: RedactionReport = result.report
    header = orjson.dumps({"report": report.model_dump(), "errors": result.errors}).decode()
    return Response(
        content=result.data,
        media_type=result.media_type,
        headers={
            "Content-Disposition": f'attachment; filename="{result.filename}"',
            "X-CleanShare-Report": header,
        },
    )


app.include_router(health_router)
app.include_router(redaction_router)


def run(
    host: Optional[str] = None,
    port: Optional[int] = None,
    reload: bool = False,
    workers: int = 1,
    log_level: str = "info",
) -> None:
    """Launch the API server via ``uvicorn``."""

    import uvicorn

    uvicorn.run(
        "cleanshare.api:app",
        host=host or settings.api_host,
        port=port or settings.api_port,
        reload=reload,
        workers=workers,
        log_level=log_level,
    )
