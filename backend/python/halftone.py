# halftone.py
# Colour halftone service for DTF films (port 8006).
# To run: uvicorn halftone:app --host 0.0.0.0 --port 8006

import secrets
from dataclasses import asdict
from enum import Enum
from typing import Optional

import uvicorn
from botocore.exceptions import BotoCoreError, ClientError
from dotenv import load_dotenv
from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field

from halftone_config import SERVICE_NAME, SERVICE_VERSION, HalftoneSettings, configure_logging
from halftone_errors import BusyError, HalftoneError, InternalRenderError, TooLargeError
from halftone_pipeline import HalftonePipeline
from halftone_types import AlphaMode, DotShape, HalftoneParams
from image_codec import decode_base64, encode_base64_png
from object_store import ObjectStore, output_key, upload_key

load_dotenv()

# -----------------------------------------------------------------------------
# Request Models
# -----------------------------------------------------------------------------
class ContentType(str, Enum):
    PNG = "image/png"
    JPEG = "image/jpeg"
    WEBP = "image/webp"

class HalftoneOptions(BaseModel):
    """Screening knobs shared by every render endpoint."""
    cell_size: int = Field(12, ge=1, le=100)
    max_width: int = Field(2000, ge=256, le=4000)
    dot_shape: DotShape = DotShape.CIRCLE
    dot_gain: float = Field(1.25, ge=0.6, le=2.0)
    min_dot: float = Field(0.18, ge=0.0, le=0.6)
    alpha_threshold: int = Field(48, ge=0, le=255)
    min_coverage: float = Field(0.15, ge=0.0, le=1.0)
    alpha_mode: AlphaMode = AlphaMode.BINARY
    crop_to_content: bool = False
    restore_size: bool = False
    scale_by_coverage: bool = True

    def to_params(self) -> HalftoneParams:
        return HalftoneParams(**self.model_dump(include=set(HalftoneOptions.model_fields)))

class RenderRequest(HalftoneOptions):
    image_b64: str

class ProcessRequest(HalftoneOptions):
    key: str = Field(..., min_length=1)

class UploadUrlRequest(BaseModel):
    filename: str = Field(..., min_length=1)
    content_type: ContentType
    content_length: int = Field(..., gt=0)

# botocore raises ClientError for service replies and BotoCoreError for
# transport failures (connection refused, timeouts).
STORAGE_ERRORS = (ClientError, BotoCoreError)

# -----------------------------------------------------------------------------
# Helpers
# -----------------------------------------------------------------------------
def params_payload(params: HalftoneParams) -> dict:
    payload = asdict(params)
    payload["dot_shape"] = params.dot_shape.value
    payload["alpha_mode"] = params.alpha_mode.value
    return payload


def error_response(err: HalftoneError) -> JSONResponse:
    headers = {"Retry-After": "2"} if isinstance(err, BusyError) else None
    return JSONResponse(status_code=err.status_code, content=err.to_dict(), headers=headers)

# -----------------------------------------------------------------------------
# App Factory
# -----------------------------------------------------------------------------
def create_app(
    settings: Optional[HalftoneSettings] = None,
    store: Optional[ObjectStore] = None,
    pipeline: Optional[HalftonePipeline] = None,
) -> FastAPI:
    settings = settings or HalftoneSettings.from_env()
    log = configure_logging(settings.log_level)

    app = FastAPI(title=SERVICE_NAME, version=SERVICE_VERSION)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=list(settings.allowed_origins),
        allow_methods=["GET", "POST", "OPTIONS"],
        allow_headers=["Content-Type"],
    )

    app.state.settings = settings
    app.state.pipeline = pipeline or HalftonePipeline(settings)
    app.state.store = store

    def rid(request: Request) -> str:
        return getattr(request.state, "rid", "-")

    def get_store() -> ObjectStore:
        if app.state.store is None:
            app.state.store = ObjectStore.from_settings(settings)
        return app.state.store

    @app.middleware("http")
    async def assign_request_id(request: Request, call_next):
        request.state.rid = secrets.token_hex(8)
        response = await call_next(request)
        response.headers["X-Request-ID"] = request.state.rid
        return response

    @app.exception_handler(HalftoneError)
    async def halftone_error_handler(request: Request, exc: HalftoneError):
        if exc.status_code >= 500:
            log.error("[%s] %s: %s", rid(request), exc.code, exc.message)
        else:
            log.warning("[%s] %s: %s %s", rid(request), exc.code, exc.message, exc.details or "")
        return error_response(exc)

    @app.exception_handler(RequestValidationError)
    async def validation_error_handler(request: Request, exc: RequestValidationError):
        log.warning("[%s] invalid request: %s", rid(request), exc.errors())
        return JSONResponse(
            status_code=400,
            content={
                "error": {
                    "code": "BAD_REQUEST",
                    "message": "Invalid request",
                    "details": {"issues": jsonable_encoder(exc.errors())},
                }
            },
        )

    def log_params(request: Request, params: HalftoneParams, **extra) -> None:
        log.info("[%s] PROCESS PARAMS %s", rid(request), {**extra, **params_payload(params)})
        if params.max_width > settings.soft_max_width:
            log.warning(
                "[%s] HIGH MEMORY REQUEST (soft warning) max_width=%d cell_size=%d shape=%s",
                rid(request), params.max_width, params.cell_size, params.dot_shape.value,
            )

    # -------------------------------------------------------------------------
    # Routes
    # -------------------------------------------------------------------------
    @app.get("/health")
    def health_check():
        """Health check endpoint."""
        return {
            "status": "ok",
            "service": SERVICE_NAME,
            "active_jobs": app.state.pipeline.gate.active,
        }

    @app.get("/version")
    def version():
        return {
            "ok": True,
            "service": SERVICE_NAME,
            "version": SERVICE_VERSION,
            "build_id": settings.build_id,
            "alpha_mask_mode": "precomputed-mask",
        }

    @app.post("/v1/halftone/upload-url")
    def create_upload_url(body: UploadUrlRequest, request: Request):
        """Issue a presigned PUT URL the client uploads its artwork to."""
        if body.content_length > settings.max_upload_bytes:
            raise TooLargeError(
                f"File exceeds max upload size ({settings.max_upload_bytes} bytes)",
                {"bytes": body.content_length, "max_bytes": settings.max_upload_bytes},
            )
        store = get_store()
        image_id, key = upload_key(body.filename)
        try:
            upload_url = store.presign_put(key, body.content_type.value)
        except STORAGE_ERRORS as e:
            log.exception("[%s] upload-url error", rid(request))
            raise InternalRenderError("Failed to create upload URL") from e

        log.info("[%s] ISSUED UPLOAD URL key=%s type=%s length=%d",
                 rid(request), key, body.content_type.value, body.content_length)
        return {
            "image_id": image_id,
            "key": key,
            "upload_url": upload_url,
            "headers": {"Content-Type": body.content_type.value},
            "max_bytes": settings.max_upload_bytes,
        }

    @app.post("/v1/halftone/process")
    def process_halftone(body: ProcessRequest, request: Request):
        """Halftone an uploaded object and return a download URL for the PNG."""
        pipeline = app.state.pipeline
        params = pipeline.effective_params(body.to_params())
        log_params(request, params, key=body.key, build_id=settings.build_id)

        store = get_store()
        # One slot spans fetch, render and store
        with pipeline.gate.slot():
            try:
                size = store.head_size(body.key)
                if size > settings.max_upload_bytes:
                    raise TooLargeError(
                        f"File exceeds max upload size ({settings.max_upload_bytes} bytes)",
                        {"bytes": size, "max_bytes": settings.max_upload_bytes},
                    )
                data = store.get_bytes(body.key)
            except STORAGE_ERRORS as e:
                log.exception("[%s] failed to fetch %s", rid(request), body.key)
                raise InternalRenderError() from e

            result = pipeline.process(data, params)

            out_key = output_key()
            try:
                store.put_png(out_key, result.png)
                download_url = store.presign_get(out_key)
            except STORAGE_ERRORS as e:
                log.exception("[%s] failed to store %s", rid(request), out_key)
                raise InternalRenderError() from e

        return {
            "ok": True,
            "build_id": settings.build_id,
            "input_key": body.key,
            "output_key": out_key,
            "format": "png",
            "transparent": True,
            "params": params_payload(params),
            "perf": result.perf(),
            "download_url": download_url,
        }

    @app.post("/v1/halftone/render")
    def render_halftone(body: RenderRequest, request: Request):
        """Halftone a base64 image and return the PNG inline."""
        pipeline = app.state.pipeline
        params = pipeline.effective_params(body.to_params())
        log_params(request, params)

        result = pipeline.render(decode_base64(body.image_b64), params)
        return {
            "ok": True,
            "format": "png",
            "image_b64": encode_base64_png(result.png),
            "params": params_payload(params),
            "perf": result.perf(),
        }

    return app


app = create_app()

if __name__ == "__main__":
    print(f"--- Starting {SERVICE_NAME} on port {app.state.settings.port} ---")
    uvicorn.run(app, host="0.0.0.0", port=app.state.settings.port)
