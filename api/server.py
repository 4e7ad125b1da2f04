"""FastAPI server for the Virtual Try-On gateway.

Receives multipart requests with:
- humanImage: photo of the person
- garmentImage: photo of the garment
- denoisingSteps, seed, message, useAutoMask, enhanceResult: optional form fields

and forwards them to the hosted IDM-VTON model.
"""

import logging
import traceback
from contextlib import asynccontextmanager
from datetime import datetime, timezone

from fastapi import APIRouter, Depends, FastAPI, File, Form, Request, UploadFile
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from tryon_gateway import __version__
from tryon_gateway.config import GatewayConfig, load_config
from tryon_gateway.errors import InvalidRequestError, TryOnError
from tryon_gateway.handlers import TryOnRequestHandler
from tryon_gateway.services import ConnectionLifecycleManager, GradioInferenceClient, InferenceClient

logger = logging.getLogger(__name__)

router = APIRouter()


def get_manager(request: Request) -> ConnectionLifecycleManager:
    return request.app.state.manager


def get_handler(request: Request) -> TryOnRequestHandler:
    return request.app.state.handler


async def read_single_upload(name: str, files: list[UploadFile] | None) -> bytes | None:
    """Read exactly one uploaded file for a form field."""
    if not files:
        return None
    if len(files) != 1:
        raise InvalidRequestError(f"Expected exactly one file for {name}, got {len(files)}")
    return await files[0].read()


@router.get("/")
async def root():
    return {"status": "ok", "service": "Virtual Try-On API", "version": __version__}


@router.get("/health")
async def health():
    """Liveness only; independent of the remote connection."""
    return {"status": "ok", "timestamp": datetime.now(timezone.utc).isoformat()}


@router.get("/status")
async def status(manager: ConnectionLifecycleManager = Depends(get_manager)):
    """Connection lifecycle snapshot."""
    return manager.status().to_dict()


@router.post("/reset")
async def reset(manager: ConnectionLifecycleManager = Depends(get_manager)):
    """Clear a terminal connection failure so the next request reconnects."""
    return manager.reset().to_dict()


@router.post("/generate")
async def generate(
    humanImage: list[UploadFile] | None = File(None),
    garmentImage: list[UploadFile] | None = File(None),
    denoisingSteps: str | None = Form(None),
    seed: str | None = Form(None),
    message: str | None = Form(None),
    useAutoMask: str | None = Form(None),
    enhanceResult: str | None = Form(None),
    handler: TryOnRequestHandler = Depends(get_handler),
):
    """Generate a virtual try-on image.

    Returns:
        ``{"success": true, "data": {"generatedImage", "maskedImage"}}``
    """
    tryon_request = handler.build_request(
        human_image=await read_single_upload("humanImage", humanImage),
        garment_image=await read_single_upload("garmentImage", garmentImage),
        denoising_steps=denoisingSteps,
        seed=seed,
        message=message,
        use_auto_mask=useAutoMask,
        enhance_result=enhanceResult,
    )
    result = await handler.generate(tryon_request)
    return {"success": True, "data": result.model_dump(by_alias=True)}


def create_app(
    config: GatewayConfig | None = None,
    client: InferenceClient | None = None,
) -> FastAPI:
    """Build the FastAPI app with its connection manager wired in.

    Args:
        config: Gateway settings; loaded from the environment when omitted
        client: Remote inference client; defaults to the Gradio binding
    """
    config = config or load_config()
    logging.basicConfig(level=config.log_level.upper(), format=config.log_format)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        manager = ConnectionLifecycleManager.from_config(config, client or GradioInferenceClient())
        app.state.manager = manager
        app.state.handler = TryOnRequestHandler.from_config(config, manager)
        if config.connect_on_startup:
            logger.info("Starting Virtual Try-On service initialization...")
            manager.start()
        try:
            yield
        finally:
            logger.info("Shutting down connection manager")
            await manager.aclose()

    app = FastAPI(
        title="Virtual Try-On Gateway",
        description="Forwards try-on requests to a hosted IDM-VTON model",
        version=__version__,
        lifespan=lifespan,
    )
    app.state.config = config

    app.add_middleware(
        CORSMiddleware,
        allow_origins=config.allowed_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.exception_handler(TryOnError)
    async def tryon_error_handler(request: Request, exc: TryOnError):
        logger.error(f"{type(exc).__name__} on {request.url.path}: {exc.message}")
        content = {"success": False, "error": exc.message}
        if exc.details is not None:
            content["details"] = exc.details
        if not config.is_production:
            content["stack"] = "".join(traceback.format_exception(exc))
        return JSONResponse(status_code=exc.status_code, content=content)

    @app.exception_handler(RequestValidationError)
    async def request_validation_handler(request: Request, exc: RequestValidationError):
        # Form fields that FastAPI itself rejects, e.g. text where a file is expected
        problems = "; ".join(
            f"{'.'.join(str(part) for part in error['loc'])}: {error['msg']}"
            for error in exc.errors()
        )
        return await tryon_error_handler(request, InvalidRequestError(f"Malformed request: {problems}"))

    @app.exception_handler(Exception)
    async def unhandled_error_handler(request: Request, exc: Exception):
        logger.exception(f"Unhandled error on {request.url.path}")
        content = {
            "success": False,
            "error": "Internal server error" if config.is_production else str(exc),
        }
        if not config.is_production:
            content["stack"] = "".join(traceback.format_exception(exc))
        return JSONResponse(status_code=500, content=content)

    app.include_router(router)
    return app


if __name__ == "__main__":
    import uvicorn
    # Or: uvicorn --factory api.server:create_app
    settings = load_config()
    uvicorn.run(create_app(settings), host=settings.host, port=settings.port)
