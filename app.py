"""CLD3 Language Detector service.

Provides HTTP endpoints for language detection backed by the CLD3
WebAssembly engine:
- Single-text detection (JSON body or query string)
- Batch detection with per-item failure isolation
- Static delivery of the browser UI and WASM bindings

The engine is loaded once during startup. When it cannot be loaded the
service keeps running and answers detection requests with a deferral payload
pointing callers at the browser-side detector.
"""

import logging
from contextlib import asynccontextmanager

from fastapi import Depends, FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import FileResponse, JSONResponse
from prometheus_fastapi_instrumentator import Instrumentator
from pydantic import BaseModel
from starlette.exceptions import HTTPException as StarletteHTTPException

import config
from detection import EngineInvocationError, Origin, OriginKind, TextValidationError, detect_batch, detect_one
from engine_loader import EngineLoader, EngineNotReadyError, EngineRuntime, EngineState
from models import (
    BatchDetectionResponse,
    BatchDetectRequest,
    DetectionResult,
    DetectRequest,
    EndpointDoc,
    ErrorResponse,
    HealthResponse,
    InfoResponse,
    LanguagesResponse,
)

# Configure logging
log_level = getattr(logging, config.LOG_LEVEL, logging.INFO)
logging.basicConfig(
    level=log_level,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)

API_VERSION = "1.0.0"

# Process-wide engine; written once in lifespan, read-only afterwards
engine_runtime = EngineRuntime(EngineLoader.from_config())


@asynccontextmanager
async def lifespan(app: FastAPI):  # type: ignore[no-untyped-def]
    """Lifespan event handler for startup and shutdown."""
    # Startup: the engine reaches a terminal state before traffic is accepted
    state = engine_runtime.load()
    wasm_status = "Enabled" if state is EngineState.LOADED else "Browser-side mode"
    logger.info(f"CLD3 Language Detector running on {config.HOST}:{config.PORT}")
    logger.info(f"WASM mode: {wasm_status}")
    logger.info(f"Web UI: {config.PUBLIC_URL}")
    yield
    # Shutdown
    logger.info("CLD3 Language Detector shutting down")


# FastAPI app
app = FastAPI(
    title="CLD3 Language Detector API",
    description="Detect the language of text using Google's CLD3 library compiled to WebAssembly",
    version=API_VERSION,
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_methods=["*"],
    allow_headers=["*"],
)

# Prometheus metrics instrumentation
Instrumentator().instrument(app).expose(app)

ERROR_RESPONSES = {
    400: {"model": ErrorResponse, "description": "Invalid input"},
    500: {"model": ErrorResponse, "description": "Engine failure"},
}


def get_runtime() -> EngineRuntime:
    """Engine runtime dependency."""
    return engine_runtime


def get_ready_runtime(runtime: EngineRuntime = Depends(get_runtime)) -> EngineRuntime:
    """Engine runtime dependency for detection routes.

    Raises:
        EngineNotReadyError: If startup has not finished loading the engine
    """
    if runtime.state is EngineState.UNINITIALIZED:
        raise EngineNotReadyError("Language detection engine is not initialized")
    return runtime


def _respond(payload: BaseModel, status_code: int = 200) -> JSONResponse:
    return JSONResponse(status_code=status_code, content=payload.model_dump(by_alias=True, exclude_none=True))


def _error(status_code: int, message: str) -> JSONResponse:
    return _respond(ErrorResponse(error=message), status_code=status_code)


@app.post("/api/detect", responses={200: {"model": DetectionResult}, **ERROR_RESPONSES})
def detect_from_body(
    request: DetectRequest | None = None,
    runtime: EngineRuntime = Depends(get_ready_runtime),
) -> JSONResponse:
    """Detect the language of `text` in the JSON body.

    Returns:
        DetectionResult, or a DeferralPayload (HTTP 200, success=false) when the
        engine is not loaded on this host
    """
    raw = request.text if request is not None else None
    return _respond(detect_one(raw, runtime, Origin(OriginKind.BODY)))


@app.get("/api/detect", responses={200: {"model": DetectionResult}, **ERROR_RESPONSES})
def detect_from_query(
    text: str | None = None,
    q: str | None = None,
    runtime: EngineRuntime = Depends(get_ready_runtime),
) -> JSONResponse:
    """Detect the language of the `text` (or `q`) query parameter."""
    return _respond(detect_one(text or q, runtime, Origin(OriginKind.QUERY)))


@app.post("/api/detect/batch", responses={200: {"model": BatchDetectionResponse}, **ERROR_RESPONSES})
def detect_many(
    request: BatchDetectRequest | None = None,
    runtime: EngineRuntime = Depends(get_ready_runtime),
) -> JSONResponse:
    """Detect languages for `texts`; results[i] always corresponds to texts[i]."""
    raw_list = request.texts if request is not None else None
    return _respond(detect_batch(raw_list, runtime))


@app.get("/api/languages", response_model=LanguagesResponse)
async def supported_languages() -> LanguagesResponse:
    """List supported languages."""
    return LanguagesResponse(
        supported="The CLD3 detector supports 140+ languages including:",
        major_languages=[
            "English", "Spanish", "French", "German", "Italian", "Portuguese",
            "Russian", "Chinese", "Japanese", "Korean", "Arabic", "Hebrew",
            "Hindi", "Bengali", "Tamil", "Telugu", "Marathi", "Gujarati",
            "Thai", "Vietnamese", "Indonesian", "Malay", "Polish", "Ukrainian",
            "Dutch", "Swedish", "Norwegian", "Danish", "Finnish", "Turkish",
            "Greek", "Czech", "Hungarian", "Romanian", "Serbo-Croatian", "Bulgarian",
            "And 100+ more languages",
        ],
        note="Language codes are returned in uppercase (e.g., EN, FR, etc.)",
    )


@app.get("/api/info", response_model=InfoResponse)
async def api_info() -> InfoResponse:
    """API information and documentation."""
    base = config.PUBLIC_URL
    return InfoResponse(
        name="CLD3 Language Detector API",
        version=API_VERSION,
        description="Detect the language of text using Google's CLD3 library compiled to WebAssembly",
        endpoints={
            "POST /api/detect": EndpointDoc(
                description="Detect language from JSON body",
                example='POST /api/detect with {"text": "Hello world"}',
                response='{"success": true, "language": "EN", "text": "Hello world"}',
            ),
            "GET /api/detect": EndpointDoc(
                description="Detect language from URL query parameter",
                example="GET /api/detect?text=Hello%20world OR /api/detect?q=Hello%20world",
                response='{"success": true, "language": "EN", "confidence": "high"}',
            ),
            "POST /api/detect/batch": EndpointDoc(
                description="Detect language for multiple texts",
                example='POST /api/detect/batch with {"texts": ["Hello", "Bonjour", "Hola"]}',
                response='{"success": true, "count": 3, "results": [...]}',
            ),
            "GET /api/languages": EndpointDoc(
                description="Get list of supported languages",
                example="GET /api/languages",
                response='{"supported": "...", "major_languages": [...]}',
            ),
            "GET /api/health": EndpointDoc(
                description="Health check endpoint",
                example="GET /api/health",
                response='{"status": "healthy", "wasmLoaded": false, ...}',
            ),
            "GET /api/info": EndpointDoc(
                description="API information and documentation",
                example="GET /api/info",
                response='{"name": "CLD3 Language Detector API", "endpoints": {...}}',
            ),
        },
        usage={
            "Simple GET request": f'curl "{base}/api/detect?text=Hello"',
            "POST request": (
                f"curl -X POST {base}/api/detect -H \"Content-Type: application/json\" -d '{{\"text\": \"Bonjour\"}}'"
            ),
        },
    )


@app.get("/api/health")
async def health_check(runtime: EngineRuntime = Depends(get_runtime)) -> JSONResponse:
    """Health check endpoint with engine state."""
    return _respond(
        HealthResponse(
            status="healthy",
            wasm_loaded=runtime.is_loaded,
            engine_state=runtime.state.value,
            message="CLD3 Language Detector is running",
        )
    )


def _asset(filename: str, media_type: str | None = None) -> FileResponse:
    path = config.ASSET_DIR / filename
    if not path.is_file():
        raise StarletteHTTPException(status_code=404)
    return FileResponse(path, media_type=media_type)


@app.get("/", include_in_schema=False)
async def index() -> FileResponse:
    """Serve the browser UI."""
    return _asset(config.INDEX_FILENAME, "text/html")


@app.get(f"/{config.BROWSER_BINDINGS_FILENAME}", include_in_schema=False)
async def browser_bindings() -> FileResponse:
    """Serve the WASM JavaScript bindings."""
    return _asset(config.BROWSER_BINDINGS_FILENAME, "application/javascript")


@app.get(f"/{config.WASM_FILENAME}", include_in_schema=False)
async def wasm_binary() -> FileResponse:
    """Serve the WASM binary with its content type."""
    return _asset(config.WASM_FILENAME, "application/wasm")


# Exception handlers
@app.exception_handler(TextValidationError)
async def text_validation_error_handler(request: Request, exc: TextValidationError) -> JSONResponse:
    """Reject invalid input with 400."""
    logger.warning(f"Rejected {request.method} {request.url.path}: {exc}")
    return _error(400, str(exc))


@app.exception_handler(EngineInvocationError)
async def engine_error_handler(request: Request, exc: EngineInvocationError) -> JSONResponse:
    """Engine failures are fatal to the request only."""
    logger.error(f"Detection error: {exc}")
    return _error(500, f"Error detecting language: {exc}")


@app.exception_handler(EngineNotReadyError)
async def engine_not_ready_handler(request: Request, exc: EngineNotReadyError) -> JSONResponse:
    logger.error(f"Request before engine initialization: {exc}")
    return _error(503, str(exc))


@app.exception_handler(RequestValidationError)
async def request_validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Malformed JSON or a body of the wrong shape."""
    logger.warning(f"Invalid request body for {request.url.path}: {exc.errors()}")
    return _error(400, "Invalid request body")


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    # No route for this path and method
    if exc.status_code in (404, 405):
        return _error(404, "Not found")
    return _error(exc.status_code, str(exc.detail))


@app.exception_handler(Exception)
async def general_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Handle unexpected exceptions with 500 status code."""
    logger.error(f"Server error: {exc}", exc_info=True)
    return _error(500, "Internal server error")


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        app,
        host=config.HOST,
        port=config.PORT,
        log_level=config.LOG_LEVEL.lower(),
    )
