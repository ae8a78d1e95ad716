import os
import logging
from fastapi import FastAPI, Request, Response
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from prometheus_fastapi_instrumentator import Instrumentator
from cargo_extractor.api.routes import router
from cargo_extractor.errors import ExtractionPipelineError
from cargo_extractor.logging_config import setup_logging, RequestLoggingMiddleware, get_logger
from cargo_extractor.metrics import get_metrics, get_metrics_content_type, app_errors_total
import uvicorn

log_level = logging.DEBUG if os.getenv("DEBUG", "").lower() == "true" else logging.INFO
setup_logging(
    service_name=os.getenv("SERVICE_NAME", "cargo-extractor"),
    level=log_level,
    project_id=os.getenv("GCP_PROJECT_ID"),
)
logger = get_logger(__name__)

app = FastAPI(title="Shipping Document Extraction API")

ALLOWED_ORIGINS = os.getenv("ALLOWED_ORIGINS", "").split(",") if os.getenv("ALLOWED_ORIGINS") else []
DEFAULT_ORIGINS = [
    "http://localhost:5173",  # Vite dev server
    "http://localhost:3000",
    "http://localhost:8080",  # Local Docker
    "http://localhost",
    "http://127.0.0.1",
]

app.add_middleware(
    CORSMiddleware,
    allow_origins=DEFAULT_ORIGINS + ALLOWED_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Added after CORS so it wraps the actual requests
app.add_middleware(RequestLoggingMiddleware, logger=logger)

app.include_router(router)

Instrumentator(
    should_group_status_codes=False,
    should_ignore_untemplated=True,
    excluded_handlers=["/metrics", "/health"],
).instrument(app)


@app.exception_handler(ExtractionPipelineError)
async def pipeline_exception_handler(request: Request, exc: ExtractionPipelineError):
    """
    Answers pipeline failures with their status and a readable message.
    """
    app_errors_total.labels(endpoint=request.url.path, error_type=type(exc).__name__).inc()
    logger.warning(
        f"Request failed: {exc.message}",
        extra={"extra_fields": {"endpoint": request.url.path, "error_type": type(exc).__name__, "status": exc.status_code}},
    )
    return JSONResponse(status_code=exc.status_code, content=exc.to_response())


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    """
    Malformed request bodies (e.g. a non-numeric batchSize) are client errors.
    """
    app_errors_total.labels(endpoint=request.url.path, error_type="RequestValidationError").inc()
    return JSONResponse(
        status_code=400,
        content={"success": False, "error": "Invalid request", "message": str(exc.errors())},
    )


@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    """
    Global exception handler that tracks errors in Prometheus metrics.
    """
    app_errors_total.labels(
        endpoint=request.url.path,
        error_type=type(exc).__name__
    ).inc()

    logger.error(
        f"Unhandled exception: {exc}",
        extra={
            "extra_fields": {
                "endpoint": request.url.path,
                "error_type": type(exc).__name__,
                "method": request.method,
            }
        },
        exc_info=True,
    )

    return JSONResponse(
        status_code=500,
        content={"detail": "Internal server error"}
    )


@app.on_event("startup")
async def startup_event():
    logger.info(
        "Service started",
        extra={"extra_fields": {"event": "startup", "port": os.getenv("PORT", 8080)}},
    )


@app.on_event("shutdown")
async def shutdown_event():
    logger.info("Service shutting down", extra={"extra_fields": {"event": "shutdown"}})


@app.get("/")
async def root():
    return {"message": "Welcome to the Shipping Document Extraction API"}


@app.get("/health")
async def health_check():
    """Health check endpoint for Cloud Run and load balancers."""
    return {"status": "healthy", "service": "cargo-extractor"}


@app.get("/metrics")
async def metrics():
    """
    Prometheus metrics: extraction requests and batches, LLM latency and
    errors, rasterized pages, uploaded bytes and HTTP request metrics.
    """
    return Response(content=get_metrics(), media_type=get_metrics_content_type())


if __name__ == "__main__":
    port = int(os.getenv("PORT", 8080))
    uvicorn.run(app, host="0.0.0.0", port=port)
