import logging

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from cattlescan.api.v1.auth import router as auth_router
from cattlescan.api.v1.breeds import router as breeds_router
from cattlescan.api.v1.scan import router as scan_router
from cattlescan.api.v1.scans import router as scans_router
from cattlescan.core.config import get_settings
from cattlescan.utils.rate_limit import check_scan_rate, get_client_ip

settings = get_settings()

logging.basicConfig(
    level=getattr(logging, settings.log_level.upper(), logging.INFO),
    format="%(asctime)s %(name)s %(levelname)s %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
)
logger = logging.getLogger(__name__)

SCAN_RATE_LIMITED_PATHS = ("/scan", "/api/v1/scans")

app = FastAPI(
    title="CattleScan API",
    version="1.0.0",
    docs_url="/docs" if settings.docs_enabled else None,
    openapi_url="/openapi.json" if settings.openapi_enabled else None,
)


@app.on_event("startup")
async def _startup_checks():
    errors = get_settings().validate_required_config()
    if not errors:
        return
    if get_settings().is_production:
        raise RuntimeError("Configuration validation failed in production environment: " + "; ".join(errors))
    for error in errors:
        logger.warning("Config: %s", error)


if settings.cors_allow_origins:
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_allow_origins,
        allow_credentials=True,
        allow_methods=settings.cors_allow_methods,
        allow_headers=settings.cors_allow_headers,
    )

app.include_router(scan_router, tags=["classifier"])
app.include_router(scans_router, prefix="/api/v1", tags=["scans"])
app.include_router(breeds_router, prefix="/api/v1", tags=["catalog"])
app.include_router(auth_router, prefix="/api/v1", tags=["auth"])


@app.exception_handler(StarletteHTTPException)
async def _http_exception_handler(request: Request, exc: StarletteHTTPException):
    # Hide internal details for plain 500s unless explicitly enabled.
    if exc.status_code == 500 and not settings.expose_error_details:
        return JSONResponse(status_code=exc.status_code, content={"detail": "Internal server error"})
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.detail})


@app.exception_handler(Exception)
async def _unhandled_exception_handler(request: Request, exc: Exception):
    logger.exception("Unhandled exception")
    if settings.expose_error_details:
        return JSONResponse(status_code=500, content={"detail": str(exc)})
    return JSONResponse(status_code=500, content={"detail": "Internal server error"})


@app.middleware("http")
async def scan_rate_limit_middleware(request: Request, call_next):
    if request.method != "POST" or request.url.path not in SCAN_RATE_LIMITED_PATHS:
        return await call_next(request)

    decision = check_scan_rate(request)
    if not decision.allowed:
        logger.warning(
            "Scan rate limit hit ip=%s count=%s path=%s",
            get_client_ip(request),
            decision.count,
            request.url.path,
        )
        return JSONResponse(
            status_code=429,
            content={"detail": "Too Many Requests"},
            headers={"Retry-After": str(decision.retry_after)},
        )

    return await call_next(request)


@app.middleware("http")
async def security_headers_middleware(request: Request, call_next):
    response = await call_next(request)
    headers = response.headers
    if "X-Content-Type-Options" not in headers:
        headers["X-Content-Type-Options"] = "nosniff"
    if "X-Frame-Options" not in headers:
        headers["X-Frame-Options"] = "DENY"
    if "Referrer-Policy" not in headers:
        headers["Referrer-Policy"] = "strict-origin-when-cross-origin"
    return response


@app.get("/health")
async def health_check():
    return {"status": "ok"}
