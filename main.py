import time
from contextlib import asynccontextmanager
from typing import Optional

import uvicorn
from fastapi import Depends, FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware

from auth import auth_router, protect
from config import Settings, get_settings
from database import Database
from logger import configure_logging, get_logger
from responses import catch_unhandled, register_exception_handlers
from router import incomes_router, expenses_router

logger = get_logger(__name__)

SECURITY_HEADERS = {
    "Content-Security-Policy": (
        "default-src 'self';base-uri 'self';font-src 'self' https: data:;"
        "form-action 'self';frame-ancestors 'self';img-src 'self' data:;"
        "object-src 'none';script-src 'self';script-src-attr 'none';"
        "style-src 'self' https: 'unsafe-inline';upgrade-insecure-requests"
    ),
    "Cross-Origin-Opener-Policy": "same-origin",
    "Cross-Origin-Resource-Policy": "same-origin",
    "Origin-Agent-Cluster": "?1",
    "Referrer-Policy": "no-referrer",
    "Strict-Transport-Security": "max-age=31536000; includeSubDomains",
    "X-Content-Type-Options": "nosniff",
    "X-DNS-Prefetch-Control": "off",
    "X-Download-Options": "noopen",
    "X-Frame-Options": "SAMEORIGIN",
    "X-Permitted-Cross-Domain-Policies": "none",
    "X-XSS-Protection": "0",
}


@asynccontextmanager
async def lifespan(app: FastAPI):
    app.state.database.create_all()
    logger.info("database_initialized", url=app.state.database.engine.url.render_as_string())
    yield
    app.state.database.dispose()


def create_app(settings: Optional[Settings] = None, database: Optional[Database] = None) -> FastAPI:
    settings = settings or get_settings()
    configure_logging(settings.log_level, json_logs=settings.is_production)
    if settings.uses_default_secret:
        logger.warning("insecure_jwt_secret", detail="JWT_SECRET is unset, using the built-in default")

    # trailing-slash paths are registered explicitly in router.py
    app = FastAPI(title="Expendi API", lifespan=lifespan, redirect_slashes=False)
    app.state.settings = settings
    app.state.database = database or Database(settings.database_url)

    # registered first, so it is the innermost middleware
    app.middleware("http")(catch_unhandled)

    @app.middleware("http")
    async def security_headers(request: Request, call_next):
        response = await call_next(request)
        for header, value in SECURITY_HEADERS.items():
            response.headers.setdefault(header, value)
        return response

    @app.middleware("http")
    async def log_requests(request: Request, call_next):
        started = time.perf_counter()
        response = await call_next(request)
        logger.info(
            "request_completed",
            method=request.method,
            path=request.url.path,
            status=response.status_code,
            duration_ms=round((time.perf_counter() - started) * 1000, 2),
        )
        return response

    # added last, so it is the outermost middleware
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["*"],
        allow_headers=["*"],
    )

    register_exception_handlers(app)

    # Income/expense routes stay public unless REQUIRE_AUTH is set.
    guard = [Depends(protect)] if settings.require_auth else []
    app.include_router(auth_router, prefix="/api/v1/auth", tags=["authentication"])
    app.include_router(incomes_router, prefix="/api/v1/incomes", tags=["incomes"], dependencies=guard)
    app.include_router(expenses_router, prefix="/api/v1/expenses", tags=["expenses"], dependencies=guard)

    @app.api_route("/", methods=["GET", "HEAD"])
    def home():
        return {"status": "ok", "message": "Expendi API is running"}

    return app


app = create_app()


if __name__ == "__main__":
    settings = get_settings()
    uvicorn.run(app, host=settings.host, port=settings.port)
