from __future__ import annotations

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from config import get_settings
from errors import ApiError
from rate_limiter import close_rate_limiter, init_rate_limiter
from routes_export import close_export_executor, init_export_executor, router as export_router
from routes_generate import close_generator, init_generator, router as generate_router

settings = get_settings()

logging.basicConfig(
    level=settings.log_level,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    # Startup
    init_rate_limiter(
        settings.rate_limit_max_requests,
        settings.rate_limit_window_seconds,
        redis_url=settings.redis_url,
    )
    init_export_executor(settings.export_concurrency)
    await init_generator(settings)
    logger.info(f"LogoForge API {settings.app_version} started")
    yield
    # Shutdown
    await close_generator()
    close_export_executor()
    await close_rate_limiter()


app = FastAPI(title="LogoForge API", lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.allowed_origins,
    allow_credentials=False,
    allow_methods=["GET", "POST", "OPTIONS"],
    allow_headers=["Content-Type"],
    max_age=86400,
)


@app.exception_handler(ApiError)
async def api_error_handler(request: Request, exc: ApiError):
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict(), headers=exc.headers)


app.include_router(export_router)
app.include_router(generate_router)


@app.get("/")
def root():
    return {
        "name": "LogoForge API",
        "version": settings.app_version,
        "endpoints": {
            "health": "/healthz",
            "generate": "POST /api/generate",
            "export": "POST /api/export",
            "export_docs": "GET /api/export",
        },
    }


@app.get("/healthz")
def health():
    return {"status": "ok", "version": settings.app_version}
