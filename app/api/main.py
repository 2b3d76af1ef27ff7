"""
Job Board Billing - FastAPI Application

Subscriptions for the job board, sold through Stripe (card) and Asaas (PIX).

Usage:
    uvicorn app.api.main:app --reload --host 0.0.0.0 --port 8000

Docs:
    http://localhost:8000/docs (Swagger UI)
    http://localhost:8000/redoc (ReDoc)
"""

from dotenv import load_dotenv
import os

load_dotenv()  # load .env from current working directory (project root)

from fastapi import FastAPI
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from starlette.exceptions import HTTPException as StarletteHTTPException

from app.core.exceptions import (
    AppError,
    app_error_handler,
    http_error_handler,
    internal_error_handler,
    request_validation_handler,
)
from app.core.lifespan import lifespan
from app.core.logging import setup_logger
from app.core.middleware import request_logger
from app.database.session import async_engine

logger = setup_logger()

APP_NAME = "Job Board Billing API"
APP_VERSION = "1.0.0"

app = FastAPI(
    title=APP_NAME,
    description="Assinaturas do job board via Stripe (cartão) e Asaas (PIX).",
    version=APP_VERSION,
    lifespan=lifespan,
    docs_url="/docs",
    redoc_url="/redoc",
)

# CORS – allow frontend origins (configurable via .env CORS_ORIGINS, comma-separated)
_DEFAULT_CORS = "http://localhost:3000,http://localhost:5173,http://127.0.0.1:3000,http://127.0.0.1:5173"
_CORS_ORIGINS = [o.strip() for o in os.getenv("CORS_ORIGINS", _DEFAULT_CORS).split(",") if o.strip()]
app.add_middleware(
    CORSMiddleware,
    allow_origins=_CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
    expose_headers=["*"],
)

app.middleware("http")(request_logger)

app.add_exception_handler(AppError, app_error_handler)
app.add_exception_handler(StarletteHTTPException, http_error_handler)
app.add_exception_handler(RequestValidationError, request_validation_handler)
app.add_exception_handler(Exception, internal_error_handler)


# Health endpoints
@app.get("/", tags=["Health"])
async def root():
    return {
        "name": APP_NAME,
        "version": APP_VERSION,
        "status": "running",
        "docs": "/docs",
    }


@app.get("/health", tags=["Health"])
async def health_check():
    health = {"status": "healthy", "components": {"api": "ok"}}
    try:
        async with async_engine.connect() as conn:
            await conn.execute(text("SELECT 1"))
        health["components"]["database"] = "ok"
    except (SQLAlchemyError, OSError) as e:
        health["status"] = "degraded"
        health["components"]["database"] = f"error: {str(e)}"
    return health


# Register routers
from app.api.routers import asaas, auth, billing, jobs, plans, search, stripe  # noqa: E402

app.include_router(auth.router, prefix="/auth", tags=["Auth"])
app.include_router(plans.router, prefix="/plans", tags=["Plans"])
app.include_router(billing.router, prefix="/billing", tags=["Billing"])
app.include_router(asaas.router, prefix="/asaas", tags=["Asaas"])
app.include_router(stripe.router, prefix="/stripe", tags=["Stripe"])
app.include_router(jobs.router, prefix="/jobs", tags=["Jobs"])
app.include_router(search.router, prefix="/search", tags=["Search"])

logger.info("Routers registered: auth, plans, billing, asaas, stripe, jobs, search")


if __name__ == "__main__":
    import uvicorn
    uvicorn.run("app.api.main:app", host="0.0.0.0", port=8000, reload=True)
