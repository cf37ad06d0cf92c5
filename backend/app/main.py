"""
Ponto de entrada principal da API de cadastro.

Este módulo configura a aplicação FastAPI com todas as rotas,
middlewares e handlers de eventos.
"""

from contextlib import asynccontextmanager
from typing import AsyncGenerator

import httpx
import structlog
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from app.api.v1.router import api_router
from app.core.config import settings
from app.core.logging import setup_logging
from app.core.middleware import RequestContextMiddleware, setup_exception_handlers

logger = structlog.get_logger()


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Gerencia o ciclo de vida da aplicação."""
    # Startup
    setup_logging()
    app.state.http_client = httpx.AsyncClient(
        timeout=settings.EXTERNAL_CALL_TIMEOUT_SECONDS,
    )
    logger.info(
        "Iniciando Cadastro API",
        version=settings.VERSION,
        identity_provider=settings.IDENTITY_PROVIDER,
    )

    yield

    # Shutdown
    await app.state.http_client.aclose()
    logger.info("Encerrando Cadastro API")


def create_application() -> FastAPI:
    """Factory para criar a aplicação FastAPI."""
    app = FastAPI(
        title=settings.PROJECT_NAME,
        description="Cadastro de clientes e administradores com compensação de etapas",
        version=settings.VERSION,
        openapi_url=f"{settings.API_V1_PREFIX}/openapi.json",
        docs_url=f"{settings.API_V1_PREFIX}/docs",
        redoc_url=f"{settings.API_V1_PREFIX}/redoc",
        lifespan=lifespan,
    )

    # CORS
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.ALLOWED_ORIGINS,
        allow_credentials="*" not in settings.ALLOWED_ORIGINS,
        allow_methods=["*"],
        allow_headers=settings.ALLOWED_HEADERS,
    )
    app.add_middleware(RequestContextMiddleware)

    setup_exception_handlers(app)

    # Rotas
    app.include_router(api_router, prefix=settings.API_V1_PREFIX)

    return app


app = create_application()


@app.get("/health", tags=["Health"])
async def health_check() -> dict[str, str]:
    """Endpoint de health check."""
    return {"status": "healthy", "version": settings.VERSION}
