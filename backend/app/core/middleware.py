"""
Middleware de tratamento de exceções.

Converte exceções em respostas JSON padronizadas.
"""

import traceback
import uuid

import structlog
from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from app.core.config import settings
from app.core.exceptions import (
    CadastroException,
    DuplicateError,
    ExternalTimeoutError,
    ProviderError,
    ValidationError,
    WriteError,
)

logger = structlog.get_logger()


# Mapeia exceções para status HTTP
STATUS_MAP: dict[type[CadastroException], int] = {
    ValidationError: status.HTTP_400_BAD_REQUEST,
    DuplicateError: status.HTTP_400_BAD_REQUEST,
    ProviderError: status.HTTP_400_BAD_REQUEST,
    WriteError: status.HTTP_500_INTERNAL_SERVER_ERROR,
    ExternalTimeoutError: status.HTTP_500_INTERNAL_SERVER_ERROR,
}


def status_for(exc: CadastroException) -> int:
    """Retorna o status HTTP correspondente à exceção."""
    for exc_type, http_status in STATUS_MAP.items():
        if isinstance(exc, exc_type):
            return http_status
    return status.HTTP_500_INTERNAL_SERVER_ERROR


def create_error_response(
    status_code: int,
    code: str,
    message: str,
    details: dict | None = None,
) -> JSONResponse:
    """Cria resposta de erro padronizada."""
    content = {
        "success": False,
        "error": message,
        "code": code,
    }
    if details and settings.DEBUG:
        content["details"] = details

    return JSONResponse(status_code=status_code, content=content)


async def cadastro_exception_handler(
    request: Request,
    exc: CadastroException,
) -> JSONResponse:
    """Handler para exceções de cadastro."""
    status_code = status_for(exc)
    log = logger.error if status_code >= 500 else logger.warning
    log(
        "Cadastro exception",
        code=exc.code,
        message=exc.message,
        path=request.url.path,
        details=exc.details,
    )

    return create_error_response(
        status_code=status_code,
        code=exc.code,
        message=exc.message,
        details=exc.details,
    )


async def request_validation_handler(
    request: Request,
    exc: RequestValidationError,
) -> JSONResponse:
    """Converte erros de schema (campos ausentes, JSON inválido) em 400."""
    errors = exc.errors()
    message = "Dados inválidos"
    if errors:
        first = errors[0]
        campo = ".".join(str(p) for p in first.get("loc", ()) if p != "body")
        message = f"{campo}: {first.get('msg')}" if campo else str(first.get("msg"))

    logger.warning("Requisição inválida", path=request.url.path, error=message)

    return create_error_response(
        status_code=status.HTTP_400_BAD_REQUEST,
        code="VALIDATION_ERROR",
        message=message,
        details={"errors": [{"loc": list(e.get("loc", ())), "msg": e.get("msg")} for e in errors]},
    )


async def generic_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Handler para exceções não tratadas."""
    logger.error(
        "Unhandled exception",
        exc_type=type(exc).__name__,
        message=str(exc),
        path=request.url.path,
        traceback=traceback.format_exc() if settings.DEBUG else None,
    )

    message = "Erro ao processar requisição"
    details = None

    if settings.DEBUG:
        message = str(exc)
        details = {"traceback": traceback.format_exc()}

    return create_error_response(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        code="INTERNAL_ERROR",
        message=message,
        details=details,
    )


def setup_exception_handlers(app: FastAPI) -> None:
    """Registra handlers de exceção na aplicação."""
    app.add_exception_handler(CadastroException, cadastro_exception_handler)
    app.add_exception_handler(RequestValidationError, request_validation_handler)
    app.add_exception_handler(Exception, generic_exception_handler)


class RequestContextMiddleware:
    """
    Middleware para adicionar contexto às requisições.

    Adiciona request_id ao contexto de log e ao header da resposta.
    """

    def __init__(self, app):
        self.app = app

    async def __call__(self, scope, receive, send):
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return

        request_id = str(uuid.uuid4())[:8]

        # Bind request context to structlog
        structlog.contextvars.clear_contextvars()
        structlog.contextvars.bind_contextvars(
            request_id=request_id,
            path=scope.get("path", ""),
            method=scope.get("method", ""),
        )

        # Add request_id header to response
        async def send_wrapper(message):
            if message["type"] == "http.response.start":
                headers = list(message.get("headers", []))
                headers.append((b"x-request-id", request_id.encode()))
                message["headers"] = headers
            await send(message)

        await self.app(scope, receive, send_wrapper)
