from fastapi import Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException
import logging

logger = logging.getLogger(__name__)


class AppError(Exception):
    """Base for errors that map onto an HTTP response."""

    status_code = 500
    default_message = "Erro interno do servidor"

    def __init__(self, message=None):
        self.message = message or self.default_message
        super().__init__(self.message)


class ValidationError(AppError):
    status_code = 400
    default_message = "Dados inválidos"


class AuthError(AppError):
    status_code = 401
    default_message = "Usuário não autenticado"


class ForbiddenError(AppError):
    status_code = 403
    default_message = "Acesso negado"


class NotFoundError(AppError):
    status_code = 404
    default_message = "Recurso não encontrado"


class ConflictError(AppError):
    status_code = 400
    default_message = "Usuário já possui uma assinatura ativa"


class ProviderError(AppError):
    """A Stripe/Asaas call failed. `detail` is logged, never returned."""

    status_code = 500
    default_message = "Erro ao comunicar com o provedor de pagamento"

    def __init__(self, message=None, provider=None, detail=None):
        super().__init__(message)
        self.provider = provider
        self.detail = detail


class ReconciliationInconsistency(Exception):
    """A webhook references a local entity we do not have. Logged and acknowledged."""


async def app_error_handler(request: Request, exc: AppError):
    if isinstance(exc, ProviderError):
        logger.error(
            f"Provider error on {request.method} {request.url.path}: "
            f"provider={exc.provider} detail={exc.detail}"
        )
    return JSONResponse(status_code=exc.status_code, content={"error": exc.message})


async def http_error_handler(request: Request, exc: StarletteHTTPException):
    if exc.status_code == 404 and exc.detail == "Not Found":
        message = f"Endpoint '{request.url.path}' não encontrado"
    else:
        message = str(exc.detail)
    return JSONResponse(
        status_code=exc.status_code,
        content={"error": message},
        headers=getattr(exc, "headers", None),
    )


async def request_validation_handler(request: Request, exc: RequestValidationError):
    errors = exc.errors()
    if errors:
        first = errors[0]
        field = ".".join(str(p) for p in first.get("loc", ()) if p != "body")
        message = f"{field}: {first.get('msg')}" if field else str(first.get("msg"))
    else:
        message = ValidationError.default_message
    return JSONResponse(status_code=400, content={"error": message})


async def internal_error_handler(request: Request, exc: Exception):
    logger.exception(f"Erro interno: {exc}")
    return JSONResponse(
        status_code=500,
        content={"error": "Internal Server Error"},
    )
