"""
Endpoints de Cadastro.

Uma rota por variante de cadastro (cliente/admin, credencial local ou
provedor de identidade). Erros são convertidos em JSON pelos handlers
registrados em ``app.core.middleware``.
"""

from fastapi import APIRouter, Request, Response

from app.core.config import settings
from app.core.dependencies import CadastroServiceDep
from app.models.tabelas import TipoCliente
from app.schemas.base import APIResponse, ErrorResponse
from app.schemas.cadastro import CadastroRequest, CadastroResponse
from app.services.cadastro_service import (
    ADMIN_LOCAL,
    ADMIN_PROVEDOR,
    CLIENTE_LOCAL,
    CLIENTE_PROVEDOR,
    CadastroResult,
    PoliticaCadastro,
)

router = APIRouter(prefix="/cadastros", tags=["Cadastros"])

ERROR_RESPONSES = {
    400: {"model": ErrorResponse, "description": "Dados inválidos, duplicados ou erro no provedor"},
    500: {"model": ErrorResponse, "description": "Erro no banco"},
}


def cors_headers(origin: str | None = None) -> dict[str, str]:
    """
    Headers CORS do preflight.

    Com lista de origens, ecoa apenas a origem da requisição que estiver
    na lista; origem desconhecida não recebe ``Access-Control-Allow-Origin``.
    """
    headers = {
        "Access-Control-Allow-Headers": ", ".join(settings.ALLOWED_HEADERS),
        "Access-Control-Allow-Methods": "POST, OPTIONS",
    }
    if "*" in settings.ALLOWED_ORIGINS:
        headers["Access-Control-Allow-Origin"] = "*"
    else:
        headers["Vary"] = "Origin"
        if origin in settings.ALLOWED_ORIGINS:
            headers["Access-Control-Allow-Origin"] = origin
    return headers


def _to_response(result: CadastroResult) -> APIResponse[CadastroResponse]:
    conta_id = {"cliente_id" if result.tipo_cliente == TipoCliente.CLIENTE else "admin_id": result.conta_id}
    return APIResponse(
        success=True,
        message="Cadastro realizado com sucesso!",
        data=CadastroResponse(
            usuario_id=result.usuario_id,
            email=result.email,
            auth_user_id=result.auth_user_id,
            needs_confirmation=result.needs_confirmation,
            **conta_id,
        ),
    )


async def _registrar(
    service: CadastroServiceDep,
    dados: CadastroRequest,
    politica: PoliticaCadastro,
) -> APIResponse[CadastroResponse]:
    result = await service.registrar(dados, politica)
    return _to_response(result)


@router.options("/clientes", include_in_schema=False)
@router.options("/clientes/auth", include_in_schema=False)
@router.options("/admins", include_in_schema=False)
@router.options("/admins/local", include_in_schema=False)
async def preflight(request: Request) -> Response:
    """Preflight CORS."""
    return Response(content="ok", headers=cors_headers(request.headers.get("origin")))


@router.post(
    "/clientes",
    response_model=APIResponse[CadastroResponse],
    response_model_exclude_none=True,
    responses=ERROR_RESPONSES,
)
async def cadastrar_cliente(
    dados: CadastroRequest,
    service: CadastroServiceDep,
) -> APIResponse[CadastroResponse]:
    """
    Cadastra cliente com senha local (hash em dados_usuario).

    Requer ``idAdminLogado`` do administrador responsável.
    """
    return await _registrar(service, dados, CLIENTE_LOCAL)


@router.post(
    "/clientes/auth",
    response_model=APIResponse[CadastroResponse],
    response_model_exclude_none=True,
    responses=ERROR_RESPONSES,
)
async def cadastrar_cliente_provedor(
    dados: CadastroRequest,
    service: CadastroServiceDep,
) -> APIResponse[CadastroResponse]:
    """Cadastra cliente com conta no provedor de autenticação."""
    return await _registrar(service, dados, CLIENTE_PROVEDOR)


@router.post(
    "/admins",
    response_model=APIResponse[CadastroResponse],
    response_model_exclude_none=True,
    responses=ERROR_RESPONSES,
)
async def cadastrar_admin(
    dados: CadastroRequest,
    service: CadastroServiceDep,
) -> APIResponse[CadastroResponse]:
    """
    Cadastra administrador (pessoa jurídica) com conta no provedor.

    Após gravar, a metadata da conta recebe os ids criados.
    """
    return await _registrar(service, dados, ADMIN_PROVEDOR)


@router.post(
    "/admins/local",
    response_model=APIResponse[CadastroResponse],
    response_model_exclude_none=True,
    responses=ERROR_RESPONSES,
)
async def cadastrar_admin_local(
    dados: CadastroRequest,
    service: CadastroServiceDep,
) -> APIResponse[CadastroResponse]:
    """Cadastra administrador com senha local."""
    return await _registrar(service, dados, ADMIN_LOCAL)
