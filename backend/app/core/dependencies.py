"""
Dependências injetáveis do FastAPI.

Fornece banco, provedor de identidade e o service de cadastro. Os testes
substituem ``get_record_store`` e ``get_identity_provider`` por fakes via
``app.dependency_overrides``.
"""

from typing import Annotated

import httpx
from fastapi import Depends, Request

from app.core.config import settings
from app.core.security import get_password_hash
from app.core.supabase_auth import SupabaseAuthProvider
from app.core.supabase_rest import SupabaseRecordStore
from app.services.cadastro_service import CadastroService
from app.services.ports import IdentityProvider, RecordStore


def get_http_client(request: Request) -> httpx.AsyncClient:
    """Cliente HTTP compartilhado, criado no lifespan da aplicação."""
    return request.app.state.http_client


def get_record_store(
    client: Annotated[httpx.AsyncClient, Depends(get_http_client)],
) -> RecordStore:
    """Banco de registros (Supabase PostgREST)."""
    return SupabaseRecordStore(client)


def get_identity_provider(
    client: Annotated[httpx.AsyncClient, Depends(get_http_client)],
) -> IdentityProvider:
    """
    Provedor de identidade conforme ``IDENTITY_PROVIDER``.

    Firebase é importado sob demanda para não exigir o SDK configurado
    quando o Supabase Auth é usado.
    """
    if settings.IDENTITY_PROVIDER == "firebase":
        from app.core.firebase_auth import firebase_identity_provider

        return firebase_identity_provider
    return SupabaseAuthProvider(client)


def get_cadastro_service(
    store: Annotated[RecordStore, Depends(get_record_store)],
    provider: Annotated[IdentityProvider, Depends(get_identity_provider)],
) -> CadastroService:
    """Service de cadastro com as capacidades da requisição."""
    return CadastroService(
        store,
        provider,
        hash_password=get_password_hash,
        timeout=settings.EXTERNAL_CALL_TIMEOUT_SECONDS,
    )


# Type aliases para facilitar uso nas rotas
CadastroServiceDep = Annotated[CadastroService, Depends(get_cadastro_service)]
