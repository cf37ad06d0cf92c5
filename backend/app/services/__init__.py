"""
Services Layer.

Orquestração do cadastro e executor de etapas com compensação.
"""

from app.services.cadastro_service import (
    ADMIN_LOCAL,
    ADMIN_PROVEDOR,
    CLIENTE_LOCAL,
    CLIENTE_PROVEDOR,
    CadastroResult,
    CadastroService,
    ModoCredencial,
    PoliticaCadastro,
)
from app.services.ports import IdentityProvider, ProviderAccount, RecordStore
from app.services.saga import Saga, SagaStep

__all__ = [
    "CadastroService",
    "CadastroResult",
    "PoliticaCadastro",
    "ModoCredencial",
    "CLIENTE_LOCAL",
    "CLIENTE_PROVEDOR",
    "ADMIN_LOCAL",
    "ADMIN_PROVEDOR",
    "IdentityProvider",
    "ProviderAccount",
    "RecordStore",
    "Saga",
    "SagaStep",
]
