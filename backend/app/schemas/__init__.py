"""Schemas Pydantic para validação de request/response."""

from app.schemas.base import APIResponse, BaseSchema, ErrorResponse
from app.schemas.cadastro import (
    CadastroRequest,
    CadastroResponse,
    DadosContato,
    DadosCredenciais,
    DadosEndereco,
    DadosUsuario,
)

__all__ = [
    # Base
    "APIResponse",
    "BaseSchema",
    "ErrorResponse",
    # Cadastro
    "CadastroRequest",
    "CadastroResponse",
    "DadosContato",
    "DadosCredenciais",
    "DadosEndereco",
    "DadosUsuario",
]
