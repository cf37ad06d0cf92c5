"""
Tabelas do banco externo e enums do cadastro.
"""

from app.models.tabelas import (
    ADMIN,
    CLIENTE,
    CONTATO,
    DADOS_USUARIO,
    ENDERECO,
    Tabela,
    TipoCliente,
    TipoPessoa,
)

__all__ = [
    "Tabela",
    "TipoCliente",
    "TipoPessoa",
    "CONTATO",
    "ENDERECO",
    "DADOS_USUARIO",
    "CLIENTE",
    "ADMIN",
]
