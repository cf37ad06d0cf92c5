"""
Tabelas do banco externo manipuladas pelo cadastro.

O serviço não é dono desses registros; apenas sequencia inserts e,
em caso de falha, deletes de compensação.
"""

import enum
from dataclasses import dataclass


class TipoPessoa(str, enum.Enum):
    """Tipo de pessoa."""

    FISICA = "fisica"
    JURIDICA = "juridica"


class TipoCliente(str, enum.Enum):
    """Classe da conta cadastrada."""

    CLIENTE = "cliente"
    ADMIN = "admin"


@dataclass(frozen=True)
class Tabela:
    """Nome da tabela e sua chave primária."""

    nome: str
    pk: str


CONTATO = Tabela("contato", "id_contato")
ENDERECO = Tabela("endereco", "id_endereco")
DADOS_USUARIO = Tabela("dados_usuario", "id_dados")
CLIENTE = Tabela("cliente", "id_cliente")
ADMIN = Tabela("admin", "id")
