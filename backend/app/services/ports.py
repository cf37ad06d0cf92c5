"""
Portas consumidas pelo orquestrador de cadastro.

Banco e provedor de identidade são recebidos por injeção, nunca como
clientes globais, para que os testes possam substituí-los por fakes.
"""

from dataclasses import dataclass
from typing import Any, Callable, Protocol

Registro = dict[str, Any]
Filtro = dict[str, Any]


@dataclass(frozen=True)
class ProviderAccount:
    """Conta criada no provedor de identidade."""

    id: str
    email: str
    needs_confirmation: bool = False


class RecordStore(Protocol):
    """
    Banco de registros externo (tabelas contato, endereco, dados_usuario, ...).

    Filtros são de igualdade exata e sensíveis a maiúsculas. Violações de
    unicidade levantam ``DuplicateError``; demais falhas, ``WriteError``.
    """

    async def insert(self, table: str, fields: Registro) -> Registro: ...

    async def select_one(self, table: str, filters: Filtro) -> Registro | None: ...

    async def delete(self, table: str, filters: Filtro) -> int:
        """Remove registros; remover algo inexistente retorna 0 sem erro."""
        ...


class IdentityProvider(Protocol):
    """Provedor de identidade (Supabase Auth, Firebase Auth)."""

    name: str

    async def create_account(
        self,
        email: str,
        password: str,
        metadata: dict[str, Any] | None = None,
    ) -> ProviderAccount: ...

    async def update_account_metadata(
        self,
        account_id: str,
        metadata: dict[str, Any],
    ) -> None: ...

    async def delete_account(self, account_id: str) -> None: ...


PasswordHasher = Callable[[str], str]
