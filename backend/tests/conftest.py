"""
Pytest fixtures para testes da API de cadastro.

Banco e provedor de identidade são substituídos por fakes em memória,
com restrições de unicidade e injeção de falhas.
"""
import asyncio
import copy
from collections import defaultdict
from itertools import count
from typing import Any, AsyncGenerator

import pytest
import pytest_asyncio
from httpx import AsyncClient, ASGITransport

from app.core.dependencies import get_identity_provider, get_record_store
from app.core.exceptions import DuplicateError, ProviderAccountExistsError, WriteError
from app.core.security import get_password_hash
from app.main import app
from app.models.tabelas import ADMIN, CLIENTE, CONTATO, DADOS_USUARIO, ENDERECO
from app.services.cadastro_service import CadastroService
from app.services.ports import ProviderAccount

PKS = {t.nome: t.pk for t in (CONTATO, ENDERECO, DADOS_USUARIO, CLIENTE, ADMIN)}
UNIQUE = {
    CONTATO.nome: ("email",),
    DADOS_USUARIO.nome: ("cpf_cnpj", "email"),
}


class FakeRecordStore:
    """Banco em memória com chaves sequenciais e colunas únicas."""

    def __init__(self):
        self.tables: dict[str, list[dict[str, Any]]] = defaultdict(list)
        self.calls: list[tuple[str, str]] = []
        self.failures: dict[tuple[str, str], Exception] = {}
        self.delays: dict[tuple[str, str], float] = {}
        self.in_flight = 0
        self.max_in_flight = 0
        self._seq = count(1)

    def fail(self, operation: str, table: str, exc: Exception | None = None) -> None:
        self.failures[(operation, table)] = exc or WriteError(
            f"Erro ao {operation} {table}: falha simulada",
            table=table,
            operation=operation,
        )

    def rows(self, table: str) -> list[dict[str, Any]]:
        return self.tables[table]

    def seed(self, table: str, **fields: Any) -> dict[str, Any]:
        row = {PKS[table]: next(self._seq), **fields}
        self.tables[table].append(row)
        return row

    def writes(self) -> list[tuple[str, str]]:
        return [c for c in self.calls if c[0] != "select"]

    async def _enter(self, operation: str, table: str) -> None:
        self.calls.append((operation, table))
        self.in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self.in_flight)
        try:
            delay = self.delays.get((operation, table))
            await asyncio.sleep(delay if delay is not None else 0)
            if (operation, table) in self.failures:
                raise self.failures[(operation, table)]
        finally:
            self.in_flight -= 1

    @staticmethod
    def _matches(row: dict[str, Any], filters: dict[str, Any]) -> bool:
        return all(row.get(k) == v for k, v in filters.items())

    async def insert(self, table: str, fields: dict[str, Any]) -> dict[str, Any]:
        await self._enter("insert", table)
        for column in UNIQUE.get(table, ()):
            value = fields.get(column)
            if value is not None and any(r.get(column) == value for r in self.tables[table]):
                raise DuplicateError(f"Registro já cadastrado em {table}", table, column)
        row = {PKS[table]: next(self._seq), **copy.deepcopy(fields)}
        self.tables[table].append(row)
        return dict(row)

    async def select_one(self, table: str, filters: dict[str, Any]) -> dict[str, Any] | None:
        await self._enter("select", table)
        for row in self.tables[table]:
            if self._matches(row, filters):
                return dict(row)
        return None

    async def delete(self, table: str, filters: dict[str, Any]) -> int:
        await self._enter("delete", table)
        before = len(self.tables[table])
        self.tables[table] = [r for r in self.tables[table] if not self._matches(r, filters)]
        return before - len(self.tables[table])


class FakeIdentityProvider:
    """Provedor de identidade em memória."""

    name = "fake"

    def __init__(self, needs_confirmation: bool = True):
        self.accounts: dict[str, dict[str, Any]] = {}
        self.failures: dict[str, Exception] = {}
        self.metadata_updates: list[tuple[str, dict[str, Any]]] = []
        self.deleted: list[str] = []
        self.needs_confirmation = needs_confirmation
        self._seq = count(1)

    def fail(self, operation: str, exc: Exception) -> None:
        self.failures[operation] = exc

    async def create_account(
        self,
        email: str,
        password: str,
        metadata: dict[str, Any] | None = None,
    ) -> ProviderAccount:
        if "create_account" in self.failures:
            raise self.failures["create_account"]
        if any(a["email"] == email for a in self.accounts.values()):
            raise ProviderAccountExistsError(email, provider=self.name)
        account_id = f"auth-{next(self._seq)}"
        self.accounts[account_id] = {
            "email": email,
            "password": password,
            "metadata": dict(metadata or {}),
        }
        return ProviderAccount(account_id, email, self.needs_confirmation)

    async def update_account_metadata(self, account_id: str, metadata: dict[str, Any]) -> None:
        if "update_account_metadata" in self.failures:
            raise self.failures["update_account_metadata"]
        self.metadata_updates.append((account_id, dict(metadata)))
        self.accounts[account_id]["metadata"].update(metadata)

    async def delete_account(self, account_id: str) -> None:
        if "delete_account" in self.failures:
            raise self.failures["delete_account"]
        self.deleted.append(account_id)
        self.accounts.pop(account_id, None)


def _cliente_payload(**overrides: Any) -> dict[str, Any]:
    """Corpo de cadastro de cliente pessoa física."""
    payload = {
        "dadosCliente": {
            "tipoPessoa": "fisica",
            "nomeCompleto": " Ana Souza ",
            "cpf": "123.456.789-09",
        },
        "dadosContato": {
            "email": "A@B.com ",
            "celular": "(11) 98765-4321",
            "telefone": "(11) 3333-4444",
            "redesSociais": ["@anasouza"],
        },
        "dadosEndereco": {
            "cep": "01310-100",
            "rua": " Av. Paulista ",
            "numero": "1000",
            "complemento": "",
            "bairro": "Bela Vista",
            "cidade": "São Paulo",
            "estado": "sp",
        },
        "dadosCredenciais": {"senha": "longenough1"},
        "idAdminLogado": 7,
    }
    payload.update(overrides)
    return payload


def _admin_payload(**overrides: Any) -> dict[str, Any]:
    """Corpo de cadastro de administrador pessoa jurídica."""
    payload = {
        "dadosUsuario": {
            "razaoSocial": "Souza Advocacia Ltda",
            "cnpj": "12.345.678/0001-95",
            "areaAtuacao": "Previdenciário",
        },
        "dadosContato": {
            "email": "Contato@SouzaAdv.com.br",
            "celular": "11987654321",
        },
        "dadosEndereco": {
            "cep": "20040-002",
            "rua": "Rua da Assembleia",
            "numero": "10",
            "complemento": "Sala 301",
            "bairro": "Centro",
            "cidade": "Rio de Janeiro",
            "estado": "RJ",
        },
        "dadosCredenciais": {"senha": "senhaforte123"},
    }
    payload.update(overrides)
    return payload


@pytest.fixture
def cliente_payload():
    """Fábrica do corpo de cadastro de cliente."""
    return _cliente_payload


@pytest.fixture
def admin_payload():
    """Fábrica do corpo de cadastro de administrador."""
    return _admin_payload


@pytest.fixture
def store() -> FakeRecordStore:
    return FakeRecordStore()


@pytest.fixture
def provider() -> FakeIdentityProvider:
    return FakeIdentityProvider()


@pytest.fixture
def service(store: FakeRecordStore, provider: FakeIdentityProvider) -> CadastroService:
    return CadastroService(store, provider, hash_password=get_password_hash, timeout=1.0)


@pytest_asyncio.fixture
async def client(
    store: FakeRecordStore,
    provider: FakeIdentityProvider,
) -> AsyncGenerator[AsyncClient, None]:
    """Cliente HTTP com banco e provedor falsos."""
    app.dependency_overrides[get_record_store] = lambda: store
    app.dependency_overrides[get_identity_provider] = lambda: provider

    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
    ) as ac:
        yield ac

    app.dependency_overrides.clear()
