"""
Banco de registros via PostgREST (Supabase).

Implementa a porta ``RecordStore`` sobre a API REST do Supabase usando a
chave service role. Violações de unicidade (HTTP 409 / código 23505) viram
``DuplicateError``; qualquer outra falha vira ``WriteError``.
"""

from typing import Any

import httpx
import structlog

from app.core.config import settings
from app.core.exceptions import DuplicateError, WriteError

logger = structlog.get_logger()

UNIQUE_VIOLATION = "23505"


def _formatar_valor(valor: Any) -> str:
    if valor is None:
        return "is.null"
    if isinstance(valor, bool):
        return f"eq.{str(valor).lower()}"
    return f"eq.{valor}"


def build_filters(filters: dict[str, Any]) -> dict[str, str]:
    """Converte filtros de igualdade para a sintaxe do PostgREST."""
    return {coluna: _formatar_valor(valor) for coluna, valor in filters.items()}


class SupabaseRecordStore:
    """
    Banco de registros do Supabase.

    Uso:
        store = SupabaseRecordStore(http_client)
        contato = await store.insert("contato", {"email": "a@b.com"})
    """

    def __init__(
        self,
        client: httpx.AsyncClient,
        base_url: str | None = None,
        service_key: str | None = None,
    ):
        self._client = client
        self._base_url = (base_url or settings.SUPABASE_URL).rstrip("/")
        self._key = service_key or settings.SUPABASE_SERVICE_ROLE_KEY

    def _url(self, table: str) -> str:
        return f"{self._base_url}/rest/v1/{table}"

    def _headers(self, prefer: str | None = None) -> dict[str, str]:
        headers = {
            "apikey": self._key,
            "Authorization": f"Bearer {self._key}",
            "Content-Type": "application/json",
        }
        if prefer:
            headers["Prefer"] = prefer
        return headers

    @staticmethod
    def _raise_for(response: httpx.Response, table: str, operation: str) -> None:
        if response.is_success:
            return

        try:
            body = response.json()
        except ValueError:
            body = {}
        if not isinstance(body, dict):
            body = {}
        message = body.get("message") or response.text or f"HTTP {response.status_code}"

        if response.status_code == 409 or body.get("code") == UNIQUE_VIOLATION:
            logger.warning("Violação de unicidade", table=table, detail=body.get("details"))
            raise DuplicateError(
                f"Registro já cadastrado em {table}",
                resource_type=table,
            )

        logger.error(
            "Erro no banco",
            table=table,
            operation=operation,
            status_code=response.status_code,
            error=message,
        )
        raise WriteError(f"Erro ao {operation} {table}: {message}", table=table, operation=operation)

    async def _request(
        self,
        method: str,
        table: str,
        operation: str,
        **kwargs: Any,
    ) -> httpx.Response:
        try:
            response = await self._client.request(method, self._url(table), **kwargs)
        except httpx.HTTPError as e:
            logger.error("Falha de rede no banco", table=table, operation=operation, error=str(e))
            raise WriteError(
                f"Erro ao {operation} {table}: {e}",
                table=table,
                operation=operation,
            ) from e
        self._raise_for(response, table, operation)
        return response

    async def insert(self, table: str, fields: dict[str, Any]) -> dict[str, Any]:
        """Insere um registro e retorna a linha gravada."""
        response = await self._request(
            "POST",
            table,
            "salvar",
            json=fields,
            headers=self._headers("return=representation"),
        )
        rows = response.json()
        if not rows:
            raise WriteError(f"Erro ao salvar {table}: nenhuma linha retornada", table=table, operation="salvar")
        return rows[0]

    async def select_one(self, table: str, filters: dict[str, Any]) -> dict[str, Any] | None:
        """Busca o primeiro registro que casa com os filtros."""
        params = build_filters(filters)
        params["select"] = "*"
        params["limit"] = "1"
        response = await self._request(
            "GET",
            table,
            "consultar",
            params=params,
            headers=self._headers(),
        )
        rows = response.json()
        return rows[0] if rows else None

    async def delete(self, table: str, filters: dict[str, Any]) -> int:
        """Remove registros; nada a remover retorna 0."""
        response = await self._request(
            "DELETE",
            table,
            "remover",
            params=build_filters(filters),
            headers=self._headers("return=representation"),
        )
        if not response.content:
            return 0
        return len(response.json())
