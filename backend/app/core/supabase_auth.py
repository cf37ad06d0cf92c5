"""
Integração com Supabase Auth (GoTrue).

O cadastro é feito pelo endpoint público de sign-up (chave anon); a
atualização de metadata e a remoção da conta usam a API admin com a
chave service role.
"""

from typing import Any

import httpx
import structlog

from app.core.config import settings
from app.core.exceptions import (
    ProviderAccountExistsError,
    ProviderError,
    ProviderErrorKind,
)
from app.services.ports import ProviderAccount

logger = structlog.get_logger()

ERROR_CODES: dict[str, ProviderErrorKind] = {
    "user_already_exists": ProviderErrorKind.ALREADY_REGISTERED,
    "email_exists": ProviderErrorKind.ALREADY_REGISTERED,
    "weak_password": ProviderErrorKind.WEAK_PASSWORD,
    "email_address_invalid": ProviderErrorKind.INVALID_EMAIL,
    "over_request_rate_limit": ProviderErrorKind.UNAVAILABLE,
    "over_email_send_rate_limit": ProviderErrorKind.UNAVAILABLE,
}


def error_message(body: dict[str, Any]) -> str:
    """Extrai a mensagem de erro nos formatos usados pelo GoTrue."""
    for key in ("msg", "message", "error_description", "error"):
        value = body.get(key)
        if isinstance(value, str) and value:
            return value
    return "Erro desconhecido no provedor de autenticação"


def classify_error(status_code: int, body: dict[str, Any]) -> ProviderErrorKind:
    """
    Classifica a falha pelo ``error_code`` estruturado.

    Versões antigas do GoTrue não retornam ``error_code``; nesse caso o
    texto da mensagem é usado como fallback.
    """
    code = body.get("error_code")
    if isinstance(code, str) and code in ERROR_CODES:
        return ERROR_CODES[code]

    text = error_message(body).lower()
    if "already registered" in text or "already been registered" in text:
        return ProviderErrorKind.ALREADY_REGISTERED
    if "password" in text and ("weak" in text or "at least" in text):
        return ProviderErrorKind.WEAK_PASSWORD
    if "invalid" in text and "email" in text:
        return ProviderErrorKind.INVALID_EMAIL
    if status_code == 429 or status_code >= 500:
        return ProviderErrorKind.UNAVAILABLE
    return ProviderErrorKind.UNKNOWN


class SupabaseAuthProvider:
    """Provedor de identidade sobre a API REST do Supabase Auth."""

    name = "supabase"

    def __init__(
        self,
        client: httpx.AsyncClient,
        base_url: str | None = None,
        anon_key: str | None = None,
        service_key: str | None = None,
        site_url: str | None = None,
    ):
        self._client = client
        self._base_url = (base_url or settings.SUPABASE_URL).rstrip("/")
        self._anon_key = anon_key or settings.SUPABASE_ANON_KEY
        self._service_key = service_key or settings.SUPABASE_SERVICE_ROLE_KEY
        self._site_url = site_url if site_url is not None else settings.SITE_URL

    def _headers(self, key: str) -> dict[str, str]:
        return {
            "apikey": key,
            "Authorization": f"Bearer {key}",
            "Content-Type": "application/json",
        }

    @property
    def redirect_url(self) -> str | None:
        """Link para onde o usuário volta após confirmar o email."""
        if not self._site_url:
            return None
        return f"{self._site_url.rstrip('/')}/login"

    async def _request(self, method: str, path: str, key: str, **kwargs: Any) -> httpx.Response:
        try:
            return await self._client.request(
                method,
                f"{self._base_url}/auth/v1{path}",
                headers=self._headers(key),
                **kwargs,
            )
        except httpx.HTTPError as e:
            logger.error("Falha de rede no Supabase Auth", path=path, error=str(e))
            raise ProviderError(
                f"Provedor de autenticação indisponível: {e}",
                kind=ProviderErrorKind.UNAVAILABLE,
                provider=self.name,
            ) from e

    def _raise_for(self, response: httpx.Response, email: str | None = None) -> None:
        if response.is_success:
            return

        try:
            body = response.json()
        except ValueError:
            body = {}
        if not isinstance(body, dict):
            body = {}

        kind = classify_error(response.status_code, body)
        message = error_message(body)
        logger.warning(
            "Erro no Supabase Auth",
            status_code=response.status_code,
            kind=kind.value,
            error=message,
        )
        if kind == ProviderErrorKind.ALREADY_REGISTERED and email:
            raise ProviderAccountExistsError(email, provider=self.name)
        raise ProviderError(message, kind=kind, provider=self.name)

    async def create_account(
        self,
        email: str,
        password: str,
        metadata: dict[str, Any] | None = None,
    ) -> ProviderAccount:
        """
        Cria conta via sign-up.

        Returns:
            ProviderAccount com o id do usuário e se a confirmação por
            email ainda está pendente.
        """
        params = {}
        if self.redirect_url:
            params["redirect_to"] = self.redirect_url

        response = await self._request(
            "POST",
            "/signup",
            self._anon_key,
            params=params,
            json={"email": email, "password": password, "data": metadata or {}},
        )
        self._raise_for(response, email)

        body = response.json()
        user = body.get("user") or body
        # Com proteção contra enumeração, email existente volta sem identities
        if user.get("identities") == []:
            raise ProviderAccountExistsError(email, provider=self.name)

        confirmed = user.get("email_confirmed_at") or user.get("confirmed_at")
        account = ProviderAccount(
            id=str(user["id"]),
            email=user.get("email", email),
            needs_confirmation=not confirmed,
        )
        logger.info("Usuário criado no Supabase Auth", uid=account.id, email=email)
        return account

    async def update_account_metadata(
        self,
        account_id: str,
        metadata: dict[str, Any],
    ) -> None:
        """Atualiza ``user_metadata`` da conta."""
        response = await self._request(
            "PUT",
            f"/admin/users/{account_id}",
            self._service_key,
            json={"user_metadata": metadata},
        )
        self._raise_for(response)
        logger.info("Metadata atualizada no Supabase Auth", uid=account_id)

    async def delete_account(self, account_id: str) -> None:
        """Remove a conta; conta inexistente é ignorada."""
        response = await self._request(
            "DELETE",
            f"/admin/users/{account_id}",
            self._service_key,
        )
        if response.status_code == 404:
            logger.info("Conta já removida do Supabase Auth", uid=account_id)
            return
        self._raise_for(response)
        logger.info("Usuário removido do Supabase Auth", uid=account_id)
