"""
Integração com Firebase Authentication.

Alternativa ao Supabase Auth como provedor de identidade: a metadata da
conta é guardada em custom claims.
"""

import asyncio
from typing import Any

import structlog
from firebase_admin import auth, credentials, initialize_app
from firebase_admin.exceptions import FirebaseError

from app.core.config import settings
from app.core.exceptions import (
    ProviderAccountExistsError,
    ProviderError,
    ProviderErrorKind,
)
from app.services.ports import ProviderAccount

logger = structlog.get_logger()

# Inicialização do Firebase Admin SDK
_firebase_app = None


def get_firebase_app():
    """Inicializa Firebase Admin SDK sob demanda."""
    global _firebase_app

    if _firebase_app is None:
        try:
            # Em produção, usa ADC (Application Default Credentials)
            # Em desenvolvimento, pode usar arquivo de credenciais
            if settings.FIREBASE_CREDENTIALS_PATH:
                cred = credentials.Certificate(settings.FIREBASE_CREDENTIALS_PATH)
                _firebase_app = initialize_app(cred)
            elif settings.FIREBASE_PROJECT_ID:
                _firebase_app = initialize_app(
                    options={"projectId": settings.FIREBASE_PROJECT_ID}
                )
            else:
                _firebase_app = initialize_app()

            logger.info("Firebase Admin SDK inicializado")
        except (ValueError, FirebaseError) as e:
            logger.error("Erro ao inicializar Firebase Admin", error=str(e))
            raise ProviderError(
                f"Erro ao inicializar Firebase: {str(e)}",
                kind=ProviderErrorKind.UNAVAILABLE,
                provider="firebase",
            )

    return _firebase_app


class FirebaseIdentityProvider:
    """
    Provedor de identidade com Firebase.

    As chamadas do SDK são bloqueantes e rodam em thread separada.
    """

    name = "firebase"

    def __init__(self):
        self._app = None

    @property
    def app(self):
        """Inicializa app sob demanda."""
        if self._app is None:
            self._app = get_firebase_app()
        return self._app

    async def _call(self, func, *args, **kwargs):
        _ = self.app
        return await asyncio.to_thread(func, *args, **kwargs)

    async def create_account(
        self,
        email: str,
        password: str,
        metadata: dict[str, Any] | None = None,
    ) -> ProviderAccount:
        """
        Cria usuário no Firebase.

        Returns:
            ProviderAccount com o UID do novo usuário
        """
        try:
            user = await self._call(
                auth.create_user,
                email=email,
                password=password,
                display_name=(metadata or {}).get("razao_nome"),
                email_verified=False,
            )
        except auth.EmailAlreadyExistsError:
            raise ProviderAccountExistsError(email, provider=self.name)
        except ValueError as e:
            # O SDK valida email/senha localmente antes da chamada
            kind = (
                ProviderErrorKind.WEAK_PASSWORD
                if "password" in str(e).lower()
                else ProviderErrorKind.INVALID_EMAIL
            )
            raise ProviderError(str(e), kind=kind, provider=self.name)
        except FirebaseError as e:
            logger.error("Erro ao criar usuário Firebase", error=str(e))
            raise ProviderError(str(e), provider=self.name)

        if metadata:
            try:
                await self.update_account_metadata(user.uid, metadata)
            except ProviderError:
                # A conta ainda não foi devolvida ao chamador; remove aqui
                await self._remover_apos_falha(user.uid)
                raise

        logger.info("Usuário criado no Firebase", uid=user.uid, email=email)
        return ProviderAccount(
            id=user.uid,
            email=email,
            needs_confirmation=not user.email_verified,
        )

    async def _remover_apos_falha(self, account_id: str) -> None:
        try:
            await self.delete_account(account_id)
        except ProviderError as e:
            logger.error(
                "Conta Firebase órfã após falha nos custom claims",
                uid=account_id,
                error=str(e),
            )

    async def update_account_metadata(
        self,
        account_id: str,
        metadata: dict[str, Any],
    ) -> None:
        """Define a metadata como custom claims do usuário."""
        try:
            await self._call(auth.set_custom_user_claims, account_id, metadata)
            logger.info("Custom claims definidos", uid=account_id)
        except (ValueError, FirebaseError) as e:
            logger.error("Erro ao definir custom claims", error=str(e))
            raise ProviderError(str(e), provider=self.name)

    async def delete_account(self, account_id: str) -> None:
        """Remove usuário do Firebase."""
        try:
            await self._call(auth.delete_user, account_id)
            logger.info("Usuário removido do Firebase", uid=account_id)
        except auth.UserNotFoundError:
            logger.info("Usuário já removido do Firebase", uid=account_id)
        except FirebaseError as e:
            logger.error("Erro ao remover usuário Firebase", error=str(e))
            raise ProviderError(str(e), provider=self.name)


# Singleton para uso global
firebase_identity_provider = FirebaseIdentityProvider()
