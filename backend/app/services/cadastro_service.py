"""
Service de cadastro de clientes e administradores.

Orquestra, para cada variante de cadastro, a sequência:

    validação -> verificação de duplicidade -> contato + endereço (paralelo)
    -> credencial (hash local ou conta no provedor) -> dados_usuario
    -> cliente/admin -> metadata no provedor (opcional)

Qualquer falha após o início das escritas desfaz, em ordem inversa, o que
já foi gravado. O erro reportado é sempre o original.
"""

import asyncio
import enum
from dataclasses import dataclass
from typing import Any, Awaitable, Callable

import structlog

from app.core.config import settings
from app.core.exceptions import (
    CampoObrigatorioError,
    DuplicateError,
    ExternalTimeoutError,
    ProviderError,
    ProviderErrorKind,
    SenhaFracaError,
    ValidationError,
)
from app.core.security import get_password_hash
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
from app.schemas.cadastro import CadastroRequest
from app.services.ports import (
    IdentityProvider,
    PasswordHasher,
    ProviderAccount,
    RecordStore,
)
from app.services.saga import Saga, SagaStep

logger = structlog.get_logger()


class ModoCredencial(str, enum.Enum):
    """Onde a credencial do usuário fica guardada."""

    LOCAL = "local"  # hash em dados_usuario.senha
    PROVEDOR = "provedor"  # conta no provedor, id em dados_usuario.auth_user_id


@dataclass(frozen=True)
class PoliticaCadastro:
    """Regras de uma variante de cadastro."""

    nome: str
    tipo_cliente: TipoCliente
    credencial: ModoCredencial
    min_senha: int | None = None
    compensar_conta_provedor: bool = True
    metadata_na_criacao: bool = False
    atualizar_metadata: bool = False
    tipo_pessoa_fixo: TipoPessoa | None = None

    @property
    def tabela_conta(self) -> Tabela:
        return CLIENTE if self.tipo_cliente == TipoCliente.CLIENTE else ADMIN

    @property
    def requer_admin(self) -> bool:
        """Clientes são sempre vinculados a um administrador."""
        return self.tipo_cliente == TipoCliente.CLIENTE


CLIENTE_LOCAL = PoliticaCadastro(
    nome="cliente_local",
    tipo_cliente=TipoCliente.CLIENTE,
    credencial=ModoCredencial.LOCAL,
    min_senha=settings.MIN_PASSWORD_LENGTH,
)

CLIENTE_PROVEDOR = PoliticaCadastro(
    nome="cliente_provedor",
    tipo_cliente=TipoCliente.CLIENTE,
    credencial=ModoCredencial.PROVEDOR,
    min_senha=settings.MIN_PASSWORD_LENGTH,
    compensar_conta_provedor=settings.COMPENSATE_PROVIDER_ACCOUNT,
    metadata_na_criacao=True,
)

ADMIN_PROVEDOR = PoliticaCadastro(
    nome="admin_provedor",
    tipo_cliente=TipoCliente.ADMIN,
    credencial=ModoCredencial.PROVEDOR,
    min_senha=settings.MIN_PASSWORD_LENGTH,
    compensar_conta_provedor=settings.COMPENSATE_PROVIDER_ACCOUNT,
    atualizar_metadata=True,
    tipo_pessoa_fixo=TipoPessoa.JURIDICA,
)

ADMIN_LOCAL = PoliticaCadastro(
    nome="admin_local",
    tipo_cliente=TipoCliente.ADMIN,
    credencial=ModoCredencial.LOCAL,
    min_senha=settings.MIN_PASSWORD_LENGTH,
    tipo_pessoa_fixo=TipoPessoa.JURIDICA,
)


@dataclass(frozen=True)
class CadastroResult:
    """Identificadores criados por um cadastro concluído."""

    usuario_id: Any
    conta_id: Any
    tipo_cliente: TipoCliente
    email: str
    auth_user_id: str | None = None
    needs_confirmation: bool | None = None


class CadastroService:
    """
    Service para cadastro de contas.

    Recebe banco e provedor de identidade por injeção; uma instância pode
    atender várias requisições, pois não guarda estado entre tentativas.
    """

    def __init__(
        self,
        store: RecordStore,
        provider: IdentityProvider | None = None,
        hash_password: PasswordHasher = get_password_hash,
        timeout: float | None = settings.EXTERNAL_CALL_TIMEOUT_SECONDS,
    ):
        self._store = store
        self._provider = provider
        self._hash_password = hash_password
        self._timeout = timeout

    async def registrar(
        self,
        dados: CadastroRequest,
        politica: PoliticaCadastro,
    ) -> CadastroResult:
        """
        Executa um cadastro completo.

        Raises:
            ValidationError: dados inválidos (nada foi gravado)
            DuplicateError: email/CPF/CNPJ já cadastrado
            WriteError: falha no banco (etapas anteriores compensadas)
            ProviderError: falha no provedor (etapas anteriores compensadas)
        """
        log = logger.bind(politica=politica.nome, email=dados.dados_contato.email)
        log.info("Iniciando cadastro", estado="validando")

        self.validar(dados, politica)

        log.info("Verificando duplicidade", estado="verificando_duplicidade")
        await self.verificar_duplicidade(dados, politica)

        log.info("Gravando cadastro", estado="gravando")
        async with Saga(f"cadastro_{politica.nome}", timeout=self._timeout) as saga:
            contato, endereco = await saga.parallel(
                SagaStep(
                    CONTATO.nome,
                    lambda: self._store.insert(CONTATO.nome, self._campos_contato(dados)),
                    self._remover(CONTATO),
                ),
                SagaStep(
                    ENDERECO.nome,
                    lambda: self._store.insert(ENDERECO.nome, self._campos_endereco(dados)),
                    self._remover(ENDERECO),
                ),
            )

            senha_hash: str | None = None
            conta: ProviderAccount | None = None
            if politica.credencial == ModoCredencial.LOCAL:
                senha_hash = await saga.step(
                    "hash_senha",
                    lambda: asyncio.to_thread(self._hash_password, dados.dados_credenciais.senha),
                )
            else:
                metadata = self._metadata_base(dados, politica) if politica.metadata_na_criacao else None
                conta = await saga.step(
                    "conta_provedor",
                    lambda: self._provider.create_account(
                        dados.email_login,
                        dados.dados_credenciais.senha,
                        metadata,
                    ),
                    self._compensacao_conta(politica),
                )

            usuario = await saga.step(
                DADOS_USUARIO.nome,
                lambda: self._store.insert(
                    DADOS_USUARIO.nome,
                    self._campos_usuario(dados, politica, contato, endereco, senha_hash, conta),
                ),
                self._remover(DADOS_USUARIO),
            )

            tabela = politica.tabela_conta
            registro_conta = await saga.step(
                tabela.nome,
                lambda: self._store.insert(tabela.nome, self._campos_conta(dados, politica, usuario)),
                self._remover(tabela),
            )

            if conta is not None and politica.atualizar_metadata:
                metadata = {
                    **self._metadata_base(dados, politica),
                    "id_contato": contato[CONTATO.pk],
                    "id_endereco": endereco[ENDERECO.pk],
                    "id_dados": usuario[DADOS_USUARIO.pk],
                    f"id_{tabela.nome}": registro_conta[tabela.pk],
                }
                await saga.step(
                    "metadata_provedor",
                    lambda: self._provider.update_account_metadata(conta.id, metadata),
                )

        result = CadastroResult(
            usuario_id=usuario[DADOS_USUARIO.pk],
            conta_id=registro_conta[tabela.pk],
            tipo_cliente=politica.tipo_cliente,
            email=dados.email_login,
            auth_user_id=conta.id if conta else None,
            needs_confirmation=conta.needs_confirmation if conta else None,
        )
        log.info(
            "Cadastro concluído",
            estado="concluido",
            usuario_id=result.usuario_id,
            conta_id=result.conta_id,
        )
        return result

    def validar(self, dados: CadastroRequest, politica: PoliticaCadastro) -> None:
        """Regras da variante que o schema não cobre. Não faz I/O."""
        senha = dados.dados_credenciais.senha
        if not senha or not senha.strip():
            raise CampoObrigatorioError("senha")
        # Espaços nas pontas não contam para o tamanho mínimo
        if politica.min_senha and len(senha.strip()) < politica.min_senha:
            raise SenhaFracaError(politica.min_senha)

        if (
            politica.tipo_pessoa_fixo is not None
            and dados.dados_usuario.tipo_pessoa != politica.tipo_pessoa_fixo
        ):
            raise ValidationError(
                f"Cadastro de {politica.tipo_cliente.value} exige pessoa "
                f"{politica.tipo_pessoa_fixo.value}",
                field="tipoPessoa",
            )

        if politica.requer_admin and dados.id_admin_logado in (None, ""):
            raise CampoObrigatorioError("idAdminLogado")

        if politica.credencial == ModoCredencial.PROVEDOR and self._provider is None:
            raise ProviderError(
                "Provedor de autenticação não configurado",
                kind=ProviderErrorKind.UNAVAILABLE,
            )

    async def verificar_duplicidade(
        self,
        dados: CadastroRequest,
        politica: PoliticaCadastro,
    ) -> None:
        """
        Consulta contato por email e dados_usuario por documento e email.

        Nos cadastros com provedor, um dados_usuario só conta como duplicado
        se já estiver vinculado a uma conta (auth_user_id).
        """
        usuario = dados.dados_usuario
        contato, por_documento, por_email = await asyncio.gather(
            self._consultar(CONTATO.nome, {"email": dados.dados_contato.email}),
            self._consultar(DADOS_USUARIO.nome, {"cpf_cnpj": usuario.cpf_cnpj}),
            self._consultar(DADOS_USUARIO.nome, {"email": dados.email_login}),
        )

        def conflita(registro: dict[str, Any] | None) -> bool:
            if registro is None:
                return False
            if politica.credencial == ModoCredencial.PROVEDOR:
                return bool(registro.get("auth_user_id"))
            return True

        if contato is not None or conflita(por_email):
            logger.warning("Email já cadastrado", email=dados.dados_contato.email)
            raise DuplicateError("Este email já está cadastrado", CONTATO.nome, "email")
        if conflita(por_documento):
            logger.warning(
                "Documento já cadastrado",
                documento=usuario.documento,
                cpf_cnpj=usuario.cpf_cnpj,
            )
            raise DuplicateError(
                f"Este {usuario.documento} já está cadastrado",
                DADOS_USUARIO.nome,
                "cpf_cnpj",
            )

    async def _consultar(self, table: str, filters: dict[str, Any]) -> dict[str, Any] | None:
        if self._timeout is None:
            return await self._store.select_one(table, filters)
        try:
            return await asyncio.wait_for(
                self._store.select_one(table, filters),
                timeout=self._timeout,
            )
        except asyncio.TimeoutError as e:
            raise ExternalTimeoutError(f"consultar:{table}", self._timeout) from e

    def _remover(self, tabela: Tabela) -> Callable[[dict[str, Any]], Awaitable[int]]:
        async def remover(registro: dict[str, Any]) -> int:
            return await self._store.delete(tabela.nome, {tabela.pk: registro[tabela.pk]})

        return remover

    def _compensacao_conta(
        self,
        politica: PoliticaCadastro,
    ) -> Callable[[ProviderAccount], Awaitable[None]]:
        async def remover_conta(conta: ProviderAccount) -> None:
            await self._provider.delete_account(conta.id)

        async def manter_conta(conta: ProviderAccount) -> None:
            logger.warning(
                "Conta no provedor mantida após falha no cadastro",
                auth_user_id=conta.id,
                email=conta.email,
            )

        return remover_conta if politica.compensar_conta_provedor else manter_conta

    @staticmethod
    def _campos_contato(dados: CadastroRequest) -> dict[str, Any]:
        contato = dados.dados_contato
        return {
            "email": contato.email,
            "celular": contato.celular,
            "telefone": contato.telefone,
            "redes_sociais": contato.redes_sociais,
        }

    @staticmethod
    def _campos_endereco(dados: CadastroRequest) -> dict[str, Any]:
        return dados.dados_endereco.model_dump()

    @staticmethod
    def _campos_usuario(
        dados: CadastroRequest,
        politica: PoliticaCadastro,
        contato: dict[str, Any],
        endereco: dict[str, Any],
        senha_hash: str | None,
        conta: ProviderAccount | None,
    ) -> dict[str, Any]:
        campos = {
            "razao_nome": dados.dados_usuario.nome_completo,
            "cpf_cnpj": dados.dados_usuario.cpf_cnpj,
            "usuario": dados.usuario,
            "email": dados.email_login,
            "tipo_pessoa": dados.dados_usuario.tipo_pessoa.value,
            "tipo_cliente": politica.tipo_cliente.value,
            "id_contato": contato[CONTATO.pk],
            "id_endereco": endereco[ENDERECO.pk],
            "first_login": True,
        }
        # Exatamente uma forma de credencial por usuário
        if conta is not None:
            campos["auth_user_id"] = conta.id
        else:
            campos["senha"] = senha_hash
        return campos

    @staticmethod
    def _campos_conta(
        dados: CadastroRequest,
        politica: PoliticaCadastro,
        usuario: dict[str, Any],
    ) -> dict[str, Any]:
        campos = {"id_dados": usuario[DADOS_USUARIO.pk]}
        if politica.requer_admin:
            campos["id_admin"] = dados.id_admin_logado
        return campos

    @staticmethod
    def _metadata_base(dados: CadastroRequest, politica: PoliticaCadastro) -> dict[str, Any]:
        metadata = {
            "tipo_cliente": politica.tipo_cliente.value,
            "razao_nome": dados.dados_usuario.nome_completo,
            "cpf_cnpj": dados.dados_usuario.cpf_cnpj,
            "area_atuacao": dados.dados_usuario.area_atuacao,
        }
        return {k: v for k, v in metadata.items() if v is not None}
