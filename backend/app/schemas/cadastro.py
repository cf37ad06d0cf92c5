"""
Schemas do cadastro de clientes e administradores.

A normalização acontece aqui, antes de qualquer comparação ou gravação:
email em minúsculas e sem espaços, documentos e telefones apenas com
dígitos, textos aparados e UF em maiúsculas.
"""

from typing import Any

from pydantic import AliasChoices, EmailStr, Field, field_validator, model_validator

from app.models.tabelas import TipoPessoa
from app.schemas.base import BaseSchema


def somente_digitos(valor: Any) -> str:
    """Remove tudo que não for dígito."""
    return "".join(filter(str.isdigit, str(valor)))


def normalizar_email(valor: Any) -> Any:
    """Email em minúsculas e sem espaços nas pontas."""
    if isinstance(valor, str):
        return valor.strip().lower()
    return valor


def _aparar(valor: Any) -> Any:
    if isinstance(valor, str):
        return valor.strip()
    return valor


class DadosContato(BaseSchema):
    """Dados da tabela contato."""

    email: EmailStr
    celular: str = Field(..., min_length=10, max_length=11)
    telefone: str | None = None
    redes_sociais: list[str] = Field(default_factory=list, alias="redesSociais")

    @field_validator("email", mode="before")
    @classmethod
    def normalizar_email_contato(cls, v: Any) -> Any:
        return normalizar_email(v)

    @field_validator("celular", mode="before")
    @classmethod
    def normalizar_celular(cls, v: Any) -> Any:
        if v is None:
            return v
        return somente_digitos(v)

    @field_validator("telefone", mode="before")
    @classmethod
    def normalizar_telefone(cls, v: Any) -> str | None:
        if v is None:
            return None
        return somente_digitos(v) or None

    @field_validator("redes_sociais", mode="before")
    @classmethod
    def normalizar_redes(cls, v: Any) -> Any:
        if v is None:
            return []
        if isinstance(v, list):
            return [r.strip() for r in v if isinstance(r, str) and r.strip()]
        return v


class DadosEndereco(BaseSchema):
    """Dados da tabela endereco."""

    cep: str = Field(..., pattern=r"^\d{8}$")
    rua: str = Field(..., min_length=1, max_length=255)
    numero: str = Field(..., min_length=1, max_length=20)
    complemento: str | None = None
    bairro: str = Field(..., min_length=1, max_length=255)
    cidade: str = Field(..., min_length=1, max_length=255)
    estado: str = Field(..., pattern=r"^[A-Z]{2}$")

    @field_validator("rua", "numero", "bairro", "cidade", mode="before")
    @classmethod
    def aparar_textos(cls, v: Any) -> Any:
        return _aparar(v)

    @field_validator("cep", mode="before")
    @classmethod
    def normalizar_cep(cls, v: Any) -> Any:
        if v is None:
            return v
        return somente_digitos(v)

    @field_validator("complemento", mode="before")
    @classmethod
    def normalizar_complemento(cls, v: Any) -> str | None:
        if v is None:
            return None
        return str(v).strip() or None

    @field_validator("estado", mode="before")
    @classmethod
    def normalizar_estado(cls, v: Any) -> Any:
        if isinstance(v, str):
            return v.strip().upper()
        return v


class DadosUsuario(BaseSchema):
    """
    Dados pessoais ou da empresa (tabela dados_usuario).

    Quando ``tipoPessoa`` não é informado, é inferido pelo documento enviado.
    """

    tipo_pessoa: TipoPessoa | None = Field(None, alias="tipoPessoa")
    nome_completo: str = Field(
        ...,
        min_length=2,
        max_length=255,
        validation_alias=AliasChoices("nomeCompleto", "razaoSocial", "nome_completo"),
    )
    cpf: str | None = None
    cnpj: str | None = None
    area_atuacao: str | None = Field(None, alias="areaAtuacao")

    @field_validator("nome_completo", mode="before")
    @classmethod
    def aparar_nome(cls, v: Any) -> Any:
        return _aparar(v)

    @field_validator("cpf", mode="before")
    @classmethod
    def validate_cpf(cls, v: Any) -> str | None:
        """Valida CPF (validação básica de formato)."""
        if v is None:
            return v
        numbers = somente_digitos(v)
        if not numbers:
            return None
        if len(numbers) != 11:
            raise ValueError("CPF deve conter 11 dígitos")
        return numbers

    @field_validator("cnpj", mode="before")
    @classmethod
    def validate_cnpj(cls, v: Any) -> str | None:
        """Valida CNPJ (validação básica de formato)."""
        if v is None:
            return v
        numbers = somente_digitos(v)
        if not numbers:
            return None
        if len(numbers) != 14:
            raise ValueError("CNPJ deve conter 14 dígitos")
        return numbers

    @model_validator(mode="after")
    def validar_documento(self) -> "DadosUsuario":
        if self.tipo_pessoa is None:
            self.tipo_pessoa = (
                TipoPessoa.JURIDICA if self.cnpj and not self.cpf else TipoPessoa.FISICA
            )
        if self.tipo_pessoa == TipoPessoa.FISICA and not self.cpf:
            raise ValueError("CPF é obrigatório para pessoa física")
        if self.tipo_pessoa == TipoPessoa.JURIDICA and not self.cnpj:
            raise ValueError("CNPJ é obrigatório para pessoa jurídica")
        return self

    @property
    def cpf_cnpj(self) -> str:
        """Documento fiscal conforme o tipo de pessoa, apenas dígitos."""
        if self.tipo_pessoa == TipoPessoa.JURIDICA:
            return self.cnpj or ""
        return self.cpf or ""

    @property
    def documento(self) -> str:
        """Nome do documento para mensagens ("CPF" ou "CNPJ")."""
        return "CNPJ" if self.tipo_pessoa == TipoPessoa.JURIDICA else "CPF"


class DadosCredenciais(BaseSchema):
    """Credenciais de acesso."""

    email_login: EmailStr | None = Field(None, alias="emailLogin")
    senha: str = Field(..., min_length=1)

    @field_validator("email_login", mode="before")
    @classmethod
    def normalizar_email_login(cls, v: Any) -> Any:
        if v is None:
            return None
        return normalizar_email(v) or None


class CadastroRequest(BaseSchema):
    """Corpo da requisição de cadastro, agrupado por tabela."""

    dados_usuario: DadosUsuario = Field(
        ...,
        validation_alias=AliasChoices("dadosUsuario", "dadosCliente", "dados_usuario"),
    )
    dados_contato: DadosContato = Field(..., alias="dadosContato")
    dados_endereco: DadosEndereco = Field(..., alias="dadosEndereco")
    dados_credenciais: DadosCredenciais = Field(..., alias="dadosCredenciais")
    id_admin_logado: int | str | None = Field(None, alias="idAdminLogado")

    @property
    def email_login(self) -> str:
        """Email de login; por padrão o email de contato."""
        return self.dados_credenciais.email_login or self.dados_contato.email

    @property
    def usuario(self) -> str:
        """Login derivado da parte local do email."""
        return self.email_login.split("@")[0].lower()


class CadastroResponse(BaseSchema):
    """Identificadores criados no cadastro."""

    usuario_id: int | str = Field(..., alias="usuarioId")
    cliente_id: int | str | None = Field(None, alias="clienteId")
    admin_id: int | str | None = Field(None, alias="adminId")
    email: str
    auth_user_id: str | None = Field(None, alias="authUserId")
    needs_confirmation: bool | None = Field(None, alias="needsConfirmation")
