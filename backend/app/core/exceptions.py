"""
Exceções customizadas da aplicação.

Define hierarquia de exceções para tratamento consistente de erros
durante o cadastro e a compensação de etapas.
"""

import enum
from typing import Any


class CadastroException(Exception):
    """Exceção base da API de cadastro."""

    def __init__(
        self,
        message: str,
        code: str = "CADASTRO_ERROR",
        details: dict[str, Any] | None = None,
    ):
        self.message = message
        self.code = code
        self.details = details or {}
        super().__init__(self.message)


# === Exceções de Validação ===

class ValidationError(CadastroException):
    """Erro de validação de dados."""

    def __init__(
        self,
        message: str,
        field: str | None = None,
        errors: list[dict[str, Any]] | None = None,
    ):
        super().__init__(message, code="VALIDATION_ERROR")
        self.field = field
        self.errors = errors or []


class CampoObrigatorioError(ValidationError):
    """Campo obrigatório ausente."""

    def __init__(self, field: str):
        super().__init__(f"Campo obrigatório: {field}", field=field)
        self.code = "REQUIRED_FIELD"


class SenhaFracaError(ValidationError):
    """Senha abaixo do tamanho mínimo."""

    def __init__(self, min_length: int):
        super().__init__(
            f"Senha deve ter no mínimo {min_length} caracteres",
            field="senha",
        )
        self.code = "WEAK_PASSWORD"


# === Exceções de Conflito ===

class DuplicateError(CadastroException):
    """Email, CPF ou CNPJ já cadastrado."""

    def __init__(
        self,
        message: str,
        resource_type: str | None = None,
        field: str | None = None,
    ):
        super().__init__(message, code="ALREADY_EXISTS")
        self.resource_type = resource_type
        self.field = field


# === Exceções de Escrita ===

class WriteError(CadastroException):
    """Falha de escrita no banco (insert ou delete)."""

    def __init__(
        self,
        message: str,
        table: str | None = None,
        operation: str | None = None,
    ):
        super().__init__(
            message,
            code="WRITE_ERROR",
            details={"table": table, "operation": operation},
        )
        self.table = table
        self.operation = operation


# === Exceções do Provedor de Identidade ===

class ProviderErrorKind(str, enum.Enum):
    """Tipo estruturado de falha do provedor de identidade."""

    ALREADY_REGISTERED = "already_registered"
    WEAK_PASSWORD = "weak_password"
    INVALID_EMAIL = "invalid_email"
    UNAVAILABLE = "unavailable"
    UNKNOWN = "unknown"


class ProviderError(CadastroException):
    """Erro no provedor de identidade."""

    def __init__(
        self,
        message: str,
        kind: ProviderErrorKind = ProviderErrorKind.UNKNOWN,
        provider: str | None = None,
    ):
        super().__init__(message, code="PROVIDER_ERROR")
        self.kind = kind
        self.provider = provider


class ProviderAccountExistsError(ProviderError):
    """Email já registrado no provedor de identidade."""

    def __init__(self, email: str, provider: str | None = None):
        super().__init__(
            f"Email {email} já está registrado no provedor de autenticação",
            kind=ProviderErrorKind.ALREADY_REGISTERED,
            provider=provider,
        )
        self.code = "PROVIDER_ACCOUNT_EXISTS"


# === Exceções de Integração ===

class ExternalTimeoutError(CadastroException):
    """Chamada externa excedeu o tempo limite."""

    def __init__(self, step: str, timeout: float):
        super().__init__(
            f"Tempo limite excedido na etapa '{step}' ({timeout:g}s)",
            code="TIMEOUT",
        )
        self.step = step
        self.timeout = timeout


class CompensationError(CadastroException):
    """
    Falha ao desfazer uma etapa já concluída.

    Apenas registrada em log; nunca substitui o erro original.
    """

    def __init__(self, step: str, cause: BaseException):
        super().__init__(
            f"Falha ao compensar etapa '{step}': {cause}",
            code="COMPENSATION_ERROR",
        )
        self.step = step
        self.cause = cause
