"""
Configuração de logging estruturado com structlog.

Logs são formatados como JSON em produção e nunca carregam senhas.
"""

import logging
import sys
from typing import Any

import structlog

from app.core.config import settings

CAMPOS_SENSIVEIS = frozenset({"senha", "password", "senha_hash"})
MASCARA = "***"


def _mascarar(valor: Any) -> Any:
    if isinstance(valor, dict):
        return {
            chave: MASCARA if chave in CAMPOS_SENSIVEIS else _mascarar(v)
            for chave, v in valor.items()
        }
    if isinstance(valor, (list, tuple)):
        return type(valor)(_mascarar(v) for v in valor)
    return valor


def mask_sensitive_fields(
    logger: Any,
    method_name: str,
    event_dict: dict[str, Any],
) -> dict[str, Any]:
    """Processor structlog que mascara credenciais em qualquer nível do evento."""
    return _mascarar(event_dict)


def setup_logging() -> None:
    """Configura logging estruturado para a aplicação."""

    # Processadores comuns
    shared_processors: list[structlog.types.Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.UnicodeDecoder(),
        mask_sensitive_fields,
    ]

    if settings.DEBUG:
        # Desenvolvimento: logs coloridos e legíveis
        processors = shared_processors + [
            structlog.dev.ConsoleRenderer(colors=True)
        ]
    else:
        # Produção: JSON
        processors = shared_processors + [
            structlog.processors.format_exc_info,
            structlog.processors.JSONRenderer(),
        ]

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )

    # Configura logging padrão do Python
    logging.basicConfig(
        format="%(message)s",
        stream=sys.stdout,
        level=logging.DEBUG if settings.DEBUG else logging.INFO,
    )
