"""
Executor de etapas com compensação (saga).

Cada etapa concluída empilha sua operação inversa. Se algo falhar dentro do
bloco ``async with``, as compensações são executadas em ordem inversa de
conclusão e o erro original é repropagado.

Uso:
    async with Saga("cadastro_cliente", timeout=10) as saga:
        contato, endereco = await saga.parallel(
            SagaStep("contato", criar_contato, apagar_contato),
            SagaStep("endereco", criar_endereco, apagar_endereco),
        )
        usuario = await saga.step("dados_usuario", criar_usuario, apagar_usuario)
"""

import asyncio
from dataclasses import dataclass
from typing import Any, Awaitable, Callable

import structlog

from app.core.exceptions import CompensationError, ExternalTimeoutError

logger = structlog.get_logger()

Action = Callable[[], Awaitable[Any]]
Compensation = Callable[[Any], Awaitable[Any]]


@dataclass
class SagaStep:
    """Etapa declarada para execução paralela."""

    name: str
    action: Action
    compensation: Compensation | None = None


@dataclass
class _Concluida:
    name: str
    result: Any
    compensation: Compensation | None


class Saga:
    """Pilha de compensação para uma tentativa de cadastro."""

    def __init__(self, nome: str, timeout: float | None = None):
        self.nome = nome
        self.timeout = timeout
        self._pilha: list[_Concluida] = []
        self.etapas_concluidas: list[str] = []
        self.compensadas: list[str] = []
        self.falhas_compensacao: list[CompensationError] = []

    async def __aenter__(self) -> "Saga":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> bool:
        if exc is not None:
            logger.warning(
                "Falha durante saga, iniciando compensação",
                saga=self.nome,
                error=str(exc),
                etapas=list(self.etapas_concluidas),
            )
            await self.compensate()
        return False

    async def _run(self, name: str, action: Action) -> Any:
        if self.timeout is None:
            return await action()
        try:
            return await asyncio.wait_for(action(), timeout=self.timeout)
        except asyncio.TimeoutError as e:
            raise ExternalTimeoutError(name, self.timeout) from e

    def _push(self, name: str, result: Any, compensation: Compensation | None) -> None:
        self._pilha.append(_Concluida(name, result, compensation))
        self.etapas_concluidas.append(name)
        logger.info("Etapa concluída", saga=self.nome, etapa=name)

    async def step(
        self,
        name: str,
        action: Action,
        compensation: Compensation | None = None,
    ) -> Any:
        """Executa uma etapa e empilha sua compensação em caso de sucesso."""
        logger.info("Executando etapa", saga=self.nome, etapa=name)
        result = await self._run(name, action)
        self._push(name, result, compensation)
        return result

    async def parallel(self, *steps: SagaStep) -> tuple[Any, ...]:
        """
        Dispara todas as etapas e aguarda todas.

        As etapas bem-sucedidas empilham suas compensações mesmo que outra
        tenha falhado; a primeira falha (na ordem declarada) é levantada.
        """
        logger.info(
            "Executando etapas em paralelo",
            saga=self.nome,
            etapas=[s.name for s in steps],
        )
        results = await asyncio.gather(
            *(self._run(s.name, s.action) for s in steps),
            return_exceptions=True,
        )

        first_error: BaseException | None = None
        for s, result in zip(steps, results):
            if isinstance(result, BaseException):
                logger.warning("Etapa falhou", saga=self.nome, etapa=s.name, error=str(result))
                if first_error is None:
                    first_error = result
            else:
                self._push(s.name, result, s.compensation)

        if first_error is not None:
            raise first_error
        return tuple(results)

    async def compensate(self) -> list[CompensationError]:
        """
        Desfaz as etapas concluídas em ordem inversa.

        Falhas de compensação são registradas e acumuladas, nunca levantadas.
        """
        while self._pilha:
            concluida = self._pilha.pop()
            if concluida.compensation is None:
                continue

            logger.info("Compensando etapa", saga=self.nome, etapa=concluida.name)
            try:
                await self._run(
                    f"compensar:{concluida.name}",
                    lambda c=concluida: c.compensation(c.result),
                )
            except Exception as e:
                falha = CompensationError(concluida.name, e)
                self.falhas_compensacao.append(falha)
                logger.error(
                    "Falha na compensação",
                    saga=self.nome,
                    etapa=concluida.name,
                    error=str(e),
                )
                continue

            self.compensadas.append(concluida.name)

        return self.falhas_compensacao
