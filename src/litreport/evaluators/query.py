# src/litreport/evaluators/query.py

"""SQL chunk evaluator backed by an apsw connection from the context."""

import asyncio
import logging
from time import monotonic
from typing import Any

import apsw
from tenacity import (
    Retrying,
    before_sleep_log,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from litreport.context import ExecutionContext
from litreport.errors import EvalError, MissingResourceError
from litreport.observability import names
from litreport.observability.base import MetricsHook, NoOpMetricsHook
from litreport.options import ChunkOptions

from .base import CodeEvaluator
from .types import EvalResult, TableArtifact

logger = logging.getLogger(__name__)


class QueryEvaluator(CodeEvaluator):
    """Runs ``sql`` chunks against a named connection resource.

    The chunk's ``connection`` option names a resource in the context
    (an ``apsw.Connection``). The result comes back as a TableArtifact.
    With ``output_var`` the table is bound into the context under that
    name and not shown, like knitr's ``output.var``.

    Retries only on ``apsw.BusyError`` (a locked database). Any other
    database error fails the chunk immediately.

    Example:
        >>> conn = apsw.Connection(":memory:")
        >>> result = await assembler.run(text, initial_resources={"db": conn})
    """

    def __init__(
        self,
        max_retries: int = 3,
        retry_wait: float = 0.5,
        metrics_hook: MetricsHook = NoOpMetricsHook(),
    ) -> None:
        self._max_retries = max_retries
        self._retry_wait = retry_wait
        self.metrics_hook = metrics_hook

    async def evaluate(
        self,
        code: str,
        options: ChunkOptions,
        context: ExecutionContext,
    ) -> EvalResult:
        if not options.connection:
            raise EvalError("sql chunks need a 'connection' option")

        try:
            connection = context.resource(options.connection)
        except MissingResourceError as exc:
            raise EvalError(
                f"connection '{options.connection}' is not available"
            ) from exc

        start = monotonic()
        try:
            table = await asyncio.to_thread(self._query, connection, code)
        except apsw.Error as exc:
            raise EvalError(f"{type(exc).__name__}: {exc}") from exc

        elapsed_ms = 1000 * (monotonic() - start)
        self.metrics_hook.record_latency(names.QUERY_DURATION, elapsed_ms)
        self.metrics_hook.record_gauge(names.QUERY_ROWS, len(table))
        logger.info(
            "Query on %s returned %d rows in %.0fms",
            options.connection,
            len(table),
            elapsed_ms,
        )

        if options.output_var:
            context.set(options.output_var, table)
            return EvalResult(value=table)
        return EvalResult(value=table, artifacts=(table,))

    def _query(self, connection: Any, code: str) -> TableArtifact:
        for attempt in Retrying(
            stop=stop_after_attempt(self._max_retries),
            wait=wait_exponential(multiplier=self._retry_wait, max=10),
            retry=retry_if_exception_type(apsw.BusyError),
            before_sleep=before_sleep_log(logger, logging.WARNING),
            reraise=True,
        ):
            with attempt:
                cursor = connection.execute(code)
                try:
                    description = cursor.getdescription()
                except apsw.ExecutionCompleteError:
                    # statement produced no result set (DDL, INSERT, ...)
                    return TableArtifact(columns=(), rows=())
                rows = cursor.fetchall()
                return TableArtifact(
                    columns=tuple(column[0] for column in description),
                    rows=tuple(tuple(row) for row in rows),
                )
