# src/litreport/assembler.py

import logging
from collections.abc import Mapping
from pathlib import Path
from time import monotonic
from typing import Any

from .config import ReportConfig
from .context import ExecutionContext
from .evaluators.python import PythonEvaluator
from .evaluators.query import QueryEvaluator
from .evaluators.registry import EvaluatorRegistry
from .observability import names
from .observability.base import MetricsHook, NoOpMetricsHook
from .parsers.base import DocumentParser
from .parsers.chunk_parser import MarkdownChunkParser
from .pipeline.fragments import RenderOutcome
from .pipeline.pipeline import CancellationToken, ReportPipeline
from .renderers.base import RenderedReport, Renderer
from .renderers.factory import create_renderer

logger = logging.getLogger(__name__)


class ReportAssembler:
    """Top-level driver: parse, execute, render.

    Holds no per-render state, so independent documents can be rendered
    concurrently from one assembler. Each run gets a fresh ExecutionContext
    seeded with ``initial_resources``; the context (and every resource in
    it) is released before ``run`` returns, whether the run succeeded,
    halted or raised.
    """

    def __init__(
        self,
        parser: DocumentParser,
        pipeline: ReportPipeline,
        renderer: Renderer,
        metrics_hook: MetricsHook = NoOpMetricsHook(),
    ) -> None:
        self.parser = parser
        self.pipeline = pipeline
        self.renderer = renderer
        self.metrics_hook = metrics_hook

    async def build_outcome(
        self,
        raw_text: str,
        initial_resources: Mapping[str, Any] | None = None,
        cancel: CancellationToken | None = None,
    ) -> RenderOutcome:
        """Parse and execute without rendering.

        Raises:
            ParseError: malformed document, nothing was executed.
            ConfigError: invalid header or chunk options, nothing was executed.
        """
        async with ExecutionContext(initial_resources) as context:
            document = self.parser.parse(raw_text)
            outcome = await self.pipeline.execute(document, context, cancel=cancel)

        if context.release_errors:
            self.metrics_hook.increment(
                names.RESOURCE_RELEASE_ERRORS_TOTAL, len(context.release_errors)
            )
            logger.warning(
                "%d resource(s) failed to release after render",
                len(context.release_errors),
            )

        if outcome.terminal_error is not None:
            self.metrics_hook.increment(
                names.RENDERS_HALTED_TOTAL,
                labels={"error": outcome.terminal_error.kind},
            )
            logger.warning(
                "Execution halted at block %s: %s",
                outcome.terminal_error.block_index,
                outcome.terminal_error.message,
            )
        return outcome

    async def run(
        self,
        raw_text: str,
        initial_resources: Mapping[str, Any] | None = None,
        cancel: CancellationToken | None = None,
    ) -> RenderedReport:
        """Render a document end to end.

        A halted execution still produces a report (``complete`` is False)
        showing everything up to the failing block.

        Raises:
            ParseError: malformed document.
            ConfigError: invalid header or chunk options.
            RenderError: the renderer failed.
        """
        start = monotonic()
        outcome = await self.build_outcome(raw_text, initial_resources, cancel=cancel)
        report = self.renderer.render(outcome)

        elapsed_ms = 1000 * (monotonic() - start)
        self.metrics_hook.record_latency(names.RENDER_DURATION, elapsed_ms)
        self.metrics_hook.increment(
            names.RENDERS_TOTAL, labels={"media_type": report.media_type}
        )
        logger.info(
            "Rendered report: fragments=%d, complete=%s, latency=%.0fms",
            len(outcome.fragments),
            report.complete,
            elapsed_ms,
        )
        return report

    async def run_file(
        self,
        path: str | Path,
        output_path: str | Path | None = None,
        initial_resources: Mapping[str, Any] | None = None,
        cancel: CancellationToken | None = None,
    ) -> RenderedReport:
        path = Path(path)
        logger.info("Rendering %s", path)
        report = await self.run(
            path.read_text(encoding="utf-8"), initial_resources, cancel=cancel
        )
        if output_path is not None:
            report.write(output_path)
        return report


def create_assembler(
    config: ReportConfig = ReportConfig(),
    metrics_hook: MetricsHook = NoOpMetricsHook(),
) -> ReportAssembler:
    """Create an assembler from config.

    Args:
        config: Renderer format, inline delimiters and evaluator settings.
        metrics_hook: Optional metrics hook for observability.

    Returns:
        ReportAssembler with the ``python`` and ``sql`` engines registered
        (unless disabled in config).

    Raises:
        ValueError: If the renderer format is unknown.

    Example:
        >>> assembler = create_assembler(ReportConfig(renderer="html"))
        >>> report = await assembler.run(text, initial_resources={"db": conn})
        >>> report.write("report.html")
    """
    registry = EvaluatorRegistry()
    if config.python_enabled:
        registry.register("python", PythonEvaluator())
    if config.sql_enabled:
        registry.register(
            "sql",
            QueryEvaluator(
                max_retries=config.sql_max_retries,
                retry_wait=config.sql_retry_wait,
                metrics_hook=metrics_hook,
            ),
        )

    return ReportAssembler(
        parser=MarkdownChunkParser(config.parser, metrics_hook=metrics_hook),
        pipeline=ReportPipeline(
            registry, inline_digits=config.inline_digits, metrics_hook=metrics_hook
        ),
        renderer=create_renderer(config.renderer),
        metrics_hook=metrics_hook,
    )
