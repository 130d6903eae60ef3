# src/litreport/pipeline/pipeline.py

import inspect
import logging
from collections.abc import Mapping
from time import monotonic
from typing import Any, Protocol

from litreport.context import ExecutionContext
from litreport.errors import (
    ConfigError,
    EvalError,
    RenderCancelled,
    UnboundReferenceError,
)
from litreport.evaluators.registry import EvaluatorRegistry
from litreport.evaluators.types import ARTIFACT_TYPES, EvalResult, TextArtifact
from litreport.observability import names
from litreport.observability.base import MetricsHook, NoOpMetricsHook
from litreport.options import ChunkOptions, DocumentHeader
from litreport.parsers.models import (
    CodeBlock,
    Document,
    HeaderBlock,
    NarrativeBlock,
)

from .fragments import (
    CodeEchoFragment,
    OutputFragment,
    RenderedFragment,
    RenderOutcome,
    SkippedFragment,
    TerminalError,
    TextFragment,
)

logger = logging.getLogger(__name__)


class CancellationToken(Protocol):
    """Anything with ``is_set()``: asyncio.Event, threading.Event."""

    def is_set(self) -> bool: ...


class ReportPipeline:
    """Executes a parsed document block by block.

    One linear pass in index order. Each block sees the context exactly as
    the blocks before it left it; chunk options are resolved per block and
    never shared. The first failing block halts the pass and the outcome
    keeps every fragment produced up to and including that block.
    """

    def __init__(
        self,
        registry: EvaluatorRegistry,
        inline_digits: int = 7,
        metrics_hook: MetricsHook = NoOpMetricsHook(),
    ) -> None:
        self.registry = registry
        self.inline_digits = inline_digits
        self.metrics_hook = metrics_hook

    def validate(self, document: Document) -> None:
        """Check header keys, chunk options and engines before anything runs.

        Raises:
            ConfigError: on the first invalid header key, chunk option or
                unregistered engine.
        """
        for block in document.blocks:
            if isinstance(block, HeaderBlock):
                if block.index != 0:
                    raise ConfigError(
                        f"line {block.line}: metadata header must be the first block"
                    )
                DocumentHeader.from_values(block.values)
            elif isinstance(block, CodeBlock):
                ChunkOptions.from_raw(block.options, where=self._describe(block))
                if block.engine not in self.registry:
                    raise ConfigError(
                        f"{self._describe(block)}: no evaluator registered "
                        f"for engine '{block.engine}'"
                    )

    async def execute(
        self,
        document: Document,
        context: ExecutionContext,
        cancel: CancellationToken | None = None,
    ) -> RenderOutcome:
        self.validate(document)

        header: DocumentHeader | None = None
        fragments: list[RenderedFragment] = []
        terminal: TerminalError | None = None

        for block in document.blocks:
            if cancel is not None and cancel.is_set():
                logger.warning("Render cancelled before block %d", block.index)
                cancelled = RenderCancelled(f"cancelled before block {block.index}")
                fragments.append(OutputFragment.error(block.index, str(cancelled)))
                terminal = TerminalError.from_exception(cancelled, block.index)
                break

            try:
                if isinstance(block, HeaderBlock):
                    header = self._run_header(block, context)
                elif isinstance(block, NarrativeBlock):
                    fragments.append(self._run_narrative(block, context))
                elif isinstance(block, CodeBlock):
                    await self._run_code(block, context, fragments)
                else:
                    raise TypeError(f"Unhandled block type: {type(block).__name__}")
            except (ConfigError, UnboundReferenceError, EvalError) as exc:
                logger.warning("Block %d failed, halting: %s", block.index, exc)
                self.metrics_hook.increment(
                    names.EVAL_ERRORS_TOTAL, labels={"error": type(exc).__name__}
                )
                fragments.append(OutputFragment.error(block.index, str(exc)))
                terminal = TerminalError.from_exception(exc, block.index)
                break

        return RenderOutcome(
            header=header,
            fragments=tuple(fragments),
            terminal_error=terminal,
        )

    def _run_header(self, block: HeaderBlock, context: ExecutionContext) -> DocumentHeader:
        header = DocumentHeader.from_values(block.values)
        if header.params:
            context.set("params", dict(header.params))
        return header

    def _run_narrative(
        self, block: NarrativeBlock, context: ExecutionContext
    ) -> TextFragment:
        if not block.inline:
            return TextFragment(block_index=block.index, text=block.source)

        parts: list[str] = []
        cursor = 0
        for span in block.inline:
            parts.append(block.source[cursor : span.start])
            parts.append(self.format_inline(self.resolve(span.expression, context)))
            cursor = span.end
        parts.append(block.source[cursor:])

        self.metrics_hook.increment(names.INLINE_EXPRESSIONS_TOTAL, len(block.inline))
        return TextFragment(block_index=block.index, text="".join(parts))

    @staticmethod
    def resolve(expression: str, context: ExecutionContext) -> Any:
        """Look up ``name`` or ``name.key.attr`` in the context."""
        name, *path = expression.split(".")
        value = context.get(name)
        for part in path:
            if isinstance(value, Mapping) and part in value:
                value = value[part]
            elif hasattr(value, part):
                value = getattr(value, part)
            else:
                raise UnboundReferenceError(expression)
        return value

    def format_inline(self, value: Any) -> str:
        if isinstance(value, float):
            return format(value, f".{self.inline_digits}g")
        return str(value)

    async def _run_code(
        self,
        block: CodeBlock,
        context: ExecutionContext,
        fragments: list[RenderedFragment],
    ) -> None:
        options = ChunkOptions.from_raw(block.options, where=self._describe(block))
        echo = options.echo and options.include
        if echo:
            fragments.append(
                CodeEchoFragment(block_index=block.index, engine=block.engine, code=block.code)
            )

        if not options.eval:
            logger.debug("Skipping %s (eval=false)", self._describe(block))
            if options.include:
                fragments.append(
                    SkippedFragment(block_index=block.index, reason="eval=false")
                )
            return

        evaluator = self.registry.get(block.engine)
        logger.debug("Evaluating %s with %s", self._describe(block), type(evaluator).__name__)
        start = monotonic()
        try:
            result = await self._evaluate(evaluator, block, options, context)
        except (EvalError, UnboundReferenceError) as exc:
            if options.include and options.results != "none" and exc.partial_output:
                fragments.append(self._captured(block, exc.partial_output, options))
            raise
        finally:
            elapsed_ms = 1000 * (monotonic() - start)
            self.metrics_hook.record_latency(
                names.BLOCK_EXECUTION_DURATION, elapsed_ms, labels={"engine": block.engine}
            )

        self.metrics_hook.increment(
            names.BLOCKS_EXECUTED_TOTAL, labels={"engine": block.engine}
        )
        if not options.include or options.results == "none":
            return

        if result.captured_output:
            fragments.append(self._captured(block, result.captured_output, options))
        for artifact in result.artifacts:
            fragments.append(
                OutputFragment.from_artifact(
                    block.index, artifact, options.results, options.render_hints
                )
            )

    async def _evaluate(
        self,
        evaluator: Any,
        block: CodeBlock,
        options: ChunkOptions,
        context: ExecutionContext,
    ) -> EvalResult:
        try:
            # Check if evaluator is async
            if inspect.iscoroutinefunction(evaluator.evaluate):
                result = await evaluator.evaluate(block.code, options, context)
            else:
                result = evaluator.evaluate(block.code, options, context)
        except (ConfigError, UnboundReferenceError, EvalError):
            raise
        except Exception as exc:
            logger.exception("Evaluator for %s raised unexpectedly", self._describe(block))
            raise EvalError(f"{type(exc).__name__}: {exc}") from exc

        if not isinstance(result, EvalResult):
            raise EvalError(
                f"evaluator for engine '{block.engine}' returned "
                f"{type(result).__name__}, expected EvalResult"
            )
        for artifact in result.artifacts:
            if not isinstance(artifact, ARTIFACT_TYPES):
                raise EvalError(
                    f"evaluator for engine '{block.engine}' produced an "
                    f"unsupported artifact: {type(artifact).__name__}",
                    partial_output=result.captured_output,
                )
        return result

    @staticmethod
    def _captured(block: CodeBlock, text: str, options: ChunkOptions) -> OutputFragment:
        return OutputFragment.from_artifact(
            block.index, TextArtifact(text), options.results, options.render_hints
        )

    @staticmethod
    def _describe(block: CodeBlock) -> str:
        name = f"chunk '{block.label}'" if block.label else f"{block.engine} chunk"
        return f"{name} at line {block.line}"
