import asyncio
import threading

import pytest

from litreport.context import ExecutionContext
from litreport.errors import ConfigError, EvalError, UnboundReferenceError
from litreport.evaluators.python import PythonEvaluator
from litreport.evaluators.registry import EvaluatorRegistry
from litreport.evaluators.types import EvalResult, TextArtifact
from litreport.observability import names
from litreport.observability.base import InMemoryMetricsHook
from litreport.options import ChunkOptions
from litreport.parsers.chunk_parser import MarkdownChunkParser
from litreport.parsers.models import Document
from litreport.pipeline.fragments import (
    CodeEchoFragment,
    OutputFragment,
    OutputKind,
    SkippedFragment,
    TextFragment,
)
from litreport.pipeline.pipeline import ReportPipeline


class RecordingEvaluator:
    """Binds ``name=value`` pairs from the chunk and prints them."""

    def __init__(self) -> None:
        self.calls: list[str] = []

    def evaluate(
        self, code: str, options: ChunkOptions, context: ExecutionContext
    ) -> EvalResult:
        self.calls.append(code)
        output = []
        for line in code.splitlines():
            name, _, value = line.partition("=")
            context.set(name.strip(), int(value))
            output.append(f"{name.strip()}={int(value)}\n")
        return EvalResult(captured_output="".join(output))


class FailingEvaluator:
    def evaluate(
        self, code: str, options: ChunkOptions, context: ExecutionContext
    ) -> EvalResult:
        raise EvalError("division by zero", partial_output="partial\n")


class AsyncEvaluator:
    async def evaluate(
        self, code: str, options: ChunkOptions, context: ExecutionContext
    ) -> EvalResult:
        await asyncio.sleep(0)
        return EvalResult(value=code.strip(), artifacts=(TextArtifact(code.strip()),))


class BrokenEvaluator:
    def evaluate(
        self, code: str, options: ChunkOptions, context: ExecutionContext
    ) -> EvalResult:
        raise RuntimeError("evaluator bug")


class NoResultEvaluator:
    def evaluate(
        self, code: str, options: ChunkOptions, context: ExecutionContext
    ) -> EvalResult:
        return None  # type: ignore[return-value]


class BadArtifactEvaluator:
    def evaluate(
        self, code: str, options: ChunkOptions, context: ExecutionContext
    ) -> EvalResult:
        return EvalResult(captured_output="printed\n", artifacts=("x",))  # type: ignore[arg-type]


@pytest.fixture
def recorder() -> RecordingEvaluator:
    return RecordingEvaluator()


@pytest.fixture
def pipeline(recorder: RecordingEvaluator) -> ReportPipeline:
    registry = EvaluatorRegistry()
    registry.register("set", recorder)
    registry.register("fail", FailingEvaluator())
    registry.register("async", AsyncEvaluator())
    registry.register("broken", BrokenEvaluator())
    registry.register("no_result", NoResultEvaluator())
    registry.register("bad_artifact", BadArtifactEvaluator())
    registry.register("python", PythonEvaluator())
    return ReportPipeline(registry)


def parse(text: str) -> Document:
    return MarkdownChunkParser().parse(text)


class TestNarrative:
    @pytest.mark.asyncio
    async def test_narrative_only_document(self, pipeline: ReportPipeline) -> None:
        document = parse("# Title\n\nPlain text.\n")

        outcome = await pipeline.execute(document, ExecutionContext())

        assert outcome.ok
        assert outcome.fragments == (TextFragment(0, "# Title\n\nPlain text.\n"),)

    @pytest.mark.asyncio
    async def test_inline_against_empty_context_fails(
        self, pipeline: ReportPipeline
    ) -> None:
        document = parse("Rows: «n»\n")

        outcome = await pipeline.execute(document, ExecutionContext())

        assert outcome.terminal_error is not None
        assert outcome.terminal_error.kind == "UnboundReferenceError"
        assert outcome.fragments == (
            OutputFragment.error(0, "'n' is not bound"),
        )
        with pytest.raises(UnboundReferenceError):
            outcome.raise_for_error()

    @pytest.mark.asyncio
    async def test_inline_dotted_paths(self, pipeline: ReportPipeline) -> None:
        context = ExecutionContext()
        context.set("stats", {"mean": 2.5})
        context.set("label", "north")

        outcome = await pipeline.execute(
            parse("Mean «stats.mean» for «label».\n"), context
        )

        assert outcome.fragments[0] == TextFragment(0, "Mean 2.5 for north.\n")

    @pytest.mark.asyncio
    async def test_inline_attribute_path(self, pipeline: ReportPipeline) -> None:
        context = ExecutionContext()
        context.set("table", TextArtifact("hello"))

        outcome = await pipeline.execute(parse("«table.text»\n"), context)

        assert outcome.fragments[0] == TextFragment(0, "hello\n")

    @pytest.mark.asyncio
    async def test_inline_missing_key_is_unbound(self, pipeline: ReportPipeline) -> None:
        context = ExecutionContext()
        context.set("stats", {"mean": 2.5})

        outcome = await pipeline.execute(parse("«stats.median»\n"), context)

        assert outcome.terminal_error is not None
        assert outcome.terminal_error.message == "'stats.median' is not bound"

    @pytest.mark.asyncio
    async def test_floats_use_significant_digits(self) -> None:
        pipeline = ReportPipeline(EvaluatorRegistry(), inline_digits=3)
        context = ExecutionContext()
        context.set("ratio", 2 / 3)

        outcome = await pipeline.execute(parse("«ratio»\n"), context)

        assert outcome.fragments[0] == TextFragment(0, "0.667\n")


class TestScenarios:
    @pytest.mark.asyncio
    async def test_code_before_narrative_substitutes(
        self, pipeline: ReportPipeline
    ) -> None:
        document = parse("---\ntitle: T\n---\n```{set}\nn=3\n```\nRows: «n»\n")

        outcome = await pipeline.execute(document, ExecutionContext())

        assert outcome.ok
        assert outcome.header is not None
        assert outcome.header.title == "T"
        assert outcome.fragments[-1] == TextFragment(2, "Rows: 3\n")

    @pytest.mark.asyncio
    async def test_narrative_before_code_is_unbound(
        self, pipeline: ReportPipeline, recorder: RecordingEvaluator
    ) -> None:
        document = parse("---\ntitle: T\n---\nRows: «n»\n```{set}\nn=3\n```\n")

        outcome = await pipeline.execute(document, ExecutionContext())

        assert outcome.terminal_error is not None
        assert outcome.terminal_error.kind == "UnboundReferenceError"
        assert outcome.terminal_error.block_index == 1
        assert recorder.calls == []

    @pytest.mark.asyncio
    async def test_include_false_suppresses_output_but_keeps_bindings(
        self, pipeline: ReportPipeline
    ) -> None:
        document = parse("```{python, include=false}\nanswer = 42\nprint(answer)\n```\n")
        context = ExecutionContext()

        outcome = await pipeline.execute(document, context)

        assert outcome.fragments == ()
        assert context.get("answer") == 42

    @pytest.mark.asyncio
    async def test_fail_fast_at_block_two_of_five(
        self, pipeline: ReportPipeline, recorder: RecordingEvaluator
    ) -> None:
        document = parse(
            "Intro\n"
            "```{set, echo=false}\na=1\n```\n"
            "```{fail, echo=false}\n1/0\n```\n"
            "Outro «a»\n"
            "```{set}\nb=2\n```\n"
        )
        assert len(document.blocks) == 5

        outcome = await pipeline.execute(document, ExecutionContext())

        assert outcome.terminal_error is not None
        assert outcome.terminal_error.kind == "EvalError"
        assert outcome.terminal_error.message == "division by zero"
        assert outcome.terminal_error.block_index == 2
        assert {f.block_index for f in outcome.fragments} == {0, 1, 2}
        assert outcome.fragments[-1] == OutputFragment.error(2, "division by zero")
        assert recorder.calls == ["a=1\n"]

    @pytest.mark.asyncio
    async def test_failure_keeps_partial_output_before_error(
        self, pipeline: ReportPipeline
    ) -> None:
        outcome = await pipeline.execute(
            parse("```{fail}\nboom\n```\n"), ExecutionContext()
        )

        assert outcome.fragments == (
            CodeEchoFragment(0, "fail", "boom\n"),
            OutputFragment.from_artifact(0, TextArtifact("partial\n")),
            OutputFragment.error(0, "division by zero"),
        )

    @pytest.mark.asyncio
    async def test_unbound_name_keeps_printed_output(
        self, pipeline: ReportPipeline
    ) -> None:
        code = "print('step 1 done')\ny = undefined_name\n"

        outcome = await pipeline.execute(
            parse(f"```{{python}}\n{code}```\n"), ExecutionContext()
        )

        assert outcome.fragments == (
            CodeEchoFragment(0, "python", code),
            OutputFragment.from_artifact(0, TextArtifact("step 1 done\n")),
            OutputFragment.error(0, "'undefined_name' is not bound"),
        )
        assert outcome.terminal_error is not None
        assert outcome.terminal_error.kind == "UnboundReferenceError"


class TestChunkOptions:
    @pytest.mark.asyncio
    async def test_echo_and_output(self, pipeline: ReportPipeline) -> None:
        outcome = await pipeline.execute(parse("```{set}\nn=3\n```\n"), ExecutionContext())

        assert outcome.fragments == (
            CodeEchoFragment(0, "set", "n=3\n"),
            OutputFragment(0, OutputKind.TEXT, TextArtifact("n=3\n")),
        )

    @pytest.mark.asyncio
    async def test_echo_false(self, pipeline: ReportPipeline) -> None:
        outcome = await pipeline.execute(
            parse("```{set, echo=false}\nn=3\n```\n"), ExecutionContext()
        )

        assert [type(f) for f in outcome.fragments] == [OutputFragment]

    @pytest.mark.asyncio
    async def test_results_none_keeps_echo_only(self, pipeline: ReportPipeline) -> None:
        context = ExecutionContext()
        outcome = await pipeline.execute(
            parse("```{set, results='hide'}\nn=3\n```\n"), context
        )

        assert outcome.fragments == (CodeEchoFragment(0, "set", "n=3\n"),)
        assert context.get("n") == 3

    @pytest.mark.asyncio
    async def test_results_raw_is_tagged(self, pipeline: ReportPipeline) -> None:
        outcome = await pipeline.execute(
            parse("```{set, echo=false, results=asis}\nn=3\n```\n"), ExecutionContext()
        )

        fragment = outcome.fragments[0]
        assert isinstance(fragment, OutputFragment)
        assert fragment.results == "raw"

    @pytest.mark.asyncio
    async def test_eval_false_skips_evaluator(
        self, pipeline: ReportPipeline, recorder: RecordingEvaluator
    ) -> None:
        outcome = await pipeline.execute(
            parse("```{set, eval=false}\nn=3\n```\n"), ExecutionContext()
        )

        assert outcome.fragments == (
            CodeEchoFragment(0, "set", "n=3\n"),
            SkippedFragment(0, "eval=false"),
        )
        assert recorder.calls == []

    @pytest.mark.asyncio
    async def test_render_hints_travel_with_output(
        self, pipeline: ReportPipeline
    ) -> None:
        outcome = await pipeline.execute(
            parse("```{set, echo=false, fig.width=6}\nn=3\n```\n"), ExecutionContext()
        )

        fragment = outcome.fragments[0]
        assert isinstance(fragment, OutputFragment)
        assert fragment.render_hints == {"fig_width": 6}

    @pytest.mark.asyncio
    async def test_options_do_not_leak_between_chunks(
        self, pipeline: ReportPipeline
    ) -> None:
        document = parse("```{set, echo=false}\na=1\n```\n```{set}\nb=2\n```\n")

        outcome = await pipeline.execute(document, ExecutionContext())

        assert CodeEchoFragment(1, "set", "b=2\n") in outcome.fragments
        assert not any(
            isinstance(f, CodeEchoFragment) and f.block_index == 0
            for f in outcome.fragments
        )


class TestValidation:
    @pytest.mark.asyncio
    async def test_unknown_option_raises_before_execution(
        self, pipeline: ReportPipeline, recorder: RecordingEvaluator
    ) -> None:
        document = parse("```{set}\na=1\n```\n```{set, cache=true}\nb=2\n```\n")

        with pytest.raises(ConfigError, match="cache"):
            await pipeline.execute(document, ExecutionContext())
        assert recorder.calls == []

    @pytest.mark.asyncio
    async def test_unknown_engine_raises(self, pipeline: ReportPipeline) -> None:
        with pytest.raises(ConfigError, match="no evaluator registered for engine 'r'"):
            await pipeline.execute(parse("```{r}\n1\n```\n"), ExecutionContext())

    @pytest.mark.asyncio
    async def test_unknown_header_key_raises(self, pipeline: ReportPipeline) -> None:
        with pytest.raises(ConfigError, match="metadata header"):
            await pipeline.execute(parse("---\ntheme: dark\n---\n"), ExecutionContext())


class TestExecution:
    @pytest.mark.asyncio
    async def test_header_params_are_bound(self, pipeline: ReportPipeline) -> None:
        document = parse("---\nparams:\n  region: north\n---\nRegion: «params.region»\n")

        outcome = await pipeline.execute(document, ExecutionContext())

        assert outcome.fragments == (TextFragment(1, "Region: north\n"),)

    @pytest.mark.asyncio
    async def test_async_evaluator(self, pipeline: ReportPipeline) -> None:
        outcome = await pipeline.execute(
            parse("```{async, echo=false}\nhello\n```\n"), ExecutionContext()
        )

        assert outcome.fragments == (
            OutputFragment(0, OutputKind.TEXT, TextArtifact("hello")),
        )

    @pytest.mark.asyncio
    async def test_unexpected_evaluator_exception_is_wrapped(
        self, pipeline: ReportPipeline
    ) -> None:
        outcome = await pipeline.execute(
            parse("```{broken}\nx\n```\n"), ExecutionContext()
        )

        assert outcome.terminal_error is not None
        assert outcome.terminal_error.kind == "EvalError"
        assert outcome.terminal_error.message == "RuntimeError: evaluator bug"

    @pytest.mark.asyncio
    async def test_non_result_return_halts_with_partial_report(
        self, pipeline: ReportPipeline
    ) -> None:
        outcome = await pipeline.execute(
            parse("Before\n\n```{no_result}\nx\n```\n\nAfter\n"), ExecutionContext()
        )

        assert outcome.fragments == (
            TextFragment(0, "Before\n\n"),
            CodeEchoFragment(1, "no_result", "x\n"),
            OutputFragment.error(
                1, "evaluator for engine 'no_result' returned NoneType, expected EvalResult"
            ),
        )
        assert outcome.terminal_error is not None
        assert outcome.terminal_error.kind == "EvalError"
        assert outcome.terminal_error.block_index == 1

    @pytest.mark.asyncio
    async def test_unsupported_artifact_halts_with_partial_report(
        self, pipeline: ReportPipeline
    ) -> None:
        document = parse("Before\n\n```{bad_artifact, echo=false}\nx\n```\n")

        outcome = await pipeline.execute(document, ExecutionContext())

        assert outcome.fragments[0] == TextFragment(0, "Before\n\n")
        assert outcome.fragments[1] == OutputFragment.from_artifact(
            1, TextArtifact("printed\n")
        )
        assert outcome.fragments[2].kind is OutputKind.ERROR
        assert outcome.terminal_error is not None
        assert "unsupported artifact: str" in outcome.terminal_error.message
        assert len(outcome.fragments) == 3

    @pytest.mark.asyncio
    async def test_fragments_follow_block_order(self, pipeline: ReportPipeline) -> None:
        document = parse(
            "One\n```{set}\na=1\n```\nTwo «a»\n```{python}\na + 1\n```\nThree\n"
        )

        outcome = await pipeline.execute(document, ExecutionContext())

        indices = [f.block_index for f in outcome.fragments]
        assert indices == sorted(indices)
        assert set(indices) == {0, 1, 2, 3, 4}

    @pytest.mark.asyncio
    async def test_same_document_twice_gives_same_outcome(
        self, pipeline: ReportPipeline
    ) -> None:
        document = parse(
            "---\ntitle: Again\n---\n```{python}\nvalues = [3, 1, 2]\nsorted(values)\n```\n"
            "Max: «values»\n"
        )

        first = await pipeline.execute(document, ExecutionContext())
        second = await pipeline.execute(document, ExecutionContext())

        assert first == second

    @pytest.mark.asyncio
    async def test_cancellation_between_blocks(self, pipeline: ReportPipeline) -> None:
        cancel = threading.Event()

        class CancellingEvaluator:
            def evaluate(self, code, options, context):
                cancel.set()
                return EvalResult(captured_output="ran\n")

        pipeline.registry.register("cancel", CancellingEvaluator())
        document = parse("```{cancel, echo=false}\nx\n```\nAfter\n")

        outcome = await pipeline.execute(document, ExecutionContext(), cancel=cancel)

        assert outcome.terminal_error is not None
        assert outcome.terminal_error.kind == "RenderCancelled"
        assert outcome.terminal_error.block_index == 1
        assert [f.block_index for f in outcome.fragments] == [0, 1]
        assert outcome.fragments[-1] == OutputFragment.error(1, "cancelled before block 1")

    @pytest.mark.asyncio
    async def test_records_metrics(self, recorder: RecordingEvaluator) -> None:
        registry = EvaluatorRegistry()
        registry.register("set", recorder)
        hook = InMemoryMetricsHook()
        pipeline = ReportPipeline(registry, metrics_hook=hook)

        await pipeline.execute(parse("```{set}\na=1\n```\n«a»\n"), ExecutionContext())

        assert hook.counters[names.BLOCKS_EXECUTED_TOTAL] == 1
        assert hook.counters[names.INLINE_EXPRESSIONS_TOTAL] == 1
        assert len(hook.latencies[names.BLOCK_EXECUTION_DURATION]) == 1
