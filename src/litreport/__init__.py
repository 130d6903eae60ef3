# Assembler
from .assembler import ReportAssembler, create_assembler

# Config
from .config import ParserConfig, ReportConfig

# Context
from .context import ExecutionContext

# Errors
from .errors import (
    ConfigError,
    EvalError,
    MissingResourceError,
    ParseError,
    RenderCancelled,
    RenderError,
    ReportError,
    UnboundReferenceError,
)

# Evaluators
from .evaluators import (
    CodeEvaluator,
    EvalResult,
    EvaluatorRegistry,
    ImageArtifact,
    PythonEvaluator,
    QueryEvaluator,
    TableArtifact,
    TextArtifact,
)

# Observability
from .observability import InMemoryMetricsHook, MetricsHook, NoOpMetricsHook

# Options
from .options import ChunkOptions, DocumentHeader

# Parsers
from .parsers import (
    CodeBlock,
    Document,
    DocumentParser,
    HeaderBlock,
    MarkdownChunkParser,
    NarrativeBlock,
)

# Pipeline
from .pipeline import (
    CodeEchoFragment,
    OutputFragment,
    OutputKind,
    RenderOutcome,
    ReportPipeline,
    SkippedFragment,
    TerminalError,
    TextFragment,
)

# Renderers
from .renderers import HtmlRenderer, MarkdownRenderer, RenderedReport, Renderer

__all__ = [
    # Assembler
    "ReportAssembler",
    "create_assembler",
    # Config
    "ParserConfig",
    "ReportConfig",
    # Context
    "ExecutionContext",
    # Errors
    "ConfigError",
    "EvalError",
    "MissingResourceError",
    "ParseError",
    "RenderCancelled",
    "RenderError",
    "ReportError",
    "UnboundReferenceError",
    # Evaluators
    "CodeEvaluator",
    "EvalResult",
    "EvaluatorRegistry",
    "ImageArtifact",
    "PythonEvaluator",
    "QueryEvaluator",
    "TableArtifact",
    "TextArtifact",
    # Observability
    "InMemoryMetricsHook",
    "MetricsHook",
    "NoOpMetricsHook",
    # Options
    "ChunkOptions",
    "DocumentHeader",
    # Parsers
    "CodeBlock",
    "Document",
    "DocumentParser",
    "HeaderBlock",
    "MarkdownChunkParser",
    "NarrativeBlock",
    # Pipeline
    "CodeEchoFragment",
    "OutputFragment",
    "OutputKind",
    "RenderOutcome",
    "ReportPipeline",
    "SkippedFragment",
    "TerminalError",
    "TextFragment",
    # Renderers
    "HtmlRenderer",
    "MarkdownRenderer",
    "RenderedReport",
    "Renderer",
]
