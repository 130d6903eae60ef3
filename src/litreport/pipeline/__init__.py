from .fragments import (
    CodeEchoFragment,
    OutputFragment,
    OutputKind,
    RenderedFragment,
    RenderOutcome,
    SkippedFragment,
    TerminalError,
    TextFragment,
)
from .pipeline import CancellationToken, ReportPipeline

__all__ = [
    "CancellationToken",
    "CodeEchoFragment",
    "OutputFragment",
    "OutputKind",
    "RenderOutcome",
    "RenderedFragment",
    "ReportPipeline",
    "SkippedFragment",
    "TerminalError",
    "TextFragment",
]
