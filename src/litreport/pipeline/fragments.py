# src/litreport/pipeline/fragments.py

from dataclasses import dataclass, field
from enum import Enum
from typing import Union

from litreport.errors import ReportError
from litreport.evaluators.types import Artifact, ImageArtifact, TableArtifact, TextArtifact
from litreport.options import DocumentHeader


class OutputKind(str, Enum):
    """Kind of an OutputFragment."""

    TEXT = "text"
    TABLE = "table"
    IMAGE = "image"
    ERROR = "error"


@dataclass(frozen=True)
class TextFragment:
    """Narrative text with inline expressions already substituted."""

    block_index: int
    text: str


@dataclass(frozen=True)
class CodeEchoFragment:
    block_index: int
    engine: str
    code: str


@dataclass(frozen=True)
class OutputFragment:
    block_index: int
    kind: OutputKind
    artifact: Artifact
    results: str = "markup"
    render_hints: dict = field(default_factory=dict)

    @classmethod
    def from_artifact(
        cls,
        block_index: int,
        artifact: Artifact,
        results: str = "markup",
        render_hints: dict | None = None,
    ) -> "OutputFragment":
        if isinstance(artifact, TextArtifact):
            kind = OutputKind.TEXT
        elif isinstance(artifact, TableArtifact):
            kind = OutputKind.TABLE
        elif isinstance(artifact, ImageArtifact):
            kind = OutputKind.IMAGE
        else:
            raise TypeError(f"Unknown artifact type: {type(artifact).__name__}")
        return cls(
            block_index=block_index,
            kind=kind,
            artifact=artifact,
            results=results,
            render_hints=dict(render_hints or {}),
        )

    @classmethod
    def error(cls, block_index: int, message: str) -> "OutputFragment":
        return cls(
            block_index=block_index,
            kind=OutputKind.ERROR,
            artifact=TextArtifact(message),
        )


@dataclass(frozen=True)
class SkippedFragment:
    """A chunk that was deliberately not evaluated (``eval=false``)."""

    block_index: int
    reason: str


RenderedFragment = Union[TextFragment, CodeEchoFragment, OutputFragment, SkippedFragment]


@dataclass(frozen=True)
class TerminalError:
    """Why execution stopped early.

    Compares by kind, message and block index. The original exception is
    kept for callers that want to re-raise it.
    """

    kind: str
    message: str
    block_index: int | None
    exception: ReportError | None = field(default=None, compare=False, repr=False)

    @classmethod
    def from_exception(cls, exc: ReportError, block_index: int | None) -> "TerminalError":
        return cls(
            kind=type(exc).__name__,
            message=str(exc),
            block_index=block_index,
            exception=exc,
        )


@dataclass(frozen=True)
class RenderOutcome:
    """Everything the renderer needs: header, ordered fragments, and the
    terminal error if execution halted."""

    header: DocumentHeader | None
    fragments: tuple[RenderedFragment, ...]
    terminal_error: TerminalError | None = None

    @property
    def ok(self) -> bool:
        return self.terminal_error is None

    def raise_for_error(self) -> None:
        if self.terminal_error is None:
            return
        if self.terminal_error.exception is not None:
            raise self.terminal_error.exception
        raise ReportError(self.terminal_error.message)

    def for_block(self, block_index: int) -> list[RenderedFragment]:
        return [f for f in self.fragments if f.block_index == block_index]
