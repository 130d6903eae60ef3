from dataclasses import dataclass, field
from typing import Any, Union


@dataclass(frozen=True)
class TextArtifact:
    text: str


@dataclass(frozen=True)
class TableArtifact:
    columns: tuple[str, ...]
    rows: tuple[tuple[Any, ...], ...]

    def __len__(self) -> int:
        return len(self.rows)

    def records(self) -> list[dict[str, Any]]:
        return [dict(zip(self.columns, row)) for row in self.rows]


@dataclass(frozen=True)
class ImageArtifact:
    data: bytes
    media_type: str = "image/png"
    alt: str = ""


Artifact = Union[TextArtifact, TableArtifact, ImageArtifact]
ARTIFACT_TYPES = (TextArtifact, TableArtifact, ImageArtifact)


@dataclass(frozen=True)
class EvalResult:
    """What a successful evaluator call hands back to the pipeline.

    value is the chunk's result for programmatic callers; only
    captured_output and artifacts are rendered.
    """

    value: Any = None
    captured_output: str = ""
    artifacts: tuple[Artifact, ...] = field(default_factory=tuple)
