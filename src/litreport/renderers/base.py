# src/litreport/renderers/base.py

from dataclasses import dataclass
from pathlib import Path
from typing import Protocol

from litreport.pipeline.fragments import RenderOutcome


@dataclass(frozen=True)
class RenderedReport:
    """Final artifact handed back to the caller.

    complete is False when execution halted early; the content then ends
    with a visible error marker.
    """

    content: str
    media_type: str
    complete: bool

    def write(self, path: str | Path) -> Path:
        path = Path(path)
        path.write_text(self.content, encoding="utf-8")
        return path


class Renderer(Protocol):
    """Protocol for renderers.

    Design principles:
    - Consumes only the RenderOutcome, never the live execution context
    - Partial outcomes render everything produced plus an error marker
    - Unknown fragment kinds are an error, never silently dropped
    """

    media_type: str

    def render(self, outcome: RenderOutcome) -> RenderedReport:
        """Turn an outcome into a report.

        Raises:
            RenderError: if the outcome cannot be rendered.
        """
        ...
