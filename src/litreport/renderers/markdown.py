# src/litreport/renderers/markdown.py

import base64
import html
import logging
from typing import Any

from litreport.errors import RenderError
from litreport.evaluators.types import ImageArtifact, TableArtifact, TextArtifact
from litreport.options import DocumentHeader
from litreport.pipeline.fragments import (
    CodeEchoFragment,
    OutputFragment,
    OutputKind,
    RenderOutcome,
    SkippedFragment,
    TerminalError,
    TextFragment,
)

from .base import Renderer, RenderedReport

logger = logging.getLogger(__name__)

OUTPUT_PREFIX = "## "


class MarkdownRenderer(Renderer):
    """Renders an outcome as a single Markdown document.

    - narrative verbatim, echoed code as fenced blocks
    - ``markup`` text output fenced and prefixed with ``## ``,
      ``raw`` output inserted as-is
    - tables as pipe tables, images as data URIs
    - a halted render ends with an "Execution halted" marker

    With ``escape_html`` set, values that come from evaluated code (error
    messages, table cells, image captions) are HTML-escaped so the result
    can be fed to an HTML converter.
    """

    media_type = "text/markdown"

    def __init__(self, escape_html: bool = False) -> None:
        self.escape_html = escape_html

    def render(self, outcome: RenderOutcome) -> RenderedReport:
        parts: list[str] = []
        if outcome.header is not None:
            self._append_block(parts, self._header(outcome.header))

        for fragment in outcome.fragments:
            if isinstance(fragment, TextFragment):
                parts.append(fragment.text)
            elif isinstance(fragment, CodeEchoFragment):
                self._append_block(parts, self._fence(fragment.code, fragment.engine))
            elif isinstance(fragment, OutputFragment):
                self._append_block(parts, self._output(fragment))
            elif isinstance(fragment, SkippedFragment):
                self._append_block(parts, f"<!-- not evaluated: {fragment.reason} -->")
            else:
                raise RenderError(f"Unknown fragment type: {type(fragment).__name__}")

        if outcome.terminal_error is not None:
            self._append_block(parts, self._halted(outcome.terminal_error))

        logger.debug("Rendered %d fragments to markdown", len(outcome.fragments))
        return RenderedReport(
            content="".join(parts),
            media_type=self.media_type,
            complete=outcome.ok,
        )

    @staticmethod
    def _append_block(parts: list[str], text: str) -> None:
        if not text:
            return
        if parts and not parts[-1].endswith("\n"):
            parts.append("\n")
        if parts and not parts[-1].endswith("\n\n"):
            parts.append("\n")
        parts.append(text.rstrip("\n") + "\n\n")

    @staticmethod
    def _header(header: DocumentHeader) -> str:
        lines: list[str] = []
        if header.title:
            lines += [f"# {header.title}", ""]
        if header.subtitle:
            lines += [f"_{header.subtitle}_", ""]
        byline = ", ".join(header.authors)
        if header.date:
            byline = f"{byline} ({header.date})" if byline else str(header.date)
        if byline:
            lines += [byline, ""]
        if header.abstract:
            lines += ["> " + line for line in header.abstract.strip().splitlines()]
        return "\n".join(lines)

    @staticmethod
    def _fence(text: str, info: str = "") -> str:
        fence = "```"
        while fence in text:
            fence += "`"
        body = text if text.endswith("\n") else text + "\n"
        return f"{fence}{info}\n{body}{fence}"

    def _output(self, fragment: OutputFragment) -> str:
        artifact = fragment.artifact
        if fragment.kind is OutputKind.ERROR:
            return f"> **Error:** {self._escape(self._text(artifact))}"
        if fragment.kind is OutputKind.TEXT:
            text = self._text(artifact)
            if fragment.results == "raw":
                return text
            prefixed = "".join(
                OUTPUT_PREFIX + line for line in text.splitlines(keepends=True)
            )
            return self._fence(prefixed)
        if fragment.kind is OutputKind.TABLE:
            if not isinstance(artifact, TableArtifact):
                raise RenderError("table fragment without a table artifact")
            return self._table(artifact)
        if fragment.kind is OutputKind.IMAGE:
            if not isinstance(artifact, ImageArtifact):
                raise RenderError("image fragment without an image artifact")
            return self._image(artifact, fragment.render_hints)
        raise RenderError(f"Unknown output kind: {fragment.kind}")

    @staticmethod
    def _text(artifact: Any) -> str:
        if not isinstance(artifact, TextArtifact):
            raise RenderError(f"expected text, got {type(artifact).__name__}")
        return artifact.text

    def _table(self, table: TableArtifact) -> str:
        if not table.columns:
            return ""

        def cell(value: Any) -> str:
            text = "" if value is None else self._escape(str(value))
            return text.replace("|", "\\|").replace("\n", " ")

        lines = [
            "| " + " | ".join(cell(c) for c in table.columns) + " |",
            "|" + "|".join("---" for _ in table.columns) + "|",
        ]
        for row in table.rows:
            lines.append("| " + " | ".join(cell(v) for v in row) + " |")
        return "\n".join(lines)

    def _image(self, image: ImageArtifact, hints: dict) -> str:
        alt = self._escape(image.alt or str(hints.get("fig_cap", "")))
        encoded = base64.b64encode(image.data).decode("ascii")
        return f"![{alt}](data:{image.media_type};base64,{encoded})"

    def _halted(self, error: TerminalError) -> str:
        where = f" at block {error.block_index}" if error.block_index is not None else ""
        message = self._escape(error.message)
        return f"---\n\n**Execution halted{where}:** {error.kind}: {message}"

    def _escape(self, text: str) -> str:
        return html.escape(text, quote=False) if self.escape_html else text
