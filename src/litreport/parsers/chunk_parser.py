# src/litreport/parsers/chunk_parser.py

import logging
import re
from time import monotonic
from typing import Any

import yaml

from litreport.config import ParserConfig
from litreport.errors import ParseError
from litreport.observability import names
from litreport.observability.base import MetricsHook, NoOpMetricsHook

from .base import DocumentParser
from .models import Block, CodeBlock, Document, HeaderBlock, InlineExpression, NarrativeBlock

logger = logging.getLogger(__name__)

_HEADER_OPEN = "---"
_HEADER_CLOSE = ("---", "...")
_YAML_KEY = re.compile(r"^[A-Za-z_][\w-]*\s*:")

_CHUNK_OPEN = re.compile(r"^(?P<fence>`{3,})\s*\{(?P<info>.*)\}\s*$")
_PLAIN_FENCE = re.compile(r"^(?P<fence>`{3,})[^`]*$")
_FENCE_CLOSE = re.compile(r"^(?P<fence>`{3,})\s*$")

_OPTION_TOKEN = re.compile(
    r"""
    (?:
        (?P<key>[A-Za-z_][\w.]*)\s*=\s*
        (?P<value>"(?:[^"\\]|\\.)*"|'[^']*'|[^,\s"'=]+)
      |
        (?P<bare>[A-Za-z_][\w.-]*)
    )
    \s*(?:,\s*)?
    """,
    re.VERBOSE,
)
_INLINE_EXPRESSION = re.compile(r"[A-Za-z_]\w*(?:\.\w+)*")
_CODE_SPAN = re.compile(r"(`+)(?!`).*?(?<!`)\1(?!`)")


def _strip_eol(line: str) -> str:
    return line.rstrip("\r\n")


def _closes(line: str, fence: str) -> bool:
    match = _FENCE_CLOSE.match(line)
    return match is not None and len(match.group("fence")) >= len(fence)


class MarkdownChunkParser(DocumentParser):
    """
    Parser for R Markdown style documents.

    - Optional YAML header between ``---`` lines, first line only
    - Code chunks fenced with ```{engine [label], key=value, ...}
    - Plain ``` fences stay part of the narrative
    - Inline expressions between single-character delimiters
    """

    def __init__(
        self,
        config: ParserConfig = ParserConfig(),
        metrics_hook: MetricsHook = NoOpMetricsHook(),
    ) -> None:
        self.config = config
        self.metrics_hook = metrics_hook

    def parse(self, raw_text: str) -> Document:
        start = monotonic()
        lines = raw_text.splitlines(keepends=True)
        blocks: list[Block] = []

        i = 0
        if lines and _strip_eol(lines[0]) == _HEADER_OPEN:
            header, i = self._parse_header(lines)
            blocks.append(header)
        body_start = i

        narrative: list[str] = []
        narrative_line = i + 1
        plain_fence: str | None = None
        plain_fence_line = 0

        while i < len(lines):
            text = _strip_eol(lines[i])

            if plain_fence is not None:
                narrative.append(lines[i])
                if _closes(text, plain_fence):
                    plain_fence = None
                i += 1
                continue

            chunk = _CHUNK_OPEN.match(text)
            if chunk:
                self._flush_narrative(blocks, narrative, narrative_line)
                narrative = []
                i = self._parse_chunk(blocks, lines, i, chunk)
                narrative_line = i + 1
                continue

            fence = _PLAIN_FENCE.match(text)
            if fence:
                plain_fence = fence.group("fence")
                plain_fence_line = i + 1
            elif text == _HEADER_OPEN and self._looks_like_header(lines, i, body_start):
                raise ParseError(
                    i + 1, "metadata header must be the first block of the document"
                )

            if not narrative:
                narrative_line = i + 1
            narrative.append(lines[i])
            i += 1

        if plain_fence is not None:
            raise ParseError(plain_fence_line, "fenced block opened here is never closed")
        self._flush_narrative(blocks, narrative, narrative_line)

        elapsed_ms = 1000 * (monotonic() - start)
        self.metrics_hook.record_latency(names.PARSE_DURATION, elapsed_ms)
        self.metrics_hook.increment(names.BLOCKS_PARSED_TOTAL, len(blocks))
        logger.debug("Parsed %d blocks from %d lines", len(blocks), len(lines))
        return Document(blocks=tuple(blocks))

    def _parse_header(self, lines: list[str]) -> tuple[HeaderBlock, int]:
        end = self._find_header_close(lines, 1)
        if end is None:
            raise ParseError(1, "metadata header is never terminated")

        try:
            values = yaml.safe_load("".join(lines[1:end]))
        except yaml.YAMLError as exc:
            mark = getattr(exc, "problem_mark", None)
            line = mark.line + 2 if mark is not None else 1
            raise ParseError(line, f"invalid metadata header: {exc}") from exc

        if values is None:
            values = {}
        if not isinstance(values, dict):
            raise ParseError(1, "metadata header must be a mapping")

        header = HeaderBlock(
            index=0,
            line=1,
            source="".join(lines[: end + 1]),
            values=values,
        )
        return header, end + 1

    @staticmethod
    def _find_header_close(lines: list[str], start: int) -> int | None:
        for j in range(start, len(lines)):
            if _strip_eol(lines[j]) in _HEADER_CLOSE:
                return j
        return None

    def _looks_like_header(self, lines: list[str], i: int, body_start: int) -> bool:
        """
        A ``---`` line after a blank line (or at the top of the body),
        followed by a YAML key and a closing delimiter. Anything else is a
        horizontal rule.
        """
        if i > body_start and _strip_eol(lines[i - 1]).strip():
            return False
        if i + 1 >= len(lines) or not _YAML_KEY.match(lines[i + 1]):
            return False
        return self._find_header_close(lines, i + 1) is not None

    def _parse_chunk(
        self, blocks: list[Block], lines: list[str], i: int, chunk: re.Match
    ) -> int:
        fence = chunk.group("fence")
        end = next(
            (j for j in range(i + 1, len(lines)) if _closes(_strip_eol(lines[j]), fence)),
            None,
        )
        if end is None:
            raise ParseError(i + 1, "code chunk opened here is never closed")

        engine, label, options = self._parse_chunk_info(chunk.group("info"), i + 1)
        blocks.append(
            CodeBlock(
                index=len(blocks),
                line=i + 1,
                source="".join(lines[i : end + 1]),
                engine=engine,
                code="".join(lines[i + 1 : end]),
                label=label,
                options=options,
            )
        )
        return end + 1

    def _parse_chunk_info(
        self, info: str, line: int
    ) -> tuple[str, str | None, dict[str, Any]]:
        info = info.strip()
        engine: str | None = None
        label: str | None = None
        options: dict[str, Any] = {}

        pos = 0
        while pos < len(info):
            match = _OPTION_TOKEN.match(info, pos)
            if match is None or match.end() == pos:
                raise ParseError(line, f"malformed chunk options near {info[pos:]!r}")
            pos = match.end()

            bare = match.group("bare")
            if bare is not None:
                if engine is None:
                    engine = bare.lower()
                elif label is None and not options:
                    label = bare
                else:
                    raise ParseError(line, f"unexpected chunk token {bare!r}")
                continue

            if engine is None:
                raise ParseError(line, "chunk options must start with an engine name")
            # knitr spells options with dots (fig.height, output.var)
            key = match.group("key").replace(".", "_")
            if key in options:
                raise ParseError(line, f"duplicate chunk option '{key}'")
            options[key] = self._parse_value(match.group("value"), line)

        if engine is None:
            raise ParseError(line, "code chunk is missing an engine name")
        return engine, label, options

    @staticmethod
    def _parse_value(raw: str, line: int) -> Any:
        try:
            return yaml.safe_load(raw)
        except yaml.YAMLError as exc:
            raise ParseError(line, f"invalid chunk option value {raw!r}") from exc

    def _flush_narrative(
        self, blocks: list[Block], narrative: list[str], line: int
    ) -> None:
        text = "".join(narrative)
        if not text:
            return
        blocks.append(
            NarrativeBlock(
                index=len(blocks),
                line=line,
                source=text,
                inline=self._scan_inline(text, line),
            )
        )

    def _scan_inline(self, text: str, line: int) -> tuple[InlineExpression, ...]:
        """Find inline expression spans, skipping fenced blocks and code spans."""
        opener = self.config.inline_open
        closer = self.config.inline_close
        spans: list[InlineExpression] = []
        open_at: int | None = None
        open_line = line
        fence: str | None = None

        offset = 0
        for number, raw in enumerate(text.splitlines(keepends=True), start=line):
            stripped = _strip_eol(raw)
            if fence is not None:
                if _closes(stripped, fence):
                    fence = None
                offset += len(raw)
                continue
            plain = _PLAIN_FENCE.match(stripped)
            if plain:
                fence = plain.group("fence")
                offset += len(raw)
                continue

            pos = 0
            while pos < len(raw):
                char = raw[pos]
                if char == "`":
                    code = _CODE_SPAN.match(raw, pos)
                    if code is not None:
                        pos = code.end()
                    else:
                        while pos < len(raw) and raw[pos] == "`":
                            pos += 1
                    continue
                if char == opener:
                    if open_at is not None:
                        raise ParseError(number, "nested inline expression")
                    open_at = offset + pos
                    open_line = number
                elif char == closer:
                    if open_at is None:
                        raise ParseError(
                            number, f"'{closer}' without a matching '{opener}'"
                        )
                    expression = text[open_at + 1 : offset + pos].strip()
                    if not expression:
                        raise ParseError(open_line, "empty inline expression")
                    if not _INLINE_EXPRESSION.fullmatch(expression):
                        raise ParseError(
                            open_line, f"invalid inline expression {expression!r}"
                        )
                    spans.append(InlineExpression(expression, open_at, offset + pos + 1))
                    open_at = None
                pos += 1
            offset += len(raw)

        if open_at is not None:
            raise ParseError(open_line, "unterminated inline expression")
        return tuple(spans)
