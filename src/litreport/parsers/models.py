# src/litreport/parsers/models.py

from dataclasses import dataclass, field
from typing import Any, Union


@dataclass(frozen=True)
class InlineExpression:
    """An inline span inside narrative text.

    start/end are offsets into the owning block's source and include the
    delimiters, so ``source[start:end]`` is the text that gets replaced.
    """

    expression: str
    start: int
    end: int


@dataclass(frozen=True)
class HeaderBlock:
    index: int
    line: int
    source: str
    values: dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class NarrativeBlock:
    index: int
    line: int
    source: str
    inline: tuple[InlineExpression, ...] = ()


@dataclass(frozen=True)
class CodeBlock:
    index: int
    line: int
    source: str
    engine: str
    code: str
    label: str | None = None
    options: dict[str, Any] = field(default_factory=dict)


Block = Union[HeaderBlock, NarrativeBlock, CodeBlock]


@dataclass(frozen=True)
class Document:
    blocks: tuple[Block, ...]

    @property
    def header(self) -> HeaderBlock | None:
        if self.blocks and isinstance(self.blocks[0], HeaderBlock):
            return self.blocks[0]
        return None

    @property
    def code_blocks(self) -> list[CodeBlock]:
        return [b for b in self.blocks if isinstance(b, CodeBlock)]
