# src/litreport/config.py

from dataclasses import dataclass
from typing import Literal

RendererFormat = Literal["markdown", "html"]


@dataclass(frozen=True)
class ParserConfig:
    """Delimiters recognised by the chunk parser.

    Inline delimiters are single characters and must differ from the
    backtick used for chunk fences.
    """

    inline_open: str = "«"
    inline_close: str = "»"

    def __post_init__(self) -> None:
        for delimiter in (self.inline_open, self.inline_close):
            if len(delimiter) != 1:
                raise ValueError("inline delimiters must be single characters")
            if delimiter == "`":
                raise ValueError("inline delimiters must differ from the fence '`'")
        if self.inline_open == self.inline_close:
            raise ValueError("inline_open and inline_close must differ")


@dataclass(frozen=True)
class ReportConfig:
    """Configuration for building a ReportAssembler.

    Immutable. Explicit. No magic defaults from environment.
    """

    renderer: RendererFormat = "markdown"
    inline_open: str = "«"
    inline_close: str = "»"
    inline_digits: int = 7  # significant digits for floats in narrative
    python_enabled: bool = True
    sql_enabled: bool = True
    sql_max_retries: int = 3
    sql_retry_wait: float = 0.5

    @property
    def parser(self) -> ParserConfig:
        return ParserConfig(inline_open=self.inline_open, inline_close=self.inline_close)
