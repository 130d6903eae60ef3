# src/litreport/errors.py

"""Error taxonomy for litreport.

ParseError and ConfigError are raised before any chunk runs.
UnboundReferenceError, EvalError and RenderCancelled stop the pipeline at a
block; the pipeline records them as the terminal error of the outcome.
RenderError comes from the renderer after execution.
"""


class ReportError(Exception):
    """Base class for every error raised by litreport."""


class ParseError(ReportError):
    def __init__(self, line: int, reason: str) -> None:
        super().__init__(f"line {line}: {reason}")
        self.line = line
        self.reason = reason


class ConfigError(ReportError):
    """Unrecognized or invalid header key or chunk option."""


class UnboundReferenceError(ReportError, KeyError):
    """A name was read before any block bound it.

    partial_output holds whatever the chunk printed before the lookup failed.
    """

    def __init__(self, name: str, partial_output: str = "") -> None:
        super().__init__(name)
        self.name = name
        self.partial_output = partial_output

    def __str__(self) -> str:
        return f"'{self.name}' is not bound"


class MissingResourceError(ReportError, KeyError):
    def __init__(self, name: str) -> None:
        super().__init__(name)
        self.name = name

    def __str__(self) -> str:
        return f"Resource '{self.name}' not found"


class EvalError(ReportError):
    """Failure reported by a code evaluator.

    partial_output holds whatever the chunk printed before it failed.
    """

    def __init__(self, message: str, partial_output: str = "") -> None:
        super().__init__(message)
        self.message = message
        self.partial_output = partial_output


class RenderCancelled(ReportError):
    """The caller's cancellation signal was set between two blocks."""


class RenderError(ReportError):
    """The renderer could not produce an artifact."""
