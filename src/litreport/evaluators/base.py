# src/litreport/evaluators/base.py

from typing import Awaitable, Protocol, Union

from litreport.context import ExecutionContext
from litreport.options import ChunkOptions

from .types import EvalResult


class CodeEvaluator(Protocol):
    """Protocol for code evaluators, one implementation per engine tag.

    Contract:
    - Runs one chunk against the shared context and returns EvalResult
    - May bind variables or resources in the context
    - Raises EvalError (or UnboundReferenceError) on failure, never returns
      a half-finished result
    - Deterministic for identical code and context
    - ``evaluate`` may be a plain method or a coroutine function
    """

    def evaluate(
        self,
        code: str,
        options: ChunkOptions,
        context: ExecutionContext,
    ) -> Union[EvalResult, Awaitable[EvalResult]]: ...
