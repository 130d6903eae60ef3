# src/litreport/evaluators/python.py

import ast
import builtins
import io
import logging
from contextlib import redirect_stdout
from typing import Any

from litreport.context import ExecutionContext
from litreport.errors import EvalError, UnboundReferenceError
from litreport.options import ChunkOptions

from .base import CodeEvaluator
from .types import ARTIFACT_TYPES, Artifact, EvalResult, TextArtifact

logger = logging.getLogger(__name__)

_FILENAME = "<chunk>"


class PythonEvaluator(CodeEvaluator):
    """Runs ``python`` chunks in a namespace built from the context.

    - stdout printed by the chunk becomes captured output
    - a trailing expression is the chunk's value; artifacts are passed
      through, anything else is shown as its repr
    - names the chunk binds or rebinds are written back to the context,
      only when the chunk completes
    """

    def evaluate(
        self,
        code: str,
        options: ChunkOptions,
        context: ExecutionContext,
    ) -> EvalResult:
        try:
            module = ast.parse(code, filename=_FILENAME, mode="exec")
        except SyntaxError as exc:
            raise EvalError(f"SyntaxError: {exc.msg} (line {exc.lineno})") from exc

        trailing: ast.expr | None = None
        if module.body and isinstance(module.body[-1], ast.Expr):
            trailing = module.body.pop().value

        bindings = context.bindings()
        namespace: dict[str, Any] = {"__builtins__": builtins, **bindings}
        buffer = io.StringIO()

        try:
            with redirect_stdout(buffer):
                exec(compile(module, _FILENAME, "exec"), namespace)
                value = None
                if trailing is not None:
                    expression = ast.Expression(body=trailing)
                    value = eval(compile(expression, _FILENAME, "eval"), namespace)
        except NameError as exc:
            name = getattr(exc, "name", None)
            if name is not None and not isinstance(exc, UnboundLocalError):
                raise UnboundReferenceError(
                    name, partial_output=buffer.getvalue()
                ) from exc
            raise EvalError(f"NameError: {exc}", partial_output=buffer.getvalue()) from exc
        except Exception as exc:
            logger.debug("Python chunk failed: %s", exc)
            raise EvalError(
                f"{type(exc).__name__}: {exc}", partial_output=buffer.getvalue()
            ) from exc

        changed = 0
        for name, bound in namespace.items():
            if name.startswith("__"):
                continue
            if name not in bindings or bindings[name] is not bound:
                context.set(name, bound)
                changed += 1
        logger.debug("Python chunk bound %d names", changed)

        return EvalResult(
            value=value,
            captured_output=buffer.getvalue(),
            artifacts=self._artifacts(value),
        )

    @staticmethod
    def _artifacts(value: Any) -> tuple[Artifact, ...]:
        if value is None:
            return ()
        if isinstance(value, ARTIFACT_TYPES):
            return (value,)
        return (TextArtifact(repr(value)),)
