import logging

from .base import CodeEvaluator

logger = logging.getLogger(__name__)


class EvaluatorRegistry:
    """Maps chunk engine tags (``python``, ``sql``) to evaluators."""

    def __init__(self) -> None:
        self._evaluators: dict[str, CodeEvaluator] = {}

    def register(self, engine: str, evaluator: CodeEvaluator) -> None:
        engine = engine.lower()
        if engine in self._evaluators:
            raise ValueError(f"Evaluator for engine '{engine}' already registered")

        self._evaluators[engine] = evaluator
        logger.debug("Registered evaluator: %s -> %s", engine, type(evaluator).__name__)

    def get(self, engine: str) -> CodeEvaluator:
        try:
            return self._evaluators[engine.lower()]
        except KeyError:
            logger.error("Evaluator not found: %s", engine)
            raise KeyError(f"Evaluator for engine '{engine}' not found")

    def remove(self, engine: str) -> None:
        try:
            del self._evaluators[engine.lower()]
            logger.debug("Removed evaluator: %s", engine)
        except KeyError:
            logger.error("Cannot remove evaluator, not found: %s", engine)
            raise KeyError(f"Evaluator for engine '{engine}' not found")

    def __contains__(self, engine: object) -> bool:
        return isinstance(engine, str) and engine.lower() in self._evaluators

    def list(self) -> dict[str, CodeEvaluator]:
        # return a shallow copy to avoid mutation
        return dict(self._evaluators)
