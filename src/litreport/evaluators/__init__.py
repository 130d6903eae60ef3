from .base import CodeEvaluator
from .python import PythonEvaluator
from .query import QueryEvaluator
from .registry import EvaluatorRegistry
from .types import (
    Artifact,
    EvalResult,
    ImageArtifact,
    TableArtifact,
    TextArtifact,
)

__all__ = [
    "Artifact",
    "CodeEvaluator",
    "EvalResult",
    "EvaluatorRegistry",
    "ImageArtifact",
    "PythonEvaluator",
    "QueryEvaluator",
    "TableArtifact",
    "TextArtifact",
]
