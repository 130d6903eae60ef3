from .base import DocumentParser
from .chunk_parser import MarkdownChunkParser
from .models import (
    Block,
    CodeBlock,
    Document,
    HeaderBlock,
    InlineExpression,
    NarrativeBlock,
)

__all__ = [
    "Block",
    "CodeBlock",
    "Document",
    "DocumentParser",
    "HeaderBlock",
    "InlineExpression",
    "MarkdownChunkParser",
    "NarrativeBlock",
]
