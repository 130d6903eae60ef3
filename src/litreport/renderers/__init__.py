from .base import RenderedReport, Renderer
from .factory import create_renderer
from .html import HtmlRenderer
from .markdown import MarkdownRenderer

__all__ = [
    "HtmlRenderer",
    "MarkdownRenderer",
    "RenderedReport",
    "Renderer",
    "create_renderer",
]
