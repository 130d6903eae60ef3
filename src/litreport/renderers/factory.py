# src/litreport/renderers/factory.py

from litreport.config import RendererFormat

from .base import Renderer


def create_renderer(output_format: RendererFormat) -> Renderer:
    """Create a renderer for an output format.

    Raises:
        ValueError: If the format is unknown.
    """
    if output_format == "markdown":
        from .markdown import MarkdownRenderer

        return MarkdownRenderer()

    if output_format == "html":
        from .html import HtmlRenderer

        return HtmlRenderer()

    raise ValueError(f"Unknown renderer format: {output_format}")
