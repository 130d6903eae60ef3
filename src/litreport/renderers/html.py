# src/litreport/renderers/html.py

import html
import logging

import markdown

from litreport.pipeline.fragments import RenderOutcome

from .base import Renderer, RenderedReport
from .markdown import MarkdownRenderer

logger = logging.getLogger(__name__)

_PAGE = """<!DOCTYPE html>
<html>
<head>
<meta charset="utf-8">
<title>{title}</title>
</head>
<body>
{body}
</body>
</html>
"""


class HtmlRenderer(Renderer):
    """Renders through MarkdownRenderer and converts the result to an HTML page."""

    media_type = "text/html"

    def __init__(self, extensions: list[str] | None = None) -> None:
        self._markdown = MarkdownRenderer(escape_html=True)
        self._extensions = extensions or ["tables", "fenced_code"]

    def render(self, outcome: RenderOutcome) -> RenderedReport:
        source = self._markdown.render(outcome)
        body = markdown.markdown(source.content, extensions=self._extensions)

        title = ""
        if outcome.header is not None and outcome.header.title:
            title = outcome.header.title

        logger.debug("Converted %d characters of markdown to html", len(source.content))
        return RenderedReport(
            content=_PAGE.format(title=html.escape(title), body=body),
            media_type=self.media_type,
            complete=source.complete,
        )
