# src/litreport/options.py

import datetime
import logging
from typing import Any, Literal

from pydantic import BaseModel, ValidationError

from .errors import ConfigError

logger = logging.getLogger(__name__)

# Options the engine never interprets; they are handed to the renderer as-is.
_RENDER_HINT_PREFIXES = ("fig_", "out_")
_RENDER_HINT_KEYS = ("dpi", "dev")

# knitr spellings of the results option
_RESULTS_ALIASES = {"asis": "raw", "hide": "none"}


class ChunkOptions(BaseModel):
    echo: bool = True
    include: bool = True
    eval: bool = True
    results: Literal["markup", "raw", "none"] = "markup"
    connection: str | None = None
    output_var: str | None = None
    render_hints: dict[str, Any] = {}

    class Config:
        extra = "forbid"

    @classmethod
    def from_raw(cls, raw: dict[str, Any], *, where: str = "chunk") -> "ChunkOptions":
        values: dict[str, Any] = {}
        hints: dict[str, Any] = {}
        for key, value in raw.items():
            if key.startswith(_RENDER_HINT_PREFIXES) or key in _RENDER_HINT_KEYS:
                hints[key] = value
            else:
                values[key] = value

        if "render_hints" in values:
            raise ConfigError(f"{where}: 'render_hints' is not a chunk option")
        results = values.get("results")
        if isinstance(results, str):
            values["results"] = _RESULTS_ALIASES.get(results.lower(), results.lower())

        try:
            return cls(**values, render_hints=hints)
        except ValidationError as exc:
            logger.error("Invalid options for %s: %s", where, exc)
            raise ConfigError(f"{where}: invalid chunk options: {exc}") from exc


class DocumentHeader(BaseModel):
    title: str | None = None
    subtitle: str | None = None
    author: str | list[str] | None = None
    date: datetime.date | str | None = None
    abstract: str | None = None
    keywords: list[str] = []
    output: str | dict[str, Any] | None = None
    params: dict[str, Any] = {}

    class Config:
        extra = "forbid"

    @classmethod
    def from_values(cls, values: dict[str, Any]) -> "DocumentHeader":
        try:
            return cls(**values)
        except ValidationError as exc:
            logger.error("Invalid metadata header: %s", exc)
            raise ConfigError(f"invalid metadata header: {exc}") from exc
        except TypeError as exc:
            # non-string keys in the YAML mapping
            raise ConfigError(f"invalid metadata header: {exc}") from exc

    @property
    def authors(self) -> list[str]:
        if self.author is None:
            return []
        if isinstance(self.author, str):
            return [self.author]
        return list(self.author)
