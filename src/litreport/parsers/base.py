# src/litreport/parsers/base.py

from abc import ABC, abstractmethod

from .models import Document


class DocumentParser(ABC):
    @abstractmethod
    def parse(self, raw_text: str) -> Document:
        """
        Parse a literate document into an ordered sequence of blocks.

        Requirements:
        - Deterministic output for same input
        - Block indices strictly increase in source order
        - Narrative and code text preserved exactly
        - Raises ParseError on malformed structure
        """
        raise NotImplementedError
