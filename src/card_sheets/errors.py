"""Error types raised while building card sheets."""
from __future__ import annotations

from typing import Iterable, List


class CardSheetError(Exception):
    """Base class for all card sheet errors."""


class ConfigurationError(CardSheetError):
    """
    A run parameter is missing or malformed.

    Carries every problem found so the caller can report them together
    before anything is rendered.
    """

    def __init__(self, messages: Iterable[str] | str) -> None:
        if isinstance(messages, str):
            messages = [messages]
        self.messages: List[str] = list(messages)
        super().__init__("; ".join(self.messages))


class SourceReadError(CardSheetError):
    """A card file, page or archive could not be read."""


class InvalidDimensionError(CardSheetError):
    """A computed card cell has zero width or height."""


class AmbiguousResourceError(CardSheetError):
    """A back image pattern matched no file or more than one file."""
