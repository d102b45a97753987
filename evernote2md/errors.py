"""Exceptions raised by evernote2md."""

from typing import Optional


class Evernote2MdError(Exception):
    pass


class ConfigurationError(Evernote2MdError, ValueError):
    """Invalid converter setup (tag template, front matter template, ...)."""


class ConversionError(Evernote2MdError):
    """Conversion of a single note failed."""


class ResourceDecodeError(ConversionError):
    def __init__(self, message: str, index: Optional[int] = None):
        super().__init__(message)
        self.index = index


class RenderError(ConversionError):
    """HTML could not be rendered to Markdown."""
