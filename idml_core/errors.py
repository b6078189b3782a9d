"""
Engine Errors
=============

Error taxonomy shared by every stage of the extraction and export pipelines.

Components raise these exceptions; the pipelines catch them at the stage
boundary and turn them into result objects, so callers only ever see a
structured outcome (error kind plus a human-readable message).
"""

from enum import Enum
from typing import Optional


class ErrorKind(str, Enum):
    """Category of an engine failure."""
    VALIDATION = "validation"
    NOT_FOUND = "not_found"
    FORMAT = "format"
    IO = "io"


class IDMLEngineError(Exception):
    """
    Base class for all engine errors.

    Attributes:
        kind: ErrorKind of the failure
        message: Human-readable message safe to show to the caller
        detail: Optional diagnostic detail (logged, not surfaced)
    """

    kind: ErrorKind = ErrorKind.FORMAT

    def __init__(self, message: str, detail: Optional[str] = None):
        super().__init__(message)
        self.message = message
        self.detail = detail

    def to_dict(self) -> dict:
        return {'kind': self.kind.value, 'message': self.message}


class ValidationError(IDMLEngineError):
    """Malformed or missing input identifiers or parameters."""
    kind = ErrorKind.VALIDATION


class NotFoundError(IDMLEngineError):
    """Referenced template, mapping, content item or file is absent."""
    kind = ErrorKind.NOT_FOUND


class FormatError(IDMLEngineError):
    """Archive cannot be opened, manifest is malformed, or output XML is not well-formed."""
    kind = ErrorKind.FORMAT


class ResourceIOError(IDMLEngineError):
    """Filesystem read, write or copy failure."""
    kind = ErrorKind.IO
