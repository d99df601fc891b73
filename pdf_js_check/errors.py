from __future__ import annotations


class PdfJsCheckError(Exception):
    pass


class ScanError(PdfJsCheckError):
    """Raised while reading the structure of a PDF; recoverable through repair."""


class EmptyInputError(ScanError):
    pass


class MissingHeaderError(ScanError):
    pass


class ParseError(ScanError):
    pass


class RepairError(PdfJsCheckError):
    """The structural repairer could not produce a usable buffer."""
