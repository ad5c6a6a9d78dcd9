"""
IdentMatch Errors

Absence of a match is never an error: matchers and fusers return
well-defined empty results instead.
"""


class IdentMatchError(Exception):
    """Base class for all identmatch errors"""


class DecodeError(IdentMatchError, ValueError):
    """Image bytes could not be rasterized"""


class OcrInvocationError(IdentMatchError):
    """A single OCR call failed or timed out"""

    def __init__(self, message: str, variant: str = "", pass_name: str = ""):
        super().__init__(message)
        self.variant = variant
        self.pass_name = pass_name


class OcrUnavailableError(IdentMatchError, RuntimeError):
    """The OCR backend library or binary is not installed"""
