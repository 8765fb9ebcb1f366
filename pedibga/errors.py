"""
Exception types for the PediBGA intake wizard.

Gateways raise these; SessionManager catches them at the call boundary
and translates them into the session's single user-facing error string.
No exception defined here is expected to reach the presentation layer.
"""

from typing import Iterable


class PediBGAError(Exception):
    """Base class for all wizard errors"""


class ValidationError(PediBGAError):
    """
    Required measurement fields missing at analysis time.

    Raised locally before any external call.

    Attributes:
        missing_fields: Wire names of the empty required fields
    """

    def __init__(self, message: str, missing_fields: Iterable[str] = ()):
        super().__init__(message)
        self.missing_fields = tuple(missing_fields)


class ExtractionError(PediBGAError):
    """Extraction gateway failed (transport, OCR, parsing or recognition)"""


class ReportError(PediBGAError):
    """Report gateway failed or produced no report"""


class IllegalTransition(PediBGAError):
    """
    Command not legal in the current session state.

    Covers wrong-step commands, commands issued while an operation
    is in flight, and completions carrying a stale ticket.
    """
