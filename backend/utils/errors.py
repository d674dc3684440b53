"""
Error taxonomy for the interview core.

Every error carries a message that is safe to show to the user; the state
machine turns them into ``FailureDescription`` values for the presentation
layer instead of letting them escape.
"""
from typing import Optional


class InterviewError(Exception):
    """Base class for all interview-core failures."""

    kind = "interview"

    def __init__(self, message: str, *, detail: Optional[str] = None):
        super().__init__(message)
        self.message = message
        self.detail = detail


class ValidationError(InterviewError):
    """Missing setup fields or empty user input. Never moves the machine to error."""

    kind = "validation"


class GenerationError(InterviewError):
    """The language model call failed or returned no text."""

    kind = "generation"


class SchemaMismatchError(InterviewError):
    """A structured response did not match the question-batch schema."""

    kind = "schema_mismatch"


class StorageError(InterviewError):
    """History read or write failed. Swallowed at the store boundary."""

    kind = "storage"


class ConfigurationError(InterviewError):
    """Required credentials or settings are missing."""

    kind = "configuration"
