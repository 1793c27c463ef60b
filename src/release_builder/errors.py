"""Error taxonomy for the release builder pipeline.

Every error is terminal for the action that raised it: nothing in the
pipeline retries automatically. The HTTP layer maps each type to a status
code through ``status_code``.
"""

from __future__ import annotations


class BuilderError(Exception):
    """Base class for all release builder failures.

    Attributes:
        message: Human-readable, user-visible description
        code: Short machine-readable error code
        status_code: HTTP status the API layer responds with
    """

    code = "builder_error"
    status_code = 500

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class FetchError(BuilderError):
    """A provider call (source listing or item fetch) did not succeed."""

    code = "fetch_error"
    status_code = 502

    def __init__(self, message: str, provider: str | None = None) -> None:
        super().__init__(message)
        self.provider = provider


class ValidationError(BuilderError):
    """The requested action is missing required input.

    Raised before any network call is made (missing title, empty selection,
    missing or malformed source selector).
    """

    code = "validation_error"
    status_code = 422


class GenerationError(BuilderError):
    """The AI generation collaborator failed or returned no usable content."""

    code = "generation_error"
    status_code = 502


class PersistenceError(BuilderError):
    """Inserting the draft record failed after a successful generation.

    The generated content is not kept; the user has to regenerate.
    """

    code = "persistence_error"
    status_code = 502
