"""Error taxonomy for the SME pipeline.

Every error raised at a stage boundary derives from :class:`PortalError` and
carries a short classification (``error``), a human-readable ``detail`` and
the HTTP status code the API layer reports it with.
"""

from typing import Optional


class PortalError(Exception):
    """Base exception for SME pipeline errors."""

    status_code: int = 500
    default_error: str = "Internal error"

    def __init__(self, detail: str, error: Optional[str] = None):
        super().__init__(detail)
        self.detail = detail
        self.error = error or self.default_error

    def to_dict(self) -> dict[str, str]:
        """Convert to the structured error body returned to callers."""
        return {"error": self.error, "detail": self.detail}


class ValidationError(PortalError):
    """Raised when required input is missing or malformed."""

    status_code = 400
    default_error = "Invalid request"


class NotFoundError(PortalError):
    """Raised when a referenced country, SME, website or email does not exist."""

    status_code = 404
    default_error = "Not found"


class PreconditionFailed(PortalError):
    """Raised when a stage runs before the artifact it depends on exists."""

    status_code = 400
    default_error = "Precondition failed"


class GenerationFailed(PortalError):
    """Raised when a model call or the parsing of its output fails."""

    status_code = 500
    default_error = "Generation failed"


class ParseError(GenerationFailed):
    """Raised when model output cannot be reduced to the expected JSON/HTML shape."""

    default_error = "Could not parse model output"


class ProviderError(GenerationFailed):
    """Raised when the model provider call itself fails (transport, timeout, quota)."""

    default_error = "Model provider error"


class DiscoveryFailed(GenerationFailed):
    """Raised when the discovery conversation does not yield a candidate list."""

    default_error = "Search agent failed"


class PersistenceError(PortalError):
    """Raised when a storage operation fails."""

    status_code = 500
    default_error = "DB error"
