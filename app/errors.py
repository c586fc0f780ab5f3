"""
Error taxonomy for certificate verification.

Every error carries the HTTP status it maps to and a message that is safe to
show to the client. The underlying exception (if any) is kept on ``cause`` so
that development builds can expose it.
"""

from typing import Optional


class VerificationError(Exception):
    """Base class for failures surfaced to API clients"""

    status_code = 500
    message = "Server error"

    def __init__(self, message: Optional[str] = None, cause: Optional[BaseException] = None):
        super().__init__(message or self.message)
        if message:
            self.message = message
        self.cause = cause


class MissingParameters(VerificationError):
    status_code = 400
    message = "Both fields are required"


class NotFound(VerificationError):
    status_code = 404
    message = "Certificate not found"


class IdentityMismatch(VerificationError):
    # Record exists but the claimed holder name does not match it.
    status_code = 403
    message = "Certificate mismatch"


class StoreUnavailable(VerificationError):
    status_code = 500
    message = "Server error"


class GenerationFailed(VerificationError):
    """Raised by the renderer; the resolver reports it in-band instead of failing"""

    status_code = 500
    message = "Certificate PDF could not be generated"
