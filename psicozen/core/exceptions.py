"""Domain error taxonomy.

Services raise subclasses of these; ``main.py`` maps each base class to an
HTTP status code.
"""


class PsicoZenError(Exception):
    """Base exception for domain operations."""

    status_code = 400

    def __init__(self, message: str = ""):
        super().__init__(message)
        self.message = message


class NotFoundError(PsicoZenError):
    """Requested entity does not exist."""

    status_code = 404


class ConflictError(PsicoZenError):
    """Operation conflicts with the current state."""

    status_code = 409


class DomainValidationError(PsicoZenError):
    """Input violates a domain rule."""

    status_code = 422

    def __init__(self, message: str = "", errors: list[dict] | None = None):
        super().__init__(message)
        self.errors = errors or []


class ForbiddenError(PsicoZenError):
    """Operation is not allowed for this tenant or actor."""

    status_code = 403
