"""Core application utilities.

``dependencies`` is not re-exported here: it depends on the service layer,
which itself imports from this package.
"""

from .config import Settings, get_settings
from .database import (
    async_session_factory,
    close_db,
    engine,
    get_session,
    init_db,
    is_unique_violation,
    set_tenant_context,
)
from .exceptions import (
    ConflictError,
    DomainValidationError,
    ForbiddenError,
    NotFoundError,
    PsicoZenError,
)
from .security import (
    create_access_token,
    decode_access_token,
    hash_content,
)

__all__ = [
    # Config
    "Settings",
    "get_settings",
    # Database
    "engine",
    "async_session_factory",
    "get_session",
    "init_db",
    "close_db",
    "is_unique_violation",
    "set_tenant_context",
    # Exceptions
    "PsicoZenError",
    "NotFoundError",
    "ConflictError",
    "DomainValidationError",
    "ForbiddenError",
    # Security
    "create_access_token",
    "decode_access_token",
    "hash_content",
]
