"""fetchtoken: short-lived delegated access tokens for protected resources."""

from .api import issue_token, reap_expired_tokens, validate_token
from .errors import FetchTokenError, StorageError
from .models import Denied, Identity, TokenRecord
from .persistence import get_repository
from .tokens import ExpiryReaper, TokenIssuer, TokenValidator, ValidationCache

__version__ = "0.1.0"
__all__ = [
    "Denied",
    "ExpiryReaper",
    "FetchTokenError",
    "Identity",
    "StorageError",
    "TokenIssuer",
    "TokenRecord",
    "TokenValidator",
    "ValidationCache",
    "get_repository",
    "issue_token",
    "reap_expired_tokens",
    "validate_token",
]
