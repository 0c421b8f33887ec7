"""Token issuance, redemption and expiry."""

from .cache import ValidationCache
from .issuer import TokenIssuer
from .reaper import ExpiryReaper
from .validator import TokenValidator

__all__ = ["TokenIssuer", "TokenValidator", "ValidationCache", "ExpiryReaper"]
