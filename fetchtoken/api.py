"""Module-level entry points for issuing, redeeming and expiring tokens.

Each call resolves its repository through :func:`get_repository` and its
token lifetime through :func:`load_config` unless given explicitly.
"""

from __future__ import annotations

import logging
from typing import Optional

from .config import FetchTokenConfig, load_config
from .errors import StorageError
from .models import Identity, Verdict
from .persistence import TokenRepository, get_repository
from .tokens import ExpiryReaper, TokenIssuer, TokenValidator, ValidationCache

logger = logging.getLogger(__name__)


async def issue_token(
    resource_id: str,
    sub_resource_id: str,
    identity: Identity,
    uses: int = 1,
    *,
    repository: Optional[TokenRepository] = None,
) -> str:
    """Grant ``identity`` access to one resource part and return the token."""
    issuer = TokenIssuer(repository or get_repository())
    return await issuer.issue(resource_id, sub_resource_id, identity, uses)


async def validate_token(
    resource_id: str,
    sub_resource_id: str,
    token: str,
    *,
    cache: Optional[ValidationCache] = None,
    repository: Optional[TokenRepository] = None,
    config: Optional[FetchTokenConfig] = None,
) -> Verdict:
    """Redeem ``token`` for the given resource part.

    Pass the same ``cache`` for every call within one request so repeated
    checks of a triple stay consistent. Without one, each call starts fresh.
    """
    config = config or load_config()
    validator = TokenValidator(
        repository or get_repository(),
        timeout=config.token_timeout,
        cache=cache,
    )
    return await validator.validate(resource_id, sub_resource_id, token)


async def reap_expired_tokens(
    *,
    repository: Optional[TokenRepository] = None,
    config: Optional[FetchTokenConfig] = None,
) -> int:
    """Purge time-expired tokens; never raises on storage failure."""
    config = config or load_config()
    if repository is None:
        try:
            repository = get_repository()
        except StorageError:
            logger.error("Expired token sweep skipped: token store unavailable", exc_info=True)
            return 0
    reaper = ExpiryReaper(repository, timeout=config.token_timeout)
    return await reaper.sweep()
