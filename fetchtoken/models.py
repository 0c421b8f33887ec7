"""Data models for access tokens and validation outcomes."""

from __future__ import annotations

from typing import Literal, Optional

from pydantic import BaseModel, ConfigDict, Field


class Identity(BaseModel):
    """Principal a token was issued on behalf of."""

    model_config = ConfigDict(frozen=True)

    id: str
    name: str
    credential: Optional[str] = Field(
        default=None, repr=False, description="Opaque secret forwarded to the fetcher"
    )


class TokenRecord(BaseModel):
    """Persisted access token row."""

    token: str = Field(..., repr=False)
    identity: Identity
    resource_id: str
    sub_resource_id: str
    issued_at: int = Field(..., description="Unix timestamp of issuance")
    remaining_uses: int = Field(..., ge=1)


class Denied(BaseModel):
    """Negative validation verdict.

    Returned, never raised: a denial is an expected outcome of validating a
    token and must stay distinguishable from a :class:`StorageError`.
    """

    model_config = ConfigDict(frozen=True)

    reason: Literal["not_found", "storage_error"] = "not_found"


Verdict = Identity | Denied
