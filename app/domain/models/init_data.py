"""
Models for Telegram Mini App init data verification.
"""

from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field, StrictInt, model_validator


class VerificationFailureReason(str, Enum):
    """Why an init data payload was rejected."""

    MISSING_HASH = "missing_hash"
    MISSING_USER_DATA = "missing_user_data"
    MALFORMED_USER_JSON = "malformed_user_json"
    HASH_MISMATCH = "hash_mismatch"
    EXPIRED = "expired"
    INTERNAL_ERROR = "internal_error"


class IdentityClaim(BaseModel):
    """
    Identity fields embedded in the `user` key of init data.

    Untrusted until the payload hash has been verified. Extra fields sent by
    the platform (is_premium, photo_url, ...) are kept as-is.
    """

    id: StrictInt = Field(..., description="Platform user ID")
    username: Optional[str] = Field(None, description="Platform username")
    first_name: Optional[str] = Field(None, description="First name")
    last_name: Optional[str] = Field(None, description="Last name")
    language_code: Optional[str] = Field(None, description="IETF language tag")

    class Config:
        extra = "allow"


class VerificationVerdict(BaseModel):
    """Tagged result of init data verification."""

    valid: bool = Field(..., description="Whether the payload is authentic")
    claim: Optional[IdentityClaim] = Field(None, description="Verified identity claim")
    reason: Optional[VerificationFailureReason] = Field(
        None, description="Failure reason when the payload is invalid"
    )
    auth_date: Optional[int] = Field(None, description="auth_date from the payload, if parseable")
    is_stale: bool = Field(
        False, description="auth_date is older than the configured max age"
    )

    @model_validator(mode="after")
    def check_claim_matches_validity(self):
        if self.valid and (self.claim is None or self.reason is not None):
            raise ValueError("valid verdict requires a claim and no failure reason")
        if not self.valid and (self.claim is not None or self.reason is None):
            raise ValueError("invalid verdict requires a failure reason and no claim")
        return self

    @classmethod
    def success(
        cls,
        claim: IdentityClaim,
        auth_date: Optional[int] = None,
        is_stale: bool = False,
    ) -> "VerificationVerdict":
        return cls(valid=True, claim=claim, auth_date=auth_date, is_stale=is_stale)

    @classmethod
    def failure(
        cls,
        reason: VerificationFailureReason,
        auth_date: Optional[int] = None,
        is_stale: bool = False,
    ) -> "VerificationVerdict":
        return cls(valid=False, reason=reason, auth_date=auth_date, is_stale=is_stale)
