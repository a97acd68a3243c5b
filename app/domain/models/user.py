"""
User profile model for the Mini App Auth Backend.
Documents are stored with camelCase keys, keyed by the platform user ID.
"""

from datetime import datetime
from typing import Any, Dict, Mapping, Optional

from pydantic import BaseModel, Field

REFERRAL_CODE_LENGTH = 8


class UserProfile(BaseModel):
    """Persisted user profile."""

    user_id: str = Field(..., alias="userId", description="Platform user ID as string")
    username: Optional[str] = Field(None, description="Platform username")
    first_name: str = Field(..., alias="firstName", description="First name")
    last_name: Optional[str] = Field(None, alias="lastName", description="Last name")
    language_code: str = Field(..., alias="languageCode", description="Language code")
    tokens: int = Field(0, ge=0, description="Token balance")
    referral_code: str = Field(
        ...,
        alias="referralCode",
        min_length=REFERRAL_CODE_LENGTH,
        max_length=REFERRAL_CODE_LENGTH,
        description="Referral code, generated once",
    )
    referred_by: Optional[str] = Field(None, alias="referredBy", description="Referrer user ID")
    referrals_made: int = Field(0, ge=0, alias="referralsMade", description="Referral count")
    created_at: datetime = Field(..., alias="createdAt", description="Creation timestamp")
    last_login: datetime = Field(..., alias="lastLogin", description="Last successful validation")
    connected_wallet: Optional[str] = Field(
        None, alias="connectedWallet", description="Connected wallet address"
    )

    class Config:
        populate_by_name = True

    @classmethod
    def from_document(cls, document: Mapping[str, Any]) -> "UserProfile":
        """Build a profile from a stored document, ignoring the storage key."""
        data = {key: value for key, value in document.items() if key != "_id"}
        return cls.model_validate(data)

    def to_document(self) -> Dict[str, Any]:
        """Serialize to a storage document keyed by user ID."""
        document = self.model_dump(by_alias=True)
        document["_id"] = self.user_id
        return document

    @classmethod
    def document_fields(cls, fields: Mapping[str, Any]) -> Dict[str, Any]:
        """Translate attribute names to stored (camelCase) keys."""
        translated = {}
        for name, value in fields.items():
            field = cls.model_fields.get(name)
            if field is None:
                raise KeyError(f"Unknown user profile field: {name}")
            translated[field.alias or name] = value
        return translated
