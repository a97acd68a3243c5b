from typing import Optional

from pydantic import BaseModel, Field, field_validator

from app.domain.models.user import UserProfile


# Request DTOs
class ValidateInitDataRequestDTO(BaseModel):
    """Request DTO for init data validation."""

    init_data: Optional[str] = Field(
        None, alias="initData", description="Raw init data from the Mini App host"
    )

    @field_validator("init_data", mode="before")
    @classmethod
    def non_string_as_missing(cls, v):
        """initData that is not a string is treated as missing (400, not 422)."""
        if not isinstance(v, str):
            return None
        return v

    class Config:
        populate_by_name = True


# Response DTOs
class ValidateInitDataResponseDTO(BaseModel):
    """Response DTO for successful init data validation."""

    message: str = Field(..., description="Response message")
    user: UserProfile = Field(..., description="Synchronized user profile")


class ErrorResponseDTO(BaseModel):
    """Response DTO for failed requests."""

    message: str = Field(..., description="Response message")
    error: Optional[str] = Field(None, description="Failure reason or error code")
