"""
Auth Router for Mini App Auth Backend.
Handles Telegram Mini App init data validation.
"""

from typing import Optional

from fastapi import APIRouter, Depends, Request

from app.api.deps.user_store import get_auth_service
from app.api.dto.auth_dto import (
    ErrorResponseDTO,
    ValidateInitDataRequestDTO,
    ValidateInitDataResponseDTO,
)
from app.api.services.auth_service import AuthService
from app.core.logging import get_logger

logger = get_logger(__name__)

# Create router
router = APIRouter()


@router.post(
    "/validate",
    response_model=ValidateInitDataResponseDTO,
    responses={
        400: {"model": ErrorResponseDTO, "description": "Missing initData"},
        401: {"model": ErrorResponseDTO, "description": "Init data failed verification"},
        500: {"model": ErrorResponseDTO, "description": "Configuration or store failure"},
    },
)
async def validate_init_data(
    http_request: Request,
    request: Optional[ValidateInitDataRequestDTO] = None,
    auth_service: AuthService = Depends(get_auth_service),
) -> ValidateInitDataResponseDTO:
    """
    Validate Mini App init data and return the user's profile.

    This endpoint:
    1. Verifies the init data signature against the bot token
    2. Creates the user profile on first login, or refreshes it
    3. Returns the profile

    Failures are raised as MiniAppAuthException and rendered by the
    application's exception handler.
    """
    logger.info(
        "Received init data validation request",
        origin=http_request.headers.get("origin", "Unknown origin"),
    )

    init_data = request.init_data if request else None
    profile = await auth_service.validate_init_data(init_data)

    return ValidateInitDataResponseDTO(
        message="User validated and profile retrieved/created.",
        user=profile,
    )
