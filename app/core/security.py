"""
Security utilities for the Mini App Auth Backend.
Handles Telegram Mini App init data signature verification and referral code generation.

Init data is a query string signed by the platform:

    secret_key = HMAC_SHA256(key="WebAppData", msg=bot_token)
    hash       = hex(HMAC_SHA256(key=secret_key, msg=data_check_string))

where data_check_string is every key=value pair except `hash`, sorted by key
and joined with newlines.
"""

import hashlib
import hmac
import json
import secrets
import string
import time
from typing import Callable, Dict, Mapping, Optional
from urllib.parse import parse_qsl, urlencode

from app.core.config import settings
from app.core.logging import get_logger
from app.domain.models.init_data import (
    IdentityClaim,
    VerificationFailureReason,
    VerificationVerdict,
)
from app.domain.models.user import REFERRAL_CODE_LENGTH

logger = get_logger(__name__)

WEBAPP_DATA_KEY = b"WebAppData"
DEFAULT_INIT_DATA_MAX_AGE_SECONDS = 24 * 60 * 60

# 64 symbols, 6 bits each: 8 characters give 2**48 distinct codes
REFERRAL_CODE_ALPHABET = string.ascii_letters + string.digits + "_-"


def parse_init_data(raw_payload: str) -> Dict[str, str]:
    """
    Parse raw init data into a key/value mapping.

    Duplicate keys collapse to the last value, and the canonical string is
    built from this mapping, so each key appears in it exactly once.

    Args:
        raw_payload: URL query-encoded init data

    Returns:
        Dict[str, str]: URL-decoded fields
    """
    return dict(parse_qsl(raw_payload or "", keep_blank_values=True))


def build_data_check_string(fields: Mapping[str, str]) -> str:
    """
    Build the canonical data-check string.

    Args:
        fields: Decoded init data fields, without `hash`

    Returns:
        str: key=value pairs sorted by key bytes, newline separated
    """
    ordered_keys = sorted(fields, key=lambda key: key.encode("utf-8"))
    return "\n".join(f"{key}={fields[key]}" for key in ordered_keys)


def derive_secret_key(secret: str) -> bytes:
    """Derive the HMAC key from the bot token."""
    return hmac.new(WEBAPP_DATA_KEY, secret.encode("utf-8"), hashlib.sha256).digest()


def calculate_init_data_hash(data_check_string: str, secret: str) -> str:
    """
    Calculate the hex hash the platform would attach to init data.

    Args:
        data_check_string: Canonical data-check string
        secret: Bot token

    Returns:
        str: Lowercase hex HMAC-SHA256 digest
    """
    return hmac.new(
        derive_secret_key(secret),
        data_check_string.encode("utf-8"),
        hashlib.sha256,
    ).hexdigest()


def sign_init_data(fields: Mapping[str, str], secret: str) -> str:
    """
    Produce signed init data for the given fields.

    Used by fixtures and local tooling to mint payloads the way the
    platform does.

    Args:
        fields: Init data fields (without `hash`)
        secret: Bot token

    Returns:
        str: URL query-encoded init data including `hash`
    """
    payload = dict(fields)
    payload.pop("hash", None)
    payload["hash"] = calculate_init_data_hash(build_data_check_string(payload), secret)
    return urlencode(payload)


def _parse_auth_date(value: Optional[str]) -> Optional[int]:
    if value is None:
        return None
    try:
        return int(value)
    except ValueError:
        logger.warning("Init data auth_date is not an integer")
        return None


def verify_init_data(
    raw_payload: str,
    secret: str,
    max_age_seconds: int = DEFAULT_INIT_DATA_MAX_AGE_SECONDS,
    enforce_max_age: bool = False,
    now: Optional[Callable[[], float]] = None,
) -> VerificationVerdict:
    """
    Verify signed init data and extract the identity claim.

    Never raises: every outcome, including unexpected internal failures, is
    returned as a verdict.

    Staleness of `auth_date` is always reported on the verdict. It only
    invalidates the payload when `enforce_max_age` is set, and then only
    after the hash has been verified.

    Args:
        raw_payload: URL query-encoded init data
        secret: Bot token
        max_age_seconds: Age after which auth_date counts as stale
        enforce_max_age: Reject stale payloads with reason `expired`
        now: Clock returning Unix seconds (defaults to time.time)

    Returns:
        VerificationVerdict: Verification result
    """
    try:
        if not secret:
            logger.error("Init data verification attempted without a bot token")
            return VerificationVerdict.failure(VerificationFailureReason.INTERNAL_ERROR)

        fields = parse_init_data(raw_payload)
        received_hash = fields.pop("hash", None)
        if not received_hash:
            return VerificationVerdict.failure(VerificationFailureReason.MISSING_HASH)

        auth_date = _parse_auth_date(fields.get("auth_date"))
        is_stale = False
        if auth_date is not None:
            current_time = (now or time.time)()
            is_stale = current_time - auth_date > max_age_seconds
            if is_stale:
                logger.warning(
                    "Init data is older than max age",
                    max_age_seconds=max_age_seconds,
                    enforced=enforce_max_age,
                )

        data_check_string = build_data_check_string(fields)
        calculated_hash = calculate_init_data_hash(data_check_string, secret)

        if not hmac.compare_digest(
            calculated_hash.encode("utf-8"), received_hash.encode("utf-8")
        ):
            return VerificationVerdict.failure(
                VerificationFailureReason.HASH_MISMATCH, auth_date, is_stale
            )

        if is_stale and enforce_max_age:
            return VerificationVerdict.failure(
                VerificationFailureReason.EXPIRED, auth_date, is_stale
            )

        user_json = fields.get("user")
        if not user_json:
            return VerificationVerdict.failure(
                VerificationFailureReason.MISSING_USER_DATA, auth_date, is_stale
            )

        try:
            user_data = json.loads(user_json)
            if not isinstance(user_data, dict):
                raise ValueError("user is not a JSON object")
            claim = IdentityClaim.model_validate(user_data)
        except ValueError:
            return VerificationVerdict.failure(
                VerificationFailureReason.MALFORMED_USER_JSON, auth_date, is_stale
            )

        return VerificationVerdict.success(claim, auth_date, is_stale)

    except Exception as e:
        # Message only; the exception may reference payload internals
        logger.error("Unexpected error during init data verification", error_type=type(e).__name__)
        return VerificationVerdict.failure(VerificationFailureReason.INTERNAL_ERROR)


class InitDataVerifier:
    """Init data verifier bound to a staleness policy and a clock."""

    def __init__(
        self,
        max_age_seconds: int = DEFAULT_INIT_DATA_MAX_AGE_SECONDS,
        enforce_max_age: bool = False,
        now: Optional[Callable[[], float]] = None,
    ):
        self.max_age_seconds = max_age_seconds
        self.enforce_max_age = enforce_max_age
        self.now = now or time.time

    def verify(self, raw_payload: str, secret: str) -> VerificationVerdict:
        """Verify init data against the bot token."""
        return verify_init_data(
            raw_payload,
            secret,
            max_age_seconds=self.max_age_seconds,
            enforce_max_age=self.enforce_max_age,
            now=self.now,
        )


def get_init_data_verifier() -> InitDataVerifier:
    """Build a verifier from the current settings."""
    return InitDataVerifier(
        max_age_seconds=settings.INIT_DATA_MAX_AGE_SECONDS,
        enforce_max_age=settings.INIT_DATA_ENFORCE_MAX_AGE,
    )


def generate_referral_code(length: int = REFERRAL_CODE_LENGTH) -> str:
    """
    Generate a random URL-safe referral code.

    With 2**48 codes, the chance that a new code collides with one of n
    existing codes is about n / 2.8e14. Collisions that do happen are caught
    by the store's unique index and retried.

    Args:
        length: Code length

    Returns:
        str: Referral code
    """
    return "".join(secrets.choice(REFERRAL_CODE_ALPHABET) for _ in range(length))
