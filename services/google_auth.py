# services/google_auth.py
import logging
from typing import Dict

from fastapi import HTTPException, status
from google.auth.transport import requests as google_requests
from google.oauth2 import id_token

from config import GOOGLE_CLIENT_ID

logger = logging.getLogger(__name__)


class GoogleAuthError(Exception):
    """Raised when a Google ID token cannot be verified."""
    pass


def verify_google_id_token(token: str) -> Dict[str, str]:
    """
    Verifies a Google Sign-In ID token and returns the identity claims we use:
    email, name, picture and sub (the Google account id).
    """
    if not GOOGLE_CLIENT_ID:
        logger.error("Google login attempted but GOOGLE_CLIENT_ID is not configured.")
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Google login is not configured.",
        )

    try:
        payload = id_token.verify_oauth2_token(token, google_requests.Request(), GOOGLE_CLIENT_ID)
    except ValueError as e:
        raise GoogleAuthError(str(e)) from e

    if not payload.get("email"):
        raise GoogleAuthError("Google token carries no email claim")
    if payload.get("email_verified") is False:
        raise GoogleAuthError("Google account email is not verified")

    return {
        "email": payload["email"].lower(),
        "name": payload.get("name") or "",
        "picture": payload.get("picture"),
        "sub": payload.get("sub") or "",
    }
