"""
Current-user resolution for the API.

In production the bearer token is a Firebase ID token. Outside production a
development token of the form ``<uid>:<email>`` is accepted so that several
users can be simulated against a local database.
"""
import logging
from dataclasses import dataclass
from typing import Optional

import firebase_admin
from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from firebase_admin import auth, credentials

from config import settings

logger = logging.getLogger(__name__)

security = HTTPBearer(auto_error=False)

_initialized = False


@dataclass(frozen=True)
class CurrentUser:
    id: str
    email: str


def initialize_firebase_admin():
    """Initialize the Firebase Admin SDK once per process."""
    global _initialized
    if _initialized:
        return
    options = {"projectId": settings.firebase_project_id} if settings.firebase_project_id else None
    firebase_admin.initialize_app(credentials.ApplicationDefault(), options=options)
    _initialized = True
    logger.info("Firebase Admin initialized")


def _parse_development_token(token: str) -> Optional[CurrentUser]:
    uid, sep, email = token.partition(":")
    if not sep or not uid or not email:
        return None
    return CurrentUser(id=uid, email=email.lower())


def get_current_user(creds: Optional[HTTPAuthorizationCredentials] = Depends(security)) -> CurrentUser:
    if creds is None or not creds.credentials:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="User not authenticated")

    token = creds.credentials
    if settings.environment != "production":
        user = _parse_development_token(token)
        if user is None:
            raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="User not authenticated")
        return user

    try:
        decoded = auth.verify_id_token(token)
    except (ValueError, auth.InvalidIdTokenError, auth.ExpiredIdTokenError, auth.RevokedIdTokenError) as e:
        logger.warning("Rejected ID token: %s", e)
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="User not authenticated")

    return CurrentUser(id=decoded["uid"], email=(decoded.get("email") or "").lower())
