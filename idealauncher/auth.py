# Auth module for Firebase Authentication
# Every API route depends on require_auth; ideas are then scoped to the caller's uid

import logging
from typing import Optional

from fastapi import Depends, HTTPException
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

# Firebase Admin SDK
import firebase_admin
from firebase_admin import auth, credentials

logger = logging.getLogger(__name__)

_firebase_app = None


def get_firebase_app():
    """Get or initialize the Firebase Admin app."""
    global _firebase_app
    if _firebase_app is None:
        # Uses Application Default Credentials (GOOGLE_APPLICATION_CREDENTIALS locally)
        try:
            _firebase_app = firebase_admin.get_app()
        except ValueError:
            cred = credentials.ApplicationDefault()
            _firebase_app = firebase_admin.initialize_app(cred)
    return _firebase_app


# Security scheme for extracting Bearer tokens
security = HTTPBearer(auto_error=False)


class UserInfo:
    """Represents an authenticated user."""
    def __init__(self, uid: str, email: Optional[str] = None,
                 display_name: Optional[str] = None):
        self.uid = uid
        self.email = email
        self.display_name = display_name

    def to_dict(self) -> dict:
        return {
            "uid": self.uid,
            "email": self.email,
            "display_name": self.display_name,
        }


async def get_current_user(
    credentials: HTTPAuthorizationCredentials = Depends(security)
) -> Optional[UserInfo]:
    """
    Verify the bearer token with Firebase.
    Returns None if no valid token is provided.
    """
    if credentials is None:
        return None

    try:
        get_firebase_app()
        decoded_token = auth.verify_id_token(credentials.credentials)
        return UserInfo(
            uid=decoded_token.get("uid"),
            email=decoded_token.get("email"),
            display_name=decoded_token.get("name"),
        )
    except Exception as e:
        logger.warning(f"Token verification failed: {e}")
        return None


async def require_auth(
    credentials: HTTPAuthorizationCredentials = Depends(security)
) -> UserInfo:
    """
    Dependency that requires authentication.
    Raises 401 if not authenticated.
    """
    if credentials is None:
        raise HTTPException(status_code=401, detail="Authentication required")

    user = await get_current_user(credentials)
    if user is None:
        raise HTTPException(status_code=401, detail="Invalid or expired token")
    return user
