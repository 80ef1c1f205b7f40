import logging
from typing import Optional

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from ..config import Settings
from ..deps import get_settings

logger = logging.getLogger(__name__)

auth_scheme = HTTPBearer(auto_error=False)

firebase_initialized = False


def _init_firebase():
    global firebase_initialized
    if firebase_initialized:
        return
    import firebase_admin

    if not firebase_admin._apps:
        # ADC on GCP, GOOGLE_APPLICATION_CREDENTIALS elsewhere
        firebase_admin.initialize_app()
    firebase_initialized = True


def verify_token(id_token: str, settings: Settings) -> dict:
    if settings.auth_disabled:
        return {"uid": "dev-user"}
    try:
        _init_firebase()
        from firebase_admin import auth

        decoded = auth.verify_id_token(id_token, check_revoked=False)
        project = settings.firebase_project_id
        if project and decoded.get("aud") != project:
            raise ValueError("Invalid audience")
        return decoded
    except Exception as e:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail=f"Invalid token: {e}")


def get_current_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(auth_scheme),
    settings: Settings = Depends(get_settings),
):
    if settings.auth_disabled:
        return {"uid": "dev-user"}
    if not credentials:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Missing Authorization")
    return verify_token(credentials.credentials, settings)


def require_cleanup_operator(
    user: dict = Depends(get_current_user), settings: Settings = Depends(get_settings)
):
    """Authenticated user allowed to trigger cleanup (everyone, unless an allow-list is set)."""
    allowed = settings.cleanup_operator_uids
    if allowed and user.get("uid") not in allowed:
        logger.warning("cleanup trigger refused for uid=%s", user.get("uid"))
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Not allowed to trigger cleanup")
    return user
