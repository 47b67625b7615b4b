"""
Bearer JWT verification for user-facing payment endpoints.
Tokens are issued by the main TalabaHub API; here we only verify them (sub = user id).
"""
import logging

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import JWTError, jwt

from app.core.config import settings

logger = logging.getLogger("auth")

bearer_scheme = HTTPBearer(auto_error=False)


def decode_access_token(token: str) -> dict | None:
    if not settings.jwt_secret_key:
        logger.error("jwt_secret_not_configured")
        return None
    try:
        return jwt.decode(token, settings.jwt_secret_key, algorithms=[settings.jwt_algorithm])
    except JWTError as e:
        logger.info("jwt_rejected", extra={"error": str(e)})
        return None


def get_current_user(
    credentials: HTTPAuthorizationCredentials | None = Depends(bearer_scheme),
) -> dict:
    """Returns {"id": <user id>}; 401 on missing/invalid token."""
    unauthorized = HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Not authenticated",
        headers={"WWW-Authenticate": "Bearer"},
    )
    if credentials is None or credentials.scheme.lower() != "bearer":
        raise unauthorized
    payload = decode_access_token(credentials.credentials)
    if not payload or not payload.get("sub"):
        raise unauthorized
    return {"id": str(payload["sub"]), "role": payload.get("role")}
