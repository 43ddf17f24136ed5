from fastapi import Depends
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from jose import JWTError
from app.core.config import settings
from app.core.errors import AuthError
from app.core.security import decode_jwt

bearer = HTTPBearer(auto_error=False)

ROLE_ADMIN = "admin"
ROLE_USER = "user"

def authenticate(creds: HTTPAuthorizationCredentials | None) -> dict:
    if not creds or not str(creds.credentials or "").strip():
        raise AuthError("Authorization token is missing")
    try:
        claims = decode_jwt(creds.credentials, settings.JWT_SECRET)
    except JWTError:
        raise AuthError("Invalid or expired token")
    if not str(claims.get("sub") or "").strip():
        raise AuthError("Invalid or expired token")
    return claims

def authorize(principal: dict, *roles: str) -> bool:
    role = str(principal.get("role") or "").strip().lower()
    return role in {r.lower() for r in roles}

def get_current_principal(creds: HTTPAuthorizationCredentials = Depends(bearer)) -> dict:
    return authenticate(creds)
