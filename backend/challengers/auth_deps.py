from __future__ import annotations
import uuid
import jwt
from fastapi import Depends, HTTPException
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from challengers.security import decode_token

security = HTTPBearer()
optional_security = HTTPBearer(auto_error=False)

def _user_id_from(credentials: HTTPAuthorizationCredentials) -> uuid.UUID:
    try:
        data = decode_token(credentials.credentials)
    except jwt.PyJWTError:
        raise HTTPException(status_code=401, detail="Invalid token")
    if data.get("type") != "access":
        raise HTTPException(status_code=401, detail="Wrong token type")
    try:
        return uuid.UUID(str(data.get("sub")))
    except ValueError:
        raise HTTPException(status_code=401, detail="Invalid token subject")

async def get_current_user_id(credentials: HTTPAuthorizationCredentials = Depends(security)) -> uuid.UUID:
    """Caller id from the bearer token. Whether the user still exists is checked by the use case."""
    return _user_id_from(credentials)

async def get_optional_user_id(
    credentials: HTTPAuthorizationCredentials | None = Depends(optional_security),
) -> uuid.UUID | None:
    if credentials is None:
        return None
    return _user_id_from(credentials)
