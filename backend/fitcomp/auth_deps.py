from __future__ import annotations
from dataclasses import dataclass
from fastapi import Depends, HTTPException
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
import jwt
from fitcomp.security import decode_token

security = HTTPBearer()

@dataclass(frozen=True)
class CurrentUser:
    id: str
    display_name: str

async def get_current_user(credentials: HTTPAuthorizationCredentials = Depends(security)) -> CurrentUser:
    try:
        data = decode_token(credentials.credentials)
    except jwt.PyJWTError:
        raise HTTPException(status_code=401, detail="Invalid token")
    if data.get("type") != "access":
        raise HTTPException(status_code=401, detail="Wrong token type")
    sub = data.get("sub")
    if not sub:
        raise HTTPException(status_code=401, detail="Token has no subject")
    return CurrentUser(id=str(sub), display_name=data.get("name") or f"user-{str(sub)[:8]}")
