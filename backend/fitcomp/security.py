from __future__ import annotations
from datetime import datetime, timedelta, timezone
from typing import Any
import jwt
from fitcomp.config import settings

# Identity is owned by the external auth provider. We verify its HS256 tokens;
# minting here is for local tooling and tests that share the secret.

def make_access_token(sub: str, name: str | None = None, ttl_min: int | None = None) -> str:
    now = datetime.now(timezone.utc)
    payload = {
        "sub": sub,
        "type": "access",
        "iat": now.timestamp(),
        "exp": int((now + timedelta(minutes=ttl_min or settings.access_ttl_min)).timestamp()),
    }
    if name:
        payload["name"] = name
    return jwt.encode(payload, settings.jwt_secret, algorithm=settings.jwt_alg)

def decode_token(token: str) -> dict[str, Any]:
    return jwt.decode(token, settings.jwt_secret, algorithms=[settings.jwt_alg])
