"""
Caller identity from bearer tokens

Tokens are issued by the lab portal's login flow; this service only verifies
them and exposes the authenticated user as a Principal.
"""
from dataclasses import dataclass
from typing import Optional

import jwt
from fastapi import Header, HTTPException

from case_intake.core.config import settings


@dataclass(frozen=True)
class Principal:
    user_id: int
    user_name: str


def extract_token_from_header(auth_header: Optional[str]) -> Optional[str]:
    """Return the token from "Bearer <token>", or None if malformed"""
    if not auth_header:
        return None
    parts = auth_header.split(" ")
    if len(parts) != 2 or parts[0] != "Bearer":
        return None
    return parts[1]


def decode_access_token(token: str) -> dict:
    """
    Decode and verify an access token.

    Raises:
        jwt.InvalidTokenError: If the token is invalid or expired
    """
    return jwt.decode(token, settings.JWT_SECRET, algorithms=[settings.JWT_ALGORITHM])


def principal_from_claims(claims: dict) -> Principal:
    user_id = claims.get("UserId")
    if user_id is None:
        raise jwt.InvalidTokenError("Token has no UserId claim")
    try:
        user_id = int(user_id)
    except (TypeError, ValueError):
        raise jwt.InvalidTokenError("UserId claim is not numeric")
    return Principal(user_id=user_id, user_name=str(claims.get("UserName") or ""))


def get_current_user(authorization: Optional[str] = Header(default=None)) -> Principal:
    """FastAPI dependency resolving the authenticated user"""
    if not authorization:
        raise HTTPException(status_code=401, detail="Missing authorization header")

    token = extract_token_from_header(authorization)
    if not token:
        raise HTTPException(
            status_code=401,
            detail="Invalid authorization header format. Expected: Bearer <token>"
        )

    try:
        return principal_from_claims(decode_access_token(token))
    except jwt.ExpiredSignatureError:
        raise HTTPException(status_code=401, detail="Token has expired")
    except jwt.InvalidTokenError:
        raise HTTPException(status_code=401, detail="Invalid token")
