"""
JWT Service for identity provider access tokens.

The portal does not run its own login: tokens are issued by the identity
provider and only verified here. The subject claim is the principal id.
create_access_token exists for local development and tests.
"""

import jwt
from datetime import datetime, timedelta, timezone
from typing import Optional
from pydantic import BaseModel, ValidationError

from core.config import (
    IDENTITY_JWT_SECRET, IDENTITY_JWT_ALGORITHM, IDENTITY_JWT_AUDIENCE, IDENTITY_JWT_EXPIRE_MINUTES,
)


class TokenPayload(BaseModel):
    """Payload structure for identity tokens."""
    sub: str  # Identity provider subject, used as the principal id
    email: Optional[str] = None
    name: Optional[str] = None
    iat: Optional[int] = None  # Set by JWT service
    exp: Optional[int] = None  # Set by JWT service


class JWTService:
    """Service for JWT token operations."""

    ALGORITHM = IDENTITY_JWT_ALGORITHM
    ACCESS_TOKEN_EXPIRE_MINUTES = IDENTITY_JWT_EXPIRE_MINUTES

    @classmethod
    def create_access_token(cls, payload: TokenPayload, expires_delta: Optional[timedelta] = None) -> str:
        """Create a signed access token."""
        to_encode = payload.model_dump(exclude_none=True)
        now = datetime.now(timezone.utc)
        expire = now + (expires_delta or timedelta(minutes=cls.ACCESS_TOKEN_EXPIRE_MINUTES))
        to_encode.update({"exp": expire, "iat": now})
        if IDENTITY_JWT_AUDIENCE:
            to_encode["aud"] = IDENTITY_JWT_AUDIENCE
        return jwt.encode(to_encode, IDENTITY_JWT_SECRET, algorithm=cls.ALGORITHM)

    @classmethod
    def verify_token(cls, token: str) -> Optional[TokenPayload]:
        """Verify and decode a token. Returns None when it is expired or invalid."""
        try:
            payload = jwt.decode(
                token,
                IDENTITY_JWT_SECRET,
                algorithms=[cls.ALGORITHM],
                audience=IDENTITY_JWT_AUDIENCE,
                options={"verify_aud": IDENTITY_JWT_AUDIENCE is not None},
            )
            payload.pop("aud", None)
            return TokenPayload(**payload)
        except jwt.ExpiredSignatureError:
            return None
        except jwt.InvalidTokenError:
            return None
        except ValidationError:
            # Verified signature but no usable subject claim
            return None


# Global JWT service instance
jwt_service = JWTService()
