"""Bearer credential verification for the return claims API."""

import logging
from dataclasses import dataclass
from typing import List, Optional

import jwt

from .errors import AuthenticationError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CurrentUser:
    """Identity resolved from a verified bearer token."""
    id: str
    role: str = "authenticated"
    email: Optional[str] = None

    def has_role(self, role: str) -> bool:
        return self.role == role


class BearerTokenVerifier:
    """
    Verifies signed JWT access tokens.

    Only the outcome matters to callers: a valid token yields the current
    user, anything else raises AuthenticationError.
    """

    def __init__(
        self,
        secret: str,
        algorithms: Optional[List[str]] = None,
        issuer: Optional[str] = None,
        audience: Optional[str] = None
    ):
        self.secret = secret
        self.algorithms = algorithms or ["HS256"]
        self.issuer = issuer
        self.audience = audience

        logger.info(f"Initialized BearerTokenVerifier: algorithms={self.algorithms}, issuer={issuer or '-'}")

    def verify_token(self, token: str) -> CurrentUser:
        """Decode and validate a token, returning the current user."""
        if not self.secret:
            raise AuthenticationError.invalid("token verification secret is not configured")

        options = {"require": ["sub", "exp"], "verify_aud": self.audience is not None}
        try:
            payload = jwt.decode(
                token,
                self.secret,
                algorithms=self.algorithms,
                audience=self.audience,
                issuer=self.issuer,
                options=options,
            )
        except jwt.ExpiredSignatureError as e:
            logger.warning("Bearer token expired")
            raise AuthenticationError.invalid("token has expired", e)
        except jwt.InvalidTokenError as e:
            logger.warning(f"Invalid bearer token: {e}")
            raise AuthenticationError.invalid(str(e), e)

        app_metadata = payload.get("app_metadata") or {}
        role = app_metadata.get("role") or payload.get("role") or "authenticated"

        return CurrentUser(id=str(payload["sub"]), role=role, email=payload.get("email"))
