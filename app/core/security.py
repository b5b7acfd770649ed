"""
Credential verification for REST requests and chat sockets.

Tokens are issued by the account service as HS256 JWTs carrying ``userId``
and ``role`` claims. This module only verifies them.
"""

import logging
from dataclasses import dataclass
from typing import Any, Dict, Optional

import jwt

from app.config.settings import settings
from app.core.errors import UnauthorizedError
from app.core.secrets import SecretProvider, env_secrets_provider

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Identity:
    """The participant a verified credential resolves to."""

    user_id: int
    role: Optional[str] = None


class TokenVerifier:
    """Decode and validate participant credentials."""

    def __init__(self, secret_provider: SecretProvider = env_secrets_provider, algorithm: Optional[str] = None):
        self._secret_provider = secret_provider
        self._algorithm = algorithm or settings.JWT_ALGORITHM

    def verify(self, token: Optional[str]) -> Identity:
        if not token:
            raise UnauthorizedError("Authentication required")

        secret = self._secret_provider.get("JWT_SECRET")
        if not secret:
            logger.error("JWT_SECRET is not configured; rejecting credential.")
            raise UnauthorizedError("Invalid token")

        try:
            claims: Dict[str, Any] = jwt.decode(token, secret, algorithms=[self._algorithm])
        except jwt.PyJWTError as exc:
            logger.info("Rejected credential: %s", exc)
            raise UnauthorizedError("Invalid token") from exc

        user_id = claims.get("userId", claims.get("sub"))
        try:
            return Identity(user_id=int(user_id), role=claims.get("role"))
        except (TypeError, ValueError) as exc:
            raise UnauthorizedError("Invalid token") from exc


def issue_token(user_id: int, role: Optional[str], secret: str, algorithm: str = "HS256") -> str:
    """Sign a credential in the account service's format. Used by tests and local tooling."""
    return jwt.encode({"userId": user_id, "role": role}, secret, algorithm=algorithm)
