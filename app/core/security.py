"""Security related functions."""

import logging

import jwt
from jwt import InvalidTokenError

from app.core.config import settings
from app.exceptions.base import UnauthenticatedError

logger = logging.getLogger(__name__)


class ClerkAuthenticator:
    """
    Handles Clerk session token verification.

    Clerk signs session tokens with RS256. When ``settings.clerk_jwt_key`` holds
    the instance's PEM public key, the signature and expiry are verified
    against it. Without a key, tokens are only accepted unverified in the
    development and testing environments.

    :ivar public_key: PEM public key used to verify tokens, if configured.
    :type public_key: str | None
    """

    def __init__(self, public_key: str | None = None):
        self.public_key = public_key or settings.clerk_jwt_key

    def verify_token(self, token: str) -> dict:
        """
        Verify a Clerk session JWT and return its claims.

        :param token: The raw bearer token.
        :return: The decoded claims.
        :raises UnauthenticatedError: If the token cannot be trusted.
        """
        try:
            if self.public_key:
                return jwt.decode(
                    token,
                    key=self.public_key,
                    algorithms=["RS256"],
                    options={"verify_aud": False},
                    leeway=5,
                )

            if settings.is_development or settings.is_testing:
                logger.warning("CLERK_JWT_KEY not set; accepting unverified session token")
                return jwt.decode(
                    token,
                    options={"verify_signature": False, "verify_aud": False, "verify_exp": False},
                )
        except InvalidTokenError as e:
            raise UnauthenticatedError(f"Invalid authentication token: {str(e)}") from e

        raise UnauthenticatedError("Token verification is not configured")
