"""
Bearer token authentication
"""

import uuid
from typing import Optional

from itsdangerous import BadSignature, SignatureExpired, URLSafeTimedSerializer

from tubely.config.base import Settings
from tubely.errors import AuthError
from tubely.utils.logger import get_logger

logger = get_logger(__name__)

TOKEN_SALT = "tubely-access"


def get_bearer_token(authorization: Optional[str]) -> str:
    """Extract the token from an 'Authorization: Bearer <token>' header value"""
    if not authorization:
        raise AuthError("Authorization header missing", public_message="Couldn't find bearer token")

    scheme, _, token = authorization.strip().partition(" ")
    if scheme.lower() != "bearer" or not token.strip():
        raise AuthError("Malformed authorization header", public_message="Couldn't find bearer token")
    return token.strip()


class Authenticator:
    """Issues and validates signed, timestamped access tokens"""

    def __init__(self, settings: Settings):
        if not settings.SECRET_KEY:
            logger.warning("SECRET_KEY is empty - tokens are trivially forgeable")
        self.signer = URLSafeTimedSerializer(settings.SECRET_KEY, salt=TOKEN_SALT)
        self.max_age = settings.ACCESS_TOKEN_EXPIRE_MINUTES * 60

    def issue_token(self, user_id: uuid.UUID) -> str:
        """
        Sign an access token for user_id

        No route hands out tokens; this is for the test suite and for
        operator tooling that mints tokens with the shared SECRET_KEY.
        """
        return self.signer.dumps({"sub": str(user_id)})

    def authenticate(self, token: str) -> uuid.UUID:
        """Resolve the user id carried by a token"""
        try:
            payload = self.signer.loads(token, max_age=self.max_age)
        except SignatureExpired as e:
            raise AuthError("Token expired", public_message="Couldn't validate token") from e
        except BadSignature as e:
            raise AuthError("Invalid token signature", public_message="Couldn't validate token") from e

        try:
            return uuid.UUID(str(payload["sub"]))
        except (KeyError, TypeError, ValueError) as e:
            raise AuthError("Token has no valid subject", public_message="Couldn't validate token") from e

    def authenticate_header(self, authorization: Optional[str]) -> uuid.UUID:
        return self.authenticate(get_bearer_token(authorization))
