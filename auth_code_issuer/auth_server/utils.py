import hmac
import logging
import secrets
import urllib.parse
from datetime import datetime, timedelta, timezone
from typing import Callable, Dict, Optional

from jose import jwt, JWTError
from jose.exceptions import JOSEError

from .errors import ServerError
from .models import Client
from auth_code_issuer.core.config import settings

logger = logging.getLogger(__name__)

JWT_ALGORITHM = settings.jwt_algorithm
ACCESS_TOKEN_EXPIRE_HOURS = settings.access_token_ttl_hours

SigningKeyResolver = Callable[[Client], str]


def generate_token(length: int = 32) -> str:
    """Generates a cryptographically secure URL-safe string token."""
    return secrets.token_urlsafe(length)

def generate_code() -> str:
    """
    Generates an authorization code from the OS random source.

    Raises:
        ServerError: If the random source is unavailable. No fallback code is produced.
    """
    try:
        return generate_token(32)
    except (OSError, NotImplementedError) as e:
        logger.error("Random source unavailable while issuing a code: %s", e)
        raise ServerError() from e

def client_secret_signing_key(client: Client) -> str:
    """Default key resolution: tokens are signed with the client's own secret."""
    return client.client_secret.get_secret_value()

def create_access_token(signing_key: str, expires_delta: Optional[timedelta] = None) -> str:
    """
    Creates a signed access token whose only claim is its expiry.

    Args:
        signing_key (str): HMAC key for the token.
        expires_delta (Optional[timedelta]): Lifetime. Defaults to ACCESS_TOKEN_EXPIRE_HOURS.

    Returns:
        str: The encoded JWT.

    Raises:
        ServerError: If signing fails.
    """
    expire = datetime.now(timezone.utc) + (expires_delta or timedelta(hours=ACCESS_TOKEN_EXPIRE_HOURS))
    try:
        return jwt.encode({"exp": expire}, signing_key, algorithm=JWT_ALGORITHM)
    except JOSEError as e: # Key rejected or signing failed
        logger.error("Failed to sign access token: %s", e)
        raise ServerError() from e

def decode_access_token(token: str, signing_key: str) -> Optional[dict]:
    """
    Verifies and decodes an access token.

    Returns:
        Optional[dict]: The claims if the signature is valid and the token has not expired, else None.
    """
    try:
        return jwt.decode(token, signing_key, algorithms=[JWT_ALGORITHM])
    except JWTError as e: # Expired, bad signature, malformed
        logger.debug("Access token rejected: %s", e)
    return None

def codes_match(presented: str, stored: str) -> bool:
    """Constant-time comparison of two code or secret strings."""
    return hmac.compare_digest(presented.encode("utf-8"), stored.encode("utf-8"))

def build_redirect_url(redirect_uri: str, params: Dict[str, str]) -> str:
    """Appends ``params`` to ``redirect_uri``, keeping any query it already has."""
    separator = "&" if urllib.parse.urlparse(redirect_uri).query else "?"
    return redirect_uri + separator + urllib.parse.urlencode(params)
