"""
Authorization code lifecycle: request validation, consent confirmation and
code redemption. Transport-free; the endpoints module adapts these to HTTP.
"""
import logging
import time
from datetime import timedelta
from typing import Optional

from . import utils
from .errors import InvalidClientCredentials, InvalidCode, MalformedRequest, UnknownClient
from .models import AuthorizationRequest, Client, ConfirmAuthRequest, TokenRequest, TokenResponse
from .storage import ClientRegistry
from auth_code_issuer.core.config import Settings

logger = logging.getLogger(__name__)


def validate_authorization_request(auth_request: AuthorizationRequest, registry: ClientRegistry) -> Client:
    """
    Checks an authorization request and resolves its client. Checks run in a
    fixed order and the first failure is raised. No state is written.

    Raises:
        MalformedRequest: A required field is missing or invalid.
        UnknownClient: The client_id is not registered.
    """
    if auth_request.response_type != "code":
        raise MalformedRequest("invalid code request")
    if not auth_request.client_id:
        raise MalformedRequest("invalid_client_id")
    # Coarse scheme check only; the registered URI is the redirect target
    if "https" not in auth_request.redirect_uri:
        raise MalformedRequest("invalid_redirect_uri")
    if not auth_request.scope:
        raise MalformedRequest("invalid scope request")
    if not auth_request.state:
        raise MalformedRequest("invalid state request")

    client = registry.get_client(auth_request.client_id)
    if client is None:
        raise UnknownClient("invalid client")
    return client


def confirm_authorization(pending_code: Optional[str], confirm_request: ConfirmAuthRequest,
                          registry: ClientRegistry) -> str:
    """
    Applies the user's consent decision and returns the redirect URL.

    On approval the pending code is bound to the client in the registry,
    replacing any earlier one. On denial the registry is left untouched.
    Either way the redirect goes to the client's registered URI.
    """
    if not pending_code:
        raise MalformedRequest("invalid code request")

    client = registry.get_client(confirm_request.client_id)
    if client is None:
        raise UnknownClient("invalid client")

    if not confirm_request.authorize:
        logger.info("User denied authorization for client %s", client.client_id)
        return utils.build_redirect_url(client.redirect_uri, {
            "error": "access_denied",
            "state": confirm_request.state,
        })

    if not registry.set_pending_code(client.client_id, pending_code):
        # Deleted between lookup and write
        raise UnknownClient("invalid client")
    logger.info("Authorization code bound to client %s", client.client_id)
    return utils.build_redirect_url(client.redirect_uri, {
        "code": pending_code,
        "state": confirm_request.state,
    })


def exchange_code(token_request: TokenRequest, registry: ClientRegistry, settings: Settings,
                  resolve_signing_key: utils.SigningKeyResolver = utils.client_secret_signing_key) -> TokenResponse:
    """
    Redeems an authorization code for a signed access token.

    The presented code is compared with the registry copy only. Unless
    ``settings.clear_code_on_redeem`` is set, the code stays bound after a
    successful exchange and can be redeemed again until a later confirmation
    replaces it.

    Raises:
        MalformedRequest: Any of the five fields is empty (one reason for all).
        UnknownClient: client_id is not registered (404).
        InvalidClientCredentials: client_secret does not match.
        InvalidCode: No code is bound, it is too old, or it does not match.
        ServerError: Signing failed.
    """
    required = (
        token_request.grant_type,
        token_request.code,
        token_request.redirect_uri,
        token_request.client_id,
        token_request.client_secret,
    )
    if not all(required):
        raise MalformedRequest("invalid_client_id")

    client = registry.get_client(token_request.client_id)
    if client is None:
        raise UnknownClient("client not found", status_code=404)

    if not utils.codes_match(token_request.client_secret, client.client_secret.get_secret_value()):
        logger.info("Token request for client %s rejected: bad client secret", client.client_id)
        raise InvalidClientCredentials()

    if client.code is None:
        raise InvalidCode()

    if settings.code_max_age_seconds is not None and client.code_issued_at is not None:
        if time.time() - client.code_issued_at > settings.code_max_age_seconds:
            logger.info("Token request for client %s rejected: code expired", client.client_id)
            raise InvalidCode()

    if not utils.codes_match(token_request.code, client.code):
        logger.info("Token request for client %s rejected: code mismatch", client.client_id)
        raise InvalidCode()

    access_token = utils.create_access_token(
        resolve_signing_key(client), expires_delta=timedelta(hours=settings.access_token_ttl_hours))

    if settings.clear_code_on_redeem and not registry.clear_pending_code(client.client_id, client.code):
        # Another request redeemed or replaced the code first
        raise InvalidCode()

    logger.info("Access token issued to client %s", client.client_id)
    return TokenResponse(access_token=access_token, expires_in=settings.expires_in_display)
