import logging
from datetime import datetime, timedelta, timezone
from pathlib import Path

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse, PlainTextResponse, RedirectResponse
from fastapi.templating import Jinja2Templates
from starlette.concurrency import run_in_threadpool
from pydantic import ValidationError

from . import flow, models, utils
from .errors import AuthServerError, MalformedRequest
from .storage import ClientRegistry
from auth_code_issuer.core.config import Settings, settings as app_settings

logger = logging.getLogger(__name__)

auth_router = APIRouter(tags=["Authorization Code Grant"])

templates = Jinja2Templates(directory=str(Path(__file__).parent / "templates"))


# --- Dependencies ---
def get_settings() -> Settings:
    return app_settings

def get_registry(request: Request) -> ClientRegistry:
    """The registry is built at startup and kept on the application state."""
    return request.app.state.registry

def get_signing_key_resolver() -> utils.SigningKeyResolver:
    return utils.client_secret_signing_key


def error_response(exc: AuthServerError) -> JSONResponse:
    return JSONResponse(models.ErrorResponse(error=exc.reason).model_dump(), status_code=exc.status_code)

def _code_cookie_path(request: Request) -> str:
    """The code cookie is only ever sent back to the confirmation endpoint."""
    return str(request.app.url_path_for("confirm_auth"))


@auth_router.get("/", response_class=PlainTextResponse)
async def read_root():
    return "hello!"


@auth_router.get("/auth", name="authorize")
def authorize(
    request: Request,
    response_type: str = "",
    client_id: str = "",
    redirect_uri: str = "",
    scope: str = "",
    state: str = "",
    registry: ClientRegistry = Depends(get_registry),
    settings: Settings = Depends(get_settings),
):
    """
    Validates the authorization request, issues a code into a short-lived
    cookie and renders the consent page.
    """
    auth_request = models.AuthorizationRequest(
        response_type=response_type,
        client_id=client_id,
        redirect_uri=redirect_uri,
        scope=scope,
        state=state,
    )
    client = flow.validate_authorization_request(auth_request, registry)
    code = utils.generate_code()

    response = templates.TemplateResponse(request, "authorize_client.html", {
        "client_id": client.client_id,
        "name": client.name or client.client_id,
        "website": client.website,
        "logo": client.logo,
        "state": auth_request.state,
        "scopes": auth_request.scopes,
    })
    response.set_cookie(
        key=settings.code_cookie_name,
        value=code,
        expires=datetime.now(timezone.utc) + timedelta(seconds=settings.code_ttl_seconds),
        httponly=True,
        secure=settings.cookie_secure,
        samesite="lax",
        path=_code_cookie_path(request),
    )
    return response


@auth_router.get("/confirm_auth", name="confirm_auth")
def confirm_auth(
    request: Request,
    registry: ClientRegistry = Depends(get_registry),
    settings: Settings = Depends(get_settings),
):
    """
    Applies the user's decision. The code cookie is single use and is
    cleared on every response from this endpoint.
    """
    pending_code = request.cookies.get(settings.code_cookie_name)
    try:
        if not pending_code:
            raise MalformedRequest("invalid code request")
        try:
            confirm_request = models.ConfirmAuthRequest(**request.query_params)
        except ValidationError:
            raise MalformedRequest("invalid confirm auth request")
        redirect_url = flow.confirm_authorization(pending_code, confirm_request, registry)
        response = RedirectResponse(url=redirect_url, status_code=302)
    except AuthServerError as exc:
        logger.info("Confirmation rejected: %s", exc.reason)
        response = error_response(exc)

    response.delete_cookie(
        key=settings.code_cookie_name,
        path=_code_cookie_path(request),
        secure=settings.cookie_secure,
        httponly=True,
        samesite="lax",
    )
    return response


@auth_router.post("/token", response_model=models.TokenResponse)
async def token(
    request: Request,
    registry: ClientRegistry = Depends(get_registry),
    settings: Settings = Depends(get_settings),
    resolve_signing_key: utils.SigningKeyResolver = Depends(get_signing_key_resolver),
):
    """
    Exchanges an authorization code for an access token. Accepts a
    form-encoded or JSON body.
    """
    try:
        if request.headers.get("content-type", "").startswith("application/json"):
            body = await request.json()
        else:
            body = dict(await request.form())
        token_request = models.TokenRequest(**body)
    except (ValueError, TypeError):
        # Covers JSON decode errors and pydantic ValidationError
        raise MalformedRequest("invalid token request")

    # Registry calls block; keep them off the event loop
    return await run_in_threadpool(flow.exchange_code, token_request, registry, settings, resolve_signing_key)
