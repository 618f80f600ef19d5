import logging
from contextlib import asynccontextmanager

import uvicorn
from fastapi import FastAPI, Request

from auth_code_issuer.auth_server.endpoints import auth_router, error_response
from auth_code_issuer.auth_server.errors import AuthServerError
from auth_code_issuer.auth_server.storage import RedisClientRegistry, create_redis_client
from auth_code_issuer.core.config import configure_logging, settings
from auth_code_issuer.registry import load_provisioning_data, provision_clients

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    configure_logging()
    redis_client = create_redis_client(settings)
    app.state.registry = RedisClientRegistry(redis_client)

    if settings.clients_file:
        provision_clients(app.state.registry, load_provisioning_data(settings.clients_file))
    if not settings.clear_code_on_redeem:
        logger.warning("clear_code_on_redeem is off: redeemed codes stay valid until the next confirmation")

    yield
    redis_client.close()


app = FastAPI(title="Authorization Service", lifespan=lifespan)


@app.exception_handler(AuthServerError)
async def auth_server_error_handler(request: Request, exc: AuthServerError):
    if exc.status_code >= 500:
        logger.error("%s %s failed: %s", request.method, request.url.path, exc.reason)
    else:
        logger.info("%s %s rejected: %s", request.method, request.url.path, exc.reason)
    return error_response(exc)


app.include_router(auth_router)


if __name__ == "__main__":
    uvicorn.run(app, host=settings.host, port=settings.port)
