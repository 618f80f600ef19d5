import json
import logging
import time
from abc import ABC, abstractmethod
from typing import Optional

import redis

from .errors import RegistryUnavailable
from .models import Client
from auth_code_issuer.core.config import Settings

logger = logging.getLogger(__name__)


class ClientRegistry(ABC):
    """
    Durable client lookup shared by the confirmation and token steps.
    Implementations must make each per-client read and write atomic.
    """

    @abstractmethod
    def get_client(self, client_id: str) -> Optional[Client]:
        ...

    @abstractmethod
    def save_client(self, client: Client) -> Client:
        """Upserts a client. Creation time and pending code survive an update."""

    @abstractmethod
    def set_pending_code(self, client_id: str, code: str, issued_at: Optional[int] = None) -> bool:
        """Binds ``code`` to an existing client. Returns False if the client is unknown."""

    @abstractmethod
    def clear_pending_code(self, client_id: str, expected_code: str) -> bool:
        """Clears the pending code only while it still equals ``expected_code``."""


# --- Redis-backed registry ---
def _get_client_key(client_id: str) -> str:
    """Generates a Redis key for storing client details."""
    return f"oauth_client:{client_id}"

def _dump_client(client: Client) -> str:
    data = client.model_dump()
    data["client_secret"] = client.client_secret.get_secret_value()
    return json.dumps(data)

def _load_client(raw: str) -> Client:
    return Client(**json.loads(raw))


class RedisClientRegistry(ClientRegistry):
    """
    Stores each client as one JSON value under ``oauth_client:<id>``. Field
    updates run in a WATCH/MULTI transaction, so readers always see a whole
    record. A concurrent write aborts the transaction and is reported, not
    retried.
    """

    def __init__(self, redis_client: redis.Redis):
        self.redis = redis_client

    def get_client(self, client_id: str) -> Optional[Client]:
        try:
            raw = self.redis.get(_get_client_key(client_id))
        except redis.exceptions.RedisError as e:
            logger.error("Redis error reading client %s: %s", client_id, e)
            raise RegistryUnavailable() from e
        return _load_client(raw) if raw else None

    def save_client(self, client: Client) -> Client:
        key = _get_client_key(client.client_id)

        def _upsert(pipe):
            existing = pipe.get(key)
            record = client.model_copy(update={"updated_at": int(time.time())})
            if existing:
                previous = _load_client(existing)
                record = record.model_copy(update={
                    "created_at": previous.created_at,
                    "code": previous.code,
                    "code_issued_at": previous.code_issued_at,
                })
            pipe.multi()
            pipe.set(key, _dump_client(record))
            return record

        return self._transaction(_upsert, key, client.client_id)

    def set_pending_code(self, client_id: str, code: str, issued_at: Optional[int] = None) -> bool:
        key = _get_client_key(client_id)

        def _bind(pipe):
            existing = pipe.get(key)
            if not existing:
                return False
            record = _load_client(existing).model_copy(update={
                "code": code,
                "code_issued_at": issued_at if issued_at is not None else int(time.time()),
                "updated_at": int(time.time()),
            })
            pipe.multi()
            pipe.set(key, _dump_client(record))
            return True

        return self._transaction(_bind, key, client_id)

    def clear_pending_code(self, client_id: str, expected_code: str) -> bool:
        key = _get_client_key(client_id)

        def _clear(pipe):
            existing = pipe.get(key)
            if not existing:
                return False
            record = _load_client(existing)
            if record.code != expected_code:
                return False
            pipe.multi()
            pipe.set(key, _dump_client(record.model_copy(update={
                "code": None,
                "code_issued_at": None,
                "updated_at": int(time.time()),
            })))
            return True

        return self._transaction(_clear, key, client_id)

    def _transaction(self, func, key: str, client_id: str):
        try:
            with self.redis.pipeline() as pipe:
                pipe.watch(key)
                result = func(pipe)
                if pipe.explicit_transaction:
                    pipe.execute()
                return result
        except redis.exceptions.WatchError as e:
            logger.error("Concurrent update of client %s aborted", client_id)
            raise RegistryUnavailable() from e
        except redis.exceptions.RedisError as e:
            logger.error("Redis error updating client %s: %s", client_id, e)
            raise RegistryUnavailable() from e


def create_redis_client(settings: Settings) -> redis.Redis:
    """Builds the Redis client and checks the connection once."""
    client = redis.Redis(host=settings.redis_host, port=settings.redis_port, db=settings.redis_db, decode_responses=True)
    try:
        client.ping()
        logger.info("Connected to Redis at %s:%s", settings.redis_host, settings.redis_port)
    except redis.exceptions.ConnectionError as e:
        logger.warning("Could not connect to Redis at %s:%s: %s", settings.redis_host, settings.redis_port, e)
    return client
