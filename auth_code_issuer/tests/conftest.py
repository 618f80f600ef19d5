import threading
import time
from typing import Dict, Optional

import pytest
from fastapi.testclient import TestClient

from auth_code_issuer.auth_server.endpoints import get_registry, get_settings
from auth_code_issuer.auth_server.models import Client
from auth_code_issuer.auth_server.storage import ClientRegistry
from auth_code_issuer.core.config import Settings
from auth_code_issuer.main import app

ACME_SECRET = "acme-secret-value"


class InMemoryClientRegistry(ClientRegistry):
    """Test double honouring the ClientRegistry contract without Redis."""

    def __init__(self):
        self.clients: Dict[str, Client] = {}
        self._lock = threading.Lock()

    def get_client(self, client_id: str) -> Optional[Client]:
        with self._lock:
            return self.clients.get(client_id)

    def save_client(self, client: Client) -> Client:
        with self._lock:
            record = client.model_copy(update={"updated_at": int(time.time())})
            previous = self.clients.get(client.client_id)
            if previous:
                record = record.model_copy(update={
                    "created_at": previous.created_at,
                    "code": previous.code,
                    "code_issued_at": previous.code_issued_at,
                })
            self.clients[client.client_id] = record
            return record

    def set_pending_code(self, client_id: str, code: str, issued_at: Optional[int] = None) -> bool:
        with self._lock:
            client = self.clients.get(client_id)
            if client is None:
                return False
            self.clients[client_id] = client.model_copy(update={
                "code": code,
                "code_issued_at": issued_at if issued_at is not None else int(time.time()),
            })
            return True

    def clear_pending_code(self, client_id: str, expected_code: str) -> bool:
        with self._lock:
            client = self.clients.get(client_id)
            if client is None or client.code != expected_code:
                return False
            self.clients[client_id] = client.model_copy(update={"code": None, "code_issued_at": None})
            return True


@pytest.fixture
def registry() -> InMemoryClientRegistry:
    return InMemoryClientRegistry()

@pytest.fixture
def acme(registry) -> Client:
    return registry.save_client(Client(
        client_id="acme",
        client_secret=ACME_SECRET,
        redirect_uri="https://acme.example/cb",
        name="Acme",
        website="https://acme.example",
        logo="https://acme.example/logo.png",
    ))

@pytest.fixture
def test_settings() -> Settings:
    return Settings(_env_file=None, clear_code_on_redeem=False, code_max_age_seconds=None)

@pytest.fixture
def http_client(registry, test_settings):
    app.dependency_overrides[get_registry] = lambda: registry
    app.dependency_overrides[get_settings] = lambda: test_settings
    # https so the Secure code cookie is sent back; lifespan (Redis) is not entered
    client = TestClient(app, base_url="https://testserver", follow_redirects=False)
    yield client
    app.dependency_overrides.clear()
