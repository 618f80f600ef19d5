import pytest
from pathlib import Path
import yaml
from pydantic import ValidationError
from auth_code_issuer.registry.loader import load_provisioning_data, provision_clients
from auth_code_issuer.registry.models import ProvisioningData

TEST_PROVISIONING_CONTENT = {
    "clients": {
        "acme": {
            "name": "Acme", "website": "https://acme.example",
            "logo": "https://acme.example/logo.png",
            "redirect_uri": "https://acme.example/cb",
            "client_secret": "acme_provisioned_secret",
        },
        "fiber": {
            "name": "fiber", "website": "http://localhost:8080",
            "redirect_uri": "http://localhost:8080/auth/callback",
        },
    }
}

@pytest.fixture
def temp_provisioning_file(tmp_path: Path) -> Path:
    file_path = tmp_path / "test_clients.yaml"
    with open(file_path, 'w') as f:
        yaml.dump(TEST_PROVISIONING_CONTENT, f)
    return file_path

def test_load_provisioning_data(temp_provisioning_file: Path):
    data = load_provisioning_data(temp_provisioning_file)
    assert set(data.clients) == {"acme", "fiber"}
    assert data.clients["acme"].redirect_uri == "https://acme.example/cb"
    assert data.clients["fiber"].client_secret is None
    assert data.clients["fiber"].logo == ""

def test_load_non_existent_provisioning_file(tmp_path: Path):
    data = load_provisioning_data(tmp_path / "non_existent.yaml")
    assert data.clients == {}

def test_load_empty_provisioning_file(tmp_path: Path):
    file_path = tmp_path / "empty.yaml"
    file_path.write_text("")
    assert load_provisioning_data(file_path).clients == {}

def test_load_invalid_provisioning_file(tmp_path: Path):
    file_path = tmp_path / "invalid.yaml"
    file_path.write_text("clients:\n  broken:\n    name: no redirect\n")
    with pytest.raises(ValidationError):
        load_provisioning_data(file_path)

def test_provision_clients(registry, temp_provisioning_file: Path):
    provisioned = provision_clients(registry, load_provisioning_data(temp_provisioning_file))
    assert {client.client_id for client in provisioned} == {"acme", "fiber"}

    acme = registry.get_client("acme")
    assert acme.client_secret.get_secret_value() == "acme_provisioned_secret"
    assert acme.name == "Acme"
    assert acme.code is None

def test_provision_generates_missing_secret(registry, temp_provisioning_file: Path):
    provision_clients(registry, load_provisioning_data(temp_provisioning_file))
    secret = registry.get_client("fiber").client_secret.get_secret_value()
    assert len(secret) >= 32

def test_reprovisioning_keeps_generated_secret(registry, temp_provisioning_file: Path):
    data = load_provisioning_data(temp_provisioning_file)
    provision_clients(registry, data)
    first_secret = registry.get_client("fiber").client_secret.get_secret_value()
    provision_clients(registry, data)
    assert registry.get_client("fiber").client_secret.get_secret_value() == first_secret

def test_provisioning_keeps_pending_code(registry, temp_provisioning_file: Path):
    data = load_provisioning_data(temp_provisioning_file)
    provision_clients(registry, data)
    registry.set_pending_code("acme", "pending")
    provision_clients(registry, data)
    assert registry.get_client("acme").code == "pending"

def test_provision_empty_data(registry):
    assert provision_clients(registry, ProvisioningData()) == []
