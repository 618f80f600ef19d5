import logging
from pathlib import Path
from typing import List, Union

import yaml

from .models import ProvisioningData
from auth_code_issuer.auth_server import utils
from auth_code_issuer.auth_server.models import Client
from auth_code_issuer.auth_server.storage import ClientRegistry

logger = logging.getLogger(__name__)


def load_provisioning_data(path: Union[str, Path]) -> ProvisioningData:
    """
    Loads client provisioning data from a YAML file.
    A missing file yields empty provisioning data; a malformed one raises.

    Args:
        path (Union[str, Path]): The path to the YAML provisioning file.

    Returns:
        ProvisioningData: The loaded (or empty) provisioning data.
    """
    try:
        with open(path, 'r') as f:
            data = yaml.safe_load(f)
    except FileNotFoundError:
        logger.warning("Client provisioning file %s not found. No clients provisioned.", path)
        return ProvisioningData()
    return ProvisioningData(**(data or {}))


def provision_clients(registry: ClientRegistry, data: ProvisioningData) -> List[Client]:
    """
    Upserts every provisioned client into the registry. Clients without a
    configured secret keep their stored one, or get a freshly generated
    secret on first provisioning.

    Returns:
        List[Client]: The clients as stored.
    """
    provisioned = []
    for client_id, entry in data.clients.items():
        secret = entry.client_secret
        existing = registry.get_client(client_id)
        if not secret and existing is not None:
            secret = existing.client_secret.get_secret_value()
        if not secret:
            secret = utils.generate_token(32)
            logger.info("Generated client secret for %s", client_id)
        client = Client(
            client_id=client_id,
            client_secret=secret,
            redirect_uri=entry.redirect_uri,
            name=entry.name,
            website=entry.website,
            logo=entry.logo,
        )
        provisioned.append(registry.save_client(client))
        logger.info("Provisioned client %s", client_id)
    return provisioned
