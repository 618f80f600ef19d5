from .loader import (
    load_provisioning_data,
    provision_clients,
)
from .models import ClientProvisioningEntry, ProvisioningData

__all__ = [
    "load_provisioning_data",
    "provision_clients",
    "ClientProvisioningEntry",
    "ProvisioningData",
]
