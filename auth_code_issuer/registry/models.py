from pydantic import BaseModel
from typing import Dict, Optional


class ClientProvisioningEntry(BaseModel):
    name: str = ""
    website: str = ""
    logo: str = ""
    redirect_uri: str
    client_secret: Optional[str] = None # Generated at provisioning time when omitted


class ProvisioningData(BaseModel):
    clients: Dict[str, ClientProvisioningEntry] = {} # Keyed by client_id
