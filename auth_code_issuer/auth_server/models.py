from pydantic import BaseModel, Field, SecretStr
from typing import List, Optional
import time


class Client(BaseModel):
    client_id: str
    client_secret: SecretStr
    redirect_uri: str # Registered target; the only URI the flow ever redirects to
    name: str = ""
    website: str = ""
    logo: str = ""
    code: Optional[str] = None # Pending authorization code, bound on confirmation
    code_issued_at: Optional[int] = None
    created_at: int = Field(default_factory=lambda: int(time.time()))
    updated_at: int = Field(default_factory=lambda: int(time.time()))


class AuthorizationRequest(BaseModel):
    response_type: str = ""
    client_id: str = ""
    redirect_uri: str = "" # Caller-asserted; only checked for scheme
    scope: str = "" # Space-separated
    state: str = ""

    @property
    def scopes(self) -> List[str]:
        return self.scope.split()


class ConfirmAuthRequest(BaseModel):
    authorize: bool = False
    client_id: str = ""
    state: str = ""


class TokenRequest(BaseModel):
    grant_type: str = ""
    code: str = ""
    redirect_uri: str = ""
    client_id: str = ""
    client_secret: str = ""


class TokenResponse(BaseModel):
    access_token: str
    expires_in: int


class ErrorResponse(BaseModel):
    error: str
