from typing import Optional


class AuthServerError(Exception):
    """
    Base class for protocol failures. Each carries the HTTP status and the
    machine-readable reason string returned as ``{"error": reason}``.
    """
    status_code: int = 400
    default_reason: str = "invalid request"

    def __init__(self, reason: Optional[str] = None, status_code: Optional[int] = None):
        self.reason = reason or self.default_reason
        if status_code is not None:
            self.status_code = status_code
        super().__init__(self.reason)


class MalformedRequest(AuthServerError):
    default_reason = "invalid request"


class UnknownClient(AuthServerError):
    default_reason = "invalid client"


class InvalidClientCredentials(AuthServerError):
    status_code = 401
    default_reason = "invalid_client"


class InvalidCode(AuthServerError):
    default_reason = "invalid_code"


class ServerError(AuthServerError):
    status_code = 500
    default_reason = "server error"


class RegistryUnavailable(ServerError):
    pass
