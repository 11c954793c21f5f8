"""
Failure types raised by collaborators at the edge of the service.

Clients of external services (secrets store, other microservices, ...) raise
`ExternalServiceFailure` with the service's own error code instead of leaking
SDK-specific exception types. The normalizer maps the code through
`EXTERNAL_CODE_TO_STATUS`.
"""

# service error code -> (status_code, error_code)
EXTERNAL_CODE_TO_STATUS: dict[str, tuple[int, str]] = {
    "ResourceNotFoundException": (404, "RESOURCE_NOT_FOUND"),
    "AccessDenied": (403, "ACCESS_DENIED"),
    "AccessDeniedException": (403, "ACCESS_DENIED"),
    "InvalidParameterException": (400, "INVALID_PARAMETER"),
    "ThrottlingException": (429, "RATE_LIMITED"),
    "ServiceUnavailableException": (503, "SERVICE_UNAVAILABLE"),
}


class ExternalServiceFailure(Exception):
    """
    Raw failure reported by an external service.

    Args:
        service: logical service name, e.g. "secrets-manager".
        code: the service's error code, e.g. "ThrottlingException".
        message: the service's message (may contain internals; redacted by the normalizer).
        operation: what we were trying to do, e.g. "get secret".
    """

    def __init__(self, service: str, code: str | None, message: str = "", operation: str | None = None):
        super().__init__(message or code or service)
        self.service = service
        self.code = code
        self.message = message
        self.operation = operation
