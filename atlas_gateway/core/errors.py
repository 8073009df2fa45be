from __future__ import annotations

from dataclasses import dataclass


@dataclass
class GatewayError(Exception):
    status_code: int
    message: str
    code: str | None = None

    def __str__(self) -> str:
        return self.message


class AuthError(GatewayError):
    @classmethod
    def unauthorized(cls) -> AuthError:
        return cls(status_code=401, message="Unauthorized", code="unauthorized")

    @classmethod
    def forbidden(cls) -> AuthError:
        return cls(status_code=403, message="Forbidden", code="forbidden")


class PayloadValidationError(GatewayError):
    def __init__(self, message: str = "Invalid request") -> None:
        super().__init__(status_code=400, message=message, code="malformed_payload")


class ConfigError(GatewayError):
    def __init__(self, missing_key: str) -> None:
        super().__init__(
            status_code=500,
            message=f"Server configuration error: Missing {missing_key}",
            code="missing_credential",
        )
        self.missing_key = missing_key


class UpstreamError(GatewayError):
    """Non-2xx or transport failure reported by a provider endpoint."""

    def __init__(self, upstream_status: int | None, message: str) -> None:
        super().__init__(status_code=502, message=message, code="upstream_error")
        self.upstream_status = upstream_status


class StructuralError(GatewayError):
    def __init__(self, message: str = "AI returned invalid JSON structure") -> None:
        super().__init__(status_code=500, message=message, code="invalid_output")


class OrchestrationError(GatewayError):
    """Every candidate in the fallback sequence failed."""

    def __init__(self, last_cause: str, attempts: int) -> None:
        super().__init__(status_code=500, message=last_cause, code="exhausted_fallback")
        self.last_cause = last_cause
        self.attempts = attempts
