from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from types import MappingProxyType
from typing import Any, Mapping, Protocol, TypeVar

from google.auth.transport import requests as google_requests
from google.oauth2 import id_token
from pydantic import BaseModel, ValidationError

from .errors import AuthError, PayloadValidationError
from .types import ANONYMOUS_IDENTITY, Identity

logger = logging.getLogger(__name__)

ModelT = TypeVar("ModelT", bound=BaseModel)


class TokenVerifier(Protocol):
    def verify(self, token: str) -> Mapping[str, Any]:
        """Return the token's claims or raise on any verification failure."""


class FirebaseTokenVerifier:
    """Verifies Firebase ID tokens against Google's published signing certs."""

    def __init__(self, project_id: str) -> None:
        self.project_id = project_id
        self.transport = google_requests.Request()

    def verify(self, token: str) -> Mapping[str, Any]:
        return id_token.verify_firebase_token(
            token,
            self.transport,
            audience=self.project_id,
        )


@dataclass(frozen=True, slots=True)
class AuthMode:
    """Whether identity verification is available, fixed at startup."""

    verifier: TokenVerifier | None = None

    @classmethod
    def anonymous(cls) -> AuthMode:
        return cls(verifier=None)

    @classmethod
    def verified(cls, verifier: TokenVerifier) -> AuthMode:
        return cls(verifier=verifier)

    @property
    def is_verified(self) -> bool:
        return self.verifier is not None

    @property
    def name(self) -> str:
        return "verified" if self.is_verified else "anonymous"


class RequestGate:
    """Authenticate, then validate, before any provider is contacted.

    Without a configured verifier every caller is admitted as the anonymous
    principal, so the service is open in that mode.
    """

    def __init__(self, auth_mode: AuthMode) -> None:
        self.auth_mode = auth_mode

    async def authenticate(self, raw_auth_header: str | None) -> Identity:
        verifier = self.auth_mode.verifier
        if verifier is None:
            return ANONYMOUS_IDENTITY

        if not raw_auth_header:
            raise AuthError.unauthorized()

        scheme, _, token = raw_auth_header.partition(" ")
        token = token.strip()
        if scheme.lower() != "bearer" or not token:
            raise AuthError.forbidden()

        try:
            claims = await asyncio.to_thread(verifier.verify, token)
        except Exception as exc:  # noqa: BLE001
            logger.warning("Token verification failed: %s", exc.__class__.__name__)
            raise AuthError.forbidden() from exc

        if not isinstance(claims, Mapping):
            raise AuthError.forbidden()

        subject = claims.get("sub") or claims.get("user_id")
        if not subject:
            raise AuthError.forbidden()

        return Identity(subject=str(subject), claims=MappingProxyType(dict(claims)))

    def validate(self, raw_body: Any, schema: type[ModelT]) -> ModelT:
        try:
            return schema.model_validate(raw_body)
        except ValidationError as exc:
            logger.debug("Rejected %s payload: %s", schema.__name__, exc.errors())
            raise PayloadValidationError() from exc
