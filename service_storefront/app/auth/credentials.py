"""
Signed, short-lived credentials for marketplace API calls.

The marketplace verifies an HS256 JWT on every request and rejects tokens
older than five seconds or carrying a nonce it has already seen, so a
credential is minted per outbound call and never reused.
"""

from __future__ import annotations

import base64
import binascii
import time
import uuid
from dataclasses import dataclass
from typing import Any, Callable, Dict, Optional

from jose import jwt

from shared.errors import ConfigurationError, SigningError
from shared.logging import get_logger
from shared.metrics import MetricsCollector

ALGORITHM = "HS256"
DEFAULT_LIFETIME_SECONDS = 5


@dataclass(frozen=True)
class Credential:
    """A single-use bearer credential."""

    issued_at: int
    access_key_id: str
    nonce: str
    algorithm: str
    signature: str
    token: str

    @property
    def authorization_header(self) -> str:
        return f"Bearer {self.token}"

    @property
    def signing_input(self) -> bytes:
        """The exact header.payload bytes covered by the signature."""
        header, payload, _ = self.token.split(".")
        return f"{header}.{payload}".encode("ascii")


class CredentialIssuer:
    """Issues a fresh marketplace credential for every outbound call."""

    def __init__(
        self,
        access_key: Optional[str],
        secret_key: Optional[str],
        *,
        lifetime_seconds: int = DEFAULT_LIFETIME_SECONDS,
        clock: Callable[[], float] = time.time,
        metrics: Optional[MetricsCollector] = None,
    ) -> None:
        self.access_key = access_key
        self.lifetime_seconds = lifetime_seconds
        self.clock = clock
        self.metrics = metrics
        self.logger = get_logger("storefront.credentials")

        self._signing_key: Optional[bytes] = None
        self._key_error: Optional[str] = None
        if not secret_key:
            self._key_error = "secret key not configured"
        else:
            try:
                self._signing_key = base64.b64decode(secret_key, validate=True)
            except (binascii.Error, ValueError) as exc:
                self._key_error = f"secret key is not valid base64: {exc}"

        if not access_key:
            self._key_error = self._key_error or "access key not configured"

        if self._key_error:
            self.logger.warning("Credential signing unavailable", reason=self._key_error)
        else:
            self.logger.info("Credential issuer initialized", algorithm=ALGORITHM)

    @property
    def available(self) -> bool:
        return self._key_error is None

    def issue(self, method: str = "GET") -> Credential:
        """Mint a new signed credential.

        A nonce is included for every method, reads included.
        """
        if self._key_error is not None:
            raise SigningError(details={"reason": self._key_error})

        issued_at = int(self.clock())
        nonce = str(uuid.uuid4())
        claims: Dict[str, Any] = {
            "iat": issued_at,
            "exp": issued_at + self.lifetime_seconds,
            "accessKey": self.access_key,
            "nonce": nonce,
        }

        try:
            token = jwt.encode(claims, self._signing_key, algorithm=ALGORITHM)
        except Exception as exc:
            self.logger.error("Failed to sign credential", method=method, error=str(exc))
            raise SigningError(details={"reason": str(exc)}) from exc

        if self.metrics:
            self.metrics.increment_counter("credentials_issued_total", method=method.upper())
        self.logger.debug("Credential issued", method=method.upper())

        return Credential(
            issued_at=issued_at,
            access_key_id=self.access_key,
            nonce=nonce,
            algorithm=ALGORITHM,
            signature=token.rsplit(".", 1)[-1],
            token=token,
        )

    def authorization_header(self, method: str = "GET") -> str:
        return self.issue(method).authorization_header

    def verify_setup(self) -> None:
        """Fail fast when credential material is missing or unusable."""
        if self._key_error is not None:
            self.logger.error("Marketplace credentials not configured", reason=self._key_error)
            raise ConfigurationError(
                "Marketplace access key or secret key not configured",
                details={"reason": self._key_error},
            )

        try:
            self.issue("GET")
        except SigningError as exc:
            raise ConfigurationError(
                "Marketplace credential signing failed",
                details=exc.details,
            ) from exc

        self.logger.info("Marketplace credential setup verified")
