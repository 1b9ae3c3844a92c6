"""Service-account authorization for Google APIs.

A signed JWT assertion (RS256, via google-auth's RSASigner) is exchanged at
the credential's token URI for a short-lived bearer token, using the shared
httpx client. One authorizer per API scope; the token is cached until
shortly before it expires.

The credential is loaded once, through an injectable CredentialSource, the
first time the authorizer is used. Private key material is never logged or
copied into error messages.
"""

from __future__ import annotations

import asyncio
import json
import time
from typing import TYPE_CHECKING

import httpx
import structlog
from google.auth import crypt, jwt
from pydantic import ValidationError

from studyvault_seo.errors import ErrorCode, SeoSyncError
from studyvault_seo.models.google import ServiceAccountInfo

if TYPE_CHECKING:
    from collections.abc import Callable, Sequence
    from pathlib import Path

    from studyvault_seo.protocols import CredentialSourceProtocol

log = structlog.get_logger()

WEBMASTERS_SCOPE = "https://www.googleapis.com/auth/webmasters"
INDEXING_SCOPE = "https://www.googleapis.com/auth/indexing"

JWT_BEARER_GRANT = "urn:ietf:params:oauth:grant-type:jwt-bearer"
ASSERTION_LIFETIME_SECONDS = 3600
# Refresh this many seconds before the reported expiry
TOKEN_EXPIRY_MARGIN_SECONDS = 60


class FileCredentialSource:
    """Reads a service-account key file (JSON) from local disk."""

    def __init__(self, path: Path) -> None:
        self.path = path

    def load(self) -> ServiceAccountInfo:
        try:
            raw = json.loads(self.path.read_text(encoding="utf-8"))
        except FileNotFoundError as exc:
            raise SeoSyncError(
                code=ErrorCode.CREDENTIALS_INVALID,
                message=f"Credential file not found: {self.path}",
            ) from exc
        except (OSError, ValueError) as exc:
            raise SeoSyncError(
                code=ErrorCode.CREDENTIALS_INVALID,
                message=f"Credential file is not readable JSON: {self.path}",
            ) from exc

        try:
            return ServiceAccountInfo.model_validate(raw)
        except ValidationError as exc:
            # Report field names only; input values may contain key material
            fields = sorted({".".join(str(part) for part in err["loc"]) for err in exc.errors()})
            raise SeoSyncError(
                code=ErrorCode.CREDENTIALS_INVALID,
                message=f"Credential file is missing or has invalid fields: {', '.join(fields)}",
            ) from None


class StaticCredentialSource:
    """Wraps an already-loaded credential (tests, secrets managers)."""

    def __init__(self, info: ServiceAccountInfo) -> None:
        self._info = info

    def load(self) -> ServiceAccountInfo:
        return self._info


class ServiceAccountAuthorizer:
    """Bearer-token provider for one scope, implementing AuthorizerProtocol."""

    def __init__(
        self,
        client: httpx.AsyncClient,
        credentials: CredentialSourceProtocol,
        scopes: Sequence[str],
        *,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._client = client
        self._credentials = credentials
        self.scopes = tuple(scopes)
        self._clock = clock
        self._info: ServiceAccountInfo | None = None
        self._token: str | None = None
        self._expires_at = 0.0
        self._lock = asyncio.Lock()

    @property
    def authorized(self) -> bool:
        return self._token is not None

    async def authorize(self) -> bool:
        """Load the credential and fetch a first token.

        Returns False instead of raising on missing/invalid credentials or
        a rejected token request.
        """
        try:
            await self._refresh()
        except SeoSyncError as exc:
            log.warning(
                "google_auth_failed",
                scopes=list(self.scopes),
                code=exc.code,
                message=exc.message,
            )
            return False
        log.info("google_auth_succeeded", scopes=list(self.scopes))
        return True

    async def access_token(self) -> str:
        if self._token is None or self._clock() >= self._expires_at - TOKEN_EXPIRY_MARGIN_SECONDS:
            await self._refresh()
        assert self._token is not None
        return self._token

    async def _refresh(self) -> None:
        async with self._lock:
            if self._info is None:
                self._info = self._credentials.load()
            info = self._info

            assertion = self._sign_assertion(info)
            try:
                response = await self._client.post(
                    info.token_uri,
                    data={"grant_type": JWT_BEARER_GRANT, "assertion": assertion},
                )
            except httpx.HTTPError as exc:
                raise SeoSyncError(
                    code=ErrorCode.AUTH_FAILED,
                    message=f"Token request failed: {exc}",
                    recoverable=True,
                ) from exc

            if not response.is_success:
                raise SeoSyncError(
                    code=ErrorCode.AUTH_FAILED,
                    message=f"Token request rejected with HTTP {response.status_code}",
                    status_code=response.status_code,
                    recoverable=response.status_code >= 500,
                )

            try:
                payload = response.json()
                token = payload["access_token"]
                expires_in = int(payload.get("expires_in", ASSERTION_LIFETIME_SECONDS))
            except (ValueError, KeyError, TypeError) as exc:
                raise SeoSyncError(
                    code=ErrorCode.AUTH_FAILED,
                    message="Token response did not contain an access_token",
                ) from exc

            self._token = token
            self._expires_at = self._clock() + expires_in

    def _sign_assertion(self, info: ServiceAccountInfo) -> str:
        try:
            signer = crypt.RSASigner.from_service_account_info(
                info.model_dump(include={"private_key", "private_key_id"})
            )
        except Exception as exc:
            # Key parsing errors differ between the rsa and cryptography backends
            raise SeoSyncError(
                code=ErrorCode.CREDENTIALS_INVALID,
                message="Service-account private key could not be loaded",
            ) from exc

        issued_at = int(self._clock())
        payload = {
            "iss": info.client_email,
            "scope": " ".join(self.scopes),
            "aud": info.token_uri,
            "iat": issued_at,
            "exp": issued_at + ASSERTION_LIFETIME_SECONDS,
        }
        return jwt.encode(signer, payload).decode("ascii")
