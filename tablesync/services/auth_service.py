"""Access token verification against an identity provider's tokeninfo endpoint."""

from __future__ import annotations

import logging
from typing import Protocol, runtime_checkable

import httpx

from tablesync.exceptions import AuthError

logger = logging.getLogger(__name__)


@runtime_checkable
class TokenValidator(Protocol):
    """Verifies an access token before a synchronizer is allowed to run."""

    def validate(self, access_token: str) -> None:
        """Return normally for a valid token, raise ``AuthError`` otherwise."""
        ...


class TokenInfoValidator:
    """Validates tokens with an OAuth2 ``tokeninfo``-style endpoint.

    A 200 response means the token is valid. Any other response is decoded
    as JSON; an ``error`` member names the reason.
    """

    def __init__(
        self,
        token_info_url: str,
        *,
        timeout: float = 30.0,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        self.token_info_url = token_info_url
        self.timeout = timeout
        self.transport = transport

    def validate(self, access_token: str) -> None:
        if not access_token:
            raise AuthError("No access token supplied")

        try:
            with httpx.Client(timeout=self.timeout, transport=self.transport) as client:
                resp = client.get(self.token_info_url, params={"access_token": access_token})
        except httpx.HTTPError as exc:
            logger.error("Token verification request failed: %s", exc)
            msg = f"Unable to verify auth token ({exc})"
            raise AuthError(msg) from exc

        if resp.status_code == httpx.codes.OK:
            return

        try:
            body = resp.json()
        except ValueError as exc:
            msg = f"Unable to parse response from auth token verification ({resp.status_code})"
            raise AuthError(msg) from exc

        if isinstance(body, dict) and "error" in body:
            msg = f"Invalid auth token ({body['error']})"
            raise AuthError(msg)
        msg = f"Unknown response from auth token verification ({resp.status_code})"
        raise AuthError(msg)


class AcceptAllValidator:
    """Skips verification; for servers that check the token themselves."""

    def validate(self, access_token: str) -> None:
        logger.debug("Skipping access token verification")
