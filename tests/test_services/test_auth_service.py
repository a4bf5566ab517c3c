"""Tests for access token verification."""

from __future__ import annotations

import httpx
import pytest

from tablesync.exceptions import AuthError
from tablesync.services.auth_service import (
    AcceptAllValidator,
    TokenInfoValidator,
    TokenValidator,
)

TOKEN_INFO_URL = "https://identity.example.org/tokeninfo"


def _validator(response: httpx.Response) -> TokenInfoValidator:
    return TokenInfoValidator(
        TOKEN_INFO_URL, transport=httpx.MockTransport(lambda request: response)
    )


class TestTokenInfoValidator:
    def test_valid_token(self) -> None:
        seen: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(200, json={"audience": "client"})

        validator = TokenInfoValidator(TOKEN_INFO_URL, transport=httpx.MockTransport(handler))
        validator.validate("good-token")

        assert seen[0].url.params["access_token"] == "good-token"

    def test_empty_token_rejected_without_request(self) -> None:
        with pytest.raises(AuthError, match="No access token"):
            _validator(httpx.Response(200)).validate("")

    def test_error_member_names_the_reason(self) -> None:
        response = httpx.Response(400, json={"error": "invalid_token"})
        with pytest.raises(AuthError, match=r"Invalid auth token \(invalid_token\)"):
            _validator(response).validate("expired")

    def test_unparseable_response(self) -> None:
        with pytest.raises(AuthError, match="Unable to parse"):
            _validator(httpx.Response(500, text="<html>oops</html>")).validate("token")

    def test_unknown_response(self) -> None:
        with pytest.raises(AuthError, match="Unknown response"):
            _validator(httpx.Response(400, json={"status": "?"})).validate("token")

    def test_network_failure(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("unreachable", request=request)

        validator = TokenInfoValidator(TOKEN_INFO_URL, transport=httpx.MockTransport(handler))
        with pytest.raises(AuthError, match="Unable to verify"):
            validator.validate("token")


class TestAcceptAllValidator:
    def test_accepts_anything(self) -> None:
        AcceptAllValidator().validate("")

    def test_satisfies_protocol(self) -> None:
        assert isinstance(AcceptAllValidator(), TokenValidator)
        assert isinstance(TokenInfoValidator(TOKEN_INFO_URL), TokenValidator)
