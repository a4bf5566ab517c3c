"""HTTP transport shared by every synchronizer call."""

from __future__ import annotations

from collections.abc import Callable, Iterator
from contextlib import contextmanager
from email.utils import formatdate
from typing import TYPE_CHECKING, Any, TypeVar

import httpx
from pydantic import BaseModel

from tablesync.exceptions import AccessDeniedError, RowConflictError, TransportError

if TYPE_CHECKING:
    from tablesync.schemas.tables import WireModel

M = TypeVar("M", bound=BaseModel)

OPEN_DATA_KIT_VERSION_HEADER = "X-OpenDataKit-Version"
OPEN_DATA_KIT_VERSION = "2.0"

DEFAULT_HEADERS = {
    "Accept": (
        "application/json;q=1.0, text/xml;charset=utf-8;q=0.8, "
        "application/*+xml;charset=utf-8;q=0.6, text/plain;charset=utf-8;q=0.4"
    ),
    "Accept-Charset": "utf-8",
    OPEN_DATA_KIT_VERSION_HEADER: OPEN_DATA_KIT_VERSION,
}

ResponseErrorHandler = Callable[[httpx.Response], None]


def _origin(url: str | httpx.URL) -> tuple[str, str, int | None]:
    parsed = httpx.URL(str(url))
    port = parsed.port
    if port is None:
        port = 443 if parsed.scheme == "https" else 80
    return parsed.scheme, parsed.host, port


class ServerScopedBearerAuth(httpx.Auth):
    """Attach the bearer token only to requests aimed at the server itself.

    Download locators in manifests may point at other hosts, which must
    never see the token.
    """

    def __init__(self, server_url: str, access_token: str) -> None:
        self._origin = _origin(server_url)
        self._token = access_token

    def auth_flow(self, request: httpx.Request) -> Iterator[httpx.Request]:
        if self._token and _origin(request.url) == self._origin:
            request.headers["Authorization"] = f"Bearer {self._token}"
        yield request


def raise_for_sync_status(response: httpx.Response) -> None:
    """Map non-success responses onto the synchronizer's error taxonomy.

    The body is read first so the pooled connection can be reused.
    """
    if response.is_success:
        return
    response.read()
    request = response.request
    message = (
        f"{request.method} {request.url} failed: "
        f"{response.status_code} {response.reason_phrase}"
    )
    if response.status_code == httpx.codes.FORBIDDEN:
        raise AccessDeniedError(message)
    if response.status_code == httpx.codes.CONFLICT:
        raise RowConflictError(message, status_code=response.status_code)
    raise TransportError(message, status_code=response.status_code)


def _stamp_date(request: httpx.Request) -> None:
    request.headers["Date"] = formatdate(usegmt=True)


class ServerClient:
    """Blocking request/response client with bounded timeouts.

    Network failures surface as ``TransportError``; status handling is
    delegated to the injected ``error_handler``.
    """

    def __init__(
        self,
        server_url: str,
        access_token: str,
        *,
        connect_timeout: float = 30.0,
        read_timeout: float = 60.0,
        error_handler: ResponseErrorHandler = raise_for_sync_status,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        self.server_url = server_url.rstrip("/")
        self.http = httpx.Client(
            headers=DEFAULT_HEADERS,
            auth=ServerScopedBearerAuth(self.server_url, access_token),
            timeout=httpx.Timeout(read_timeout, connect=connect_timeout),
            transport=transport,
            event_hooks={"request": [_stamp_date], "response": [error_handler]},
        )

    def close(self) -> None:
        """Close the HTTP client."""
        self.http.close()

    def __enter__(self) -> ServerClient:
        return self

    def __exit__(self, *args: object) -> None:
        self.close()

    def request(self, method: str, url: str, **kwargs: Any) -> httpx.Response:
        try:
            return self.http.request(method, url, **kwargs)
        except httpx.HTTPError as exc:
            raise TransportError(f"{method} {url} failed: {exc}") from exc

    @contextmanager
    def stream(self, method: str, url: str, **kwargs: Any) -> Iterator[httpx.Response]:
        """Open a streamed response; network errors while reading become TransportError."""
        try:
            with self.http.stream(method, url, **kwargs) as response:
                yield response
        except httpx.HTTPError as exc:
            raise TransportError(f"{method} {url} failed: {exc}") from exc

    def get_model(self, url: str, model: type[M], **kwargs: Any) -> M:
        return _parse(self.request("GET", url, **kwargs), model)

    def put_model(self, url: str, body: WireModel, model: type[M]) -> M:
        return _parse(self.request("PUT", url, json=body.to_wire()), model)

    def delete(self, url: str) -> httpx.Response:
        return self.request("DELETE", url)


def _parse(response: httpx.Response, model: type[M]) -> M:
    try:
        return model.model_validate(response.json())
    except ValueError as exc:
        raise TransportError(
            f"Malformed {model.__name__} from {response.request.url}: {exc}",
            status_code=response.status_code,
        ) from exc
