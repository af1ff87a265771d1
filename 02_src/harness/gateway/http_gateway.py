"""HTTP gateway used to trigger the system under test."""

from typing import Any, Mapping, Protocol

import httpx

from ..errors import GatewayError
from ..logging_config import get_logger
from ..models import GetResult, PostResult

logger = get_logger(__name__)


class IHttpGateway(Protocol):
    """Request/response access to the system under test."""

    async def post_to_service(self, url: str, json_body: Any) -> PostResult:
        """POST a JSON body."""
        ...

    async def get_from_service(self, url: str) -> GetResult:
        """GET a resource."""
        ...


def _response_body(response: httpx.Response) -> Any:
    if "json" in response.headers.get("content-type", ""):
        try:
            return response.json()
        except ValueError:
            pass
    return response.text


class HttpGateway:
    """Thin httpx wrapper; no retries."""

    def __init__(
        self,
        base_url: str = "",
        headers: Mapping[str, str] | None = None,
        timeout: float = 10.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self._client = httpx.AsyncClient(
            base_url=base_url,
            headers=dict(headers or {}),
            timeout=timeout,
            transport=transport,
        )

    async def post_to_service(self, url: str, json_body: Any) -> PostResult:
        """POST json_body to url and return status code and parsed body."""
        try:
            response = await self._client.post(url, json=json_body)
        except httpx.HTTPError as e:
            logger.error("POST %s failed: %s", url, e)
            raise GatewayError(f"POST {url} failed: {e}") from e

        logger.info("POST %s -> %s", url, response.status_code)
        return PostResult(status_code=response.status_code, body=_response_body(response))

    async def get_from_service(self, url: str) -> GetResult:
        """GET url; success is True for 2xx responses."""
        try:
            response = await self._client.get(url)
        except httpx.HTTPError as e:
            logger.error("GET %s failed: %s", url, e)
            raise GatewayError(f"GET {url} failed: {e}") from e

        logger.info("GET %s -> %s", url, response.status_code)
        return GetResult(
            success=response.is_success,
            body=_response_body(response),
            status_code=response.status_code,
        )

    async def aclose(self) -> None:
        await self._client.aclose()

    async def __aenter__(self) -> "HttpGateway":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.aclose()
