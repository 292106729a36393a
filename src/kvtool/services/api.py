"""HTTP transport for the Cloudflare API.

Provides CloudflareClient, which issues bearer-authenticated requests
against the account-scoped API root and decodes the standard response
envelope. A non-success envelope becomes an ApiError carrying every
reported ``code: message`` pair; nothing is retried.
"""

import json
from typing import Any, Dict, Optional
from urllib.parse import quote

import httpx
from pydantic import ValidationError

from kvtool.config import KvConfig
from kvtool.errors import ApiError
from kvtool.logging_config import get_logger
from kvtool.models import Envelope

logger = get_logger(__name__)


def namespace_path(namespace_id: str, *parts: str) -> str:
    """Build a resource path below ``storage/kv/namespaces/<id>``."""
    return "/".join(["storage/kv/namespaces", namespace_id, *parts])


def value_path(namespace_id: str, key: str) -> str:
    """Path of the value-read endpoint for *key* (percent-encoded).

    Dots are encoded too, so keys such as ``.`` and ``..`` are not
    collapsed as dot segments by URL normalization.
    """
    return namespace_path(namespace_id, "values", quote(key, safe="").replace(".", "%2E"))


class CloudflareClient:
    """Async client for account-scoped Cloudflare API resources.

    Use as an async context manager; one underlying connection pool is
    shared by every request issued inside the ``async with`` block.

    Attributes:
        config: Loaded kvtool configuration
        timeout: Request timeout in seconds
    """

    def __init__(
        self,
        config: KvConfig,
        timeout: float = 30.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        """Initialize the client.

        Args:
            config: Loaded kvtool configuration
            timeout: Request timeout in seconds
            transport: Optional httpx transport (tests pass a MockTransport)
        """
        self.config = config
        self.timeout = timeout
        self._transport = transport
        self._client: Optional[httpx.AsyncClient] = None

    def _headers(self) -> Dict[str, str]:
        return {
            "Authorization": f"Bearer {self.config.api_token}",
            "Content-Type": "application/json",
        }

    async def __aenter__(self) -> "CloudflareClient":
        self._client = httpx.AsyncClient(
            base_url=self.config.account_url,
            headers=self._headers(),
            timeout=self.timeout,
            transport=self._transport,
        )
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    async def _send(
        self,
        path: str,
        method: str,
        body: Any = None,
        params: Optional[Dict[str, Any]] = None,
    ) -> httpx.Response:
        if self._client is None:
            raise RuntimeError("CloudflareClient must be used as an async context manager")

        logger.debug(f"{method} {path} params={params}")
        content = json.dumps(body) if body is not None else None
        try:
            response = await self._client.request(method, path, content=content, params=params)
        except httpx.TimeoutException as e:
            logger.error(f"{method} {path} timed out")
            raise ApiError(f"Cloudflare API request timed out: {method} {path}") from e
        except httpx.RequestError as e:
            logger.error(f"{method} {path} failed: {e}")
            raise ApiError(f"Failed to connect to Cloudflare API: {e}") from e

        logger.debug(f"{method} {path} -> HTTP {response.status_code}")
        return response

    @staticmethod
    def _decode_envelope(response: httpx.Response) -> Envelope:
        try:
            return Envelope.model_validate(response.json())
        except (ValueError, ValidationError) as e:
            raise ApiError(
                f"Unexpected response from Cloudflare API (HTTP {response.status_code}): "
                f"{response.text[:200]}",
                status_code=response.status_code,
            ) from e

    @staticmethod
    def _raise_for_envelope(envelope: Envelope, status_code: int) -> None:
        if not envelope.success:
            error = ApiError.from_errors(
                [(detail.code, detail.message) for detail in envelope.errors],
                status_code=status_code,
            )
            logger.error(f"Cloudflare API error: {error}")
            raise error

    async def request_envelope(
        self,
        path: str,
        method: str = "GET",
        body: Any = None,
        params: Optional[Dict[str, Any]] = None,
    ) -> Envelope:
        """Send a request and return the validated response envelope.

        Args:
            path: Resource path relative to the account root
            method: HTTP method
            body: JSON-serializable request body
            params: Query parameters

        Returns:
            The decoded Envelope (``success`` is always true)

        Raises:
            ApiError: On transport failure or a non-success envelope
        """
        response = await self._send(path, method, body, params)
        envelope = self._decode_envelope(response)
        self._raise_for_envelope(envelope, response.status_code)
        return envelope

    async def request(
        self,
        path: str,
        method: str = "GET",
        body: Any = None,
        params: Optional[Dict[str, Any]] = None,
    ) -> Any:
        """Send a request and return the envelope's ``result`` payload."""
        envelope = await self.request_envelope(path, method, body, params)
        return envelope.result

    async def read_raw(self, path: str) -> Any:
        """Read a raw JSON payload (no envelope) from a value endpoint.

        Args:
            path: Resource path relative to the account root

        Returns:
            The decoded JSON body, or None when the body is empty

        Raises:
            ApiError: On transport failure, an error status, or a body that
                is not valid JSON
        """
        response = await self._send(path, "GET")

        if response.is_error:
            self._raise_for_envelope(self._decode_envelope(response), response.status_code)
            raise ApiError(
                f"Cloudflare API request failed (HTTP {response.status_code})",
                status_code=response.status_code,
            )

        if not response.content:
            return None

        try:
            return response.json()
        except ValueError as e:
            raise ApiError(f"Value at {path} is not valid JSON: {e}") from e
