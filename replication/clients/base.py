"""
Shared REST plumbing for the source, target and status store clients.

Every client:
- talks JSON over a single ``httpx.AsyncClient`` with a configurable timeout
- optionally presents a TLS client certificate
- maps transport failures onto the recoverable ``SyncConnectionError``
- maps unexpected HTTP answers onto the fatal ``UpstreamError``
"""

import json
import logging
import ssl
from typing import Any, Optional, Tuple

import httpx

from core.exceptions import (
    UpstreamError,
    MalformedResponseError,
    SyncConnectionError,
)

logger = logging.getLogger(__name__)

CONFLICT = 409


def build_ssl_context(
    cert_file: Optional[str] = None,
    key_file: Optional[str] = None,
    password: Optional[str] = None
) -> Optional[ssl.SSLContext]:
    """
    Build an SSL context presenting a client certificate.

    Returns None when no certificate is configured, leaving httpx to its
    default verification.
    """
    if not cert_file:
        return None
    context = ssl.create_default_context()
    context.minimum_version = ssl.TLSVersion.TLSv1_2
    context.load_cert_chain(certfile=cert_file, keyfile=key_file, password=password or None)
    return context


def is_success(status_code: int) -> bool:
    return 200 <= status_code < 300


class RestClient:
    """
    Base class for the three REST collaborators.

    Attributes:
        endpoint: Short name used in logs, error context and alert messages
        base_uri: Root URI of the endpoint
        timeout: Request timeout in seconds (default: 30.0)
    """

    endpoint = "rest"

    def __init__(
        self,
        base_uri: str,
        timeout: float = 30.0,
        ssl_context: Optional[ssl.SSLContext] = None,
        auth: Optional[Tuple[str, str]] = None,
        client: Optional[httpx.AsyncClient] = None
    ):
        self.base_uri = base_uri
        self.timeout = timeout
        self._owns_client = client is None
        if client is None:
            client = httpx.AsyncClient(
                timeout=timeout,
                verify=ssl_context if ssl_context is not None else True,
                auth=httpx.BasicAuth(*auth) if auth else None,
                headers={"Accept": "application/json"},
            )
        self.client = client

    async def aclose(self):
        if self._owns_client:
            await self.client.aclose()

    async def __aenter__(self):
        return self

    async def __aexit__(self, *exc_info):
        await self.aclose()

    async def _request(self, method: str, url: str, **kwargs) -> httpx.Response:
        """
        Issue one request and translate transport failures.

        Raises:
            SyncConnectionError: Connection refused, unreachable host or timeout
            UpstreamError: Any other transport/protocol failure
        """
        logger.debug(f"{method} {url}")
        try:
            return await self.client.request(method, url, **kwargs)

        except httpx.TimeoutException as e:
            raise SyncConnectionError(
                f"Timeout contacting {self.endpoint} endpoint",
                context={"endpoint": self.endpoint, "url": url, "timeout": self.timeout},
                original_exception=e
            )

        except httpx.NetworkError as e:
            raise SyncConnectionError(
                f"Cannot connect to {self.endpoint} endpoint",
                context={"endpoint": self.endpoint, "url": url},
                original_exception=e
            )

        except httpx.HTTPError as e:
            raise UpstreamError(
                f"Transport error talking to {self.endpoint} endpoint",
                context={"endpoint": self.endpoint, "url": url},
                original_exception=e
            )

    def _raise_for_status(self, response: httpx.Response, url: str):
        """Raise ``UpstreamError`` unless the answer is 2xx."""
        if not is_success(response.status_code):
            raise UpstreamError(
                f"Unexpected response from {self.endpoint} endpoint: {response.status_code}",
                status_code=response.status_code,
                context={
                    "endpoint": self.endpoint,
                    "url": url,
                    "response_body": response.text[:500]
                }
            )

    def _decode_json(self, response: httpx.Response, url: str) -> Any:
        try:
            return response.json()
        except (json.JSONDecodeError, UnicodeDecodeError) as e:
            raise MalformedResponseError(
                f"Failed to parse JSON response from {self.endpoint} endpoint",
                status_code=response.status_code,
                context={
                    "endpoint": self.endpoint,
                    "url": url,
                    "response_body": response.text[:500]
                },
                original_exception=e
            )
