"""
Source endpoint poller: discovers modified documents and fetches them by id.
"""

import logging
from datetime import datetime
from typing import Any, Dict, List
from urllib.parse import quote

from core.exceptions import MalformedResponseError
from replication.clients.base import RestClient
from schemas.status import format_timestamp

logger = logging.getLogger(__name__)

Document = Dict[str, Any]


def unwrap_documents(data: Any) -> List[Document]:
    """
    Normalise the shapes the source answers with to a flat list.

    Accepted shapes:
    - a bare array of documents
    - a one-key object whose sole value is an array (``{"d": [...]}``)
    - a single document object
    """
    if isinstance(data, list):
        return [doc for doc in data if isinstance(doc, dict)]
    if isinstance(data, dict):
        if len(data) == 1:
            (sole_value,) = data.values()
            if isinstance(sole_value, list):
                return [doc for doc in sole_value if isinstance(doc, dict)]
        return [data]
    raise ValueError(f"Unexpected document payload of type {type(data).__name__}")


class SourcePoller(RestClient):
    """Read-only client for the source collection."""

    endpoint = "source"

    async def discover_modified(self, watermark: datetime) -> List[Document]:
        """
        Fetch documents with ``lastModified >= watermark``.

        Raises:
            UpstreamError: Non-2xx answer
            SyncConnectionError: Source unreachable
        """
        url = self.base_uri
        response = await self._request("GET", url, params={"starttime": format_timestamp(watermark)})
        self._raise_for_status(response, url)
        data = self._decode_json(response, url)

        try:
            documents = unwrap_documents(data)
        except ValueError as e:
            raise MalformedResponseError(
                "Unexpected discovery payload from source endpoint",
                status_code=response.status_code,
                context={"endpoint": self.endpoint, "url": url},
                original_exception=e
            )

        logger.info(f"Discovered {len(documents)} documents modified since {format_timestamp(watermark)}")
        return documents

    async def fetch_by_id(self, document_id: str) -> Document:
        """Fetch one full document from ``<sourceUri>/<id>``."""
        url = f"{self.base_uri.rstrip('/')}/{quote(document_id, safe='')}"
        response = await self._request("GET", url)
        self._raise_for_status(response, url)
        data = self._decode_json(response, url)

        if not isinstance(data, dict):
            raise MalformedResponseError(
                "Expected a single document object",
                status_code=response.status_code,
                context={"endpoint": self.endpoint, "url": url, "document_id": document_id}
            )
        return data

    async def fetch_all(self) -> Any:
        """Raw JSON of ``GET <sourceUri>``, for one-shot inspection."""
        url = self.base_uri
        response = await self._request("GET", url)
        self._raise_for_status(response, url)
        return self._decode_json(response, url)
