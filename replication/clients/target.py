"""
Target endpoint publisher.
"""

import json
import logging
from typing import Optional
from urllib.parse import quote

from replication.clients.base import RestClient
from replication.clients.source import Document
from replication.fields import FieldMapping
from schemas.outcomes import PublishResult

logger = logging.getLogger(__name__)


class TargetPublisher(RestClient):
    """
    POST documents to ``<targetUri><id>``.

    The id part is percent-encoded, and empty when no target id field is
    configured, so every such document goes to the same fixed resource.
    The answer is returned as-is; deciding what a status code means is
    left to the engine.
    """

    endpoint = "target"

    def __init__(self, base_uri: str, fields: Optional[FieldMapping] = None, **kwargs):
        super().__init__(base_uri, **kwargs)
        self.fields = fields or FieldMapping()

    async def publish(self, document: Document) -> PublishResult:
        url = f"{self.base_uri}{quote(self.fields.target_id_of(document), safe='')}"
        response = await self._request(
            "POST",
            url,
            content=json.dumps(document),
            headers={"Content-Type": "application/json"}
        )
        logger.debug(f"POST {url} -> {response.status_code}")
        return PublishResult(code=response.status_code, body=response.text)
