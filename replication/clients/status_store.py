"""
Client for the external status store that records per-document sync state.

The store is the source of truth for "has this id been delivered". All
reads go to the service; nothing is cached between calls.

Wire format:
    GET  <syncUri>[?starttime=..|?syncedStatus=0]  ->  {"d": [StatusRecord, ...]}
    POST <syncUri>                                 create, 409 on duplicate id
    PUT  <syncUri>                                 unconditional upsert
"""

import logging
from datetime import datetime
from typing import Any, Dict, List, Optional

import httpx
from pydantic import ValidationError

from core.exceptions import MalformedResponseError, UpstreamError
from replication.clients.base import RestClient, CONFLICT, is_success
from schemas.outcomes import WriteOutcome
from schemas.status import StatusRecord, PENDING_STATUS, format_timestamp

logger = logging.getLogger(__name__)


class StatusStoreClient(RestClient):
    """
    Read and write StatusRecords.

    Outcome classification for every operation:
    - 2xx: success
    - 409: conflict, reported as ``WriteOutcome.CONFLICT`` (not an error)
    - anything else: ``UpstreamError``
    """

    endpoint = "status_store"

    async def _read(self, params: Optional[Dict[str, Any]] = None) -> List[StatusRecord]:
        url = self.base_uri
        response = await self._request("GET", url, params=params)
        self._raise_for_status(response, url)
        data = self._decode_json(response, url)

        if not isinstance(data, dict) or not isinstance(data.get("d"), list):
            raise MalformedResponseError(
                "Status store answer lacks the 'd' record array",
                status_code=response.status_code,
                context={"endpoint": self.endpoint, "url": url}
            )

        try:
            return [StatusRecord.model_validate(item) for item in data["d"]]
        except ValidationError as e:
            raise MalformedResponseError(
                "Status store returned an invalid record",
                status_code=response.status_code,
                context={"endpoint": self.endpoint, "url": url},
                original_exception=e
            )

    async def read_watermark_candidates(self) -> List[StatusRecord]:
        """All status records, used to bootstrap the watermark."""
        return await self._read()

    async def read_since(self, timestamp: datetime) -> List[StatusRecord]:
        """Records the store reports for ``lastModified >= timestamp``."""
        return await self._read({"starttime": format_timestamp(timestamp)})

    async def read_pending(self) -> List[StatusRecord]:
        """
        Records still awaiting delivery.

        Filtered again locally so a store that ignores the query parameter
        cannot turn delivered records back into work.
        """
        records = await self._read({"syncedStatus": PENDING_STATUS})
        return [record for record in records if record.is_pending]

    def _classify_write(self, response: httpx.Response, success: WriteOutcome, record: StatusRecord) -> WriteOutcome:
        if is_success(response.status_code):
            return success
        if response.status_code == CONFLICT:
            return WriteOutcome.CONFLICT
        raise UpstreamError(
            f"Status store rejected write for {record.id}: {response.status_code}",
            status_code=response.status_code,
            context={
                "endpoint": self.endpoint,
                "url": self.base_uri,
                "record_id": record.id,
                "response_body": response.text[:500]
            }
        )

    async def register_if_absent(self, record: StatusRecord) -> WriteOutcome:
        """
        Create a pending record; never overwrites an existing one.

        Returns:
            CREATED, or CONFLICT when a record for this id already exists
        """
        pending = record.model_copy(update={"synced_status": PENDING_STATUS, "synced_timestamp": None})
        response = await self._request("POST", self.base_uri, json=pending.to_payload())
        outcome = self._classify_write(response, WriteOutcome.CREATED, record)
        logger.debug(f"Register {record.id}: {outcome.value}")
        return outcome

    async def upsert_outcome(self, record: StatusRecord) -> WriteOutcome:
        """
        Write back the delivery outcome of a record.

        Returns:
            UPDATED, or CONFLICT when a concurrent writer got there first
        """
        response = await self._request("PUT", self.base_uri, json=record.to_payload())
        outcome = self._classify_write(response, WriteOutcome.UPDATED, record)
        logger.debug(f"Outcome {record.id}={record.synced_status}: {outcome.value}")
        return outcome
