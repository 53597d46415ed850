"""
Wires settings into clients, engine and scheduler.
"""

import logging
from typing import Optional

from core.config import Settings
from replication.alerts import AlertGateway
from replication.clients.base import build_ssl_context
from replication.clients.source import SourcePoller
from replication.clients.status_store import StatusStoreClient
from replication.clients.target import TargetPublisher
from replication.engine import ReconciliationEngine
from replication.fields import FieldMapping
from replication.scheduler import SyncScheduler

logger = logging.getLogger(__name__)


def field_mapping_from_settings(settings: Settings) -> FieldMapping:
    return FieldMapping(
        key_field=settings.KEY_FIELD,
        modified_field=settings.MODIFIED_FIELD,
        target_id_field=settings.ID_FIELD or None,
    )


def build_source(settings: Settings) -> SourcePoller:
    return SourcePoller(
        settings.SOURCE_URI,
        timeout=settings.REQUEST_TIMEOUT,
        ssl_context=build_ssl_context(
            settings.SOURCE_CERT_FILE, settings.SOURCE_KEY_FILE, settings.SOURCE_CERT_PASSWORD
        ),
    )


class SyncService:
    """
    Long-running replication service.

    Usage:
        service = SyncService(load_settings("sync.yaml"))
        error = await service.run()
    """

    def __init__(self, settings: Settings):
        settings.require_endpoints()
        self.settings = settings
        fields = field_mapping_from_settings(settings)

        self.source = build_source(settings)
        self.target = TargetPublisher(
            settings.TARGET_URI,
            fields=fields,
            timeout=settings.REQUEST_TIMEOUT,
            ssl_context=build_ssl_context(
                settings.TARGET_CERT_FILE, settings.TARGET_KEY_FILE, settings.TARGET_CERT_PASSWORD
            ),
            auth=(settings.TARGET_USERNAME, settings.TARGET_PASSWORD or "") if settings.TARGET_USERNAME else None,
        )
        self.status_store = StatusStoreClient(
            settings.SYNC_URI,
            timeout=settings.REQUEST_TIMEOUT,
            ssl_context=build_ssl_context(
                settings.SYNC_CERT_FILE, settings.SYNC_KEY_FILE, settings.SYNC_CERT_PASSWORD
            ),
        )
        self.alerts = AlertGateway.from_settings(settings)
        self.engine = ReconciliationEngine(
            status_store=self.status_store,
            source=self.source,
            target=self.target,
            alerts=self.alerts,
            fields=fields,
        )
        self.scheduler = SyncScheduler(self.engine, interval_minutes=settings.POLLING_INTERVAL_MINUTES)

    async def run(self) -> Optional[BaseException]:
        """
        Poll until a fatal tick.

        Returns:
            The fatal error that stopped the service
        """
        logger.info(
            f"Replicating {self.settings.SOURCE_URI} -> {self.settings.TARGET_URI} "
            f"(status store {self.settings.SYNC_URI})"
        )
        self.scheduler.start()
        try:
            return await self.scheduler.wait()
        finally:
            self.scheduler.stop()
            await self.aclose()

    async def aclose(self):
        for client in (self.source, self.target, self.status_store):
            await client.aclose()
