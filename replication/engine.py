# ============================================================================
# File: replication/engine.py
# Description: Reconciliation engine, one call per polling tick
# ============================================================================
"""
Reconciliation Engine - discovers, registers and delivers source documents.

Each tick runs four phases:
1. Watermark bootstrap (first tick only) from the status store
2. Stale-registration filter for ids already recorded at the watermark
3. Discovery & registration of modified documents as pending records
4. Delivery of every pending record and write-back of the outcome

Recoverable errors (unreachable endpoints) end the tick as RECOVERABLE;
every other error ends it as FATAL. Neither is raised: the scheduler reads the TickResult.
"""

import logging
from datetime import datetime, timezone
from typing import Callable, Optional, Set

from core.exceptions import FatalError, RecoverableError
from replication.alerts import AlertGateway
from replication.clients.source import SourcePoller
from replication.clients.status_store import StatusStoreClient
from replication.clients.target import TargetPublisher
from replication.fields import FieldMapping
from schemas.outcomes import TickResult, TickStats, TickStatus, WriteOutcome
from schemas.status import StatusRecord, MIN_TIMESTAMP, PENDING_STATUS, format_timestamp

logger = logging.getLogger(__name__)

SERVER_ERROR = 500


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def alert_message(error: RecoverableError) -> str:
    """Alert text for a connection failure; equal failures give equal text."""
    if error.original_exception is not None:
        return f"{error.message}: {error.original_exception}"
    return error.message


class ReconciliationEngine:
    """
    Orchestrates source, target and status store for one polling tick.

    Responsibilities:
    - Own the watermark (the only state kept between ticks)
    - Register each modified document exactly once
    - Deliver pending documents and record the outcome
    - Classify failures into recoverable and fatal

    Attributes:
        watermark: Highest ``lastModified`` already discovered. None until
            the first tick bootstraps it from the status store.
    """

    def __init__(
        self,
        status_store: StatusStoreClient,
        source: SourcePoller,
        target: TargetPublisher,
        alerts: AlertGateway,
        fields: Optional[FieldMapping] = None,
        watermark: Optional[datetime] = None,
        clock: Callable[[], datetime] = _utcnow
    ):
        self.status_store = status_store
        self.source = source
        self.target = target
        self.alerts = alerts
        self.fields = fields or FieldMapping()
        self.watermark = watermark
        self.clock = clock

    async def run_tick(self) -> TickResult:
        """
        Run one reconciliation pass.

        Returns:
            TickResult with status:
            - COMPLETED: all phases ran
            - RECOVERABLE: an endpoint was unreachable; retry next tick
            - FATAL: anything else; the service must stop
        """
        stats = TickStats()

        try:
            await self._reconcile(stats)

        except RecoverableError as e:
            message = alert_message(e)
            logger.warning(f"Tick aborted, will retry next interval: {message}")
            await self.alerts.notify_failure(message)
            return TickResult(TickStatus.RECOVERABLE, stats=stats, watermark=self.watermark, error=e)

        except FatalError as e:
            logger.error(f"Tick failed with a fatal error: {e.to_dict()}")
            return TickResult(TickStatus.FATAL, stats=stats, watermark=self.watermark, error=e)

        except Exception as e:
            logger.exception("Tick failed with an unexpected error")
            return TickResult(TickStatus.FATAL, stats=stats, watermark=self.watermark, error=e)

        await self.alerts.notify_recovery()

        logger.info(
            f"Tick completed: watermark={format_timestamp(self.watermark)}, "
            f"registered={stats.registered}, delivered={stats.delivered}, "
            f"failed={stats.delivery_failures}"
        )
        return TickResult(TickStatus.COMPLETED, stats=stats, watermark=self.watermark)

    async def _reconcile(self, stats: TickStats):
        if self.watermark is None:
            self.watermark = await self.bootstrap_watermark()

        keys_to_skip = await self.keys_at_watermark()
        await self.register_modified(keys_to_skip, stats)
        await self.deliver_pending(stats)

    # --------------------------------------------------
    # PHASE 1: WATERMARK BOOTSTRAP
    # --------------------------------------------------
    async def bootstrap_watermark(self) -> datetime:
        """Highest ``lastModified`` among already handled records."""
        records = await self.status_store.read_watermark_candidates()
        handled = [r.last_modified for r in records if r.synced_status != PENDING_STATUS]
        watermark = max(handled) if handled else MIN_TIMESTAMP
        logger.info(
            f"Watermark bootstrapped to {format_timestamp(watermark)} "
            f"from {len(handled)} handled of {len(records)} records"
        )
        return watermark

    # --------------------------------------------------
    # PHASE 2: STALE-REGISTRATION FILTER
    # --------------------------------------------------
    async def keys_at_watermark(self) -> Set[str]:
        """Ids the store already holds with ``lastModified`` equal to the watermark."""
        records = await self.status_store.read_since(self.watermark)
        return {r.id for r in records if r.last_modified == self.watermark}

    # --------------------------------------------------
    # PHASE 3: DISCOVERY & REGISTRATION
    # --------------------------------------------------
    async def register_modified(self, keys_to_skip: Set[str], stats: TickStats):
        documents = await self.source.discover_modified(self.watermark)
        stats.discovered = len(documents)
        highest = self.watermark

        for document in documents:
            key = self.fields.key_of(document)
            if key in keys_to_skip:
                stats.skipped += 1
                continue

            last_modified = self.fields.modified_of(document)
            if last_modified > highest:
                highest = last_modified

            outcome = await self.status_store.register_if_absent(
                StatusRecord(id=key, last_modified=last_modified, synced_status=PENDING_STATUS)
            )
            if outcome == WriteOutcome.CONFLICT:
                stats.registration_conflicts += 1
            else:
                stats.registered += 1

        # Only advance once the whole batch is registered
        if highest > self.watermark:
            logger.info(f"Watermark advanced {format_timestamp(self.watermark)} -> {format_timestamp(highest)}")
            self.watermark = highest

    # --------------------------------------------------
    # PHASE 4: DELIVERY
    # --------------------------------------------------
    async def deliver_pending(self, stats: TickStats):
        pending = await self.status_store.read_pending()
        stats.pending = len(pending)

        for record in pending:
            document = await self.source.fetch_by_id(record.id)
            result = await self.target.publish(document)

            if result.code >= 400:
                stats.delivery_failures += 1
                logger.warning(f"Target answered {result.code} for {record.id}: {result.body}")
                if result.code == SERVER_ERROR:
                    await self.alerts.notify_delivery_failure(record.id, result.code, result.body)
            else:
                stats.delivered += 1

            outcome = await self.status_store.upsert_outcome(
                record.model_copy(update={"synced_status": result.code, "synced_timestamp": self.clock()})
            )
            if outcome == WriteOutcome.CONFLICT:
                stats.outcome_conflicts += 1
                logger.info(f"Outcome for {record.id} lost to a concurrent writer, left for redelivery")
