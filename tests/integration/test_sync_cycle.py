"""
End-to-end polling cycles against the in-memory source, target and store
"""

import json
from datetime import datetime, timezone
from unittest.mock import AsyncMock, patch

import httpx
import pytest

from core.config import Settings
from replication.engine import ReconciliationEngine
from replication.fields import FieldMapping
from replication.scheduler import SyncScheduler
from replication.service import SyncService
from schemas.outcomes import TickStatus
from scripts.fetch_source import fetch
from scripts.run_sync import run_service


@pytest.mark.asyncio
async def test_first_document_replicated(engine, source_service, status_store_service, target_service):
    """
    Scenario: one new document, empty store.
    1. Watermark bootstraps to the minimum timestamp
    2. One pending record is created
    3. Watermark advances to the document's lastModified
    4. Document is delivered and the record carries the target's 200
    """
    source_service.add("1", "2024-01-01T00:00:00Z", payload={"title": "hello"})

    result = await engine.run_tick()

    assert result.status == TickStatus.COMPLETED
    assert result.stats.registered == 1
    assert result.watermark == datetime(2024, 1, 1, tzinfo=timezone.utc)
    assert [call.method for call in status_store_service.requests] == ["GET", "GET", "POST", "GET", "PUT"]
    assert target_service.received == [
        {"id": "1", "lastModified": "2024-01-01T00:00:00Z", "payload": {"title": "hello"}}
    ]
    assert status_store_service.records["1"]["syncedStatus"] == 200


@pytest.mark.asyncio
async def test_lost_outcome_is_redelivered(engine, source_service, status_store_service, target_service):
    """
    Scenario: the outcome write loses to a concurrent writer.
    The record stays pending and the next tick delivers it again.
    """
    source_service.add("1", "2024-01-01T00:00:00Z")
    status_store_service.put_conflicts.add("1")

    await engine.run_tick()
    assert status_store_service.records["1"]["syncedStatus"] == 0

    status_store_service.put_conflicts.clear()
    await engine.run_tick()

    assert len(target_service.received) == 2
    assert status_store_service.records["1"]["syncedStatus"] == 200


@pytest.mark.asyncio
async def test_concurrent_writer_value_is_kept(engine, source_service, status_store_service, target_service):
    """Another writer recorded an outcome first; it is not overwritten."""
    source_service.add("1", "2024-01-01T00:00:00Z")
    status_store_service.put_conflicts.add("1")
    target_service.status_for["1"] = 503

    await engine.run_tick()
    status_store_service.seed("1", "2024-01-01T00:00:00Z", 201, "2024-01-01T00:01:00Z")
    result = await engine.run_tick()

    assert result.stats.pending == 0
    assert status_store_service.records["1"]["syncedStatus"] == 201


@pytest.mark.asyncio
async def test_restart_resumes_from_store(engine, source_service, status_store_service, target_service, status_store, source, target, alerts):
    """A new engine recovers the watermark and skips what was handled."""
    source_service.add("1", "2024-01-01T00:00:00Z")
    source_service.add("2", "2024-01-02T00:00:00Z")
    await engine.run_tick()

    restarted = ReconciliationEngine(status_store, source, target, alerts, fields=engine.fields)
    result = await restarted.run_tick()

    assert restarted.watermark == datetime(2024, 1, 2, tzinfo=timezone.utc)
    assert result.stats.skipped == 1
    assert result.stats.registered == 0
    assert len(target_service.received) == 2


@pytest.mark.asyncio
async def test_outage_then_recovery_through_scheduler(engine, source_service, status_store_service, alert_sender):
    """Outage ticks keep the scheduler alive; recovery sends one mail."""
    scheduler = SyncScheduler(engine, interval_minutes=1)
    source_service.add("1", "2024-01-01T00:00:00Z")
    status_store_service.down = True

    for _ in range(3):
        await scheduler.run_tick()

    assert scheduler.last_result.status == TickStatus.RECOVERABLE
    assert scheduler.fatal_error is None
    assert len(alert_sender.sent) == 1

    status_store_service.down = False
    await scheduler.run_tick()

    assert scheduler.last_result.status == TickStatus.COMPLETED
    assert [subject for subject, _ in alert_sender.sent] == [
        "Document sync failure",
        "Document sync recovered",
    ]
    assert status_store_service.records["1"]["syncedStatus"] == 200


@pytest.mark.asyncio
async def test_fatal_tick_stops_polling(engine, status_store_service):
    """Misconfigured store answer terminates the scheduled task."""
    scheduler = SyncScheduler(engine)
    status_store_service.fail_with = 401

    await scheduler.run_tick()

    assert scheduler.last_result.status == TickStatus.FATAL
    error = await scheduler.wait()
    assert error.status_code == 401


@pytest.mark.asyncio
async def test_run_service_exit_codes(monkeypatch):
    for name in ("SOURCE_URI", "TARGET_URI", "SYNC_URI"):
        monkeypatch.delenv(name, raising=False)
    assert await run_service() == 2

    monkeypatch.setenv("SOURCE_URI", "https://source.example.com/documents")
    monkeypatch.setenv("TARGET_URI", "https://target.example.com/documents/")
    monkeypatch.setenv("SYNC_URI", "https://sync.example.com/status")

    with patch("scripts.run_sync.SyncService") as mock_service_cls:
        mock_service_cls.return_value.run = AsyncMock(return_value=RuntimeError("fatal"))
        assert await run_service() == 1

        mock_service_cls.return_value.run = AsyncMock(return_value=None)
        assert await run_service() == 0


@pytest.mark.asyncio
async def test_service_wiring():
    settings = Settings(
        _env_file=None,
        SOURCE_URI="https://source.example.com/documents",
        TARGET_URI="https://target.example.com/documents/",
        SYNC_URI="https://sync.example.com/status",
        TARGET_USERNAME="sync",
        TARGET_PASSWORD="secret",
        ID_FIELD="id",
        MODIFIED_FIELD="ModifiedOn",
        POLLING_INTERVAL_MINUTES=2,
    )

    service = SyncService(settings)
    try:
        assert service.engine.fields == FieldMapping("id", "ModifiedOn", "id")
        assert service.target.fields is service.engine.fields
        assert isinstance(service.target.client.auth, httpx.BasicAuth)
        assert service.scheduler.interval_minutes == 2
        assert service.engine.watermark is None
    finally:
        await service.aclose()


@pytest.mark.asyncio
async def test_fetch_source_prints_payload(source_service, source, monkeypatch, capsys):
    monkeypatch.setenv("SOURCE_URI", "https://source.example.com/documents")
    source_service.add("1", "2024-01-01T00:00:00Z")

    with patch("scripts.fetch_source.build_source", return_value=source):
        assert await fetch() == 0

    printed = json.loads(capsys.readouterr().out)
    assert printed == {"value": [{"id": "1", "lastModified": "2024-01-01T00:00:00Z"}]}


@pytest.mark.asyncio
async def test_service_passes_certificate_passwords():
    settings = Settings(
        _env_file=None,
        SOURCE_URI="https://source.example.com/documents",
        TARGET_URI="https://target.example.com/documents/",
        SYNC_URI="https://sync.example.com/status",
        SOURCE_CERT_FILE="source.pem",
        TARGET_CERT_FILE="target.pem",
        TARGET_KEY_FILE="target.key",
        TARGET_CERT_PASSWORD="target-secret",
    )

    with patch("replication.service.build_ssl_context", return_value=None) as mock_ssl:
        service = SyncService(settings)
    try:
        assert ("target.pem", "target.key", "target-secret") in [c.args for c in mock_ssl.call_args_list]
        assert len(mock_ssl.call_args_list) == 3
    finally:
        await service.aclose()
