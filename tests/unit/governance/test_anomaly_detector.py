"""Governance tests: anomaly heuristics, signal deduplication, notification failures, polling."""

import asyncio
from datetime import timedelta
from unittest.mock import AsyncMock

import pytest
from pydantic import ValidationError

from tenantguard.config.settings import AppSettings
from tenantguard.domain.models.principal import Principal, Role
from tenantguard.domain.models.resource import Operation
from tenantguard.governance.anomaly_detector import (
    AnomalyDetector,
    DetectionThresholds,
    detect_anomalies,
)
from tenantguard.governance.anomaly_models import AnomalyKind, Severity
from tenantguard.governance.anomaly_store import InMemoryAnomalySignalStore
from tenantguard.governance.audit_models import AuditOutcome
from tenantguard.governance.audit_recorder import AuditRecorder
from tenantguard.infrastructure.memory import InMemoryAuditRepository, InMemoryDatabase

THRESHOLDS = DetectionThresholds(burst_reads=5, repeated_denials=3, tenant_switches=2)


@pytest.fixture
def recorder(clock):
    return AuditRecorder(InMemoryAuditRepository(InMemoryDatabase(frozenset())), clock=clock)


def _read(recorder, principal, tenant_id, resource_type="stakeholder_contacts"):
    return recorder.build_entry(Operation.READ, principal, resource_type, "r-1", tenant_id, None, None)


def _denial(recorder, principal, tenant_id, reason="not resource owner"):
    return recorder.build_entry(
        Operation.UPDATE, principal, "stakeholder_contacts", "r-1", tenant_id, None, None,
        outcome=AuditOutcome.DENIED, denial_reason=reason,
    )


def _kinds(signals):
    return [s.kind for s in signals]


def test_cross_tenant_denial_signals_target_tenant(recorder, alice, clock):
    entry = _denial(recorder, alice, "tenant-b", reason="cross-tenant access")
    signals = detect_anomalies([entry], THRESHOLDS, clock.now)
    assert _kinds(signals) == [AnomalyKind.CROSS_TENANT_ATTEMPT]
    signal = signals[0]
    assert signal.severity == Severity.HIGH
    assert signal.tenant_id == "tenant-b"
    assert signal.principal_id == "alice"
    assert signal.entry_ids == (entry.entry_id,)
    assert signal.details["actor_tenant_id"] == "tenant-a"


def test_burst_over_threshold(recorder, alice, clock):
    entries = []
    for _ in range(6):
        entries.append(_read(recorder, alice, "tenant-a"))
        clock.advance(seconds=1)
    signals = detect_anomalies(entries, THRESHOLDS, clock.now)
    assert _kinds(signals) == [AnomalyKind.BURST_ACCESS]
    assert len(signals[0].entry_ids) == 6
    assert signals[0].details["read_count"] == 6


def test_burst_at_threshold_is_quiet(recorder, alice, clock):
    entries = []
    for _ in range(5):
        entries.append(_read(recorder, alice, "tenant-a"))
        clock.advance(seconds=1)
    assert detect_anomalies(entries, THRESHOLDS, clock.now) == []


def test_reads_spread_beyond_window_are_quiet(recorder, alice, clock):
    entries = []
    for _ in range(10):
        entries.append(_read(recorder, alice, "tenant-a"))
        clock.advance(seconds=15)
    assert detect_anomalies(entries, THRESHOLDS, clock.now) == []


def test_bursts_counted_per_principal(recorder, alice, clock):
    carol = Principal(principal_id="carol", role=Role.REGULAR, tenant_id="tenant-a")
    entries = []
    for i in range(6):
        entries.append(_read(recorder, alice if i % 2 else carol, "tenant-a"))
    assert detect_anomalies(entries, THRESHOLDS, clock.now) == []


def test_repeated_denials(recorder, alice, clock):
    entries = []
    for _ in range(4):
        entries.append(_denial(recorder, alice, "tenant-a"))
        clock.advance(seconds=10)
    signals = detect_anomalies(entries, THRESHOLDS, clock.now)
    assert _kinds(signals) == [AnomalyKind.REPEATED_DENIAL]
    assert signals[0].details["denial_count"] == 4


def test_allowed_operation_breaks_denial_streak(recorder, alice, clock):
    entries = [_denial(recorder, alice, "tenant-a") for _ in range(3)]
    entries.append(_read(recorder, alice, "tenant-a"))
    entries += [_denial(recorder, alice, "tenant-a") for _ in range(3)]
    assert detect_anomalies(entries, THRESHOLDS, clock.now) == []


def test_rapid_tenant_switching(recorder, admin, clock):
    entries = []
    for tenant in ("tenant-a", "tenant-b", "tenant-c"):
        entries.append(_read(recorder, admin, tenant))
        clock.advance(seconds=30)
    signals = detect_anomalies(entries, THRESHOLDS, clock.now)
    assert _kinds(signals) == [AnomalyKind.RAPID_TENANT_SWITCHING]
    assert signals[0].details["tenants"] == ["tenant-a", "tenant-b", "tenant-c"]
    assert signals[0].tenant_id is None


def test_tenant_switching_outside_window_is_quiet(recorder, admin, clock):
    entries = []
    for tenant in ("tenant-a", "tenant-b", "tenant-c"):
        entries.append(_read(recorder, admin, tenant))
        clock.advance(minutes=4)
    assert detect_anomalies(entries, THRESHOLDS, clock.now) == []


def test_exclude_skips_claimed_entries(recorder, alice, clock):
    entry = _denial(recorder, alice, "tenant-b", reason="cross-tenant access")
    exclude = {AnomalyKind.CROSS_TENANT_ATTEMPT: {entry.entry_id}}
    assert detect_anomalies([entry], THRESHOLDS, clock.now, exclude=exclude) == []


@pytest.mark.asyncio
async def test_scan_emits_once_per_burst(detector, uow_factory, signal_store, recorder, alice, clock, metrics):
    for _ in range(6):
        uow_factory.db.audit_log.append(_read(recorder, alice, "tenant-a"))
        clock.advance(seconds=1)

    first = await detector.scan()
    second = await detector.scan()

    assert _kinds(first) == [AnomalyKind.BURST_ACCESS]
    assert second == []
    stored = await signal_store.list_since(clock.now - timedelta(hours=1))
    assert [s.signal_id for s in stored] == [first[0].signal_id]
    assert metrics.count("anomaly_signals", category="burst_access") == 1


@pytest.mark.asyncio
async def test_scan_ignores_entries_older_than_lookback(detector, uow_factory, recorder, alice, clock):
    uow_factory.db.audit_log.append(_denial(recorder, alice, "tenant-b", reason="cross-tenant access"))
    clock.advance(minutes=10)
    assert await detector.scan() == []


@pytest.mark.asyncio
async def test_notifier_failure_does_not_fail_scan(uow_factory, signal_store, recorder, alice, clock):
    notifier = AsyncMock()
    notifier.notify = AsyncMock(side_effect=RuntimeError("broker down"))
    detector = AnomalyDetector(
        uow_factory.audit_log, signal_store, notifier=notifier, thresholds=THRESHOLDS, clock=clock
    )
    uow_factory.db.audit_log.append(_denial(recorder, alice, "tenant-b", reason="cross-tenant access"))

    signals = await detector.scan()
    await detector.drain()

    assert _kinds(signals) == [AnomalyKind.CROSS_TENANT_ATTEMPT]
    notifier.notify.assert_awaited_once_with(signals[0])
    assert len(await signal_store.list_since(clock.now - timedelta(minutes=1))) == 1


class HangingNotifier:
    """Alert channel whose broker never answers."""

    def __init__(self) -> None:
        self.calls = 0

    async def notify(self, signal) -> None:
        self.calls += 1
        await asyncio.Event().wait()


@pytest.mark.asyncio
async def test_hanging_notifier_does_not_block_scan(uow_factory, signal_store, recorder, alice, clock):
    notifier = HangingNotifier()
    detector = AnomalyDetector(
        uow_factory.audit_log, signal_store, notifier=notifier, thresholds=THRESHOLDS, clock=clock
    )
    uow_factory.db.audit_log.append(_denial(recorder, alice, "tenant-b", reason="cross-tenant access"))

    signals = await asyncio.wait_for(detector.scan(), timeout=1)

    assert _kinds(signals) == [AnomalyKind.CROSS_TENANT_ATTEMPT]
    assert len(await signal_store.list_since(clock.now - timedelta(minutes=1))) == 1
    await asyncio.sleep(0.05)
    assert notifier.calls == 1
    await detector.close()


@pytest.mark.asyncio
async def test_notification_is_bounded_by_timeout(uow_factory, signal_store, admin, clock):
    detector = AnomalyDetector(
        uow_factory.audit_log,
        signal_store,
        notifier=HangingNotifier(),
        clock=clock,
        notify_timeout_seconds=0.01,
    )
    await asyncio.wait_for(detector.report_tamper(admin, "entry-1", "delete"), timeout=1)
    await asyncio.wait_for(detector.drain(), timeout=1)


@pytest.mark.parametrize("field", ["burst_window", "denial_window", "switch_window"])
def test_thresholds_reject_empty_window(field):
    with pytest.raises(ValueError):
        DetectionThresholds(**{field: timedelta(0)})


@pytest.mark.parametrize(
    "name", ["burst_window_seconds", "repeated_denial_window_seconds", "tenant_switch_window_seconds"]
)
def test_settings_reject_empty_window(name):
    with pytest.raises(ValidationError):
        AppSettings(**{name: 0})


@pytest.mark.asyncio
async def test_report_tamper_is_critical(detector, signal_store, admin, clock):
    signal = await detector.report_tamper(admin, "entry-1", "delete")
    assert signal.kind == AnomalyKind.TAMPER_ATTEMPT
    assert signal.severity == Severity.CRITICAL
    assert signal.entry_ids == ("entry-1",)
    assert signal.details == {"action": "delete", "actor_role": "administrator"}
    assert await detector.list_signals(clock.now) == [signal]


@pytest.mark.asyncio
async def test_run_polling_survives_scan_failure(detector):
    calls = []

    async def flaky_scan(now=None):
        calls.append(now)
        if len(calls) == 1:
            raise RuntimeError("database unavailable")
        return []

    detector.scan = flaky_scan
    stop = asyncio.Event()
    task = asyncio.create_task(detector.run_polling(0.01, stop))
    await asyncio.sleep(0.1)
    stop.set()
    await asyncio.wait_for(task, timeout=1)
    assert len(calls) >= 2


def test_thresholds_lookback():
    thresholds = DetectionThresholds(
        burst_window=timedelta(seconds=60),
        denial_window=timedelta(seconds=120),
        switch_window=timedelta(seconds=90),
    )
    assert thresholds.lookback == timedelta(seconds=120)


@pytest.mark.asyncio
async def test_in_memory_signal_store_orders_by_detection(detector, admin, clock):
    store = InMemoryAnomalySignalStore()
    late = await detector.report_tamper(admin, "entry-2", "update")
    clock.advance(minutes=-5)
    early = await detector.report_tamper(admin, "entry-1", "update")
    await store.save(late)
    await store.save(early)
    assert await store.list_since(clock.now) == [early, late]
    assert await store.list_since(clock.now + timedelta(minutes=1)) == [late]
