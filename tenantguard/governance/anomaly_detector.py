"""Anomaly detection over the audit stream. Runs after commit or by polling, never on the write path."""

import asyncio
import logging
import uuid
from collections import defaultdict
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import AbstractSet, Dict, Iterable, List, Mapping, Optional, Protocol, Set

from tenantguard.domain.models.principal import Principal
from tenantguard.domain.models.resource import Operation
from tenantguard.governance.anomaly_models import AnomalyKind, AnomalySignal, Severity
from tenantguard.governance.anomaly_store import AnomalySignalStore
from tenantguard.governance.audit_models import AuditEntry
from tenantguard.governance.audit_recorder import Clock, utc_now
from tenantguard.governance.audit_repository import AuditLogReader
from tenantguard.security.policy import DenialReason

logger = logging.getLogger(__name__)


class AlertNotifier(Protocol):
    """Notification side-channel. Fire-and-forget: dispatched as a background task with a timeout."""

    async def notify(self, signal: AnomalySignal) -> None: ...


@dataclass(frozen=True)
class DetectionThresholds:
    """Counts are exclusive: a signal fires when the count is strictly greater."""

    burst_reads: int = 100
    burst_window: timedelta = timedelta(seconds=60)
    repeated_denials: int = 5
    denial_window: timedelta = timedelta(seconds=300)
    tenant_switches: int = 3
    switch_window: timedelta = timedelta(seconds=300)

    def __post_init__(self) -> None:
        for name in ("burst_window", "denial_window", "switch_window"):
            if getattr(self, name) <= timedelta(0):
                raise ValueError(f"{name} must be positive")

    @property
    def lookback(self) -> timedelta:
        return max(self.burst_window, self.denial_window, self.switch_window)

    @classmethod
    def from_settings(cls, settings) -> "DetectionThresholds":
        return cls(
            burst_reads=settings.burst_read_threshold,
            burst_window=timedelta(seconds=settings.burst_window_seconds),
            repeated_denials=settings.repeated_denial_threshold,
            denial_window=timedelta(seconds=settings.repeated_denial_window_seconds),
            tenant_switches=settings.tenant_switch_threshold,
            switch_window=timedelta(seconds=settings.tenant_switch_window_seconds),
        )


def _signal(
    kind: AnomalyKind,
    severity: Severity,
    entries: List[AuditEntry],
    tenant_id: Optional[str],
    now: datetime,
    **details,
) -> AnomalySignal:
    return AnomalySignal(
        signal_id=str(uuid.uuid4()),
        kind=kind,
        severity=severity,
        principal_id=entries[0].actor_id,
        tenant_id=tenant_id,
        entry_ids=tuple(e.entry_id for e in entries),
        detected_at=now,
        details=details,
    )


def _by_principal(entries: Iterable[AuditEntry]) -> Dict[str, List[AuditEntry]]:
    grouped: Dict[str, List[AuditEntry]] = defaultdict(list)
    for entry in sorted(entries, key=lambda e: e.created_at):
        grouped[entry.actor_id].append(entry)
    return grouped


def _cross_tenant_attempts(entries: List[AuditEntry], now: datetime) -> List[AnomalySignal]:
    return [
        _signal(
            AnomalyKind.CROSS_TENANT_ATTEMPT,
            Severity.HIGH,
            [e],
            e.tenant_id,
            now,
            operation=e.operation.value,
            resource_type=e.resource_type,
            resource_id=e.resource_id,
            actor_tenant_id=e.actor_tenant_id,
        )
        for e in sorted(entries, key=lambda e: e.created_at)
        if e.denied and e.denial_reason == DenialReason.CROSS_TENANT.value
    ]


def _bursts(entries: List[AuditEntry], t: DetectionThresholds, now: datetime) -> List[AnomalySignal]:
    signals: List[AnomalySignal] = []
    for principal_entries in _by_principal(entries).values():
        window: List[AuditEntry] = []
        for entry in principal_entries:
            if entry.operation != Operation.READ:
                continue
            window.append(entry)
            while window[0].created_at <= entry.created_at - t.burst_window:
                window.pop(0)
            if len(window) > t.burst_reads:
                signals.append(
                    _signal(
                        AnomalyKind.BURST_ACCESS,
                        Severity.MEDIUM,
                        window,
                        window[0].actor_tenant_id,
                        now,
                        read_count=len(window),
                        window_seconds=t.burst_window.total_seconds(),
                    )
                )
                window = []
    return signals


def _repeated_denials(
    entries: List[AuditEntry], t: DetectionThresholds, now: datetime
) -> List[AnomalySignal]:
    signals: List[AnomalySignal] = []
    for principal_entries in _by_principal(entries).values():
        streak: List[AuditEntry] = []
        for entry in principal_entries:
            if not entry.denied:
                streak = []
                continue
            streak.append(entry)
            while streak[0].created_at <= entry.created_at - t.denial_window:
                streak.pop(0)
            if len(streak) > t.repeated_denials:
                signals.append(
                    _signal(
                        AnomalyKind.REPEATED_DENIAL,
                        Severity.HIGH,
                        streak,
                        streak[0].actor_tenant_id,
                        now,
                        denial_count=len(streak),
                        window_seconds=t.denial_window.total_seconds(),
                    )
                )
                streak = []
    return signals


def _tenant_switching(
    entries: List[AuditEntry], t: DetectionThresholds, now: datetime
) -> List[AnomalySignal]:
    signals: List[AnomalySignal] = []
    for principal_entries in _by_principal(entries).values():
        window: List[AuditEntry] = []
        for entry in principal_entries:
            if entry.tenant_id is None:
                continue
            window.append(entry)
            while window[0].created_at <= entry.created_at - t.switch_window:
                window.pop(0)
            tenants = {e.tenant_id for e in window}
            if len(tenants) > t.tenant_switches:
                signals.append(
                    _signal(
                        AnomalyKind.RAPID_TENANT_SWITCHING,
                        Severity.MEDIUM,
                        window,
                        window[0].actor_tenant_id,
                        now,
                        tenant_count=len(tenants),
                        tenants=sorted(tenants),
                    )
                )
                window = []
    return signals


def detect_anomalies(
    entries: Iterable[AuditEntry],
    thresholds: DetectionThresholds,
    now: datetime,
    exclude: Optional[Mapping[AnomalyKind, AbstractSet[str]]] = None,
) -> List[AnomalySignal]:
    """
    Pure detection over a batch of entries; each signal references the entries behind it.
    `exclude` maps a kind to entry ids that must not count towards that kind again.
    """
    batch = list(entries)
    exclude = exclude or {}

    def usable(kind: AnomalyKind) -> List[AuditEntry]:
        skip = exclude.get(kind) or set()
        return [e for e in batch if e.entry_id not in skip]

    return (
        _cross_tenant_attempts(usable(AnomalyKind.CROSS_TENANT_ATTEMPT), now)
        + _bursts(usable(AnomalyKind.BURST_ACCESS), thresholds, now)
        + _repeated_denials(usable(AnomalyKind.REPEATED_DENIAL), thresholds, now)
        + _tenant_switching(usable(AnomalyKind.RAPID_TENANT_SWITCHING), thresholds, now)
    )


class AnomalyDetector:
    """
    Scans recent audit entries, stores new signals and notifies.
    An entry that already contributed to a signal of some kind is not counted
    again for that kind, so one burst yields one signal across repeated scans.
    """

    def __init__(
        self,
        audit_log: AuditLogReader,
        store: AnomalySignalStore,
        notifier: Optional[AlertNotifier] = None,
        thresholds: Optional[DetectionThresholds] = None,
        clock: Clock = utc_now,
        metrics=None,
        notify_timeout_seconds: float = 5.0,
    ) -> None:
        self._audit_log = audit_log
        self._store = store
        self._notifier = notifier
        self._notify_timeout = notify_timeout_seconds
        # Notifications run as background tasks; scan and report_tamper never wait on the broker
        self._pending: Set["asyncio.Task[None]"] = set()
        self._thresholds = thresholds or DetectionThresholds()
        self._clock = clock
        self._metrics = metrics
        # kind -> {entry_id: entry created_at}
        self._claimed: Dict[AnomalyKind, Dict[str, datetime]] = defaultdict(dict)
        self._lock = asyncio.Lock()

    @property
    def thresholds(self) -> DetectionThresholds:
        return self._thresholds

    async def scan(self, now: Optional[datetime] = None) -> List[AnomalySignal]:
        """Detect over the look-back window. Returns only newly emitted signals."""
        async with self._lock:
            now = now or self._clock()
            horizon = now - self._thresholds.lookback
            entries = await self._audit_log.list_since(horizon)
            self._prune(horizon)

            created = {e.entry_id: e.created_at for e in entries}
            exclude = {kind: set(claimed) for kind, claimed in self._claimed.items()}
            signals = detect_anomalies(entries, self._thresholds, now, exclude=exclude)
            for signal in signals:
                claimed = self._claimed[signal.kind]
                for entry_id in signal.entry_ids:
                    claimed[entry_id] = created[entry_id]
                await self._emit(signal)
            return signals

    def _prune(self, horizon: datetime) -> None:
        for claimed in self._claimed.values():
            for entry_id in [k for k, ts in claimed.items() if ts < horizon]:
                del claimed[entry_id]

    async def report_tamper(
        self,
        principal: Principal,
        entry_id: str,
        action: str,
    ) -> AnomalySignal:
        """A refused update/delete of an audit entry. Emitted immediately, never deduplicated."""
        signal = AnomalySignal(
            signal_id=str(uuid.uuid4()),
            kind=AnomalyKind.TAMPER_ATTEMPT,
            severity=Severity.CRITICAL,
            principal_id=principal.principal_id,
            tenant_id=principal.tenant_id,
            entry_ids=(entry_id,),
            detected_at=self._clock(),
            details={"action": action, "actor_role": principal.role.value},
        )
        await self._emit(signal)
        return signal

    async def list_signals(self, since: datetime) -> List[AnomalySignal]:
        return await self._store.list_since(since)

    async def run_polling(self, interval_seconds: float, stop_event: asyncio.Event) -> None:
        """Out-of-band loop. Scan failures are logged and the loop keeps going."""
        while not stop_event.is_set():
            try:
                await self.scan()
            except Exception as e:
                logger.error("anomaly_scan_failed", extra={"error": str(e)})
            try:
                await asyncio.wait_for(stop_event.wait(), timeout=interval_seconds)
            except asyncio.TimeoutError:
                pass

    async def _emit(self, signal: AnomalySignal) -> None:
        await self._store.save(signal)
        if self._metrics is not None:
            self._metrics.increment("anomaly_signals", category=signal.kind.value)
        logger.warning(
            "anomaly_detected",
            extra={
                "signal_id": signal.signal_id,
                "kind": signal.kind.value,
                "severity": signal.severity.value,
                "signal_principal_id": signal.principal_id,
                "entry_count": len(signal.entry_ids),
            },
        )
        if self._notifier is None:
            return
        task = asyncio.create_task(self._notify(signal))
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)

    async def _notify(self, signal: AnomalySignal) -> None:
        try:
            await asyncio.wait_for(self._notifier.notify(signal), timeout=self._notify_timeout)
        except Exception as e:
            # Never re-raise: a lost alert must not fail detection.
            logger.error(
                "anomaly_notification_failed",
                extra={"signal_id": signal.signal_id, "error": str(e) or type(e).__name__},
            )

    async def drain(self) -> None:
        """Wait for in-flight notifications; each is bounded by the notify timeout."""
        if self._pending:
            await asyncio.gather(*list(self._pending))

    async def close(self) -> None:
        """Cancel in-flight notifications. Used at shutdown."""
        pending = list(self._pending)
        for task in pending:
            task.cancel()
        await asyncio.gather(*pending, return_exceptions=True)
