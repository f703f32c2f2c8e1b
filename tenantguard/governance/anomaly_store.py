"""Storage for emitted anomaly signals. Signals are ephemeral; backends may expire them."""

import asyncio
from datetime import datetime
from typing import List, Protocol

from tenantguard.governance.anomaly_models import AnomalySignal


class AnomalySignalStore(Protocol):
    async def save(self, signal: AnomalySignal) -> None: ...

    async def list_since(self, since: datetime) -> List[AnomalySignal]:
        """Signals detected at or after since, oldest first."""
        ...


class InMemoryAnomalySignalStore:
    """Process-local signal list. For tests or single-node deployments without Redis."""

    def __init__(self) -> None:
        self._signals: List[AnomalySignal] = []
        self._lock = asyncio.Lock()

    async def save(self, signal: AnomalySignal) -> None:
        async with self._lock:
            self._signals.append(signal)

    async def list_since(self, since: datetime) -> List[AnomalySignal]:
        async with self._lock:
            return sorted(
                (s for s in self._signals if s.detected_at >= since),
                key=lambda s: s.detected_at,
            )
