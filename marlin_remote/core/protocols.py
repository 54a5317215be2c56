"""Protocol definitions for the reconciler's collaborators."""

from __future__ import annotations

from typing import Optional, Protocol

from .models import PrintProgress, TemperatureReadings


class StatusSource(Protocol):
    """Read-only printer queries used by the status reconciler."""

    async def get_temperatures(self) -> TemperatureReadings:
        """Fetch current readings without touching the shared snapshot."""
        ...

    async def get_sd_progress(self) -> PrintProgress:
        """Fetch print progress and store it in the shared snapshot."""
        ...


class DiagnosticsSink(Protocol):
    """Receives component outcomes, e.g. :class:`marlin_remote.health.HealthReporter`."""

    async def update(
        self, name: str, healthy: bool, detail: Optional[str] = None
    ) -> None:
        ...
