"""
Periodic emergency scan.

`scan()` is one pass over the fleet. `PeriodicScanner` keeps calling a pass
on a fixed cadence as a background asyncio task that can be started and
cancelled with the application.
"""

import asyncio
import logging
from datetime import datetime
from typing import Callable, Iterable, List, Optional

from engine.incidents import EmergencyIncident, IncidentLog
from engine.models import Vehicle

logger = logging.getLogger(__name__)


def scan(
    vehicles: Iterable[Vehicle],
    incidents: IncidentLog,
    now: Optional[datetime] = None,
) -> List[EmergencyIncident]:
    """
    Open an incident for every flagged vehicle that has none open yet.

    Returns only the incidents created by this pass, so repeated scans over
    an unchanged fleet return an empty list.
    """
    created: List[EmergencyIncident] = []
    flagged = 0
    for vehicle in vehicles:
        if not vehicle.requires_emergency_response:
            continue
        flagged += 1
        incident = incidents.open(vehicle, now=now)
        if incident is not None:
            created.append(incident)

    logger.debug("Scan complete: %d flagged, %d new incidents", flagged, len(created))
    return created


class PeriodicScanner:
    """Background task calling `callback` every `interval_seconds`."""

    def __init__(self, callback: Callable[[], object], interval_seconds: float = 30.0):
        if interval_seconds <= 0:
            raise ValueError("interval_seconds must be > 0")
        self._callback = callback
        self.interval_seconds = interval_seconds
        self._task: Optional[asyncio.Task] = None
        self.passes = 0

    async def _loop(self) -> None:
        while True:
            try:
                self._callback()
            except Exception:
                logger.exception("Emergency scan failed; retrying next interval")
            self.passes += 1
            await asyncio.sleep(self.interval_seconds)

    async def start(self) -> None:
        if self.running():
            raise RuntimeError("Scanner already running")
        logger.info("Starting emergency scanner (every %.0fs)", self.interval_seconds)
        self._task = asyncio.create_task(self._loop())

    async def stop(self) -> None:
        if self._task:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
            self._task = None
            logger.info("Emergency scanner stopped")

    def running(self) -> bool:
        return self._task is not None and not self._task.done()
