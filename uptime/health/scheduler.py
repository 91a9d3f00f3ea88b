"""Sweep scheduler: probes every registered endpoint once per tick.

One background task drives the sweeps. Each sweep snapshots the endpoint
list, fans the probes out on a bounded thread pool, and records one sample
per endpoint. Sweeps never overlap: a sweep that overruns the interval
delays the next tick, and manual sweeps share the same lock.

Nothing a single endpoint does (unreachable, slow, failed write) can stop
the sweep or the loop.
"""

from __future__ import annotations

import asyncio
import functools
import logging
from collections.abc import Callable
from concurrent.futures import ThreadPoolExecutor
from datetime import datetime
from typing import Any

from .engine import DEFAULT_TIMEOUT_MS, run_http_probe
from .errors import EndpointSourceFailure, StoreWriteFailure
from .models import SUCCESS_STATUS, UNREACHABLE, MonitoredEndpoint, ProbeResult, SweepReport, utcnow
from .protocols import EndpointSource, SampleWriter

logger = logging.getLogger(__name__)

DEFAULT_INTERVAL = 60.0
DEFAULT_WORKERS = 8

ProbeFn = Callable[[MonitoredEndpoint, int], ProbeResult]


class SchedulerState:
    """Counters + last sweep, exposed on the status endpoint."""

    def __init__(self, interval: float) -> None:
        self.running: bool = False
        self.interval: float = interval
        self.sweeps_completed: int = 0
        self.sweeps_skipped: int = 0
        self.samples_recorded: int = 0
        self.write_failures: int = 0
        self.last_error: str | None = None
        self.last_report: SweepReport | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "running": self.running,
            "interval_seconds": self.interval,
            "sweeps_completed": self.sweeps_completed,
            "sweeps_skipped": self.sweeps_skipped,
            "samples_recorded": self.samples_recorded,
            "write_failures": self.write_failures,
            "last_error": self.last_error,
            "last_sweep": self.last_report.to_dict() if self.last_report else None,
        }


class SweepScheduler:
    """Periodic, non-reentrant sweep loop over an EndpointSource."""

    def __init__(
        self,
        source: EndpointSource,
        writer: SampleWriter,
        probe: ProbeFn = run_http_probe,
        interval_seconds: float = DEFAULT_INTERVAL,
        timeout_ms: int = DEFAULT_TIMEOUT_MS,
        max_workers: int = DEFAULT_WORKERS,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        if interval_seconds <= 0:
            raise ValueError(f"interval_seconds must be positive, got {interval_seconds}")
        self.source = source
        self.writer = writer
        self.probe = probe
        self.interval = float(interval_seconds)
        self.timeout_ms = timeout_ms
        self.max_workers = max(1, max_workers)
        self.clock = clock
        self.state = SchedulerState(self.interval)
        self._executor: ThreadPoolExecutor | None = None
        self._lock = asyncio.Lock()
        self._slots = asyncio.Semaphore(self.max_workers)
        self._task: asyncio.Task[None] | None = None
        self._running = False

    # ── Lifecycle ─────────────────────────────────────────────────────────

    async def start(self) -> None:
        """Start the background sweep loop. The first sweep runs immediately."""
        if self._running:
            return
        self._running = True
        self.state.running = True
        self._task = asyncio.create_task(self._sweep_loop(), name="uptime-sweeps")
        logger.info(
            "Sweep scheduler started (interval=%ss, workers=%d, timeout=%dms)",
            self.interval, self.max_workers, self.timeout_ms,
        )

    async def stop(self) -> None:
        """Stop ticking. An in-flight sweep is abandoned at its next await;
        samples already written stay valid."""
        self._running = False
        self.state.running = False
        if self._task:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
            self._task = None
        if self._executor:
            self._executor.shutdown(wait=False, cancel_futures=True)
            self._executor = None
        logger.info("Sweep scheduler stopped")

    @property
    def running(self) -> bool:
        return self._running

    # ── Sweeps ────────────────────────────────────────────────────────────

    async def run_sweep(self) -> SweepReport:
        """Run one sweep now, waiting for any sweep already in progress."""
        async with self._lock:
            return await self._sweep()

    async def _sweep_loop(self) -> None:
        loop = asyncio.get_running_loop()
        while self._running:
            t0 = loop.time()
            try:
                await self.run_sweep()
            except asyncio.CancelledError:
                raise
            except Exception:
                logger.exception("Sweep failed unexpectedly")
            elapsed = loop.time() - t0
            if elapsed > self.interval:
                logger.warning(
                    "Sweep took %.1fs, longer than the %.0fs interval", elapsed, self.interval,
                )
            await asyncio.sleep(max(0.0, self.interval - elapsed))

    async def _sweep(self) -> SweepReport:
        report = SweepReport(started_at=self.clock())

        try:
            endpoints = list(self.source.list_endpoints())
        except EndpointSourceFailure as e:
            logger.error("Sweep skipped: %s", e)
            report.errors.append(str(e))
            report.finished_at = self.clock()
            self.state.sweeps_skipped += 1
            self.state.last_error = str(e)
            self.state.last_report = report
            return report

        report.endpoints = len(endpoints)
        await asyncio.gather(
            *(self._probe_and_record(ep, report) for ep in endpoints),
            return_exceptions=True,
        )
        report.finished_at = self.clock()

        self.state.sweeps_completed += 1
        self.state.samples_recorded += report.recorded
        self.state.write_failures += report.write_failures
        if report.errors:
            self.state.last_error = report.errors[-1]
        self.state.last_report = report

        logger.info(
            "Sweep done: %d endpoints, %d recorded, %d unreachable, %d write failures (%.2fs)",
            report.endpoints, report.recorded, report.unreachable,
            report.write_failures, report.duration_s,
        )
        return report

    async def _probe_and_record(self, endpoint: MonitoredEndpoint, report: SweepReport) -> None:
        loop = asyncio.get_running_loop()

        # The deadline covers the whole probe, not each httpx phase. A probe
        # past its deadline keeps its slot until the worker thread returns.
        future = None
        await self._slots.acquire()
        try:
            future = loop.run_in_executor(self._get_executor(), self.probe, endpoint, self.timeout_ms)
            future.add_done_callback(lambda _: self._slots.release())
            result = await asyncio.wait_for(asyncio.shield(future), self.timeout_ms / 1000)
        except asyncio.TimeoutError:
            logger.warning("Probe of %s exceeded %dms", endpoint.alias, self.timeout_ms)
            result = ProbeResult(
                alias=endpoint.alias, url=endpoint.url, status_code=UNREACHABLE,
                latency_ms=float(self.timeout_ms), message=f"timed out after {self.timeout_ms}ms",
            )
        except Exception as e:
            if future is None:
                self._slots.release()
            logger.exception("Probe error: %s", endpoint.alias)
            result = ProbeResult(
                alias=endpoint.alias, url=endpoint.url, status_code=UNREACHABLE,
                latency_ms=0.0, message=f"Error: {type(e).__name__}: {e}",
            )

        if not result.reachable:
            report.unreachable += 1
            logger.debug("%s unreachable: %s", endpoint.alias, result.message)
        elif result.status_code != SUCCESS_STATUS:
            logger.debug("%s returned %d (%dms)", endpoint.alias, result.status_code, result.latency_ms)

        try:
            await loop.run_in_executor(
                None,
                functools.partial(
                    self.writer.record_sample,
                    endpoint.alias, result.status_code, result.observed_at,
                ),
            )
            report.recorded += 1
        except StoreWriteFailure as e:
            report.write_failures += 1
            report.errors.append(str(e))
            logger.error("%s", e)
        except Exception as e:
            report.write_failures += 1
            report.errors.append(f"{endpoint.alias}: {type(e).__name__}: {e}")
            logger.exception("Unexpected error recording sample for %s", endpoint.alias)

    def _get_executor(self) -> ThreadPoolExecutor:
        if self._executor is None:
            self._executor = ThreadPoolExecutor(
                max_workers=self.max_workers, thread_name_prefix="uptime-probe",
            )
        return self._executor
