"""Tests for the sweep scheduler."""

from __future__ import annotations

import asyncio
import logging
import threading
import time

import pytest

from conftest import NOW, FakeEndpointSource, FakeSampleStore, make_probe
from uptime.health.aggregator import UptimeAggregator
from uptime.health.errors import EndpointSourceFailure
from uptime.health.incidents import IncidentExtractor
from uptime.health.models import UNREACHABLE, MonitoredEndpoint, ProbeResult
from uptime.health.scheduler import SweepScheduler

A = MonitoredEndpoint(url="https://a.test", alias="a")
B = MonitoredEndpoint(url="https://b.test", alias="b")


def _statuses(store: FakeSampleStore, alias: str) -> list[int]:
    return [s.status_code for s in store.samples if s.alias == alias]


class FailingSource:
    def __init__(self, exc: Exception) -> None:
        self.exc = exc

    def list_endpoints(self):
        raise self.exc


class TestSweep:
    def test_one_sample_per_endpoint(self, fake_store: FakeSampleStore) -> None:
        sched = SweepScheduler(FakeEndpointSource([A, B]), fake_store, probe=make_probe({"a": 200, "b": 500}))
        report = asyncio.run(sched.run_sweep())

        assert report.endpoints == 2
        assert report.recorded == 2
        assert report.write_failures == 0
        assert _statuses(fake_store, "a") == [200]
        assert _statuses(fake_store, "b") == [500]

    def test_unreachable_endpoint_still_recorded(self, fake_store: FakeSampleStore) -> None:
        sched = SweepScheduler(
            FakeEndpointSource([A, B]), fake_store, probe=make_probe({"a": 200, "b": UNREACHABLE}),
        )
        report = asyncio.run(sched.run_sweep())

        assert report.recorded == 2
        assert report.unreachable == 1
        assert _statuses(fake_store, "a") == [200]
        assert _statuses(fake_store, "b") == [UNREACHABLE]

    def test_probe_exception_becomes_unreachable_sample(self, fake_store: FakeSampleStore) -> None:
        ok = make_probe({"a": 200})

        def probe(endpoint: MonitoredEndpoint, timeout_ms: int) -> ProbeResult:
            if endpoint.alias == "b":
                raise RuntimeError("probe blew up")
            return ok(endpoint, timeout_ms)

        sched = SweepScheduler(FakeEndpointSource([A, B]), fake_store, probe=probe)
        report = asyncio.run(sched.run_sweep())

        assert report.recorded == 2
        assert _statuses(fake_store, "b") == [UNREACHABLE]

    def test_write_failure_does_not_abort_sweep(self, fake_store: FakeSampleStore) -> None:
        fake_store.fail_writes_for = {"a"}
        sched = SweepScheduler(FakeEndpointSource([A, B]), fake_store, probe=make_probe({"a": 200, "b": 200}))
        report = asyncio.run(sched.run_sweep())

        assert report.recorded == 1
        assert report.write_failures == 1
        assert "'a'" in report.errors[0]
        assert _statuses(fake_store, "b") == [200]
        assert sched.state.write_failures == 1
        assert sched.state.sweeps_completed == 1

    def test_unexpected_writer_error_does_not_abort_sweep(self) -> None:
        class BrokenWriter:
            def record_sample(self, alias, status_code, observed_at=None):
                if alias == "a":
                    raise KeyError("unexpected")

        sched = SweepScheduler(FakeEndpointSource([A, B]), BrokenWriter(), probe=make_probe({"a": 200, "b": 200}))
        report = asyncio.run(sched.run_sweep())
        assert report.recorded == 1
        assert report.write_failures == 1

    def test_endpoint_source_failure_skips_sweep(self, fake_store: FakeSampleStore) -> None:
        sched = SweepScheduler(FailingSource(EndpointSourceFailure("no such table: endpoints")), fake_store)
        report = asyncio.run(sched.run_sweep())

        assert report.endpoints == 0
        assert fake_store.samples == []
        assert sched.state.sweeps_skipped == 1
        assert sched.state.sweeps_completed == 0
        assert "no such table" in sched.state.last_error

    def test_snapshot_taken_once_per_sweep(self, fake_store: FakeSampleStore) -> None:
        source = FakeEndpointSource([A])
        sched = SweepScheduler(source, fake_store, probe=make_probe({"a": 200, "b": 200}))
        asyncio.run(sched.run_sweep())
        source.endpoints.append(B)
        asyncio.run(sched.run_sweep())

        assert source.calls == 2
        assert _statuses(fake_store, "a") == [200, 200]
        assert _statuses(fake_store, "b") == [200]

    def test_empty_endpoint_list(self, fake_store: FakeSampleStore) -> None:
        sched = SweepScheduler(FakeEndpointSource([]), fake_store)
        report = asyncio.run(sched.run_sweep())
        assert report.endpoints == 0
        assert report.errors == []
        assert sched.state.sweeps_completed == 1

    def test_three_sweeps_scenario(self, fake_store: FakeSampleStore) -> None:
        codes = iter([200, 500, 200])

        def probe(endpoint: MonitoredEndpoint, timeout_ms: int) -> ProbeResult:
            return make_probe({"a": next(codes)})(endpoint, timeout_ms)

        sched = SweepScheduler(FakeEndpointSource([A]), fake_store, probe=probe)
        for _ in range(3):
            asyncio.run(sched.run_sweep())

        incidents = IncidentExtractor(fake_store).incidents("a")
        assert [i.status_code for i in incidents] == [500]

        series = UptimeAggregator(fake_store, clock=lambda: NOW).hourly("a")
        assert series[0].uptime_pct == 66
        assert all(p.uptime_pct is None for p in series[1:])

    def test_rejects_non_positive_interval(self, fake_store: FakeSampleStore) -> None:
        with pytest.raises(ValueError):
            SweepScheduler(FakeEndpointSource([]), fake_store, interval_seconds=0)


class TestConcurrency:
    def test_probes_bounded_by_worker_count(self, fake_store: FakeSampleStore) -> None:
        lock = threading.Lock()
        active = {"now": 0, "max": 0}
        endpoints = [MonitoredEndpoint(url=f"https://{i}.test", alias=str(i)) for i in range(6)]

        def probe(endpoint: MonitoredEndpoint, timeout_ms: int) -> ProbeResult:
            with lock:
                active["now"] += 1
                active["max"] = max(active["max"], active["now"])
            time.sleep(0.05)
            with lock:
                active["now"] -= 1
            return ProbeResult(alias=endpoint.alias, url=endpoint.url, status_code=200, latency_ms=50.0)

        sched = SweepScheduler(FakeEndpointSource(endpoints), fake_store, probe=probe, max_workers=2)
        report = asyncio.run(sched.run_sweep())

        assert report.recorded == 6
        assert 1 <= active["max"] <= 2

    def test_sweeps_do_not_overlap(self) -> None:
        events: list[str] = []

        class RecordingSource:
            def list_endpoints(self):
                events.append("list")
                return [A, B]

        class RecordingWriter:
            def record_sample(self, alias, status_code, observed_at=None):
                events.append("write")

        def slow_probe(endpoint: MonitoredEndpoint, timeout_ms: int) -> ProbeResult:
            time.sleep(0.05)
            return ProbeResult(alias=endpoint.alias, url=endpoint.url, status_code=200, latency_ms=50.0)

        sched = SweepScheduler(RecordingSource(), RecordingWriter(), probe=slow_probe)

        async def scenario():
            await asyncio.gather(sched.run_sweep(), sched.run_sweep())

        asyncio.run(scenario())
        assert events == ["list", "write", "write", "list", "write", "write"]


class TestProbeDeadline:
    def test_check_past_deadline_recorded_unreachable(self, fake_store: FakeSampleStore) -> None:
        release = threading.Event()

        def hanging(endpoint: MonitoredEndpoint, timeout_ms: int) -> ProbeResult:
            if endpoint.alias == "b":
                release.wait(2)
            return ProbeResult(alias=endpoint.alias, url=endpoint.url, status_code=200, latency_ms=1.0)

        sched = SweepScheduler(FakeEndpointSource([A, B]), fake_store, probe=hanging, timeout_ms=100)

        async def scenario():
            loop = asyncio.get_running_loop()
            t0 = loop.time()
            report = await sched.run_sweep()
            elapsed = loop.time() - t0
            release.set()
            await asyncio.sleep(0.1)
            return report, elapsed

        report, elapsed = asyncio.run(scenario())

        assert elapsed < 1.0
        assert report.recorded == 2
        assert report.unreachable == 1
        assert _statuses(fake_store, "a") == [200]
        assert _statuses(fake_store, "b") == [UNREACHABLE]

    def test_timed_out_check_holds_its_worker_slot(self, fake_store: FakeSampleStore) -> None:
        def probe(endpoint: MonitoredEndpoint, timeout_ms: int) -> ProbeResult:
            if endpoint.alias == "b":
                time.sleep(0.3)
            return ProbeResult(alias=endpoint.alias, url=endpoint.url, status_code=200, latency_ms=1.0)

        sched = SweepScheduler(
            FakeEndpointSource([B, A]), fake_store, probe=probe, timeout_ms=100, max_workers=1,
        )

        async def scenario():
            loop = asyncio.get_running_loop()
            t0 = loop.time()
            await sched.run_sweep()
            return loop.time() - t0

        elapsed = asyncio.run(scenario())

        # "a" waited for the thread, and its own deadline started only then
        assert elapsed >= 0.25
        assert _statuses(fake_store, "b") == [UNREACHABLE]
        assert _statuses(fake_store, "a") == [200]


class TestLifecycle:
    def test_loop_keeps_running_and_stops(self, fake_store: FakeSampleStore) -> None:
        sched = SweepScheduler(
            FakeEndpointSource([A]), fake_store, probe=make_probe({"a": 200}), interval_seconds=0.05,
        )

        async def scenario():
            await sched.start()
            assert sched.running
            await asyncio.sleep(0.3)
            await sched.stop()

        asyncio.run(scenario())
        assert not sched.running
        assert sched.state.running is False
        assert sched.state.sweeps_completed >= 2
        assert len(fake_store.samples) >= 2

    def test_loop_survives_unexpected_source_error(self, fake_store: FakeSampleStore) -> None:
        class FlakySource:
            def __init__(self) -> None:
                self.calls = 0

            def list_endpoints(self):
                self.calls += 1
                if self.calls == 1:
                    raise RuntimeError("transient")
                return [A]

        source = FlakySource()
        sched = SweepScheduler(source, fake_store, probe=make_probe({"a": 200}), interval_seconds=0.05)

        async def scenario():
            await sched.start()
            await asyncio.sleep(0.3)
            await sched.stop()

        asyncio.run(scenario())
        assert source.calls >= 2
        assert _statuses(fake_store, "a")

    def test_overrunning_sweep_defers_next_tick(self, fake_store: FakeSampleStore, caplog) -> None:
        lock = threading.Lock()
        active = {"now": 0, "max": 0}

        def slow_probe(endpoint: MonitoredEndpoint, timeout_ms: int) -> ProbeResult:
            with lock:
                active["now"] += 1
                active["max"] = max(active["max"], active["now"])
            time.sleep(0.15)
            with lock:
                active["now"] -= 1
            return ProbeResult(alias=endpoint.alias, url=endpoint.url, status_code=200, latency_ms=150.0)

        sched = SweepScheduler(FakeEndpointSource([A]), fake_store, probe=slow_probe, interval_seconds=0.05)

        async def scenario():
            await sched.start()
            await asyncio.sleep(0.5)
            await sched.stop()
            await asyncio.sleep(0.2)  # let an abandoned probe thread return

        with caplog.at_level(logging.WARNING, logger="uptime.health.scheduler"):
            asyncio.run(scenario())

        assert active["max"] == 1
        assert sched.state.sweeps_completed >= 2
        assert "longer than" in caplog.text

    def test_stop_mid_sweep_keeps_written_samples(self, fake_store: FakeSampleStore) -> None:
        started = threading.Event()
        release = threading.Event()

        def probe(endpoint: MonitoredEndpoint, timeout_ms: int) -> ProbeResult:
            if endpoint.alias == "b":
                started.set()
                release.wait(2)
            return ProbeResult(alias=endpoint.alias, url=endpoint.url, status_code=200, latency_ms=1.0)

        sched = SweepScheduler(FakeEndpointSource([A, B]), fake_store, probe=probe, interval_seconds=10)

        async def scenario():
            await sched.start()
            for _ in range(200):
                if started.is_set() and _statuses(fake_store, "a"):
                    break
                await asyncio.sleep(0.01)
            await sched.stop()
            release.set()
            await asyncio.sleep(0.1)

        asyncio.run(scenario())

        assert not sched.running
        assert sched._task is None
        assert _statuses(fake_store, "a") == [200]
        assert _statuses(fake_store, "b") == []
        assert sched.state.sweeps_completed == 0
        assert sched.state.samples_recorded == 0

    def test_start_is_idempotent(self, fake_store: FakeSampleStore) -> None:
        sched = SweepScheduler(FakeEndpointSource([]), fake_store, interval_seconds=10)

        async def scenario():
            await sched.start()
            task = sched._task
            await sched.start()
            assert sched._task is task
            await sched.stop()

        asyncio.run(scenario())

    def test_status_dict(self, fake_store: FakeSampleStore) -> None:
        sched = SweepScheduler(FakeEndpointSource([A]), fake_store, probe=make_probe({"a": 200}), interval_seconds=30)
        asyncio.run(sched.run_sweep())
        status = sched.state.to_dict()
        assert status["interval_seconds"] == 30.0
        assert status["sweeps_completed"] == 1
        assert status["samples_recorded"] == 1
        assert status["last_sweep"]["recorded"] == 1

    def test_report_uses_injected_clock(self, fake_store: FakeSampleStore) -> None:
        sched = SweepScheduler(FakeEndpointSource([]), fake_store, clock=lambda: NOW)
        report = asyncio.run(sched.run_sweep())
        assert report.started_at == NOW
        assert report.finished_at == NOW
        assert report.duration_s == 0.0
