"""HTTP probe: one GET per endpoint, classified into a status code.

Any HTTP response counts as reachable and yields its status code. Transport
failures (DNS, connect, timeout, malformed response) yield ``UNREACHABLE``.
The body is never inspected.
"""

from __future__ import annotations

import logging
import time

import httpx

from .errors import ProbeFailure
from .models import UNREACHABLE, MonitoredEndpoint, ProbeResult, utcnow

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT_MS = 10_000


def fetch_status(url: str, timeout_ms: int = DEFAULT_TIMEOUT_MS) -> int:
    """GET ``url`` and return the response status code.

    Raises ProbeFailure when no HTTP response was received.
    """
    try:
        with httpx.Client(timeout=timeout_ms / 1000, follow_redirects=True) as client:
            resp = client.get(url)
    except httpx.TimeoutException as e:
        raise ProbeFailure(url, f"timed out after {timeout_ms}ms") from e
    except httpx.ConnectError as e:
        raise ProbeFailure(url, f"connection error: {e}") from e
    except (httpx.HTTPError, httpx.InvalidURL) as e:
        raise ProbeFailure(url, f"{type(e).__name__}: {e}") from e
    return resp.status_code


def run_http_probe(endpoint: MonitoredEndpoint, timeout_ms: int = DEFAULT_TIMEOUT_MS) -> ProbeResult:
    """Probe one endpoint. Never raises; failures become ``UNREACHABLE``."""
    observed_at = utcnow()
    t0 = time.perf_counter()
    try:
        status_code = fetch_status(endpoint.url, timeout_ms)
        latency = (time.perf_counter() - t0) * 1000
        return ProbeResult(
            alias=endpoint.alias, url=endpoint.url,
            status_code=status_code, latency_ms=round(latency, 1),
            message=f"HTTP {status_code}", observed_at=observed_at,
        )
    except ProbeFailure as e:
        latency = (time.perf_counter() - t0) * 1000
        return ProbeResult(
            alias=endpoint.alias, url=endpoint.url,
            status_code=UNREACHABLE, latency_ms=round(latency, 1),
            message=e.cause, observed_at=observed_at,
        )
    except Exception as e:
        latency = (time.perf_counter() - t0) * 1000
        logger.debug("Unexpected probe error for %s", endpoint.url, exc_info=True)
        return ProbeResult(
            alias=endpoint.alias, url=endpoint.url,
            status_code=UNREACHABLE, latency_ms=round(latency, 1),
            message=f"Error: {type(e).__name__}: {e}", observed_at=observed_at,
        )
