"""Health subsystem: probe engine, sweep scheduler, uptime aggregation, incidents."""

from .aggregator import UptimeAggregator, align_to_bucket, fill_gaps
from .engine import run_http_probe
from .errors import (
    EndpointSourceFailure,
    ProbeFailure,
    StoreReadFailure,
    StoreWriteFailure,
    UptimeError,
)
from .incidents import IncidentExtractor
from .models import (
    DAILY,
    HOURLY,
    UNREACHABLE,
    BucketPoint,
    Incident,
    MonitoredEndpoint,
    RawSample,
    SweepReport,
)
from .scheduler import SweepScheduler
