"""
Prometheus request/error counters.

The HTTP layer bumps a ``requests`` counter for every render call and an
``errors`` counter for every failed one, labelled by channel (the request
path). Names carry the ``metrics.prefix`` from configuration, so the default
series are ``webrender_requests_total`` and ``webrender_errors_total``.
`/metrics` serves them in the Prometheus text format via `exposition()`.
"""
from typing import Tuple

from prometheus_client import CONTENT_TYPE_LATEST, CollectorRegistry, Counter, generate_latest

from webrender.core.config import get_config

METRICS_PREFIX = get_config("metrics.prefix", "webrender")

# Own registry: only the service's counters, no process/platform collectors.
registry = CollectorRegistry()

requests_total = Counter(
    "requests",
    "Count of all render requests",
    labelnames=["channel"],
    namespace=METRICS_PREFIX,
    registry=registry,
)
errors_total = Counter(
    "errors",
    "Count of all failed render requests",
    labelnames=["channel"],
    namespace=METRICS_PREFIX,
    registry=registry,
)


def exposition() -> Tuple[bytes, str]:
    """Returns the current counters as a Prometheus text payload and its content type."""
    return generate_latest(registry), CONTENT_TYPE_LATEST
