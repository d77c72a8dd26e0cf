"""Prometheus counters shared by the upstream client and the admin endpoints."""

from prometheus_client import CollectorRegistry, Counter

registry = CollectorRegistry()

upstream_calls = Counter(
    "upstream_calls_total",
    "Calls made to the wallet provider",
    ["operation", "outcome"],
    registry=registry,
)
proxy_requests = Counter(
    "proxy_requests_total",
    "Proxied API requests",
    ["endpoint", "status"],
    registry=registry,
)


def snapshot() -> dict:
    """Flatten the counters into ``{metric: {label-string: value}}`` for JSON output."""
    data = {}
    for metric in registry.collect():
        samples = {}
        for sample in metric.samples:
            if not sample.name.endswith("_total"):
                continue
            labels = ",".join(f"{k}={v}" for k, v in sorted(sample.labels.items()))
            samples[labels] = sample.value
        data[metric.name] = samples
    return data
