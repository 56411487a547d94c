"""OpenTelemetry 同期メトリクス定義"""

from __future__ import annotations

from opentelemetry import metrics

_meter = metrics.get_meter("k1s0.local_eval", version="0.1.0")

config_sync_total = _meter.create_counter(
    name="config_sync_total",
    description="Total number of rule set / ID list sync rounds",
    unit="1",
)

config_sync_errors_total = _meter.create_counter(
    name="config_sync_errors_total",
    description="Total number of failed sync rounds",
    unit="1",
)

id_list_bytes_fetched_total = _meter.create_counter(
    name="id_list_bytes_fetched_total",
    description="Total bytes of ID list content fetched",
    unit="By",
)

evaluation_deferred_total = _meter.create_counter(
    name="evaluation_deferred_total",
    description="Number of evaluations that must be resolved remotely",
    unit="1",
)
