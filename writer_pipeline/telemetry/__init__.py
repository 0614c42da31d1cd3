"""投递遥测模块。"""

from .events import TelemetryEvent, input_signature
from .retry import (
    DeliveryReport,
    Outcome,
    RetryPolicy,
    RetryState,
    backoff_delay,
    classify_status,
    deliver,
)
from .sink import TelemetrySink, close_telemetry_sink, get_telemetry_sink

__all__ = [
    "TelemetryEvent",
    "input_signature",
    "DeliveryReport",
    "Outcome",
    "RetryPolicy",
    "RetryState",
    "backoff_delay",
    "classify_status",
    "deliver",
    "TelemetrySink",
    "get_telemetry_sink",
    "close_telemetry_sink",
]
