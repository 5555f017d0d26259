"""
Forecast engine telemetry (Prometheus).
"""

from probableplay.telemetry.metrics import (
    record_llm_request,
    record_extraction,
    record_probability_fallback,
    record_ledger_error,
    record_backtest_item,
    get_metrics_text,
)

__all__ = [
    "record_llm_request",
    "record_extraction",
    "record_probability_fallback",
    "record_ledger_error",
    "record_backtest_item",
    "get_metrics_text",
]
