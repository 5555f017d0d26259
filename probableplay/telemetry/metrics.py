"""
Prometheus metrics for the forecast engine.

Design principles:
- Low cardinality (controlled labels)
- Best-effort (never block main flow)

ALLOWED LABELS (bounded sets):
- provider:  "gemini" (max ~5)
- kind:      "standard", "detailed", "backtest", "results", "candidates", "schedule"
- status:    "completed", "error", "timeout", "not_configured"
- stage:     "fenced", "slice", "stripped", "failed"
- operation: "read", "write", "decode"
- outcome:   "correct", "incorrect", "failed"

FORBIDDEN AS LABELS: match ids, team names, history entry ids, raw model text.
Use logs for those.
"""

import logging

from prometheus_client import (
    Counter,
    Histogram,
    generate_latest,
    CONTENT_TYPE_LATEST,
    REGISTRY,
)

logger = logging.getLogger(__name__)

# =============================================================================
# MODEL QUERY METRICS
# =============================================================================

llm_requests_total = Counter(
    "forecast_llm_requests_total",
    "Total model queries by provider, request kind and status",
    ["provider", "kind", "status"],
)

llm_latency_ms = Histogram(
    "forecast_llm_latency_ms",
    "Model query latency in milliseconds",
    ["provider"],
    buckets=[500, 1000, 2000, 3000, 5000, 10000, 20000, 30000, 60000, 120000],
)

# =============================================================================
# NORMALIZATION METRICS
# =============================================================================

extraction_total = Counter(
    "forecast_extraction_total",
    "Structured payload extraction attempts by the stage that succeeded",
    ["stage"],
)

probability_fallbacks_total = Counter(
    "forecast_probability_fallbacks_total",
    "Probability triples replaced by the neutral fallback",
)

# =============================================================================
# LEDGER + BACKTEST METRICS
# =============================================================================

ledger_persistence_errors_total = Counter(
    "forecast_ledger_persistence_errors_total",
    "History store failures degraded to empty/no-op",
    ["operation"],
)

backtest_items_total = Counter(
    "forecast_backtest_items_total",
    "Backtest candidates evaluated by outcome",
    ["outcome"],
)


def record_llm_request(provider: str, kind: str, status: str, latency_ms: float) -> None:
    """Record a model query with its latency."""
    try:
        llm_requests_total.labels(provider=provider, kind=kind, status=status).inc()
        llm_latency_ms.labels(provider=provider).observe(latency_ms)
    except Exception as e:
        logger.warning(f"Failed to record llm request metric: {e}")


def record_extraction(stage: str) -> None:
    try:
        extraction_total.labels(stage=stage).inc()
    except Exception as e:
        logger.warning(f"Failed to record extraction metric: {e}")


def record_probability_fallback() -> None:
    try:
        probability_fallbacks_total.inc()
    except Exception as e:
        logger.warning(f"Failed to record probability fallback metric: {e}")


def record_ledger_error(operation: str) -> None:
    try:
        ledger_persistence_errors_total.labels(operation=operation).inc()
    except Exception as e:
        logger.warning(f"Failed to record ledger error metric: {e}")


def record_backtest_item(outcome: str) -> None:
    try:
        backtest_items_total.labels(outcome=outcome).inc()
    except Exception as e:
        logger.warning(f"Failed to record backtest metric: {e}")


def get_metrics_text() -> tuple[str, str]:
    """
    Generate Prometheus metrics text output.

    Returns:
        Tuple of (content, content_type)
    """
    return generate_latest(REGISTRY).decode("utf-8"), CONTENT_TYPE_LATEST
