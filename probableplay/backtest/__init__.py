"""Historical backtesting."""

from probableplay.backtest.simulator import (
    BacktestRequest,
    BacktestRun,
    BacktestSimulator,
    BacktestState,
    summarize_backtest,
)

__all__ = [
    "BacktestRequest", "BacktestRun", "BacktestSimulator", "BacktestState",
    "summarize_backtest",
]
