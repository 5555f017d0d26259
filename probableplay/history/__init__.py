"""Prediction history: ledger, stores, accuracy and export."""

from probableplay.history.storage import HistoryStore, InMemoryHistoryStore, JsonFileHistoryStore
from probableplay.history.ledger import HistoryLedger
from probableplay.history.accuracy import accuracy_by_kind, compute_accuracy_snapshot, is_entry_correct

__all__ = [
    "HistoryStore", "InMemoryHistoryStore", "JsonFileHistoryStore",
    "HistoryLedger",
    "accuracy_by_kind", "compute_accuracy_snapshot", "is_entry_correct",
]
