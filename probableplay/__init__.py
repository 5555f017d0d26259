"""ProbablePlay forecast normalization and accuracy evaluation engine."""

__version__ = "2.0.0"
