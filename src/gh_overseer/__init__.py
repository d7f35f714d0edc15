"""GitHub activity overseer: per-user activity counters across repositories."""

__version__ = "0.1.0"
