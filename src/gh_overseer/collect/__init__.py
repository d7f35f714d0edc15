"""Fetch, classify and aggregate repository activity.

The orchestrator pulls in the GitHub clients and is imported from
``gh_overseer.collect.orchestrator`` directly.
"""

from gh_overseer.collect.aggregator import COUNTERS, FilterPolicy, Stats
from gh_overseer.collect.fetcher import Fetcher, InvalidRepositoryError

__all__ = [
    "COUNTERS",
    "Fetcher",
    "FilterPolicy",
    "InvalidRepositoryError",
    "Stats",
]
