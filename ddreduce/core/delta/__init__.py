"""Delta-debugging engine.

This package contains the search and repair machinery:
- Consistency repair (placeholder substitution and forwarder pruning)
- Chunk bisection (ddmin) with budget and bounded concurrency

Session sequencing over passes and rounds is in ddreduce.core.session.
Error classes are in ddreduce.core.errors.
"""

from ddreduce.core.delta.bisector import (
    BisectResult,
    ChunkPolicy,
    TrialBudget,
    TrialStats,
    minimize,
    partition,
)
from ddreduce.core.delta.repair import remove

__all__ = [
    "BisectResult",
    "ChunkPolicy",
    "TrialBudget",
    "TrialStats",
    "minimize",
    "partition",
    "remove",
]
