"""Chunk bisector: the ddmin search over one pass's target list.

This module contains the minimizing search that drives the oracle and the
removal operation of a pass:
- partition: split a target list into ordered chunks
- ChunkPolicy: how the chunk count evolves after a success
- TrialBudget: session-wide limits on trials and wall-clock time
- TrialStats: counters for one bisection run
- minimize: the ddmin loop itself
"""

import asyncio
import logging
import math
import time
from dataclasses import dataclass, field
from typing import Callable, Dict, List, Literal, Optional, Sequence, Set, Tuple

from ddreduce.core.errors import RepairAnomaly
from ddreduce.core.schema.artifact import Artifact
from ddreduce.core.schema.oracle import Oracle, Verdict
from ddreduce.core.schema.reduction_pass import Target, target_ids

logger = logging.getLogger(__name__)

RemoveFn = Callable[[Artifact, Set[int]], Artifact]

CHUNK_POLICIES = ("reset", "keep")


def partition(targets: Sequence[Target], chunk_count: int) -> List[List[Target]]:
    """Split targets into contiguous chunks of ``ceil(N / chunk_count)``.

    The last chunk may be smaller, and fewer than ``chunk_count`` chunks come
    back when the division is uneven. Chunks never overlap, cover the whole
    list, and hold at least one target.

    Example:
        >>> [len(c) for c in partition(list_of_five_targets, 2)]
        [3, 2]
    """
    if not targets:
        return []
    chunk_count = max(1, min(chunk_count, len(targets)))
    size = math.ceil(len(targets) / chunk_count)
    return [list(targets[i:i + size]) for i in range(0, len(targets), size)]


@dataclass(frozen=True)
class ChunkPolicy:
    """Chunk-count schedule for ddmin.

    Attributes:
        name: "reset" returns to two chunks after every success (coarse
              granularity first); "keep" only steps one down, as in Zeller's
              ``n = max(n - 1, 2)``
        initial: Chunk count a fresh partition starts with
    """
    name: Literal["reset", "keep"] = "reset"
    initial: int = 2

    def __post_init__(self) -> None:
        if self.name not in CHUNK_POLICIES:
            raise ValueError(
                f"Unknown chunk policy: {self.name}. Available: {', '.join(CHUNK_POLICIES)}"
            )
        if self.initial < 1:
            raise ValueError("Initial chunk count must be at least 1")

    def after_success(self, chunk_count: int) -> int:
        if self.name == "keep":
            return max(chunk_count - 1, self.initial)
        return self.initial

    def after_failure(self, chunk_count: int, target_count: int) -> int:
        return min(chunk_count * 2, target_count)


class TrialBudget:
    """Session-wide trial limits, checked cooperatively before each trial.

    Trials already running are never interrupted by the budget; once it is
    exhausted no new trials are issued.
    """

    def __init__(self, max_trials: Optional[int] = None, max_seconds: Optional[float] = None):
        self.max_trials = max_trials
        self.max_seconds = max_seconds
        self.trials = 0
        self._start = time.monotonic()

    @property
    def elapsed(self) -> float:
        return time.monotonic() - self._start

    def exhausted(self) -> bool:
        if self.max_trials is not None and self.trials >= self.max_trials:
            return True
        if self.max_seconds is not None and self.elapsed >= self.max_seconds:
            return True
        return False

    def record_trial(self) -> None:
        self.trials += 1


@dataclass
class TrialStats:
    """Counters for one bisection run.

    Attributes:
        trials: Oracle queries issued
        interesting: Trials that came back interesting and were committed
        infra_failures: Trials whose oracle could not be run to a verdict
        repair_anomalies: Chunks skipped because repair raised RepairAnomaly
        cancelled: In-flight trials cancelled after another chunk was committed
        commits: Number of committed chunks
    """
    trials: int = 0
    interesting: int = 0
    infra_failures: int = 0
    repair_anomalies: int = 0
    cancelled: int = 0
    commits: int = 0

    def merge(self, other: "TrialStats") -> None:
        self.trials += other.trials
        self.interesting += other.interesting
        self.infra_failures += other.infra_failures
        self.repair_anomalies += other.repair_anomalies
        self.cancelled += other.cancelled
        self.commits += other.commits


@dataclass
class BisectResult:
    """Outcome of one ``minimize`` run.

    Attributes:
        artifact: Last committed artifact (the input one if nothing was removed)
        targets: Targets still present
        stats: Trial counters
        exhausted: True if the budget stopped the search before convergence
    """
    artifact: Artifact
    targets: List[Target]
    stats: TrialStats = field(default_factory=TrialStats)
    exhausted: bool = False


async def _first_interesting(
    artifact: Artifact,
    chunks: List[List[Target]],
    remove_fn: RemoveFn,
    oracle: Oracle,
    jobs: int,
    budget: Optional[TrialBudget],
    stats: TrialStats,
) -> Tuple[Optional[Tuple[int, Artifact]], bool]:
    """Find the first chunk, in list order, whose removal stays interesting.

    Up to ``jobs`` trials run at once, but verdicts are consumed strictly in
    chunk order, so the winner is the same as with sequential evaluation.

    Returns:
        ((chunk_index, trial_artifact) or None, budget_exhausted)
    """
    tasks: Dict[int, "asyncio.Task[Verdict]"] = {}
    trials: Dict[int, Artifact] = {}
    skipped: Set[int] = set()
    next_index = 0

    def launch() -> None:
        nonlocal next_index
        while next_index < len(chunks) and len(tasks) < jobs:
            if budget is not None and budget.exhausted():
                return
            index = next_index
            next_index += 1
            try:
                trial = remove_fn(artifact, target_ids(chunks[index]))
            except RepairAnomaly as e:
                logger.warning(f"Chunk {index + 1}/{len(chunks)} kept: repair anomaly: {e}")
                stats.repair_anomalies += 1
                skipped.add(index)
                continue
            if budget is not None:
                budget.record_trial()
            stats.trials += 1
            trials[index] = trial
            tasks[index] = asyncio.create_task(oracle.check(trial))

    try:
        for index in range(len(chunks)):
            launch()
            if index in skipped:
                continue
            if index not in tasks:
                # Nothing in flight for this chunk: the budget ran out.
                return None, True
            verdict = await tasks.pop(index)
            if verdict.infra_failure:
                stats.infra_failures += 1
                logger.warning(f"Oracle infrastructure failure: {verdict.reason}")
            if verdict.interesting:
                stats.interesting += 1
                return (index, trials[index]), False
            logger.debug(f"Chunk {index + 1}/{len(chunks)} not removable ({verdict.reason})")
        return None, False
    finally:
        for task in tasks.values():
            if not task.done():
                task.cancel()
                stats.cancelled += 1
        if tasks:
            await asyncio.gather(*tasks.values(), return_exceptions=True)


async def minimize(
    artifact: Artifact,
    targets: Sequence[Target],
    remove_fn: RemoveFn,
    oracle: Oracle,
    policy: Optional[ChunkPolicy] = None,
    jobs: int = 1,
    budget: Optional[TrialBudget] = None,
) -> BisectResult:
    """Shrink one target list with ddmin.

    Implements the chunk bisection:
    1. Partition the live targets into C chunks (C starts at 2)
    2. Try removing each chunk in order; the first interesting trial is committed
    3. After a commit, restart with the policy's chunk count
    4. If no chunk succeeds, double C up to N (singletons)
    5. If singletons all fail, the pass has converged

    Args:
        artifact: Current best artifact (already known to be interesting)
        targets: Targets enumerated by the pass, in order
        remove_fn: Builds a trial artifact without the given element ids
        oracle: Interestingness check
        policy: Chunk-count schedule (default: reset to 2 after success)
        jobs: Maximum concurrent trials per partition
        budget: Shared session budget; checked before each new trial

    Returns:
        BisectResult with the last committed artifact and remaining targets
    """
    if policy is None:
        policy = ChunkPolicy()
    if jobs < 1:
        raise ValueError("jobs must be at least 1")

    stats = TrialStats()
    current = artifact
    remaining = list(targets)
    chunk_count = policy.initial

    while remaining:
        chunk_count = min(chunk_count, len(remaining))
        chunks = partition(remaining, chunk_count)
        logger.debug(
            f"Trying {len(chunks)} chunks of {math.ceil(len(remaining) / chunk_count)} "
            f"over {len(remaining)} targets"
        )

        found, exhausted = await _first_interesting(
            current, chunks, remove_fn, oracle, jobs, budget, stats
        )
        if found is not None:
            index, trial = found
            current = trial
            remaining = [
                t for i, chunk in enumerate(chunks) if i != index
                for t in chunk
                if t.is_live(current)
            ]
            stats.commits += 1
            logger.info(
                f"Removed {len(chunks[index])} targets; {len(remaining)} left, size {current.size}"
            )
            chunk_count = policy.after_success(chunk_count)
            continue

        if exhausted:
            logger.info("Trial budget exhausted; stopping bisection")
            return BisectResult(current, remaining, stats, exhausted=True)

        if chunk_count >= len(remaining):
            break
        chunk_count = policy.after_failure(chunk_count, len(remaining))

    return BisectResult(current, remaining, stats)
