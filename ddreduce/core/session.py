"""Session driver: sequences reduction passes over rounds to a fixpoint.

The driver owns the only authoritative state of a run (the best artifact so
far, the round counter and the size history). Bisection runs trials against
immutable snapshots; only the driver commits their results.
"""

import logging
from dataclasses import dataclass, field
from typing import Callable, List, Optional, Sequence

from ddreduce.core.config import ReduceConfig
from ddreduce.core.delta.bisector import ChunkPolicy, TrialBudget, TrialStats, minimize
from ddreduce.core.errors import SetupError
from ddreduce.core.schema.artifact import Artifact
from ddreduce.core.schema.oracle import Oracle
from ddreduce.core.schema.reduction_pass import ReductionPass

logger = logging.getLogger(__name__)


@dataclass
class PassReport:
    """Progress of one pass in one round.

    Attributes:
        round: 1-based round number
        pass_name: Name of the pass
        targets_before: Targets enumerated at the start of the pass
        targets_after: Targets still present when the pass converged
        size_before: Artifact size before the pass
        size_after: Artifact size after the pass
        stats: Trial counters of the pass
        skipped: True if the pass had nothing to try
    """
    round: int
    pass_name: str
    targets_before: int
    targets_after: int
    size_before: int
    size_after: int
    stats: TrialStats = field(default_factory=TrialStats)
    skipped: bool = False

    @property
    def size_delta(self) -> int:
        return self.size_after - self.size_before

    def summary(self) -> str:
        if self.skipped:
            return f"round {self.round} {self.pass_name}: no targets, skipped"
        text = (
            f"round {self.round} {self.pass_name}: targets {self.targets_before} -> "
            f"{self.targets_after}, size {self.size_before} -> {self.size_after} "
            f"({self.size_delta:+d}), {self.stats.trials} trials"
        )
        if self.stats.infra_failures:
            text += f", {self.stats.infra_failures} oracle failures"
        return text


@dataclass
class SessionResult:
    """Outcome of a reduction session.

    Attributes:
        original: The seed artifact
        artifact: Best artifact found (always oracle-confirmed interesting)
        converged: True if a full round removed nothing; False if a budget or
                   the round limit stopped the session first
        rounds: Rounds run
        size_history: Artifact size at session start and after every round
        reports: Per-pass progress reports, in execution order
        stats: Trial counters summed over the whole session
        stop_reason: "converged", "budget" or "max_rounds"
    """
    original: Artifact
    artifact: Artifact
    converged: bool
    rounds: int
    size_history: List[int]
    reports: List[PassReport]
    stats: TrialStats
    stop_reason: str

    @property
    def reduced(self) -> bool:
        return self.artifact.size < self.original.size

    @property
    def reduction_percent(self) -> float:
        if self.original.size == 0:
            return 0.0
        return 100.0 * (self.original.size - self.artifact.size) / self.original.size


class ReductionSession:
    """Runs passes round after round until no pass shrinks the artifact.

    State machine:
        Start -> seed check (SetupError if not interesting)
              -> RunningRound (each pass once, in declared order)
              -> RunningRound again while the round shrank the artifact
              -> Converged

    Example:
        >>> session = ReductionSession(config, oracle, get_passes())
        >>> result = await session.run(artifact)
        >>> result.artifact.size <= artifact.size
        True
    """

    def __init__(
        self,
        config: ReduceConfig,
        oracle: Oracle,
        passes: Sequence[ReductionPass],
        reporter: Optional[Callable[[PassReport], None]] = None,
    ):
        self.config = config
        self.oracle = oracle
        self.passes = list(passes)
        self.reporter = reporter
        self.policy = ChunkPolicy(name=config.chunk_policy)  # type: ignore[arg-type]
        self.budget = TrialBudget(max_trials=config.max_trials, max_seconds=config.max_seconds)

    async def verify_seed(self, artifact: Artifact) -> None:
        """Check once that the original input is interesting.

        Raises:
            SetupError: If the oracle rejects the seed or cannot be run on it
        """
        verdict = await self.oracle.check(artifact)
        if verdict.infra_failure:
            raise SetupError(f"Interestingness test could not be run on the input: {verdict.reason}")
        if not verdict.interesting:
            raise SetupError(
                f"Input is not interesting ({verdict.reason}); nothing to reduce"
            )
        logger.info(f"Input is interesting ({artifact.size} elements)")

    def _report(self, report: PassReport) -> None:
        logger.info(report.summary())
        if self.reporter is not None:
            self.reporter(report)

    async def run(self, artifact: Artifact) -> SessionResult:
        """Reduce ``artifact`` to a fixpoint (or until a budget runs out).

        Raises:
            SetupError: If the seed is not interesting
        """
        await self.verify_seed(artifact)

        best = artifact
        totals = TrialStats()
        reports: List[PassReport] = []
        size_history = [best.size]
        rounds = 0
        stop_reason = "converged"

        while True:
            if self.config.max_rounds is not None and rounds >= self.config.max_rounds:
                stop_reason = "max_rounds"
                break
            rounds += 1
            round_start = best.size
            logger.info(f"=== Round {rounds} (size {round_start}) ===")

            exhausted = False
            for reduction_pass in self.passes:
                targets = reduction_pass.enumerate(best)
                if not targets:
                    report = PassReport(rounds, reduction_pass.name, 0, 0, best.size, best.size, skipped=True)
                    reports.append(report)
                    self._report(report)
                    continue

                size_before = best.size
                result = await minimize(
                    best,
                    targets,
                    reduction_pass.apply_removal,
                    self.oracle,
                    policy=self.policy,
                    jobs=self.config.jobs,
                    budget=self.budget,
                )
                # Only the driver commits; every committed trial tested interesting.
                best = result.artifact
                totals.merge(result.stats)

                report = PassReport(
                    round=rounds,
                    pass_name=reduction_pass.name,
                    targets_before=len(targets),
                    targets_after=len(result.targets),
                    size_before=size_before,
                    size_after=best.size,
                    stats=result.stats,
                )
                reports.append(report)
                self._report(report)

                if result.exhausted:
                    exhausted = True
                    break

            size_history.append(best.size)
            if exhausted:
                stop_reason = "budget"
                break
            if best.size >= round_start:
                break

        converged = stop_reason == "converged"
        if converged:
            logger.info(f"Converged after {rounds} rounds at size {best.size}")
        else:
            logger.warning(f"Stopped before convergence ({stop_reason}) at size {best.size}")
        if totals.infra_failures:
            logger.warning(f"{totals.infra_failures} trials failed to run the oracle")

        return SessionResult(
            original=artifact,
            artifact=best,
            converged=converged,
            rounds=rounds,
            size_history=size_history,
            reports=reports,
            stats=totals,
            stop_reason=stop_reason,
        )
