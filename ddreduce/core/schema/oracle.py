"""Oracle protocol and verdict model for interestingness checks."""

from dataclasses import dataclass
from typing import Optional, Protocol

from ddreduce.core.schema.artifact import Artifact


@dataclass(frozen=True)
class Verdict:
    """Judgment of one trial artifact.

    Attributes:
        interesting: True if the candidate still reproduces the condition
        infra_failure: True if the oracle could not be run to a verdict
                       (spawn failure, signal, timeout); ``interesting`` is
                       then always False
        exit_code: Exit status of the oracle process, if it exited
        duration: Wall-clock seconds spent on the trial
        reason: Short human-readable explanation
    """
    interesting: bool
    infra_failure: bool = False
    exit_code: Optional[int] = None
    duration: float = 0.0
    reason: str = ""

    @classmethod
    def infra(cls, reason: str, duration: float = 0.0) -> "Verdict":
        return cls(interesting=False, infra_failure=True, duration=duration, reason=reason)


class Oracle(Protocol):
    """Interestingness check interface.

    An oracle judges whether a candidate artifact still triggers the condition
    being reduced. The production implementation runs an external command
    (``ddreduce.core.oracle.ExternalOracle``); tests plug in-process callables.

    Example:
        class ContainsCrash:
            async def check(self, artifact: Artifact) -> Verdict:
                return Verdict(interesting=artifact.by_name("crash") is not None)
    """

    async def check(self, artifact: Artifact) -> Verdict:
        """Judge one candidate.

        Must not raise for per-trial infrastructure problems; report them with
        ``Verdict.infra`` instead.
        """
        ...
