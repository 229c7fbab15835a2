"""External interestingness oracle.

Runs the user's test command against a rendered candidate with:
- A fresh temporary file per trial (safe for concurrent trials)
- Timeout enforcement (the process is killed and reaped)
- Exit code checking (0 means interesting)
"""

import asyncio
import logging
import os
import tempfile
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, List, Optional, Sequence

from ddreduce.core.errors import OracleInfraError
from ddreduce.core.schema.artifact import Artifact
from ddreduce.core.schema.oracle import Verdict

logger = logging.getLogger(__name__)

PATH_PLACEHOLDER = "{}"


@dataclass(frozen=True)
class ExitStatus:
    """Exit status of a finished oracle process."""
    returncode: int
    duration: float


def build_command(command: str, args: Sequence[str], candidate: str) -> List[str]:
    """Substitute the candidate path into the invocation.

    Every argument equal to "{}" is replaced by the path; when there is none,
    the path is appended as the last argument.
    """
    if PATH_PLACEHOLDER in args:
        return [command] + [candidate if a == PATH_PLACEHOLDER else a for a in args]
    return [command, *args, candidate]


async def spawn(
    command: str,
    args: Sequence[str],
    working_dir: Optional[str],
    timeout: float,
) -> ExitStatus:
    """Run one process to completion within ``timeout`` seconds.

    Output is discarded. On timeout or cancellation the process is killed and
    reaped before returning.

    Returns:
        ExitStatus of the process

    Raises:
        OracleInfraError: If the process cannot be started or times out
    """
    cmd = [command, *args]
    start_time = time.monotonic()

    try:
        process = await asyncio.create_subprocess_exec(
            *cmd,
            stdin=asyncio.subprocess.DEVNULL,
            stdout=asyncio.subprocess.DEVNULL,
            stderr=asyncio.subprocess.DEVNULL,
            cwd=working_dir,
        )
    except OSError as e:
        raise OracleInfraError(f"Cannot run {command}: {e}", command=cmd) from e

    try:
        returncode = await asyncio.wait_for(process.wait(), timeout=timeout)
    except asyncio.TimeoutError:
        await _kill(process)
        raise OracleInfraError(
            f"{command} timed out after {timeout}s", command=cmd, timed_out=True
        )
    except asyncio.CancelledError:
        await _kill(process)
        raise

    return ExitStatus(returncode=returncode, duration=time.monotonic() - start_time)


async def _kill(process: "asyncio.subprocess.Process") -> None:
    if process.returncode is None:
        try:
            process.kill()
        except ProcessLookupError:
            pass
    await process.wait()


class ExternalOracle:
    """Interestingness test backed by an external command.

    Each ``check`` writes the rendered candidate to a uniquely named file in
    ``work_dir``, runs ``command`` on it and maps the outcome to a Verdict:
    exit 0 is interesting, any other exit is not, and spawn failures,
    signals and timeouts are infrastructure failures.

    Example:
        >>> oracle = ExternalOracle(codec.render, "./crashes.sh", timeout=10)
        >>> verdict = await oracle.check(artifact)
        >>> verdict.interesting
        True
    """

    def __init__(
        self,
        render: Callable[[Artifact], bytes],
        command: str,
        args: Sequence[str] = (),
        timeout: float = 30.0,
        work_dir: Optional[str] = None,
        cwd: Optional[str] = None,
        suffix: str = "",
        prefix: str = "candidate-",
        keep_temps: bool = False,
    ):
        """
        Initialize the oracle.

        Args:
            render: Turns an artifact into the bytes the test reads
            command: Test executable
            args: Extra arguments ("{}" marks where the candidate path goes)
            timeout: Per-trial timeout in seconds
            work_dir: Directory for candidate files
                      (default: the system temporary directory)
            cwd: Working directory of the test process (default: inherited)
            suffix: Candidate file suffix, so tools that sniff extensions work
            prefix: Candidate file prefix
            keep_temps: Leave candidate files on disk after each trial
        """
        self.render = render
        self.command = command
        self.args = tuple(args)
        self.timeout = timeout
        self.work_dir = work_dir
        self.cwd = cwd
        self.suffix = suffix
        self.prefix = prefix
        self.keep_temps = keep_temps
        self.trials = 0

    def _write_candidate(self, artifact: Artifact) -> str:
        fd, path = tempfile.mkstemp(suffix=self.suffix, prefix=self.prefix, dir=self.work_dir)
        with os.fdopen(fd, "wb") as f:
            f.write(self.render(artifact))
        return path

    async def check(self, artifact: Artifact) -> Verdict:
        """Run the test on one candidate and return its verdict."""
        self.trials += 1
        start_time = time.monotonic()

        try:
            path = self._write_candidate(artifact)
        except OSError as e:
            return Verdict.infra(f"Cannot write candidate: {e}")

        try:
            status = await spawn(
                self.command,
                build_command(self.command, self.args, path)[1:],
                self.cwd,
                self.timeout,
            )
        except OracleInfraError as e:
            return Verdict.infra(str(e), duration=time.monotonic() - start_time)
        finally:
            if not self.keep_temps:
                Path(path).unlink(missing_ok=True)

        if status.returncode < 0:
            return Verdict.infra(
                f"{self.command} killed by signal {-status.returncode}",
                duration=status.duration,
            )

        interesting = status.returncode == 0
        logger.debug(
            f"Trial #{self.trials}: exit {status.returncode} in {status.duration:.2f}s"
        )
        return Verdict(
            interesting=interesting,
            exit_code=status.returncode,
            duration=status.duration,
            reason="interesting" if interesting else f"exit code {status.returncode}",
        )
