"""Controller for file-level reductions.

This module provides the main entry point for reducing a file on disk:
- reduce_file: load input, run a session, write the result
"""

import logging
import shutil
import tempfile
from contextlib import contextmanager
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Iterator, Optional, Sequence, Tuple

from ddreduce.core.config import ReduceConfig
from ddreduce.core.errors import ParseError, RepairAnomaly, SetupError
from ddreduce.core.oracle import ExternalOracle
from ddreduce.core.passes import get_passes
from ddreduce.core.schema.artifact import Artifact
from ddreduce.core.schema.codec import ArtifactCodec
from ddreduce.core.schema.reduction_pass import ReductionPass
from ddreduce.core.session import PassReport, ReductionSession, SessionResult
from ddreduce.formats import get_codec

logger = logging.getLogger(__name__)

OUTPUT_SUFFIX = ".reduced"


@dataclass
class ReductionOutcome:
    """Result of ``reduce_file``.

    Attributes:
        input_path: File that was reduced
        output_path: File the result was written to (None if nothing was written)
        result: Session result
    """
    input_path: str
    output_path: Optional[str]
    result: SessionResult


def default_output_path(input_path: str) -> str:
    """Derive the output path from the input name: ``foo.yaml`` -> ``foo.reduced.yaml``."""
    path = Path(input_path)
    return str(path.with_name(f"{path.stem}{OUTPUT_SUFFIX}{path.suffix}"))


def resolve_output_path(input_path: str, config: ReduceConfig) -> str:
    if config.in_place:
        if config.output:
            logger.warning(f"--in-place given; ignoring output path {config.output}")
        return input_path
    return config.output or default_output_path(input_path)


def load_artifact(input_path: str, codec: ArtifactCodec) -> Tuple[Artifact, bytes]:
    """Read and parse the input file.

    Returns:
        The parsed artifact and the raw bytes it was parsed from

    Raises:
        SetupError: If the file cannot be read
        ParseError: If the codec rejects it or it has dangling references
    """
    path = Path(input_path)
    if not path.is_file():
        raise SetupError(f"Input file not found: {input_path}", path=input_path)
    try:
        data = path.read_bytes()
    except OSError as e:
        raise SetupError(f"Cannot read input {input_path}: {e}", path=input_path) from e

    try:
        artifact = codec.parse(data)
    except ParseError as e:
        e.path = input_path
        raise
    try:
        artifact.validate()
    except RepairAnomaly as e:
        raise ParseError(f"{input_path}: input artifact is broken: {e}", path=input_path) from e
    return artifact, data


def write_output(output_path: str, data: bytes) -> None:
    """Write the result.

    Raises:
        SetupError: If the file cannot be written
    """
    try:
        Path(output_path).write_bytes(data)
    except OSError as e:
        raise SetupError(f"Cannot write output {output_path}: {e}", path=output_path) from e


@contextmanager
def _work_dir(config: ReduceConfig) -> Iterator[str]:
    if config.work_dir:
        try:
            Path(config.work_dir).mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise SetupError(f"Cannot create work directory {config.work_dir}: {e}") from e
        yield config.work_dir
        return

    tmpdir = tempfile.mkdtemp(prefix="ddreduce-")
    try:
        yield tmpdir
    finally:
        if not config.keep_temps:
            shutil.rmtree(tmpdir, ignore_errors=True)
        else:
            logger.info(f"Candidate files kept in {tmpdir}")


async def reduce_file(
    input_path: str,
    config: ReduceConfig,
    codec: Optional[ArtifactCodec] = None,
    reporter: Optional[Callable[[PassReport], None]] = None,
    passes: Optional[Sequence[ReductionPass]] = None,
) -> ReductionOutcome:
    """Reduce a file on disk against the configured interestingness test.

    Orchestrates: parse input -> verify seed -> run passes to a fixpoint ->
    write output. Nothing is written if any step before the write fails.

    Args:
        input_path: File to reduce
        config: Run configuration
        codec: Artifact format (default: chosen from config.format / extension)
        reporter: Optional callback receiving every PassReport
        passes: Pass instances (default: config.passes from the registry)

    Returns:
        ReductionOutcome with the session result and output location

    Raises:
        SetupError: Unreadable/unparsable input, uninteresting seed, or
                    unwritable output
    """
    if codec is None:
        try:
            codec = get_codec(config.format, input_path)
        except ValueError as e:
            raise SetupError(str(e)) from e
    if passes is None:
        try:
            passes = get_passes(config.passes)
        except ValueError as e:
            raise SetupError(str(e)) from e

    artifact, original_bytes = load_artifact(input_path, codec)
    output_path = resolve_output_path(input_path, config)
    logger.info(f"Loaded {input_path} as {codec.name}: {artifact.size} elements")

    with _work_dir(config) as work_dir:
        source = Path(input_path)
        oracle = ExternalOracle(
            codec.render,
            config.test,
            config.test_args,
            timeout=config.timeout_seconds,
            work_dir=str(Path(work_dir).resolve()),
            suffix=source.suffix,
            prefix=f"{source.stem}-",
            keep_temps=config.keep_temps,
        )
        session = ReductionSession(config, oracle, passes, reporter=reporter)
        result = await session.run(artifact)

    if result.reduced:
        write_output(output_path, codec.render(result.artifact))
    elif config.in_place:
        logger.info("No reduction; input left untouched")
        return ReductionOutcome(input_path, None, result)
    else:
        write_output(output_path, original_bytes)

    logger.info(f"Wrote {output_path}")
    return ReductionOutcome(input_path, output_path, result)
