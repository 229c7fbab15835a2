"""ddreduce CLI - command-line interface for test-case reduction.

This module provides the main CLI entrypoint, allowing users to reduce an
input file against an interestingness test from the command line.
"""

import argparse
import asyncio
import logging
import sys
from typing import List, Optional

from ddreduce import __version__
from ddreduce.core.config import DEFAULT_CONFIG_PATH, build_config, load_config
from ddreduce.core.controller import reduce_file
from ddreduce.core.delta.bisector import CHUNK_POLICIES
from ddreduce.core.errors import SetupError
from ddreduce.core.passes import PASSES
from ddreduce.core.session import PassReport
from ddreduce.formats import CODECS

logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="ddreduce",
        description="ddreduce - automatic test-case reducer",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Reduce a module while ./crashes.sh keeps exiting with 0
  ddreduce module.yaml --test ./crashes.sh

  # Pass extra arguments; {} marks where the candidate path goes
  ddreduce module.yaml --test python3 --test-arg check.py --test-arg {}

  # Write to a chosen file, four trials at a time, 10s per trial
  ddreduce module.yaml --test ./crashes.sh -o small.yaml -j 4 --timeout 10

  # Overwrite the input with the reduced version
  ddreduce input.txt --test ./crashes.sh --in-place

Note:
  Defaults can be set in ddreduce.json, e.g.
  {"oracle": {"timeout_seconds": 10, "jobs": 4}, "session": {"max_trials": 500}}
"""
    )
    parser.add_argument(
        "input",
        help="Path to the file to reduce"
    )
    parser.add_argument(
        "--test",
        required=True,
        help="Interestingness test; exit code 0 means the candidate is interesting"
    )
    parser.add_argument(
        "--test-arg",
        action="append",
        default=[],
        dest="test_args",
        help="Argument passed to the test (repeatable; {} is replaced by the candidate path)"
    )
    parser.add_argument(
        "-o", "--output",
        help="Output file (default: <input stem>.reduced<suffix>)"
    )
    parser.add_argument(
        "--in-place",
        action="store_true",
        help="WARNING: replace the input file with the reduced version (wins over --output)"
    )
    parser.add_argument(
        "--format",
        choices=["auto", *CODECS.keys()],
        default=None,
        help="Input format (default: auto, by file extension)"
    )
    parser.add_argument(
        "--timeout",
        type=float,
        default=None,
        help="Per-trial timeout in seconds (default: from config or 30.0)"
    )
    parser.add_argument(
        "-j", "--jobs",
        type=int,
        default=None,
        help="Concurrent trials per partition (default: from config or 1)"
    )
    parser.add_argument(
        "--max-trials",
        type=int,
        default=None,
        help="Stop issuing trials after this many (default: unlimited)"
    )
    parser.add_argument(
        "--max-seconds",
        type=float,
        default=None,
        help="Stop issuing trials after this many seconds (default: unlimited)"
    )
    parser.add_argument(
        "--max-rounds",
        type=int,
        default=None,
        help="Maximum rounds over all passes (default: run to a fixpoint)"
    )
    parser.add_argument(
        "--chunk-policy",
        choices=CHUNK_POLICIES,
        default=None,
        help="Chunk count after a successful removal: reset to 2, or keep shrinking (default: reset)"
    )
    parser.add_argument(
        "--passes",
        default=None,
        help=f"Comma-separated passes to run (available: {', '.join(PASSES.keys())})"
    )
    parser.add_argument(
        "--work-dir",
        default=None,
        help="Directory for candidate files (default: a fresh temporary directory)"
    )
    parser.add_argument(
        "--keep-temps",
        action="store_true",
        help="Keep candidate files after each trial"
    )
    parser.add_argument(
        "--config",
        default=DEFAULT_CONFIG_PATH,
        help=f"Path to JSON config file (default: {DEFAULT_CONFIG_PATH})"
    )
    parser.add_argument(
        "-v", "--verbose",
        action="store_true",
        help="Verbose output"
    )
    parser.add_argument(
        "--version",
        action="version",
        version=f"%(prog)s {__version__}"
    )
    return parser


def print_report(report: PassReport) -> None:
    print(f"  {report.summary()}")


def main(argv: Optional[List[str]] = None) -> int:
    """Main CLI entrypoint for ddreduce."""
    parser = build_parser()
    args = parser.parse_args(argv)

    # Setup logging
    if args.verbose:
        logging.basicConfig(level=logging.INFO, format='%(levelname)s: %(message)s')
    else:
        logging.basicConfig(level=logging.WARNING, format='%(levelname)s: %(message)s')

    return cmd_reduce(args)


def cmd_reduce(args: argparse.Namespace) -> int:
    """Handle a reduction run."""
    try:
        config = build_config(
            test=args.test,
            test_args=args.test_args,
            overrides={
                "timeout_seconds": args.timeout,
                "jobs": args.jobs,
                "max_trials": args.max_trials,
                "max_seconds": args.max_seconds,
                "max_rounds": args.max_rounds,
                "chunk_policy": args.chunk_policy,
                "passes": args.passes,
                "work_dir": args.work_dir,
                "keep_temps": args.keep_temps,
                "output": args.output,
                "in_place": args.in_place,
                "format": args.format,
            },
            config=load_config(args.config),
        )
    except ValueError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    print(f"Reducing: {args.input}")

    try:
        outcome = asyncio.run(reduce_file(args.input, config, reporter=print_report))
    except SetupError as e:
        print(f"Error: {e}", file=sys.stderr)
        logger.debug("Reduction aborted", exc_info=True)
        return 1

    result = outcome.result
    print(f"\nRounds: {result.rounds}")
    print(f"Trials: {result.stats.trials}")
    if not result.converged:
        print(f"Stopped early ({result.stop_reason}); reporting best result so far")
    if result.stats.infra_failures:
        print(
            f"⚠ {result.stats.infra_failures} trials could not run the test "
            f"(timeouts or spawn failures); treated as not interesting"
        )

    if result.reduced:
        print(
            f"\n✅ Done reducing! Reduced to {result.artifact.size} elements "
            f"({result.reduction_percent:.1f}% smaller)"
        )
        print(f"   Wrote reduced file to: {outcome.output_path}")
    else:
        print("\nNo reduction possible: output equals input")
        if outcome.output_path:
            print(f"   Wrote unreduced file to: {outcome.output_path}")
    return 0


if __name__ == "__main__":
    sys.exit(main())
