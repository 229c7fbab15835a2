"""Unit tests for the external oracle.

Tests cover:
- Command building with the "{}" placeholder
- Exit code mapping (0 interesting, non-zero not interesting)
- Infrastructure failures: missing executable, timeout, signal
- Candidate file handling (unique files, cleanup, keep_temps)
"""

import os
import signal
import sys
import textwrap

import pytest

from ddreduce.core.errors import OracleInfraError
from ddreduce.core.oracle import ExternalOracle, build_command, spawn
from ddreduce.formats.lines import LinesCodec


def write_script(tmp_path, name: str, body: str) -> str:
    path = tmp_path / name
    path.write_text(textwrap.dedent(body))
    return str(path)


def lines(*texts: str):
    return LinesCodec().parse("".join(f"{t}\n" for t in texts).encode())


class TestBuildCommand:
    """Tests for build_command()."""

    def test_appends_path(self):
        assert build_command("check", ["-q"], "/tmp/c.txt") == ["check", "-q", "/tmp/c.txt"]

    def test_replaces_placeholder(self):
        result = build_command("check", ["--file", "{}", "-q"], "/tmp/c.txt")

        assert result == ["check", "--file", "/tmp/c.txt", "-q"]

    def test_replaces_every_placeholder(self):
        result = build_command("diff", ["{}", "{}"], "c")

        assert result == ["diff", "c", "c"]


class TestSpawn:
    """Tests for spawn()."""

    @pytest.mark.asyncio
    async def test_exit_status(self, tmp_path):
        script = write_script(tmp_path, "exit3.py", "import sys\nsys.exit(3)\n")

        status = await spawn(sys.executable, [script], None, timeout=10)

        assert status.returncode == 3
        assert status.duration >= 0

    @pytest.mark.asyncio
    async def test_missing_executable(self, tmp_path):
        with pytest.raises(OracleInfraError) as exc_info:
            await spawn(str(tmp_path / "does-not-exist"), [], None, timeout=10)
        assert not exc_info.value.timed_out

    @pytest.mark.asyncio
    async def test_timeout(self, tmp_path):
        script = write_script(tmp_path, "sleep.py", "import time\ntime.sleep(30)\n")

        with pytest.raises(OracleInfraError) as exc_info:
            await spawn(sys.executable, [script], None, timeout=0.5)
        assert exc_info.value.timed_out
        assert "timed out" in str(exc_info.value)


class TestExternalOracle:
    """Tests for ExternalOracle.check()."""

    @pytest.mark.asyncio
    async def test_interesting_on_exit_zero(self, tmp_path):
        script = write_script(tmp_path, "grep.py", """
            import sys
            with open(sys.argv[1]) as f:
                sys.exit(0 if "crash" in f.read() else 1)
        """)
        oracle = ExternalOracle(LinesCodec().render, sys.executable, [script], work_dir=str(tmp_path))

        interesting = await oracle.check(lines("a", "crash", "b"))
        boring = await oracle.check(lines("a", "b"))

        assert interesting.interesting
        assert interesting.exit_code == 0
        assert not interesting.infra_failure
        assert not boring.interesting
        assert boring.exit_code == 1
        assert not boring.infra_failure
        assert oracle.trials == 2

    @pytest.mark.asyncio
    async def test_placeholder_argument(self, tmp_path):
        script = write_script(tmp_path, "check.py", """
            import sys
            # argv: --input <path> --strict
            sys.exit(0 if sys.argv[1] == "--input" and sys.argv[3] == "--strict" else 1)
        """)
        oracle = ExternalOracle(
            LinesCodec().render, sys.executable, [script, "--input", "{}", "--strict"],
            work_dir=str(tmp_path),
        )

        verdict = await oracle.check(lines("x"))

        assert verdict.interesting

    @pytest.mark.asyncio
    async def test_candidate_has_suffix_and_is_removed(self, tmp_path):
        work_dir = tmp_path / "work"
        work_dir.mkdir()
        script = write_script(tmp_path, "suffix.py", """
            import sys
            sys.exit(0 if sys.argv[1].endswith(".ll") else 1)
        """)
        oracle = ExternalOracle(
            LinesCodec().render, sys.executable, [script], work_dir=str(work_dir), suffix=".ll"
        )

        verdict = await oracle.check(lines("x"))

        assert verdict.interesting
        assert list(work_dir.iterdir()) == []

    @pytest.mark.asyncio
    async def test_keep_temps(self, tmp_path):
        work_dir = tmp_path / "work"
        work_dir.mkdir()
        script = write_script(tmp_path, "ok.py", "import sys\nsys.exit(0)\n")
        oracle = ExternalOracle(
            LinesCodec().render, sys.executable, [script], work_dir=str(work_dir), keep_temps=True
        )

        await oracle.check(lines("kept"))

        kept = list(work_dir.iterdir())
        assert len(kept) == 1
        assert kept[0].read_text() == "kept\n"

    @pytest.mark.asyncio
    async def test_missing_executable_is_infra_failure(self, tmp_path):
        oracle = ExternalOracle(
            LinesCodec().render, str(tmp_path / "no-such-test"), work_dir=str(tmp_path)
        )

        verdict = await oracle.check(lines("x"))

        assert verdict.infra_failure
        assert not verdict.interesting
        assert verdict.exit_code is None

    @pytest.mark.asyncio
    async def test_timeout_is_infra_failure(self, tmp_path):
        script = write_script(tmp_path, "hang.py", "import time\ntime.sleep(30)\n")
        oracle = ExternalOracle(
            LinesCodec().render, sys.executable, [script], timeout=0.5, work_dir=str(tmp_path)
        )

        verdict = await oracle.check(lines("x"))

        assert verdict.infra_failure
        assert not verdict.interesting
        assert "timed out" in verdict.reason

    @pytest.mark.asyncio
    @pytest.mark.skipif(not hasattr(signal, "SIGKILL"), reason="POSIX signals required")
    async def test_signal_is_infra_failure(self, tmp_path):
        script = write_script(tmp_path, "die.py", """
            import os
            import signal
            os.kill(os.getpid(), signal.SIGKILL)
        """)
        oracle = ExternalOracle(LinesCodec().render, sys.executable, [script], work_dir=str(tmp_path))

        verdict = await oracle.check(lines("x"))

        assert verdict.infra_failure
        assert "signal" in verdict.reason

    @pytest.mark.asyncio
    async def test_cwd_is_used(self, tmp_path):
        run_dir = tmp_path / "run"
        run_dir.mkdir()
        (run_dir / "marker").write_text("")
        script = write_script(tmp_path, "cwd.py", """
            import os
            import sys
            sys.exit(0 if os.path.exists("marker") else 1)
        """)
        oracle = ExternalOracle(
            LinesCodec().render, sys.executable, [script],
            work_dir=str(tmp_path), cwd=str(run_dir),
        )

        verdict = await oracle.check(lines("x"))

        assert verdict.interesting
        assert os.listdir(run_dir) == ["marker"]
