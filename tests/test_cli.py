"""
tests/test_cli.py
=================
Tests for the ``sprtrace`` command-line entry point.

The command writes into ``replay/`` under the working directory, so every
test changes into its own temporary directory first.
"""

import os
import shutil
import subprocess
import sys

import pytest

_HERE = os.path.dirname(__file__)
_ROOT = os.path.dirname(_HERE)
_TRACES_DIR = os.path.join(_HERE, "traces")

sys.path.insert(0, _ROOT)

from sprtrace.__main__ import main
from sprtrace._replay import DEFAULT_OUTPUT_DIR, ERROR_TREE_NAME

pytestmark = pytest.mark.replay


@pytest.fixture
def workdir(tmp_path, monkeypatch):
    """Temporary working directory holding copies of the reference traces."""
    for name in os.listdir(_TRACES_DIR):
        shutil.copy(os.path.join(_TRACES_DIR, name), str(tmp_path))
    monkeypatch.chdir(tmp_path)
    return tmp_path


def outputs(workdir) -> list:
    return sorted(os.listdir(os.path.join(str(workdir), DEFAULT_OUTPUT_DIR)))


class TestMain:
    def test_success(self, workdir):
        assert main(["example.trace"]) == 0
        assert outputs(workdir) == ["1.1.1", "x.1.1", "y.1.1"]

    def test_split_failure_keeps_earlier_files(self, workdir):
        assert main(["missing_split.trace"]) == 1
        assert outputs(workdir) == ["1.1.1", ERROR_TREE_NAME, "x.1.1", "y.1.1"]

    def test_unknown_tip_exit_status(self, workdir):
        assert main(["unknown_tip.trace"]) == 1
        assert "x.1.1" in outputs(workdir)

    def test_missing_trace_file(self, workdir):
        assert main(["no_such.trace"]) == 1

    def test_undecodable_trace_file(self, workdir):
        with open("binary.trace", "wb") as fh:
            fh.write(b"@tree (A,B,(C,D));\n\xff\xfe\x00\n")
        assert main(["binary.trace"]) == 1

    def test_no_arguments(self, workdir):
        with pytest.raises(SystemExit) as info:
            main([])
        assert info.value.code == 2

    def test_extra_flag_rejected(self, workdir):
        with pytest.raises(SystemExit) as info:
            main(["--verbose", "example.trace"])
        assert info.value.code == 2


class TestModuleInvocation:
    def test_python_dash_m(self, workdir):
        env = dict(os.environ)
        env["PYTHONPATH"] = os.pathsep.join(
            p for p in (_ROOT, env.get("PYTHONPATH", "")) if p
        )
        result = subprocess.run(
            [sys.executable, "-m", "sprtrace", "caterpillar.trace"],
            cwd=str(workdir),
            env=env,
            capture_output=True,
            text=True,
        )
        assert result.returncode == 0, result.stderr
        assert "Replay finished" in result.stderr
        assert len(outputs(workdir)) == 10

    def test_python_dash_m_failure(self, workdir):
        env = dict(os.environ)
        env["PYTHONPATH"] = os.pathsep.join(
            p for p in (_ROOT, env.get("PYTHONPATH", "")) if p
        )
        result = subprocess.run(
            [sys.executable, "-m", "sprtrace", "missing_split.trace"],
            cwd=str(workdir),
            env=env,
            capture_output=True,
            text=True,
        )
        assert result.returncode == 1
        assert "SplitNotFoundError" in result.stderr
        assert "trace line 4" in result.stderr
