"""Pytest fixtures and test helper functions"""
import gzip
import os
import stat
import sys
import textwrap

import pytest

from seqbatch.pipeline import config_utils


def write_fastq(fname, num_reads=4, seq="ACGTACGTAC"):
    """Write a small gzipped fastq file with `num_reads` records."""
    os.makedirs(os.path.dirname(fname), exist_ok=True)
    with gzip.open(fname, "wt") as out_handle:
        for i in range(num_reads):
            out_handle.write("@read%s\n%s\n+\n%s\n" % (i, seq, "I" * len(seq)))
    return fname


@pytest.fixture
def project_dir(tmp_path, monkeypatch):
    """Empty project directory, used as the working directory for the test"""
    monkeypatch.chdir(tmp_path)
    return str(tmp_path)


@pytest.fixture
def config(project_dir):
    return config_utils.load_config(project_dir=project_dir)


@pytest.fixture
def fake_tool(tmp_path):
    """Factory for executables standing in for external tools.

    The body is Python source run by the current interpreter, so stages can
    be exercised without installed bioinformatics programs.
    """
    bin_dir = tmp_path / "bin"
    bin_dir.mkdir(exist_ok=True)

    def _make(name, body):
        path = bin_dir / name
        path.write_text("#!%s\n%s" % (sys.executable, textwrap.dedent(body)))
        path.chmod(path.stat().st_mode | stat.S_IXUSR | stat.S_IXGRP | stat.S_IXOTH)
        return str(path)
    return _make


@pytest.fixture
def fastq():
    return write_fastq
