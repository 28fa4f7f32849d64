"""
tests/test_cli.py
=================
Tests for the ``distree`` command line (distree.cli.main) and the I/O
helpers in distree._utils.

main() is called in-process with an argv list; stdout is captured with
capsys and error messages with caplog.
"""

import logging
import os
import subprocess
import sys

import pytest

sys.path.insert(0, os.path.dirname(os.path.dirname(__file__)))

from distree import __version__
from distree._errors import ParseError
from distree._utils import open_sink, read_newick
from distree.cli import get_options, main


_TREES_DIR = os.path.join(os.path.dirname(__file__), "trees")
SCENARIO_PATH = os.path.join(_TREES_DIR, "scenario_3leaf.tree")

PATRISTIC_TSV = (
    "\tA\tB\tC\n"
    "A\t0.000\t4.000\t5.000\n"
    "B\t4.000\t0.000\t5.000\n"
    "C\t5.000\t5.000\t0.000\n"
)


# ======================================================================== #
# 1. Option parsing                                                         #
# ======================================================================== #


class TestOptions:
    def test_defaults(self):
        options = get_options(["tree.nwk"])
        assert options.phylogeny == "tree.nwk"
        assert options.format == "newick"
        assert not options.midpoint
        assert not options.lmm
        assert not options.topology
        assert options.output is None
        assert options.threads is None
        assert options.precision == 3
        assert options.backend == "best"

    def test_calc_c_alias(self):
        assert get_options(["t", "--calc-C"]).lmm

    @pytest.mark.parametrize(
        "argv",
        [
            ["t", "--threads", "0"],
            ["t", "-t", "x"],
            ["t", "--precision", "-1"],
            ["t", "--format", "nexus"],
            ["t", "--backend", "cuda"],
            ["t", "-v", "-q"],
            [],
        ],
    )
    def test_usage_errors_exit_2(self, argv, capsys):
        with pytest.raises(SystemExit) as excinfo:
            get_options(argv)
        assert excinfo.value.code == 2

    def test_version(self, capsys):
        with pytest.raises(SystemExit) as excinfo:
            get_options(["--version"])
        assert excinfo.value.code == 0
        assert capsys.readouterr().out.strip() == f"distree {__version__}"


# ======================================================================== #
# 2. main()                                                                 #
# ======================================================================== #


class TestMain:
    def test_patristic_to_stdout(self, capsys):
        assert main([SCENARIO_PATH]) == 0
        assert capsys.readouterr().out == PATRISTIC_TSV

    def test_topology(self, capsys):
        assert main([SCENARIO_PATH, "--topology"]) == 0
        lines = capsys.readouterr().out.splitlines()
        assert lines[1:] == ["A\t0\t3\t3", "B\t3\t0\t2", "C\t3\t2\t0"]

    def test_lmm_overrides_topology(self, capsys, caplog):
        with caplog.at_level(logging.WARNING):
            assert main([SCENARIO_PATH, "--lmm", "--topology"]) == 0
        lines = capsys.readouterr().out.splitlines()
        assert lines[1] == "A\t1.000\t0.000\t0.000"
        assert any("using --lmm" in r.getMessage() for r in caplog.records)

    def test_output_file(self, tmp_path, capsys):
        out = tmp_path / "matrix.tsv"
        assert main([SCENARIO_PATH, "-o", str(out), "-t", "2"]) == 0
        assert capsys.readouterr().out == ""
        with open(out, newline="") as fh:
            assert fh.read() == PATRISTIC_TSV

    def test_midpoint(self, capsys):
        assert main([SCENARIO_PATH, "--midpoint", "--calc-C"]) == 0
        lines = capsys.readouterr().out.splitlines()
        assert lines[1] == "A\t2.500\t0.500\t0.000"

    def test_precision_and_backend(self, capsys):
        assert main([SCENARIO_PATH, "--precision", "1", "--backend", "python"]) == 0
        assert capsys.readouterr().out.splitlines()[3] == "C\t5.0\t5.0\t0.0"

    def test_quiet(self, capsys):
        assert main([SCENARIO_PATH, "-q"]) == 0
        assert capsys.readouterr().out == PATRISTIC_TSV

    def test_missing_input(self, tmp_path, caplog):
        missing = str(tmp_path / "nope.tree")
        with caplog.at_level(logging.ERROR):
            assert main([missing]) == 1
        assert any(missing in r.getMessage() for r in caplog.records)

    def test_parse_error_leaves_no_output(self, tmp_path, caplog):
        bad = tmp_path / "bad.tree"
        bad.write_text("(A:1,(B:2,C:3):1;\n")
        out = tmp_path / "matrix.tsv"
        with caplog.at_level(logging.ERROR):
            assert main([str(bad), "-o", str(out)]) == 1
        assert not out.exists()
        assert any("at offset" in r.getMessage() for r in caplog.records)

    def test_invalid_utf8_input(self, tmp_path, caplog):
        bad = tmp_path / "latin1.tree"
        bad.write_bytes(b"(A:1,\xff:2);")
        out = tmp_path / "matrix.tsv"
        with caplog.at_level(logging.ERROR):
            assert main([str(bad), "-o", str(out)]) == 1
        assert not out.exists()
        msgs = [r.getMessage() for r in caplog.records]
        assert any(str(bad) in m and "at offset 5" in m for m in msgs)

    def test_unwritable_output(self, tmp_path, caplog):
        out = tmp_path / "no_such_dir" / "matrix.tsv"
        with caplog.at_level(logging.ERROR):
            assert main([SCENARIO_PATH, "-o", str(out)]) == 1
        assert any(str(out) in r.getMessage() for r in caplog.records)

    def test_module_entry_point(self):
        root = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
        result = subprocess.run(
            [sys.executable, "-m", "distree", SCENARIO_PATH, "--topology", "-q"],
            cwd=root,
            capture_output=True,
            text=True,
        )
        assert result.returncode == 0
        assert result.stdout.splitlines()[2] == "B\t3\t0\t2"


# ======================================================================== #
# 3. I/O helpers                                                            #
# ======================================================================== #


class TestUtils:
    def test_read_newick(self):
        assert read_newick(SCENARIO_PATH).strip() == "(A:1,(B:2,C:3):1);"

    def test_read_newick_missing(self, tmp_path):
        with pytest.raises(OSError):
            read_newick(tmp_path / "missing.tree")

    def test_read_newick_invalid_utf8(self, tmp_path):
        path = tmp_path / "bad.tree"
        path.write_bytes(b"(A:1,\xff:2);")
        with pytest.raises(ParseError) as excinfo:
            read_newick(path)
        assert excinfo.value.offset == 5
        assert "0xff" in excinfo.value.message

    @pytest.mark.parametrize("path", [None, "-"])
    def test_stdout_sink(self, path, capsys):
        with open_sink(path) as sink:
            assert sink is sys.stdout
            sink.write("x\n")
        assert capsys.readouterr().out == "x\n"

    def test_file_sink_closed_on_exit(self, tmp_path):
        path = tmp_path / "out.tsv"
        with open_sink(str(path)) as sink:
            sink.write("a\tb\n")
        assert sink.closed
        assert path.read_bytes() == b"a\tb\n"

    def test_file_sink_closed_on_error(self, tmp_path):
        path = tmp_path / "out.tsv"
        with pytest.raises(OSError):
            with open_sink(str(path)) as sink:
                sink.write("partial\n")
                raise OSError("disk full")
        assert sink.closed
        assert path.read_text() == "partial\n"
