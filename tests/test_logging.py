"""
tests/test_logging.py
=====================
Tests for the presentation functions in distree._logging.

The functions take computed values and only log, so each test calls one
directly and inspects the captured records.
"""

import logging
import os
import sys
import warnings

import numpy as np
import pytest

sys.path.insert(0, os.path.dirname(os.path.dirname(__file__)))

from distree._logging import (
    compute_memory_footprint,
    install_numba_warning_filter,
    log_backend_availability,
    log_index_statistics,
    log_midpoint_rooting,
    log_optimization_status,
    log_schedule,
    log_tree_statistics,
)
from distree._tree import Tree


@pytest.fixture
def info_records(caplog):
    caplog.set_level(logging.INFO, logger="distree")
    return caplog


def messages(caplog):
    return [r.getMessage() for r in caplog.records]


class TestSystemLogging:
    def test_optimization_status(self, info_records):
        log_optimization_status(True)
        text = "\n".join(messages(info_records))
        assert "CPU cores" in text
        assert "Numba" in text

    def test_optimization_status_without_numba(self, info_records):
        log_optimization_status(False)
        assert any("pure Python" in m for m in messages(info_records))

    def test_backend_availability(self, info_records):
        log_backend_availability(["python", "cpu-parallel"], True)
        msgs = messages(info_records)
        assert msgs[0] == "Available backends: python, cpu-parallel"
        assert msgs[-1] == "Default backend='best' will use: cpu-parallel"

    def test_numba_warning_routed_to_logger(self, caplog):
        from numba.core.errors import NumbaPerformanceWarning

        saved = warnings.showwarning
        try:
            install_numba_warning_filter(True)
            with caplog.at_level(logging.WARNING, logger="distree"):
                warnings.showwarning(
                    NumbaPerformanceWarning("slow"),
                    NumbaPerformanceWarning,
                    "kernel.py",
                    12,
                )
        finally:
            warnings.showwarning = saved
        msgs = messages(caplog)
        assert "Numba performance issue: slow" in msgs
        assert "  at kernel.py:12" in msgs

    def test_filter_noop_without_numba(self):
        saved = warnings.showwarning
        install_numba_warning_filter(False)
        assert warnings.showwarning is saved


class TestTreeLogging:
    def test_tree_statistics(self, info_records):
        log_tree_statistics(9, 4, 0, 1)
        msgs = messages(info_records)
        assert msgs[0] == "Parsed tree: 4 leaves, 9 nodes"
        assert any("1 unary node(s)" in m for m in msgs)
        assert not any("multifurcating" in m for m in msgs)

    def test_midpoint_split(self, info_records):
        log_midpoint_rooting("A", "B", 5.0, 7, True)
        msgs = messages(info_records)
        assert "'A'" in msgs[0] and "'B'" in msgs[0] and "5" in msgs[0]
        assert "new root node 7 inserted" in msgs[1]

    def test_midpoint_existing_node(self, info_records):
        log_midpoint_rooting("A", "D", 4.0, 0, False)
        assert "existing node 0" in messages(info_records)[1]

    def test_index_statistics(self, info_records):
        log_index_statistics(5, 9, 4, 2, 2048)
        msgs = messages(info_records)
        assert msgs[0] == (
            "LCA index built: nodes=5, tour=9, sparse_table=4x9, max_depth=2"
        )
        assert msgs[1] == "  Index memory footprint: 0.0 MB"

    def test_schedule(self, info_records):
        log_schedule("lmm", "python", 1, 16, 40)
        msgs = messages(info_records)
        assert msgs[0] == "Distance matrix (lmm): 40x40, backend='python', 1 worker(s)"
        assert msgs[1].startswith("  3 chunk(s) of up to 16 rows")


class TestMemoryFootprint:
    def test_sums_index_arrays(self):
        index = Tree("(A:1,(B:2,C:3):1);").lca_index()
        expected = sum(
            a.nbytes
            for a in (
                index.depth,
                index.root_distance,
                index.euler_tour,
                index.euler_depth,
                index.first_occurrence,
                index.sparse_table,
                index.log2_table,
            )
        )
        assert compute_memory_footprint(index) == expected
        assert expected > 0

    def test_one_byte_arrays(self):
        class Fake:
            depth = root_distance = euler_tour = np.zeros(1, dtype=np.int8)
            euler_depth = first_occurrence = sparse_table = np.zeros(1, dtype=np.int8)
            log2_table = np.zeros(1, dtype=np.int8)

        assert compute_memory_footprint(Fake()) == 7
