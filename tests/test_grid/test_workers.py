"""
Tests for static partitioning and the worker join.
"""

import threading

import pytest

from difgrid.grid.workers import make_replicas, partition, run_chunks
from difgrid.io.trees import Tree


class TestPartition:

    def test_near_equal_contiguous_chunks(self):
        assert partition([1, 2, 3, 4, 5], 2) == [[1, 2, 3], [4, 5]]
        assert partition(list(range(8)), 4) == [[0, 1], [2, 3], [4, 5], [6, 7]]

    def test_last_chunk_smaller(self):
        chunks = partition(list(range(10)), 3)
        assert [len(c) for c in chunks] == [4, 4, 2]

    def test_more_chunks_than_items(self):
        assert partition([1, 2], 5) == [[1], [2]]

    def test_empty(self):
        assert partition([], 3) == []

    def test_preserves_order(self):
        items = list(enumerate("abcdefg"))
        chunks = partition(items, 3)
        assert [x for chunk in chunks for x in chunk] == items

    def test_invalid(self):
        with pytest.raises(ValueError):
            partition([1, 2], 0)


class TestReplicas:

    def test_first_is_canonical(self):
        tree = Tree.from_newick("((A,B),C);")
        replicas = make_replicas(tree, 3)

        assert len(replicas) == 3
        assert replicas[0] is tree
        assert replicas[1] is not replicas[2]
        assert all(r.structure() == tree.structure() for r in replicas)


class TestRunChunks:

    def test_results_in_submission_order(self):
        results = run_chunks(lambda x, y: x * y, [(1, 2), (3, 4), (5, 6)])
        assert results == [2, 12, 30]

    def test_runs_in_threads(self):
        seen = set()
        lock = threading.Lock()

        def work(i):
            with lock:
                seen.add(threading.get_ident())
            return i

        assert run_chunks(work, [(i,) for i in range(4)]) == [0, 1, 2, 3]
        assert seen

    def test_worker_failure_propagates(self):
        finished = []

        def work(i):
            if i == 1:
                raise RuntimeError("worker 1 failed")
            finished.append(i)
            return i

        with pytest.raises(RuntimeError, match="worker 1 failed"):
            run_chunks(work, [(i,) for i in range(4)])
        # The other workers still ran to completion before the error surfaced
        assert sorted(finished) == [0, 2, 3]
