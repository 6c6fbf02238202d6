"""
Unit tests for the pruning engine.
"""

import numpy as np
import pytest

from difgrid.core.likelihood import (
    CodonPartition,
    combine,
    felsenstein,
    initialize_messages,
    site_log_likelihoods,
    tree_site_log_likelihoods,
)
from difgrid.grid.branch_models import BranchModels
from difgrid.io.sequences import Alignment, CODON_TO_INDEX
from difgrid.io.trees import Tree
from difgrid.models.codon import MG94Model, codon_frequencies_from_f3x4


class TestInitializeMessages:
    """Test tip and root message setup."""

    def test_leaf_messages(self, two_group_tree, alignment):
        leaf_a = two_group_tree.node_list()[2]
        partials = leaf_a.message.partials

        assert leaf_a.name == "A{G1}"
        assert partials.shape == (6, 61)
        assert partials[0, CODON_TO_INDEX["ATG"]] == 1.0
        assert partials[0].sum() == 1.0
        # Gap: missing data
        np.testing.assert_array_equal(partials[5], 1.0)
        np.testing.assert_array_equal(leaf_a.message.log_scale, 0.0)

    def test_ambiguous_codon_is_missing(self, two_group_tree):
        leaf_d = two_group_tree.node_list()[6]
        np.testing.assert_array_equal(leaf_d.message.partials[4], 1.0)

    def test_root_prior(self, two_group_tree, f3x4):
        pi = codon_frequencies_from_f3x4(f3x4)
        prior = two_group_tree.root.parent_message.partials
        assert prior.shape == (6, 61)
        np.testing.assert_allclose(prior[3], pi)

    def test_missing_leaf_sequence(self, alignment, f3x4):
        tree = Tree.from_newick("((A,B),(C,E));")
        with pytest.raises(ValueError, match="E"):
            initialize_messages(tree, alignment, f3x4)


class TestFelsenstein:
    """Test the likelihood pass."""

    def test_two_taxon_likelihood(self, nuc_matrix):
        """Pruning agrees with the explicit sum over root states."""
        f3x4 = np.array([
            [0.2, 0.3, 0.3, 0.2],
            [0.25, 0.25, 0.25, 0.25],
            [0.1, 0.4, 0.2, 0.3],
        ])
        aln = Alignment.from_sequences(["x", "y"], ["ATGTTT", "ATATTC"])
        tree = Tree.from_newick("(x:0.1,y:0.3);")
        initialize_messages(tree, aln, f3x4)
        model = MG94Model(1.0, 0.4, nuc_matrix, f3x4)

        site_lls = tree_site_log_likelihoods(tree, BranchModels.uniform(model))

        P1 = model.transition_matrix(0.1)
        P2 = model.transition_matrix(0.3)
        expected = []
        for cx, cy in [("ATG", "ATA"), ("TTT", "TTC")]:
            a, b = CODON_TO_INDEX[cx], CODON_TO_INDEX[cy]
            expected.append(np.log(np.sum(model.pi * P1[:, a] * P2[:, b])))
        np.testing.assert_allclose(site_lls, expected, rtol=1e-10)

    def test_requires_detached_start(self, two_group_tree, nuc_matrix, f3x4):
        model = MG94Model(1.0, 0.5, nuc_matrix, f3x4)
        with pytest.raises(ValueError, match="has a parent"):
            felsenstein(two_group_tree.root.children[0], BranchModels.uniform(model))

    def test_childless_node_keeps_message(self, two_group_tree, nuc_matrix, f3x4):
        """A node with no children is treated as a tip."""
        model = BranchModels.uniform(MG94Model(1.0, 0.5, nuc_matrix, f3x4))
        inner = two_group_tree.root.children[0]
        felsenstein(two_group_tree.root, model)
        inner_message = inner.message

        children = inner.children
        inner.children = []
        try:
            felsenstein(two_group_tree.root, model)
        finally:
            inner.children = children
        assert inner.message is inner_message

    def test_rescaling_keeps_likelihood(self, two_group_tree, nuc_matrix, f3x4):
        """Scaling constants are carried into the site log-likelihoods."""
        model = BranchModels.uniform(MG94Model(1.0, 0.5, nuc_matrix, f3x4))
        site_lls = tree_site_log_likelihoods(two_group_tree, model)

        assert np.all(np.isfinite(site_lls))
        assert np.all(site_lls < 0)
        assert np.all(two_group_tree.root.message.partials.max(axis=1) <= 1.0 + 1e-12)


class TestCombine:

    def test_combine_does_not_mutate(self):
        msg = CodonPartition(np.full((2, 61), 0.5), np.array([1.0, 2.0]))
        prior = CodonPartition(np.full((2, 61), 1 / 61), np.zeros(2))
        combined = combine(msg, prior)

        np.testing.assert_array_equal(msg.partials, 0.5)
        np.testing.assert_array_equal(msg.log_scale, [1.0, 2.0])
        np.testing.assert_allclose(combined.partials, 0.5 / 61)

    def test_site_log_likelihoods_include_scale(self):
        partials = np.random.default_rng(1).uniform(0.1, 1.0, size=(3, 61))
        plain = CodonPartition(partials, np.zeros(3))
        scaled = CodonPartition(partials / 4.0, np.full(3, np.log(4.0)))

        np.testing.assert_allclose(
            site_log_likelihoods(scaled), site_log_likelihoods(plain), rtol=1e-12
        )

    def test_partition_copy(self):
        msg = CodonPartition.empty(3)
        clone = msg.copy()
        clone.partials[0, 0] = 0.0
        assert msg.partials[0, 0] == 1.0
        assert msg.sites == 3
        assert msg.states == 61
        assert msg.nbytes == 3 * 61 * 8 + 3 * 8
