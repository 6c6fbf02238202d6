"""
Unit tests for tag resolution.
"""

import pytest

from difgrid.io.trees import Tree
from difgrid.tags import TagResolutionError, model_ind, node_tag_index, strip_tags


class TestModelInd:
    """Test resolving node names to tag groups."""

    def test_single_match(self):
        assert model_ind("Hsa_Human{G1}", ["{G1}", "{G2}"]) == 1
        assert model_ind("Mmu_rhesus{G2}", ["{G1}", "{G2}"]) == 2

    def test_background(self):
        """Names without any tag fall in group len(tags) + 1."""
        assert model_ind("Pne_langur", ["{G1}", "{G2}"]) == 3
        assert model_ind("", ["{G1}"]) == 2

    def test_last_match_wins(self):
        assert model_ind("X{G1}{G2}", ["{G1}", "{G2}"]) == 2
        assert model_ind("X{G2}{G1}", ["{G1}", "{G2}"]) == 2

    def test_no_tags(self):
        assert model_ind("anything", []) == 1

    def test_none_name_raises(self):
        with pytest.raises(TagResolutionError):
            model_ind(None, ["{G1}"])

    def test_error_is_value_error(self):
        assert issubclass(TagResolutionError, ValueError)


class TestNodeTagIndex:
    """Test resolving tree nodes to tag groups."""

    def test_internal_and_leaf_nodes(self):
        tree = Tree.from_newick("((A{G1},B{G1}){G1},C);")
        tags = ["{G1}"]
        resolved = [node_tag_index(n, tags) for n in tree.root.preorder()]
        assert resolved == [2, 1, 1, 1, 2]

    def test_paml_label_counts_as_tag(self):
        tree = Tree.from_newick("((A,B) #1,C);")
        assert node_tag_index(tree.root.children[0], ["#1"]) == 1
        assert node_tag_index(tree.root.children[1], ["#1"]) == 2

    def test_unnamed_leaf_reports_index(self):
        tree = Tree.from_newick("((A,),B);")
        unnamed = tree.root.children[0].children[1]
        with pytest.raises(TagResolutionError, match=f"node index {unnamed.index}"):
            node_tag_index(unnamed, ["{G1}"])


class TestStripTags:

    def test_strip(self):
        assert strip_tags("Hsa_Human{G1}", ["{G1}", "{G2}"]) == "Hsa_Human"
        assert strip_tags("Hsa_Human", ["{G1}"]) == "Hsa_Human"
        assert strip_tags("{G2}", ["{G1}", "{G2}"]) == ""
