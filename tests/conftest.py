"""
Pytest configuration and shared fixtures.
"""

import pytest
from typer.testing import CliRunner

from difgrid.core.likelihood import initialize_messages
from difgrid.io.sequences import Alignment
from difgrid.io.trees import Tree
from difgrid.models.codon import compute_f3x4, hky_nucleotide_matrix


SEQUENCE_NAMES = ["A", "B", "C", "D"]
SEQUENCES = [
    "ATGAAACCCGGGTTT---",
    "ATGAAGCCAGGGTTCACT",
    "ATAAAACCCGGATTTACT",
    "CTGAGACCGGGGNNNACC",
]

# Two tag groups, every internal branch tagged: no background
TWO_GROUP_NEWICK = "((A{G1}:0.1,B{G1}:0.2){G1}:0.05,(C{G2}:0.15,D{G2}:0.1){G2}:0.08);"
# One tag group, the (C,D) clade untagged: background present
BACKGROUND_NEWICK = "((A{G1}:0.1,B{G1}:0.2){G1}:0.05,(C:0.15,D:0.1):0.08);"
# Star tree with alternating tags: no pure subclades
STAR_NEWICK = "(A{G1}:0.1,B{G2}:0.2,C{G1}:0.15,D{G2}:0.1);"


@pytest.fixture
def two_tags():
    return ["{G1}", "{G2}"]


@pytest.fixture
def one_tag():
    return ["{G1}"]


@pytest.fixture
def alignment():
    """Small four-taxon codon alignment with a gap and an ambiguous codon."""
    return Alignment.from_sequences(SEQUENCE_NAMES, SEQUENCES)


@pytest.fixture
def f3x4(alignment):
    return compute_f3x4(alignment)


@pytest.fixture
def nuc_matrix():
    return hky_nucleotide_matrix(2.0)


@pytest.fixture
def make_tree(alignment, f3x4):
    """Factory: parse a Newick string and initialise its messages."""
    def _make(newick, tags):
        tree = Tree.from_newick(newick)
        tree.set_node_indices()
        initialize_messages(tree, alignment, f3x4, tags)
        return tree
    return _make


@pytest.fixture
def two_group_tree(make_tree, two_tags):
    return make_tree(TWO_GROUP_NEWICK, two_tags)


@pytest.fixture
def background_tree(make_tree, one_tag):
    return make_tree(BACKGROUND_NEWICK, one_tag)


@pytest.fixture
def star_tree(make_tree, two_tags):
    return make_tree(STAR_NEWICK, two_tags)


@pytest.fixture
def fasta_file(tmp_path):
    """Alignment written as FASTA."""
    path = tmp_path / "alignment.fasta"
    path.write_text(
        "".join(f">{name}\n{seq}\n" for name, seq in zip(SEQUENCE_NAMES, SEQUENCES))
    )
    return path


@pytest.fixture
def phylip_file(tmp_path):
    """Alignment written as PAML-style sequential PHYLIP."""
    path = tmp_path / "alignment.phy"
    lines = [f"{len(SEQUENCES)} {len(SEQUENCES[0])}"]
    for name, seq in zip(SEQUENCE_NAMES, SEQUENCES):
        lines.append(name)
        lines.append(seq)
    path.write_text("\n".join(lines) + "\n")
    return path


@pytest.fixture
def tree_file(tmp_path):
    """Two-group tagged tree written as Newick."""
    path = tmp_path / "tree.nwk"
    path.write_text(TWO_GROUP_NEWICK + "\n")
    return path


@pytest.fixture
def cli_runner():
    """CLI test runner for Typer apps."""
    return CliRunner()
