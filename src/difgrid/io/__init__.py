"""
Input/Output modules for codon alignments and phylogenetic trees.

- **Codon alignments**: FASTA and PHYLIP formats
- **Phylogenetic trees**: Newick format with tagged node names
"""

from difgrid.io.sequences import Alignment
from difgrid.io.trees import Tree, TreeNode

__all__ = ["Alignment", "Tree", "TreeNode"]
