"""Run command implementation."""

import sys
from pathlib import Path
from typing import List, Optional

from difgrid.api import _load_alignment, run_grid
from difgrid.io.trees import Tree


def run_grid_command(
    alignment: Path,
    tree: Path,
    tags: List[str],
    strategy: str,
    foreground_grid: int,
    background_grid: int,
    kappa: float,
    workers: Optional[int],
    output: Optional[Path],
    verbose: bool,
    quiet: bool,
):
    """Load data, compute the grid and report it."""
    try:
        aln = _load_alignment(alignment)
    except (OSError, ValueError) as e:
        print(f"Error: Could not load alignment from {alignment}", file=sys.stderr)
        print(f"Details: {e}", file=sys.stderr)
        sys.exit(1)

    try:
        with open(tree, 'r') as f:
            tree_str = f.read().strip()
        tree_obj = Tree.from_newick(tree_str)
    except (OSError, ValueError) as e:
        print(f"Error: Could not load tree from {tree}", file=sys.stderr)
        print(f"Details: {e}", file=sys.stderr)
        sys.exit(1)

    if not quiet:
        print("difgrid conditional likelihood grid", file=sys.stderr)
        print("=" * 80, file=sys.stderr)
        print(f"Alignment: {alignment}", file=sys.stderr)
        print(f"Tree:      {tree}", file=sys.stderr)
        print(f"Tags:      {', '.join(tags)}", file=sys.stderr)
        print(f"Strategy:  {strategy}", file=sys.stderr)
        print(file=sys.stderr)

    try:
        result = run_grid(
            aln,
            tree_obj,
            tags,
            kappa=kappa,
            strategy=strategy,
            foreground_grid=foreground_grid,
            background_grid=background_grid,
            verbosity=1 if verbose else 0,
            n_workers=workers,
        )
    except ValueError as e:
        print("Error: Grid computation failed", file=sys.stderr)
        print(f"Details: {e}", file=sys.stderr)
        sys.exit(1)

    if output:
        result.save(output)
        if not quiet:
            print(f"\nGrid written to {output}", file=sys.stderr)
    else:
        print(result.summary())
