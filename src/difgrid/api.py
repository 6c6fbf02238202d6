"""
High-level API for difgrid conditional likelihood grids.

This module wires the grid builder, the subclade cache and the evaluation
strategies together, and wraps the output in a single result object.
"""

from dataclasses import asdict, dataclass
from enum import Enum
from pathlib import Path
from typing import Any, Dict, List, Optional, Union
import json
import warnings

import numpy as np

from .core.likelihood import initialize_messages
from .grid.builder import prepare_grid
from .grid.evaluator import (
    PhaseStats,
    evaluate_direct,
    evaluate_memoized,
    evaluate_memoized_parallel,
    evaluate_parallel,
)
from .grid.normalize import normalize_log_likelihoods
from .grid.workers import default_n_workers
from .io.sequences import Alignment
from .io.trees import Tree
from .models.codon import compute_f3x4, hky_nucleotide_matrix


class GridStrategy(str, Enum):
    """Grid evaluation strategies."""
    direct = "direct"
    parallel = "parallel"
    memoized = "memoized"
    memoized_parallel = "memoized-parallel"


_EVALUATORS = {
    GridStrategy.direct: evaluate_direct,
    GridStrategy.parallel: evaluate_parallel,
    GridStrategy.memoized: evaluate_memoized,
    GridStrategy.memoized_parallel: evaluate_memoized_parallel,
}
_PARALLEL = {GridStrategy.parallel, GridStrategy.memoized_parallel}


@dataclass
class GridResult:
    """
    Conditional likelihood grid and everything needed to interpret it.

    Row ``i`` of both matrices corresponds to ``codon_param_vec[i]``, whose
    entries are labelled by ``param_kinds``.

    Attributes
    ----------
    con_lik_matrix : np.ndarray, shape (n_grid_points, num_sites)
        Likelihoods rescaled per site so each column's maximum is 1
    log_con_lik_matrix : np.ndarray, shape (n_grid_points, num_sites)
        Raw per-site log-likelihoods
    codon_param_vec : list[list[float]]
        ``[alpha, omega_1, ..., omega_G(, omega_background)]`` per row
    alpha_grid, omega_grid, background_omega_grid : np.ndarray
        Axes of the grid
    param_kinds : list[str]
        Labels of the parameter vector entries
    tags : list[str]
        Tag strings in group order
    is_background : bool
        Whether a background omega axis is present
    stats : PhaseStats
        Timing and cache statistics of the evaluation

    Examples
    --------
    >>> from difgrid import run_grid
    >>> result = run_grid("alignment.fasta", "tree.nwk", ["{G1}", "{G2}"])
    >>> print(result.summary())
    >>> result.save("grid.npz")
    """

    con_lik_matrix: np.ndarray
    log_con_lik_matrix: np.ndarray
    codon_param_vec: List[List[float]]
    alpha_grid: np.ndarray
    omega_grid: np.ndarray
    background_omega_grid: np.ndarray
    param_kinds: List[str]
    tags: List[str]
    is_background: bool
    stats: PhaseStats

    @property
    def n_grid_points(self) -> int:
        return self.log_con_lik_matrix.shape[0]

    @property
    def num_sites(self) -> int:
        return self.log_con_lik_matrix.shape[1]

    @property
    def num_groups(self) -> int:
        return len(self.tags)

    def parameters(self, row: int) -> Dict[str, float]:
        """Parameter values of one grid row, keyed by parameter kind."""
        return dict(zip(self.param_kinds, self.codon_param_vec[row]))

    def summary(self) -> str:
        """
        Generate human-readable summary of the grid evaluation.

        Returns
        -------
        str
            Formatted multi-line summary
        """
        lines = []
        lines.append("=" * 70)
        lines.append("DIFGRID CONDITIONAL LIKELIHOOD GRID")
        lines.append("=" * 70)
        lines.append("")
        lines.append(f"Grid points:          {self.n_grid_points}")
        lines.append(f"Sites:                {self.num_sites}")
        lines.append(f"Tag groups:           {self.num_groups} ({', '.join(self.tags)})")
        lines.append(f"Background branches:  {'yes' if self.is_background else 'no'}")
        lines.append("")
        lines.append("AXES:")
        lines.append(f"  alpha            {_format_axis(self.alpha_grid)}")
        lines.append(f"  omega            {_format_axis(self.omega_grid)}")
        if self.is_background:
            lines.append(f"  omega background {_format_axis(self.background_omega_grid)}")
        lines.append(f"  parameters       {', '.join(self.param_kinds)}")
        lines.append("")
        lines.append("EVALUATION:")
        lines.append(f"  strategy = {self.stats.strategy}")
        lines.append(f"  workers = {self.stats.n_workers}")
        if self.stats.n_subclades:
            lines.append(f"  pure subclades = {self.stats.n_subclades}")
            lines.append(
                f"  cached messages = {self.stats.n_cached_messages} "
                f"({self.stats.cache_nbytes / 1024 ** 2:.2f} MB, "
                f"{self.stats.cache_seconds:.2f}s)"
            )
        lines.append(f"  grid time = {self.stats.grid_seconds:.2f}s")
        lines.append("")
        lines.append("=" * 70)

        return "\n".join(lines)

    def to_dict(self) -> Dict[str, Any]:
        """
        Export grid metadata as a dictionary.

        The matrices are left out to keep the dictionary JSON-serializable;
        use :meth:`save` to store them.
        """
        return {
            'n_grid_points': int(self.n_grid_points),
            'num_sites': int(self.num_sites),
            'tags': list(self.tags),
            'is_background': bool(self.is_background),
            'param_kinds': list(self.param_kinds),
            'alpha_grid': self.alpha_grid.tolist(),
            'omega_grid': self.omega_grid.tolist(),
            'background_omega_grid': self.background_omega_grid.tolist(),
            'stats': asdict(self.stats),
        }

    def to_json(self, filepath: Optional[str] = None, indent: int = 2) -> str:
        """
        Export grid metadata as JSON.

        Parameters
        ----------
        filepath : str, optional
            If provided, write JSON to this file
        indent : int, default=2
            Indentation level for pretty printing
        """
        json_str = json.dumps(self.to_dict(), indent=indent)

        if filepath:
            with open(filepath, 'w') as f:
                f.write(json_str)

        return json_str

    def save(self, filepath: Union[str, Path]) -> None:
        """
        Write matrices, parameter vectors and axes to a ``.npz`` archive.
        """
        np.savez(
            filepath,
            con_lik_matrix=self.con_lik_matrix,
            log_con_lik_matrix=self.log_con_lik_matrix,
            codon_param_vec=np.array(self.codon_param_vec),
            alpha_grid=self.alpha_grid,
            omega_grid=self.omega_grid,
            background_omega_grid=self.background_omega_grid,
            param_kinds=np.array(self.param_kinds),
            tags=np.array(self.tags),
        )

    def __str__(self) -> str:
        return self.summary()

    def __repr__(self) -> str:
        return (
            f"GridResult(n_grid_points={self.n_grid_points}, num_sites={self.num_sites}, "
            f"strategy='{self.stats.strategy}')"
        )


def _format_axis(axis: np.ndarray) -> str:
    return "[" + ", ".join(f"{v:.3f}" for v in axis) + "]"


def difgrid_grid(
    tree: Tree,
    tags: List[str],
    nuc_matrix: np.ndarray,
    f3x4: np.ndarray,
    strategy: Union[str, GridStrategy] = GridStrategy.memoized_parallel,
    foreground_grid: int = 6,
    background_grid: int = 4,
    verbosity: int = 1,
    n_workers: Optional[int] = None,
    genetic_code: Optional[dict] = None,
) -> GridResult:
    """
    Compute the conditional likelihood grid on a tree with messages.

    Parameters
    ----------
    tree : Tree
        Tree whose messages were set by :func:`initialize_messages`. Node
        indices are reassigned in preorder.
    tags : list[str]
        Ordered tag strings, one omega axis per tag
    nuc_matrix : np.ndarray, shape (4, 4)
        Symmetric nucleotide exchangeabilities
    f3x4 : np.ndarray, shape (3, 4)
        Position-specific nucleotide frequencies
    strategy : str or GridStrategy, default="memoized-parallel"
        "direct", "parallel", "memoized" or "memoized-parallel"
    foreground_grid : int, default=6
        Intervals on the alpha and per-group omega axes
    background_grid : int, default=4
        Intervals on the background omega axis
    verbosity : int, default=1
        Print progress when > 0
    n_workers : int, optional
        Worker count for the parallel strategies; defaults to the CPU count
    genetic_code : dict, optional
        Codon table; standard code by default

    Returns
    -------
    GridResult

    Raises
    ------
    ValueError
        If the strategy is unknown or the inputs are malformed
    TagResolutionError
        If some node cannot be assigned a tag group
    """
    try:
        strategy = GridStrategy(strategy)
    except ValueError:
        valid = ", ".join(s.value for s in GridStrategy)
        raise ValueError(f"Unknown strategy '{strategy}'. Valid strategies: {valid}") from None

    tree.set_node_indices()
    setup = prepare_grid(tree, tags, foreground_grid, background_grid)

    kwargs = {"genetic_code": genetic_code, "verbosity": verbosity}
    if strategy in _PARALLEL:
        n_workers = default_n_workers() if n_workers is None else n_workers
        if n_workers > setup.n_grid_points:
            warnings.warn(
                f"Requested {n_workers} workers for {setup.n_grid_points} grid points; "
                f"only {setup.n_grid_points} will be used",
                UserWarning,
            )
        kwargs["n_workers"] = n_workers

    log_con_lik_matrix, stats = _EVALUATORS[strategy](
        tree, tags, setup, nuc_matrix, f3x4, **kwargs
    )
    con_lik_matrix = normalize_log_likelihoods(log_con_lik_matrix)

    return GridResult(
        con_lik_matrix=con_lik_matrix,
        log_con_lik_matrix=log_con_lik_matrix,
        codon_param_vec=setup.codon_param_vec,
        alpha_grid=setup.alpha_grid,
        omega_grid=setup.omega_grid,
        background_omega_grid=setup.background_omega_grid,
        param_kinds=setup.param_kinds,
        tags=list(tags),
        is_background=setup.is_background,
        stats=stats,
    )


def _load_alignment(alignment: Union[str, Path, Alignment]) -> Alignment:
    """
    Load a codon alignment, FASTA by extension or content, PHYLIP otherwise.

    Raises
    ------
    FileNotFoundError
        If the alignment file doesn't exist
    ValueError
        If neither format parses
    """
    if isinstance(alignment, Alignment):
        return alignment

    path = Path(alignment)
    if not path.exists():
        raise FileNotFoundError(f"Alignment file not found: {path}")

    suffix = path.suffix.lower()
    if suffix in ('.phy', '.phylip'):
        return Alignment.from_phylip(str(path))

    try:
        return Alignment.from_fasta(str(path))
    except ValueError:
        try:
            return Alignment.from_phylip(str(path))
        except ValueError as e:
            raise ValueError(
                f"Failed to auto-detect alignment format for {path}: {e}"
            ) from e


def _load_tree(tree: Union[str, Path, Tree]) -> Tree:
    """Load a tree from a Newick file or string."""
    if isinstance(tree, Tree):
        return tree

    # Newick text always carries a terminating semicolon; anything else is a path
    if isinstance(tree, str) and ";" in tree:
        return Tree.from_newick(tree)

    path = Path(tree)
    if path.exists():
        with open(path) as f:
            newick_str = f.read().strip()
    else:
        newick_str = str(tree)

    return Tree.from_newick(newick_str)


def run_grid(
    alignment: Union[str, Path, Alignment],
    tree: Union[str, Path, Tree],
    tags: List[str],
    kappa: float = 2.0,
    **grid_kwargs,
) -> GridResult:
    """
    Load data, set up the model inputs and compute the grid.

    F3x4 frequencies are estimated from the alignment and the nucleotide
    exchangeabilities are HKY-style with transition ratio ``kappa``.

    Parameters
    ----------
    alignment : str, Path, or Alignment
        Codon alignment (FASTA or PHYLIP)
    tree : str, Path, or Tree
        Newick file, Newick string or Tree; node names carry the tags
    tags : list[str]
        Ordered tag strings, e.g. ``["{G1}", "{G2}"]``
    kappa : float, default=2.0
        Transition/transversion exchangeability ratio
    **grid_kwargs
        Passed to :func:`difgrid_grid` (strategy, foreground_grid,
        background_grid, verbosity, n_workers, genetic_code)

    Returns
    -------
    GridResult
    """
    align = _load_alignment(alignment)
    tree_obj = _load_tree(tree)

    f3x4 = compute_f3x4(align)
    nuc_matrix = hky_nucleotide_matrix(kappa)
    initialize_messages(tree_obj, align, f3x4, tags)

    return difgrid_grid(tree_obj, tags, nuc_matrix, f3x4, **grid_kwargs)
